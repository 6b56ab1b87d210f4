class ConfigError(Exception):
    """Raised when the backend origin is missing or cannot be parsed."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UpstreamError(Exception):
    """Raised when the backend cannot be reached or read from."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
