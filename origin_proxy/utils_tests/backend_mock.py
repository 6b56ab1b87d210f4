from typing import Callable, List, Optional

import httpx


def backend_reply(
    status_code: int = 200,
    headers=None,
    content: bytes = b"",
) -> httpx.Response:
    """Build a backend response whose body is still an unread stream."""
    return httpx.Response(
        status_code, headers=headers, stream=httpx.ByteStream(content)
    )


class RecordingBackend:
    """Stand-in for the backend server that records every request it receives."""

    def __init__(
        self, responder: Optional[Callable[[httpx.Request], httpx.Response]] = None
    ):
        self.requests: List[httpx.Request] = []
        self.bodies: List[bytes] = []
        self.responder = responder or (lambda request: backend_reply(content=b"ok"))

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.bodies.append(await request.aread())
        self.requests.append(request)
        return self.responder(request)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def failing_backend(exc_type, message: str) -> RecordingBackend:
    """Backend whose every call fails at the transport level."""

    def _raise(request: httpx.Request) -> httpx.Response:
        raise exc_type(message, request=request)

    return RecordingBackend(_raise)
