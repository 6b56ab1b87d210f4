"""
Helpers for turning upstream failures into log lines and client-facing messages.
"""

import logging


def _safe_str(obj) -> str:
    """
    Convert an object to string without letting a broken __str__ escape.

    Falls back to repr, then to a placeholder naming the type.
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _safe_get_exceptions(exception_group) -> list:
    try:
        return list(exception_group.exceptions)
    except Exception:
        return []


def format_exception_message(exception: BaseException) -> str:
    """
    Format an exception as a short, non-empty message.

    Transport errors from httpx frequently carry no text (a bare ReadTimeout
    for instance), so an empty message falls back to the exception type.
    Exception groups list their sub-exceptions.

    Args:
        exception: The exception to format

    Returns:
        A human readable message, never empty
    """
    if exception is None:
        return "None"

    message = _safe_str(exception).strip()
    if not message:
        message = type(exception).__name__

    sub_exceptions = (
        _safe_get_exceptions(exception) if hasattr(exception, "exceptions") else []
    )
    if sub_exceptions:
        details = "; ".join(
            f"{type(sub).__name__}: {_safe_str(sub)}" for sub in sub_exceptions
        )
        return f"{message} (Sub-exceptions: {details})"

    return message


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: BaseException,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception, expanding sub-exceptions of exception groups.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Proxy]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    sub_exceptions = (
        _safe_get_exceptions(exception) if hasattr(exception, "exceptions") else []
    )

    if not sub_exceptions:
        logger.log(
            level,
            f"{prefix} Exception: {format_exception_message(exception)}",
            exc_info=exception,
        )
        return

    logger.log(
        level,
        f"{prefix} Exception with {len(sub_exceptions)} sub-exceptions: "
        f"{_safe_str(exception)}",
    )
    for i, sub_exc in enumerate(sub_exceptions):
        logger.log(
            level,
            f"{prefix} Sub-exception {i+1}: {type(sub_exc).__name__}: {_safe_str(sub_exc)}",
            exc_info=sub_exc,
        )
