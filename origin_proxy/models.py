from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Optional

import httpx


@dataclass
class InboundRequest:
    """Request as received from the client. Read-only to the proxy core."""

    method: str
    url: str
    headers: httpx.Headers
    body: Optional[AsyncIterator[bytes]] = None


@dataclass
class OutboundRequest:
    """Request sent to the backend; lives only for the forwarding call."""

    method: str
    url: str
    headers: httpx.Headers
    body: Optional[AsyncIterator[bytes]] = None
    follow_redirects: bool = False


@dataclass
class BackendResponse:
    """
    Response as returned by the backend.

    Attributes:
        status_code: Backend status code, redirects included.
        reason_phrase: Backend status text.
        headers: Raw backend headers.
        stream: Undecoded body bytes, consumed incrementally.
        close: Releases the upstream connection once the body is done.
    """

    status_code: int
    reason_phrase: str
    headers: httpx.Headers
    stream: AsyncIterator[bytes]
    close: Callable[[], Awaitable[None]]


@dataclass
class OutboundResponse:
    """Response handed back to the client."""

    status_code: int
    reason_phrase: str
    headers: httpx.Headers
    stream: AsyncIterator[bytes]
