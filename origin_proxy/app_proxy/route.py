import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

import httpx
from fastapi import Request
from fastapi.responses import Response, StreamingResponse
from opentelemetry import trace
from starlette.requests import ClientDisconnect
from starlette.types import Receive, Scope, Send
from starlette.websockets import WebSocketClose

from origin_proxy.app_proxy.forwarder import Forwarder
from origin_proxy.app_proxy.request_builder import build_outbound_request
from origin_proxy.app_proxy.response_rewriter import rewrite_response
from origin_proxy.config import ProxySettings, resolve_proxy_config
from origin_proxy.errors import ConfigError, UpstreamError
from origin_proxy.models import InboundRequest, OutboundResponse
from origin_proxy.utils import mask_url_credentials
from origin_proxy.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)
from origin_proxy.utils.traced_requests import traced_request

tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

PLAIN_TEXT_CONTENT_TYPE = "text/plain;charset=UTF-8"

# Connection-level headers, the ASGI server frames the client response itself
HOP_BY_HOP_HEADERS = {
    b"connection",
    b"keep-alive",
    b"proxy-connection",
    b"te",
    b"trailer",
    b"transfer-encoding",
    b"upgrade",
}


def plain_text_response(text: str, status_code: int) -> Response:
    return Response(
        content=text,
        status_code=status_code,
        headers={"content-type": PLAIN_TEXT_CONTENT_TYPE},
    )


def get_inbound_url(request: Request) -> str:
    """Full inbound URL, keeping the path exactly as the client encoded it."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
        return str(request.url.replace(path=path))
    return str(request.url)


def get_proxy_origin(request: Request, settings: ProxySettings) -> str:
    if settings.public_url:
        return settings.public_url
    return f"{request.url.scheme}://{request.url.netloc}"


async def stream_inbound_body(request: Request) -> AsyncIterator[bytes]:
    try:
        async for chunk in request.stream():
            yield chunk
    except ClientDisconnect as e:
        raise UpstreamError("Client disconnected while sending the request body") from e


def to_inbound_request(request: Request) -> InboundRequest:
    has_body = (
        "content-length" in request.headers or "transfer-encoding" in request.headers
    )
    return InboundRequest(
        method=request.method,
        url=get_inbound_url(request),
        headers=httpx.Headers(request.headers.raw),
        body=stream_inbound_body(request) if has_body else None,
    )


async def relay_body(
    stream: AsyncIterator[bytes], close: Callable[[], Awaitable[None]]
) -> AsyncIterator[bytes]:
    """Yield backend bytes as they arrive and release the upstream connection."""
    try:
        async for chunk in stream:
            yield chunk
    except httpx.RequestError as e:
        log_exception_with_details(logger, "[Proxy] Response body relay failed:", e)
        raise UpstreamError(format_exception_message(e)) from e
    finally:
        await close()


def to_streaming_response(
    outbound: OutboundResponse, close: Callable[[], Awaitable[None]]
) -> StreamingResponse:
    response = StreamingResponse(
        relay_body(outbound.stream, close),
        status_code=outbound.status_code,
    )
    # Assigned directly so repeated headers such as Set-Cookie survive
    response.raw_headers = [
        (name.lower(), value)
        for name, value in outbound.headers.raw
        if name.lower() not in HOP_BY_HOP_HEADERS
    ]
    return response


async def forward_to_backend(
    request: Request,
    settings: ProxySettings,
    forwarder: Forwarder,
) -> Response:
    """
    Forward one inbound request to the backend and return its rewritten response.

    Configuration problems answer 500, failures reaching the backend answer 502.
    Every other status comes from the backend unchanged.
    """
    target_url: Optional[str] = None
    with traced_request(
        tracer,
        "proxy_request",
        request.method,
        None,
        f"Proxying {request.method} {request.url.path}",
    ) as span:
        try:
            config = resolve_proxy_config(settings.backend_url)
            outbound = build_outbound_request(to_inbound_request(request), config)
            target_url = outbound.url
            span.set_attribute("proxy.target_url", mask_url_credentials(target_url))
            logger.debug(
                f"Proxying {request.method} {request.url.path} -> "
                f"{mask_url_credentials(target_url)}"
            )

            backend_response = await forwarder.send(outbound)
        except ConfigError as e:
            logger.error(f"[Proxy] Configuration error: {e.message}")
            span.set_attribute("proxy.error", "config")
            return plain_text_response(f"Error: {e.message}", 500)
        except UpstreamError as e:
            logger.error(
                f"[Proxy] Upstream error for "
                f"{mask_url_credentials(target_url or '')}: {e.message}"
            )
            span.set_attribute("proxy.error", e.message)
            return plain_text_response(f"Proxy Error: {e.message}", 502)

        span.set_attribute("proxy.status_code", backend_response.status_code)

        outbound_response = rewrite_response(
            backend_response,
            config,
            get_proxy_origin(request, settings),
            strip_server_identity_headers=settings.strip_server_identity_headers,
            strip_cookie_domains=settings.strip_cookie_domain,
        )

        location = outbound_response.headers.get("location")
        if location and location != backend_response.headers.get("location"):
            span.set_attribute("proxy.rewritten_location", location)

        return to_streaming_response(outbound_response, backend_response.close)


async def proxy_app(scope: Scope, receive: Receive, send: Send) -> None:
    """
    ASGI catch-all that proxies every path and method to the backend.

    Mounted at the root after the local routes, so it receives whatever they
    do not match, including methods such as PROPFIND or PURGE.
    """
    if scope["type"] != "http":
        await WebSocketClose()(scope, receive, send)
        return

    request = Request(scope, receive)
    response = await forward_to_backend(
        request,
        request.app.state.proxy_settings,
        request.app.state.forwarder,
    )
    await response(scope, receive, send)
