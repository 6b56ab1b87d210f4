import re
from typing import Union
from urllib.parse import urlsplit, urlunsplit

import httpx

from origin_proxy.config import (
    DEFAULT_PORTS,
    ProxyConfig,
    format_netloc,
    resolve_proxy_config,
)
from origin_proxy.models import BackendResponse, OutboundResponse

# Response headers revealing what the backend runs on
SERVER_IDENTITY_HEADERS = ("x-served-by", "x-powered-by", "server", "via")

_COOKIE_DOMAIN_PATTERN = re.compile(r";\s*Domain=[^;]*", re.IGNORECASE)


def _split_origin(origin: str):
    parsed = urlsplit(origin)
    port = parsed.port
    if port == DEFAULT_PORTS.get(parsed.scheme):
        port = None
    return parsed.scheme, parsed.hostname or "", port


def rewrite_location_header(
    location: str, backend_origin: Union[str, ProxyConfig], proxy_origin: str
) -> str:
    """
    Point a backend redirect back at the proxy.

    Absolute URLs that start with the configured backend origin get that prefix
    swapped for the proxy origin. Other absolute http(s) URLs on the backend
    host (typically a scheme mismatch) get scheme, host and port replaced.
    Relative and foreign URLs are returned untouched.
    """
    if not location:
        return location

    if isinstance(backend_origin, ProxyConfig):
        config = backend_origin
    else:
        config = resolve_proxy_config(backend_origin)

    if location.startswith(config.backend_origin):
        return proxy_origin + location[len(config.backend_origin):]

    if (
        location.lower().startswith(("http://", "https://"))
        and config.hostname in location.lower()
    ):
        try:
            parsed = urlsplit(location)
            hostname = parsed.hostname
        except ValueError:
            return location

        if hostname == config.hostname:
            scheme, proxy_host, proxy_port = _split_origin(proxy_origin)
            netloc = format_netloc(proxy_host, proxy_port)
            userinfo = parsed.netloc.rpartition("@")[0]
            if userinfo:
                netloc = f"{userinfo}@{netloc}"
            return urlunsplit(
                (scheme, netloc, parsed.path, parsed.query, parsed.fragment)
            )

    return location


def sanitize_headers(headers: httpx.Headers) -> httpx.Headers:
    """Return a copy of ``headers`` without the server identity headers."""
    sanitized = httpx.Headers(headers)
    for name in SERVER_IDENTITY_HEADERS:
        if name in sanitized:
            del sanitized[name]
    return sanitized


def strip_cookie_domain(set_cookie: str) -> str:
    """Drop the Domain attribute so the cookie binds to the proxy's host."""
    return _COOKIE_DOMAIN_PATTERN.sub("", set_cookie).strip()


def _strip_raw_cookie_domain(value: bytes) -> bytes:
    return strip_cookie_domain(value.decode("latin-1")).encode("latin-1")


def rewrite_response(
    backend_response: BackendResponse,
    backend_origin: Union[str, ProxyConfig],
    proxy_origin: str,
    strip_server_identity_headers: bool = True,
    strip_cookie_domains: bool = False,
) -> OutboundResponse:
    """
    Build the client-facing response from the backend's.

    Only headers change: Location is corrected, identity headers are dropped
    when ``strip_server_identity_headers`` is set and cookie domains are
    removed when ``strip_cookie_domains`` is set. Status, reason and body are
    passed through.
    """
    headers = httpx.Headers(backend_response.headers)

    location = headers.get("location")
    if location:
        rewritten = rewrite_location_header(location, backend_origin, proxy_origin)
        if rewritten != location:
            headers["Location"] = rewritten

    if strip_cookie_domains and "set-cookie" in headers:
        headers = httpx.Headers(
            [
                (name, _strip_raw_cookie_domain(value))
                if name.lower() == b"set-cookie"
                else (name, value)
                for name, value in headers.raw
            ]
        )

    if strip_server_identity_headers:
        headers = sanitize_headers(headers)

    return OutboundResponse(
        status_code=backend_response.status_code,
        reason_phrase=backend_response.reason_phrase,
        headers=headers,
        stream=backend_response.stream,
    )
