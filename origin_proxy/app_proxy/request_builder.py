from typing import Union
from urllib.parse import urlsplit, urlunsplit

import httpx

from origin_proxy.config import ProxyConfig, format_netloc, resolve_proxy_config
from origin_proxy.models import InboundRequest, OutboundRequest


def get_target_url(inbound_url: str, config: ProxyConfig) -> str:
    """
    Point the inbound URL at the backend.

    Scheme, host and port are swapped for the backend's; path and query are
    kept. A backend base path other than ``/`` is prepended to the path as is.
    """
    parsed = urlsplit(inbound_url)

    path = parsed.path
    if config.has_base_path:
        path = config.base_path + path

    return urlunsplit((config.scheme, config.netloc, path, parsed.query, parsed.fragment))


def prepare_headers(inbound: InboundRequest, config: ProxyConfig) -> httpx.Headers:
    """
    Copy the inbound headers and add the forwarding metadata.

    Host is forced to the backend hostname, X-Forwarded-Host and
    X-Forwarded-Proto describe the original request.
    """
    parsed = urlsplit(inbound.url)
    headers = httpx.Headers(inbound.headers)

    if parsed.hostname:
        original_host = format_netloc(parsed.hostname)
    else:
        original_host = inbound.headers.get("host", "")

    headers["Host"] = format_netloc(config.hostname)
    headers["X-Forwarded-Host"] = original_host
    headers["X-Forwarded-Proto"] = parsed.scheme.lower().rstrip(":")

    return headers


def build_outbound_request(
    inbound: InboundRequest, backend_origin: Union[str, ProxyConfig, None]
) -> OutboundRequest:
    """Turn an inbound request into the request sent to the backend."""
    if isinstance(backend_origin, ProxyConfig):
        config = backend_origin
    else:
        config = resolve_proxy_config(backend_origin)

    return OutboundRequest(
        method=inbound.method,
        url=get_target_url(inbound.url, config),
        headers=prepare_headers(inbound, config),
        body=inbound.body,
        follow_redirects=False,
    )
