from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

from origin_proxy import vars as proxy_vars
from origin_proxy.errors import ConfigError

MISSING_BACKEND_MESSAGE = "BACKEND_URL variable is not set."

DEFAULT_PORTS = {"http": 80, "https": 443}


def format_netloc(hostname: str, port: Optional[int] = None) -> str:
    """Build ``host[:port]`` with IPv6 literals bracketed."""
    host = f"[{hostname}]" if ":" in hostname else hostname
    return f"{host}:{port}" if port else host


@dataclass(frozen=True)
class ProxySettings:
    """
    Configuration handed to the application at construction time.

    Attributes:
        backend_url: Raw backend origin (scheme, host, optional port and base path).
        public_url: Origin clients use to reach the proxy. When empty it is
            derived from each inbound request.
        strip_server_identity_headers: Remove ``server``, ``via``,
            ``x-powered-by`` and ``x-served-by`` from backend responses.
        strip_cookie_domain: Drop the ``Domain`` attribute from ``Set-Cookie``.
        timeout: Upstream timeout in seconds.
    """

    backend_url: Optional[str] = None
    public_url: str = ""
    strip_server_identity_headers: bool = True
    strip_cookie_domain: bool = False
    timeout: float = 300.0

    @classmethod
    def from_env(cls) -> "ProxySettings":
        return cls(
            backend_url=proxy_vars.BACKEND_URL or None,
            public_url=proxy_vars.PUBLIC_URL,
            strip_server_identity_headers=proxy_vars.STRIP_SERVER_IDENTITY_HEADERS,
            strip_cookie_domain=proxy_vars.STRIP_COOKIE_DOMAIN,
            timeout=proxy_vars.PROXY_TIMEOUT,
        )


@dataclass(frozen=True)
class ProxyConfig:
    """Parsed backend origin for a single request."""

    backend_origin: str
    scheme: str
    hostname: str
    port: Optional[int]
    base_path: str

    @property
    def netloc(self) -> str:
        return format_netloc(self.hostname, self.port)

    @property
    def has_base_path(self) -> bool:
        return self.base_path not in ("", "/")


def resolve_proxy_config(backend_origin: Optional[str]) -> ProxyConfig:
    """Parse the configured backend origin, raising ConfigError when unusable."""
    backend_origin = (backend_origin or "").strip()
    if not backend_origin:
        raise ConfigError(MISSING_BACKEND_MESSAGE)

    try:
        parsed = urlsplit(backend_origin)
        port = parsed.port
    except ValueError as e:
        raise ConfigError(f"BACKEND_URL is not a valid URL: {backend_origin} ({e})")

    scheme = parsed.scheme.lower()
    if scheme not in DEFAULT_PORTS or not parsed.hostname:
        raise ConfigError(
            f"BACKEND_URL must be an absolute http(s) URL, got: {backend_origin}"
        )

    # An explicit default port is equivalent to none at all
    if port == DEFAULT_PORTS[scheme]:
        port = None

    return ProxyConfig(
        backend_origin=backend_origin,
        scheme=scheme,
        hostname=parsed.hostname,
        port=port,
        base_path=parsed.path,
    )
