"""
Tests for turning inbound requests into backend requests.

Covers:
- Origin substitution with and without sub-path mounting
- Query preservation
- Host / X-Forwarded-* header handling
- Method and body pass-through
- Configuration errors
"""

import httpx
import pytest

from origin_proxy.app_proxy.request_builder import (
    build_outbound_request,
    get_target_url,
    prepare_headers,
)
from origin_proxy.config import resolve_proxy_config
from origin_proxy.errors import ConfigError
from origin_proxy.models import InboundRequest

BACKEND_ORIGIN = "https://api.example.com"


@pytest.fixture
def make_inbound():
    def _make(
        url="https://proxy.example.com/foo?x=1",
        method="GET",
        headers=None,
        body=None,
    ):
        return InboundRequest(
            method=method,
            url=url,
            headers=httpx.Headers(headers or {"host": "proxy.example.com"}),
            body=body,
        )

    return _make


class TestGetTargetUrl:
    def test_origin_replaced_path_and_query_kept(self):
        config = resolve_proxy_config(BACKEND_ORIGIN)
        result = get_target_url("https://proxy.example.com/foo?x=1", config)
        assert result == "https://api.example.com/foo?x=1"

    def test_scheme_and_port_taken_from_backend(self):
        config = resolve_proxy_config("http://localhost:8080")
        result = get_target_url("https://proxy.example.com:8443/api/users", config)
        assert result == "http://localhost:8080/api/users"

    def test_inbound_port_dropped_for_default_backend_port(self):
        config = resolve_proxy_config("https://api.example.com:443")
        result = get_target_url("http://localhost:8000/status", config)
        assert result == "https://api.example.com/status"

    def test_base_path_prepended(self):
        config = resolve_proxy_config("https://api.example.com/app")
        result = get_target_url("https://proxy.example.com/foo", config)
        assert result == "https://api.example.com/app/foo"

    def test_root_base_path_ignored(self):
        config = resolve_proxy_config("https://api.example.com/")
        result = get_target_url("https://proxy.example.com/foo", config)
        assert result == "https://api.example.com/foo"

    def test_base_path_with_trailing_slash_is_concatenated_verbatim(self):
        config = resolve_proxy_config("https://api.example.com/app/")
        result = get_target_url("https://proxy.example.com/foo", config)
        assert result == "https://api.example.com/app//foo"

    def test_base_path_and_root_request(self):
        config = resolve_proxy_config("https://api.example.com/app")
        result = get_target_url("https://proxy.example.com/", config)
        assert result == "https://api.example.com/app/"

    def test_encoded_path_untouched(self):
        config = resolve_proxy_config(BACKEND_ORIGIN)
        result = get_target_url(
            "https://proxy.example.com/files/a%2Fb?q=hello%20world&tag=foo%2Fbar",
            config,
        )
        assert result == "https://api.example.com/files/a%2Fb?q=hello%20world&tag=foo%2Fbar"

    def test_ipv6_backend(self):
        config = resolve_proxy_config("http://[::1]:9000")
        result = get_target_url("https://proxy.example.com/foo", config)
        assert result == "http://[::1]:9000/foo"


class TestPrepareHeaders:
    def test_forwarding_headers_set(self, make_inbound):
        inbound = make_inbound(
            url="https://proxy.example.com:8443/foo",
            headers={"host": "proxy.example.com:8443", "user-agent": "test-agent"},
        )

        result = prepare_headers(inbound, resolve_proxy_config(BACKEND_ORIGIN))

        assert result["host"] == "api.example.com"
        assert result["x-forwarded-host"] == "proxy.example.com"
        assert result["x-forwarded-proto"] == "https"
        assert result["user-agent"] == "test-agent"

    def test_host_has_no_backend_port(self, make_inbound):
        result = prepare_headers(
            make_inbound(), resolve_proxy_config("http://backend.internal:8080")
        )
        assert result["host"] == "backend.internal"

    def test_plain_http_inbound(self, make_inbound):
        inbound = make_inbound(url="HTTP://Proxy.Example.com/foo")
        result = prepare_headers(inbound, resolve_proxy_config(BACKEND_ORIGIN))
        assert result["x-forwarded-proto"] == "http"
        assert result["x-forwarded-host"] == "proxy.example.com"

    def test_ipv6_inbound_host_bracketed(self, make_inbound):
        inbound = make_inbound(url="http://[::1]:8000/foo")
        result = prepare_headers(inbound, resolve_proxy_config(BACKEND_ORIGIN))
        assert result["x-forwarded-host"] == "[::1]"

    def test_existing_forwarding_headers_overwritten(self, make_inbound):
        inbound = make_inbound(
            headers=[
                ("Host", "proxy.example.com"),
                ("X-Forwarded-Host", "spoofed.example.com"),
                ("X-Forwarded-Proto", "gopher"),
            ]
        )

        result = prepare_headers(inbound, resolve_proxy_config(BACKEND_ORIGIN))

        assert result.get_list("x-forwarded-host") == ["proxy.example.com"]
        assert result.get_list("x-forwarded-proto") == ["https"]
        assert result.get_list("host") == ["api.example.com"]

    def test_all_other_headers_copied(self, make_inbound):
        inbound = make_inbound(
            headers=[
                ("host", "proxy.example.com"),
                ("authorization", "Bearer token123"),
                ("accept-encoding", "gzip"),
                ("cookie", "a=1"),
                ("x-custom", "one"),
                ("x-custom", "two"),
            ]
        )

        result = prepare_headers(inbound, resolve_proxy_config(BACKEND_ORIGIN))

        assert result["authorization"] == "Bearer token123"
        assert result["accept-encoding"] == "gzip"
        assert result["cookie"] == "a=1"
        assert result.get_list("x-custom") == ["one", "two"]

    def test_inbound_headers_not_mutated(self, make_inbound):
        inbound = make_inbound()
        prepare_headers(inbound, resolve_proxy_config(BACKEND_ORIGIN))

        assert inbound.headers["host"] == "proxy.example.com"
        assert "x-forwarded-host" not in inbound.headers


class TestBuildOutboundRequest:
    @pytest.mark.parametrize("method", ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"])
    def test_method_and_body_preserved(self, make_inbound, method):
        async def body():
            yield b"payload"

        stream = body()
        inbound = make_inbound(method=method, body=stream)

        outbound = build_outbound_request(inbound, BACKEND_ORIGIN)

        assert outbound.method == method
        assert outbound.body is stream
        assert outbound.url == "https://api.example.com/foo?x=1"

    def test_redirects_never_followed(self, make_inbound):
        outbound = build_outbound_request(make_inbound(), BACKEND_ORIGIN)
        assert outbound.follow_redirects is False

    def test_accepts_resolved_config(self, make_inbound):
        config = resolve_proxy_config("https://api.example.com/app")
        outbound = build_outbound_request(make_inbound(url="http://p/foo"), config)
        assert outbound.url == "https://api.example.com/app/foo"

    def test_outbound_headers(self, make_inbound):
        outbound = build_outbound_request(make_inbound(), BACKEND_ORIGIN)

        assert outbound.headers["host"] == "api.example.com"
        assert outbound.headers["x-forwarded-host"] == "proxy.example.com"
        assert outbound.headers["x-forwarded-proto"] == "https"

    @pytest.mark.parametrize("backend_origin", [None, "", "not a url"])
    def test_config_error(self, make_inbound, backend_origin):
        with pytest.raises(ConfigError):
            build_outbound_request(make_inbound(), backend_origin)
