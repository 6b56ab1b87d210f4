import logging
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Optional

import httpx

from origin_proxy.errors import UpstreamError
from origin_proxy.models import BackendResponse, OutboundRequest
from origin_proxy.utils import mask_url_credentials
from origin_proxy.utils.exception_logging import format_exception_message

logger = logging.getLogger("uvicorn.error")


def _no_cookie_jar() -> CookieJar:
    # Backend cookies belong to the client, the proxy never keeps them
    return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))


class Forwarder:
    """
    Sends outbound requests to the backend.

    A single httpx.AsyncClient is shared by all requests so connections can be
    reused; it carries no per-request state.
    """

    def __init__(
        self,
        timeout: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.transport = transport
        self.client: Optional[httpx.AsyncClient] = None

    async def initialize(self) -> httpx.AsyncClient:
        if self.client is None:
            self.client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=False,
                cookies=_no_cookie_jar(),
                transport=self.transport,
            )
        return self.client

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    async def send(self, outbound: OutboundRequest) -> BackendResponse:
        """
        Perform the single upstream call.

        The request is built directly rather than through the client so that
        none of the client's default headers (User-Agent, Accept-Encoding, ...)
        are added to what the caller sent.
        """
        client = await self.initialize()

        request = httpx.Request(
            method=outbound.method,
            url=outbound.url,
            headers=outbound.headers,
            content=outbound.body,
        )

        try:
            response = await client.send(
                request,
                stream=True,
                follow_redirects=outbound.follow_redirects,
            )
        except httpx.RequestError as e:
            raise UpstreamError(format_exception_message(e)) from e

        logger.debug(
            f"Backend responded {response.status_code} for {outbound.method} "
            f"{mask_url_credentials(outbound.url)}"
        )

        return BackendResponse(
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            headers=response.headers,
            stream=response.aiter_raw(),
            close=response.aclose,
        )
