import os
from typing import Any

import httpx

from pseudoidc.config import config
from pseudoidc.oidc.errors import UpstreamConnectionError, UpstreamTimeoutError


class HTTPClient(httpx.AsyncClient):
    """
    Client for the identity provider endpoints.

    Authorization codes are single use, so the transport never retries.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        http_proxy: str | None = os.getenv("HTTP_PROXY") or os.getenv("http_proxy")
        https_proxy: str | None = os.getenv("HTTPS_PROXY") or os.getenv("https_proxy")
        mounts: dict[str, httpx.AsyncHTTPTransport] = {
            "http://": httpx.AsyncHTTPTransport(proxy=http_proxy, retries=0),
            "https://": httpx.AsyncHTTPTransport(proxy=https_proxy, retries=0),
        }

        kwargs.setdefault("mounts", mounts)
        kwargs.setdefault("timeout", config.http_timeout)
        kwargs.setdefault("follow_redirects", False)

        super().__init__(*args, **kwargs)

    async def request(
        self,
        method: str,
        url: str | httpx.URL,
        *args: Any,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            return await super().request(method, url, *args, **kwargs)
        except httpx.TimeoutException as exc:
            url_obj = httpx.URL(url)
            raise UpstreamTimeoutError(f"Timed out calling {url_obj.host}") from exc
        except httpx.HTTPError as exc:
            url_obj = httpx.URL(url)
            raise UpstreamConnectionError(
                f"Failed to connect to {url_obj.host}"
            ) from exc
