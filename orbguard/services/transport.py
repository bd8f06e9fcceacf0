"""
HttpTransport - the network edge of the pipeline.

Sends an ApiRequest through a shared httpx.AsyncClient and returns a fully read
ApiResponse. Transport exceptions (timeouts, connection errors) propagate as
raw httpx exceptions; the pipeline normalizes them.
"""

import time
from typing import Any

import httpx
from loguru import logger

from orbguard.services.models import ApiRequest, ApiResponse
from orbguard.settings import Settings

SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "x-api-key"})


def redact_headers(headers: dict[str, str]) -> dict[str, str]:
    """Copy of ``headers`` with credential values masked."""
    return {
        key: "***" if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def _truncate(text: str, max_length: int = 500) -> str:
    if len(text) <= max_length:
        return text
    return f"{text[:max_length]}..."


class HttpTransport:
    """Lazily created httpx client plus optional request tracing."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._settings = settings
        self._transport = transport
        self._base_url = settings.base_url
        self._http_client: httpx.AsyncClient | None = None
        self.request_count = 0

    @property
    def base_url(self) -> str:
        return self._base_url

    def set_base_url(self, url: str) -> None:
        self._base_url = url
        if self._http_client is not None:
            self._http_client.base_url = url

    def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(
                    connect=self._settings.connect_timeout,
                    read=self._settings.receive_timeout,
                    write=self._settings.send_timeout,
                    pool=self._settings.connect_timeout,
                ),
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
                transport=self._transport,
            )
        return self._http_client

    async def send(self, request: ApiRequest) -> ApiResponse:
        """Execute the actual HTTP request."""
        client = self._get_http_client()
        http_request = client.build_request(
            method=request.method.upper(),
            url=request.path,
            params=_query_params(request.query_params),
            headers=request.headers,
            json=request.body,
        )

        self.request_count += 1
        self._log_request(http_request, request.body)
        started = time.perf_counter()

        try:
            response = await client.send(http_request)
        except httpx.HTTPError as e:
            if self._settings.log_http:
                logger.debug(
                    f"ERROR {type(e).__name__} {http_request.method} {http_request.url}: {e}"
                )
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        self._log_response(response, elapsed_ms)

        return ApiResponse(
            status_code=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            content=response.content,
        )

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def _log_request(self, request: httpx.Request, body: Any) -> None:
        if not self._settings.log_http:
            return
        logger.debug(
            f"REQUEST {request.method} {request.url} "
            f"headers={redact_headers(dict(request.headers))}"
        )
        if self._settings.log_bodies and body is not None:
            logger.debug(f"REQUEST BODY {_truncate(str(body))}")

    def _log_response(self, response: httpx.Response, elapsed_ms: float) -> None:
        if not self._settings.log_http:
            return
        logger.debug(
            f"RESPONSE {response.status_code} {response.request.url} ({elapsed_ms:.0f}ms)"
        )
        if self._settings.log_bodies and response.content:
            logger.debug(f"RESPONSE BODY {_truncate(response.text)}")


def _query_params(params: dict[str, Any] | None) -> dict[str, str] | None:
    if not params:
        return None
    return {k: str(v) for k, v in params.items() if v is not None}
