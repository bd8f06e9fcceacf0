"""
RequestPipeline - the single entry point feature services use to reach the backend.

Combines:
- CacheStage for fresh-read short-circuiting
- RetryStage for transient failure recovery with exponential backoff
- AuthStage for credential attachment and single-flight token refresh
- HttpTransport for the actual network call

Outbound order is Cache -> Retry -> Auth -> transport, so every retry re-enters
the Auth stage with the current credentials.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable

import httpx
from loguru import logger

from orbguard.endpoints import AUTH_DEVICE
from orbguard.services.auth import AuthStage
from orbguard.services.cache import CacheManager, CacheStage, Clock
from orbguard.services.credentials import CredentialStore
from orbguard.services.errors import ApiError, MalformedResponseError
from orbguard.services.models import (
    ApiRequest,
    ApiResponse,
    CacheOptions,
    RetryPolicy,
)
from orbguard.services.retry import RetryStage, Sleep
from orbguard.services.transport import HttpTransport
from orbguard.settings import Settings

DeviceInfoProvider = Callable[[], Awaitable[dict[str, Any]]]


class RequestPipeline:
    """
    Authenticated, retried and cached access to the backend.

    Usage:
        async with RequestPipeline(settings, SqlCredentialStore(url)) as api:
            stats = await api.get("/api/v1/stats")

            response = await api.execute(ApiRequest(
                method="GET",
                path="/api/v1/mitre/tactics",
                cache=CacheOptions(ttl=timedelta(hours=24)),
            ))
    """

    def __init__(
        self,
        settings: Settings,
        credential_store: CredentialStore,
        transport: httpx.AsyncBaseTransport | None = None,
        device_info_provider: DeviceInfoProvider | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = datetime.now,
    ):
        self._settings = settings
        self._device_info_provider = device_info_provider

        self._transport = HttpTransport(settings, transport=transport)
        self._cache = CacheManager(
            max_size=settings.cache_max_size,
            clock=clock,
            debug=settings.debug,
        )
        self._cache_stage = CacheStage(self._cache, settings)
        self._retry_stage = RetryStage(
            RetryPolicy(
                max_retries=settings.max_retries,
                base_delay=timedelta(seconds=settings.retry_base_delay),
            ),
            sleep=sleep,
        )
        self._auth_stage = AuthStage(
            credential_store, settings, send=self._transport.send
        )

        self._initialized = False

    async def init(self) -> None:
        """Load credentials and register the device if it has no identity yet."""
        if self._initialized:
            return

        await self._auth_stage.init()
        self._initialized = True

        if self._auth_stage.device_id is None and self._device_info_provider:
            try:
                await self.register_device(await self._device_info_provider())
            except ApiError as e:
                logger.warning(f"Device registration failed, continuing without it: {e}")

        logger.info(f"RequestPipeline ready ({self._transport.base_url})")

    async def dispose(self) -> None:
        """Close the HTTP client and drop cached responses."""
        await self._auth_stage.dispose()
        await self._transport.close()
        await self._cache.clear()
        self._initialized = False
        logger.debug("RequestPipeline disposed")

    async def __aenter__(self) -> "RequestPipeline":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.dispose()

    # Core operation

    async def execute(self, request: ApiRequest) -> ApiResponse:
        """
        Run a logical request through the full pipeline.

        Returns:
            ApiResponse with a 2xx status (possibly served from cache)

        Raises:
            ApiError: the normalized failure; no other exception type escapes,
                except CancelledError when the calling task itself is cancelled
        """
        if not self._initialized:
            raise RuntimeError("RequestPipeline not initialized. Call init() first.")

        try:
            response = await self._cache_stage.handle(request, self._send_with_retry)
        except asyncio.CancelledError as e:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            raise ApiError.from_exception(e) from e
        except ApiError:
            raise
        except Exception as e:
            error = ApiError.from_exception(e)
            logger.debug(f"{request.method} {request.path} failed: {error.code}")
            raise error from e

        if not response.is_success:
            error = ApiError.from_response(response)
            logger.debug(
                f"{request.method} {request.path} failed: "
                f"{response.status_code} {error.code}"
            )
            raise error

        return response

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_data: Any = None,
        headers: dict[str, str] | None = None,
        cache_ttl: timedelta | None = None,
        force_refresh: bool = False,
        retry: RetryPolicy | None = None,
    ) -> Any:
        """Execute a request and return its parsed body."""
        response = await self.execute(
            ApiRequest(
                method=method,
                path=path,
                query_params=params,
                body=json_data,
                headers=headers or {},
                cache=CacheOptions(ttl=cache_ttl, force_refresh=force_refresh),
                retry=retry,
            )
        )
        try:
            return response.parse()
        except ValueError as e:
            raise MalformedResponseError(status_code=response.status_code) from e

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        cache_ttl: timedelta | None = None,
        force_refresh: bool = False,
    ) -> Any:
        return await self.request(
            "GET", path, params=params, cache_ttl=cache_ttl, force_refresh=force_refresh
        )

    async def post(self, path: str, json_data: Any = None) -> Any:
        return await self.request("POST", path, json_data=json_data)

    async def put(self, path: str, json_data: Any = None) -> Any:
        return await self.request("PUT", path, json_data=json_data)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    async def _send_with_retry(self, request: ApiRequest) -> ApiResponse:
        return await self._retry_stage.handle(request, self._send_authorized)

    async def _send_authorized(self, request: ApiRequest) -> ApiResponse:
        return await self._auth_stage.handle(request, self._transport.send)

    # Device & session

    async def register_device(self, device_data: dict[str, Any]) -> dict[str, Any]:
        """Register this device and store the identity and token it returns."""
        data = await self.post(AUTH_DEVICE, json_data=device_data)
        if not isinstance(data, dict):
            return {}

        device_id = data.get("device_id")
        token = data.get("token")
        if device_id:
            await self._auth_stage.set_device_id(device_id)
        if token:
            await self._auth_stage.save_tokens(token, data.get("refresh_token"))
        logger.info(f"Device registered (device_id={device_id})")
        return data

    async def save_tokens(self, access_token: str, refresh_token: str | None = None) -> None:
        await self._auth_stage.save_tokens(access_token, refresh_token)

    async def logout(self) -> None:
        """Forget tokens and cached responses."""
        await self._auth_stage.clear_tokens()
        await self._cache.clear()
        logger.info("Logged out")

    @property
    def is_authenticated(self) -> bool:
        return self._auth_stage.is_authenticated

    @property
    def device_id(self) -> str | None:
        return self._auth_stage.device_id

    async def set_base_url(self, url: str) -> None:
        """Point the pipeline at another backend and drop cached responses."""
        self._transport.set_base_url(url)
        await self._cache.clear()
        logger.info(f"Base URL set to {url}")

    # Cache control

    async def clear_cache(self) -> None:
        await self._cache.clear()

    async def clear_cache_for(self, path: str) -> int:
        """Drop cached responses whose key contains ``path``."""
        return await self._cache.invalidate(path)

    # Health and status

    def get_health_status(self) -> dict[str, Any]:
        return {
            "initialized": self._initialized,
            "base_url": self._transport.base_url,
            "authenticated": self.is_authenticated,
            "refreshing": self._auth_stage.is_refreshing,
            "cache": self._cache.get_stats().to_dict(),
            "transport_requests": self._transport.request_count,
            "token_refreshes": self._auth_stage.refresh_count,
            "refresh_waiters": self._auth_stage.queued_waiters,
            "cache_bypasses": self._cache_stage.bypassed,
            "retries": self._retry_stage.total_retries,
        }
