"""
AuthStage - attaches credentials and recovers from expired access tokens.

When a request comes back 401 and a refresh token is available, a single
refresh task is started. Every other request that fails with 401 while that
task is running awaits the same task instead of starting another refresh.
Once the task settles, each waiter either replays its request with the new
access token or returns its original 401.
"""

import asyncio
from typing import Awaitable, Callable

import httpx
from loguru import logger

from orbguard.endpoints import AUTH_REFRESH
from orbguard.services.credentials import CredentialStore
from orbguard.services.models import ApiRequest, ApiResponse, CacheOptions, Credentials
from orbguard.settings import Settings

Handler = Callable[[ApiRequest], Awaitable[ApiResponse]]


class AuthStage:
    """
    Credential owner for the pipeline.

    Usage:
        auth = AuthStage(store, settings, send=transport.send)
        await auth.init()
        response = await auth.handle(request, transport.send)
    """

    def __init__(
        self,
        store: CredentialStore,
        settings: Settings,
        send: Handler,
    ):
        self._store = store
        self._settings = settings
        self._send = send
        self._credentials = Credentials()
        self._pending_refresh: asyncio.Task[bool] | None = None

        self.refresh_count = 0
        self.queued_waiters = 0

    async def init(self) -> None:
        """Load persisted credentials."""
        self._credentials = await self._store.load()
        logger.debug(
            f"Credentials loaded (authenticated={self.is_authenticated}, "
            f"device={'yes' if self.device_id else 'no'})"
        )

    async def dispose(self) -> None:
        """Cancel an in-flight refresh, if any."""
        task = self._pending_refresh
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._pending_refresh = None

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    @property
    def is_authenticated(self) -> bool:
        return self._credentials.access_token is not None

    @property
    def device_id(self) -> str | None:
        return self._credentials.device_id

    @property
    def is_refreshing(self) -> bool:
        return self._pending_refresh is not None

    async def set_device_id(self, device_id: str) -> None:
        self._credentials = self._credentials.model_copy(update={"device_id": device_id})
        await self._store.save(self._credentials)

    async def save_tokens(
        self, access_token: str, refresh_token: str | None = None
    ) -> None:
        """Store a new token pair. A missing refresh token keeps the current one."""
        update: dict[str, str] = {"access_token": access_token}
        if refresh_token is not None:
            update["refresh_token"] = refresh_token
        self._credentials = self._credentials.model_copy(update=update)
        await self._store.save(self._credentials)

    async def clear_tokens(self) -> None:
        """Drop both tokens (logout). The device id is kept."""
        self._credentials = Credentials(device_id=self._credentials.device_id)
        await self._store.clear()

    def authorize(self, request: ApiRequest) -> ApiRequest:
        """Copy of ``request`` carrying the current credentials."""
        headers = {
            "X-Client-Version": self._settings.client_version,
            "X-Platform": self._settings.platform,
        }
        if self._credentials.access_token:
            headers["Authorization"] = f"Bearer {self._credentials.access_token}"
        if self._credentials.device_id:
            headers["X-Device-ID"] = self._credentials.device_id
        return request.with_headers(headers)

    async def handle(self, request: ApiRequest, call_next: Handler) -> ApiResponse:
        sent_token = self._credentials.access_token
        response = await call_next(self.authorize(request))

        if response.status_code != 401:
            return response

        if not await self._recover(sent_token):
            return response

        logger.debug(f"Replaying {request.method} {request.path} with refreshed token")
        return await call_next(self.authorize(request))

    async def _recover(self, sent_token: str | None) -> bool:
        """
        Wait for valid credentials after a 401.

        Returns True when the request should be replayed.
        """
        task = self._pending_refresh
        if task is None:
            current = self._credentials.access_token
            if current and current != sent_token:
                # A refresh already finished after this request was sent
                return True
            if not self._credentials.refresh_token:
                return False
            # Flag is set before the first suspension point
            task = asyncio.create_task(self._refresh())
            self._pending_refresh = task
        else:
            self.queued_waiters += 1
            logger.debug("Token refresh in progress, waiting for it")

        # Shielded so one caller's cancellation does not abort the shared refresh
        return await asyncio.shield(task)

    async def _refresh(self) -> bool:
        try:
            return await self._exchange_refresh_token()
        finally:
            self._pending_refresh = None

    async def _exchange_refresh_token(self) -> bool:
        refresh_token = self._credentials.refresh_token
        self.refresh_count += 1
        logger.info("Access token rejected, refreshing")

        request = ApiRequest(
            method="POST",
            path=AUTH_REFRESH,
            body={"refresh_token": refresh_token},
            headers={"Authorization": f"Bearer {refresh_token}"},
            cache=CacheOptions(enabled=False),
        )

        try:
            response = await self._send(request)
        except httpx.HTTPError as e:
            logger.warning(f"Token refresh failed: {e}")
        else:
            data = response.try_parse() if response.is_success else None
            access_token = data.get("access_token") if isinstance(data, dict) else None
            if access_token:
                await self.save_tokens(access_token, data.get("refresh_token"))
                logger.info("Access token refreshed")
                return True
            logger.warning(f"Token refresh rejected (HTTP {response.status_code})")

        await self.clear_tokens()
        return False
