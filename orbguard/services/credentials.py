"""
Credential storage contract and an in-memory implementation.

The durable SQLite-backed store lives in orbguard.datastore.repositories.
"""

from typing import Protocol

from loguru import logger

from orbguard.services.models import Credentials


class CredentialStore(Protocol):
    """Durable key/value persistence for tokens and the device identifier."""

    async def load(self) -> Credentials:
        """Return stored credentials, or empty Credentials when none exist."""
        ...

    async def save(self, credentials: Credentials) -> None:
        """Persist the full credential snapshot."""
        ...

    async def clear(self) -> None:
        """Forget the access and refresh tokens. The device id is kept."""
        ...


class MemoryCredentialStore:
    """Process-local credential store."""

    def __init__(self, credentials: Credentials | None = None):
        self._credentials = credentials or Credentials()
        self.save_count = 0

    async def load(self) -> Credentials:
        return self._credentials

    async def save(self, credentials: Credentials) -> None:
        self._credentials = credentials
        self.save_count += 1

    async def clear(self) -> None:
        self._credentials = Credentials(device_id=self._credentials.device_id)
        logger.debug("In-memory credentials cleared")
