"""
Repository layer - data access for persisted credentials
"""

import asyncio

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from orbguard.datastore.engine import create_engine, create_session_factory, create_tables
from orbguard.datastore.models import CredentialRecordDB
from orbguard.services.models import Credentials

ACCESS_TOKEN_KEY = "orbguard_auth_token"
REFRESH_TOKEN_KEY = "orbguard_refresh_token"
DEVICE_ID_KEY = "orbguard_device_id"

_FIELD_KEYS = {
    "access_token": ACCESS_TOKEN_KEY,
    "refresh_token": REFRESH_TOKEN_KEY,
    "device_id": DEVICE_ID_KEY,
}


class CredentialRepository:
    """Key/value access to the credentials table"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_all(self) -> dict[str, str]:
        result = await self.session.execute(select(CredentialRecordDB))
        return {record.key: record.value for record in result.scalars().all()}

    async def put(self, key: str, value: str) -> None:
        record = await self.session.get(CredentialRecordDB, key)
        if record is None:
            self.session.add(CredentialRecordDB(key=key, value=value))
        else:
            record.value = value

    async def remove(self, *keys: str) -> None:
        await self.session.execute(
            delete(CredentialRecordDB).where(CredentialRecordDB.key.in_(keys))
        )


class SqlCredentialStore:
    """
    Durable credential store backed by SQLite.

    Usage:
        store = SqlCredentialStore("sqlite+aiosqlite:///./orbguard.db")
        credentials = await store.load()
        await store.save(credentials.model_copy(update={"access_token": "..."}))
    """

    def __init__(self, database_url: str, echo: bool = False):
        self._database_url = database_url
        self._echo = echo
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None
        self._init_lock = asyncio.Lock()

    async def _get_sessions(self) -> async_sessionmaker[AsyncSession]:
        async with self._init_lock:
            if self._sessions is None:
                self._engine = create_engine(self._database_url, echo=self._echo)
                await create_tables(self._engine)
                self._sessions = create_session_factory(self._engine)
        return self._sessions

    async def load(self) -> Credentials:
        sessions = await self._get_sessions()
        async with sessions() as session:
            values = await CredentialRepository(session).get_all()

        return Credentials(
            **{field: values.get(key) for field, key in _FIELD_KEYS.items()}
        )

    async def save(self, credentials: Credentials) -> None:
        sessions = await self._get_sessions()
        async with sessions() as session:
            repo = CredentialRepository(session)
            missing = []
            for field, key in _FIELD_KEYS.items():
                value = getattr(credentials, field)
                if value is None:
                    missing.append(key)
                else:
                    await repo.put(key, value)
            if missing:
                await repo.remove(*missing)
            await session.commit()

    async def clear(self) -> None:
        sessions = await self._get_sessions()
        async with sessions() as session:
            await CredentialRepository(session).remove(ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY)
            await session.commit()
        logger.debug("Stored tokens cleared")

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessions = None
