"""
Token storage and retrieval for OAuth credentials.

Two interchangeable backends behind one protocol:
- SQLTokenStore: one row per account in a relational table (multi-process)
- FileTokenStore: one JSON object on disk (single-process, development)

The backend is chosen once at startup by create_token_store().
"""

import asyncio
import json
import logging
import os
import tempfile
from abc import abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Awaitable, Optional, Protocol, TypeVar

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from src.auth.credentials import CredentialRecord
from src.auth.exceptions import StoreCorrupt, StoreUnavailable
from src.config import Settings
from src.database import create_engine_from_settings, create_session_factory, init_db
from src.models.tokens import UserToken

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TICK = timedelta(microseconds=1)


def _next_timestamp(previous: Optional[datetime]) -> datetime:
    """Current time, nudged past the previous write so updated_at strictly increases."""
    now = datetime.now(timezone.utc)
    if previous is not None:
        if previous.tzinfo is None:
            previous = previous.replace(tzinfo=timezone.utc)
        if now <= previous:
            return previous + _TICK
    return now


class TokenStore(Protocol):
    """
    Protocol for credential persistence backends.

    Implementations:
    - SQLTokenStore: Uses a relational database
    - FileTokenStore: Uses a local JSON file

    All methods are bounded by the store timeout and raise
    StoreUnavailable when the backend cannot be reached.
    """

    @property
    @abstractmethod
    def backend(self) -> str:
        """Short backend name for health reporting."""
        ...

    @abstractmethod
    async def ensure_schema(self) -> None:
        """Create the persistence structure if absent (idempotent)."""
        ...

    @abstractmethod
    async def get(self, account_id: str) -> Optional[CredentialRecord]:
        """
        Get the stored credential for an account.

        Returns:
            CredentialRecord, or None if the account was never authorized
        """
        ...

    @abstractmethod
    async def upsert(self, account_id: str, record: CredentialRecord) -> CredentialRecord:
        """
        Replace the full credential for an account.

        Returns:
            The record as stored, with updated_at set
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""
        ...


class SQLTokenStore(TokenStore):
    """TokenStore backed by the user_tokens table."""

    backend = "database"

    def __init__(self, engine: AsyncEngine, timeout_seconds: float = 10.0):
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._timeout = timeout_seconds

    async def _bounded(self, operation: Awaitable[T], action: str) -> T:
        try:
            return await asyncio.wait_for(operation, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise StoreUnavailable(
                f"Token store {action} timed out after {self._timeout}s",
                original_error=e,
            )
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Token store {action} failed: {e}", original_error=e)

    async def ensure_schema(self) -> None:
        await self._bounded(init_db(self._engine), "schema setup")

    async def get(self, account_id: str) -> Optional[CredentialRecord]:
        row = await self._bounded(self._select(account_id), "read")
        if row is None:
            return None
        tokens, updated_at = row
        record = CredentialRecord.from_dict(account_id, tokens)
        return record.with_updated_at(_as_aware(updated_at))

    async def _select(self, account_id: str):
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserToken.tokens, UserToken.updated_at).where(
                    UserToken.account_id == account_id
                )
            )
            return result.one_or_none()

    async def upsert(self, account_id: str, record: CredentialRecord) -> CredentialRecord:
        stored = await self._bounded(self._upsert(account_id, record), "write")
        logger.info(f"Stored credential for account {account_id}")
        return stored

    async def _upsert(self, account_id: str, record: CredentialRecord) -> CredentialRecord:
        async with self._session_factory() as session:
            async with session.begin():
                previous = await session.scalar(
                    select(UserToken.updated_at).where(UserToken.account_id == account_id)
                )
                stored = record.with_updated_at(_next_timestamp(previous))
                blob = stored.to_dict()

                if self._engine.dialect.name == "postgresql":
                    stmt = pg_insert(UserToken)
                else:
                    stmt = sqlite_insert(UserToken)
                stmt = stmt.values(
                    account_id=account_id,
                    tokens=blob,
                    updated_at=stored.updated_at,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[UserToken.account_id],
                    set_={"tokens": stmt.excluded.tokens, "updated_at": stmt.excluded.updated_at},
                )
                await session.execute(stmt)
        return stored

    async def close(self) -> None:
        await self._engine.dispose()


class FileTokenStore(TokenStore):
    """
    TokenStore backed by a single JSON file.

    Top-level keys are account ids, values are serialized credentials.
    Unreadable content is logged and treated as an empty store so a fresh
    deploy can re-authorize instead of failing.
    """

    backend = "file"

    def __init__(self, path: Path, timeout_seconds: float = 10.0):
        self._path = Path(path)
        self._timeout = timeout_seconds
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def _bounded(self, func, *args, action: str):
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise StoreUnavailable(
                f"Token file {action} timed out after {self._timeout}s",
                original_error=e,
            )
        except OSError as e:
            raise StoreUnavailable(f"Token file {action} failed: {e}", original_error=e)

    async def ensure_schema(self) -> None:
        await self._bounded(self._make_dir, action="schema setup")

    async def get(self, account_id: str) -> Optional[CredentialRecord]:
        data = await self._bounded(self._read_all, action="read")
        if account_id not in data:
            return None
        try:
            return CredentialRecord.from_dict(account_id, data[account_id])
        except StoreCorrupt as e:
            logger.warning(f"Ignoring unreadable credential in {self._path}: {e.message}")
            return None

    async def upsert(self, account_id: str, record: CredentialRecord) -> CredentialRecord:
        async with self._lock:
            data = await self._bounded(self._read_all, action="read")

            previous = None
            try:
                if account_id in data:
                    previous = CredentialRecord.from_dict(account_id, data[account_id]).updated_at
            except StoreCorrupt:
                previous = None

            stored = record.with_updated_at(_next_timestamp(previous))
            data[account_id] = stored.to_dict()
            await self._bounded(self._write_all, data, action="write")

        logger.info(f"Stored credential for account {account_id} in {self._path}")
        return stored

    def _make_dir(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Token file {self._path} is unreadable, treating as empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Token file {self._path} does not hold an object, treating as empty")
            return {}
        return data

    def _write_all(self, data: dict) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".tokens-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_name, self._path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    async def close(self) -> None:
        return None


def _as_aware(value: datetime) -> datetime:
    # SQLite returns naive timestamps
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def create_token_store(settings: Settings) -> TokenStore:
    """
    Select the token store backend from configuration.

    DATABASE_URL or PGHOST/PGDATABASE/PGUSER select the relational store,
    otherwise the file store under DATA_DIR is used.
    """
    if settings.uses_database:
        logger.info("Using database token store")
        return SQLTokenStore(
            create_engine_from_settings(settings),
            timeout_seconds=settings.store_timeout_seconds,
        )

    logger.info(f"Using file token store at {settings.tokens_path}")
    return FileTokenStore(settings.tokens_path, timeout_seconds=settings.store_timeout_seconds)
