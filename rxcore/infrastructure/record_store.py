"""
Record Store

Durable key-value persistence for whole record collections. Each collection
(prescriptions, alerts) is loaded and saved as one JSON list; callers wrap a
load-mutate-save cycle in ``atomic()`` so concurrent writers cannot interleave.
"""

from typing import Any, Dict, List, Optional
from contextlib import contextmanager
from contextvars import ContextVar
from functools import lru_cache
from datetime import datetime, timezone
import json
import logging
import threading

import redis
from redis import Redis
from redis.exceptions import RedisError
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rxcore.core.config import Settings, settings
from rxcore.core.exceptions import ConfigurationError, StorageError, handle_storage_error
from rxcore.infrastructure.database import Base

logger = logging.getLogger(__name__)

# row locked by SQLRecordStore.atomic on databases without BEGIN IMMEDIATE
LOCK_KEY = "__lock__"


class RecordCollection(Base):
    """One serialized collection per row"""
    __tablename__ = "record_collections"

    key = Column(String(128), primary_key=True)
    payload = Column(Text, nullable=False, default="[]")
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )


def _decode(raw: Any, collection: str) -> List[Dict[str, Any]]:
    if raw is None:
        return []
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    try:
        records = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise handle_storage_error(e, f"decode {collection}") from e
    if not isinstance(records, list):
        raise StorageError(
            message=f"Collection {collection} is not a list",
            details={"collection": collection, "type": type(records).__name__}
        )
    return records


def _encode(records: List[Dict[str, Any]], collection: str) -> str:
    try:
        return json.dumps(records)
    except (TypeError, ValueError) as e:
        raise handle_storage_error(e, f"encode {collection}") from e


class RecordStore:
    """Abstract collection store.

    Inside ``atomic()`` saves are buffered per collection and written in one
    step when the block exits cleanly. A block that raises writes nothing.
    Nested ``atomic()`` blocks join the outermost one.
    """

    def __init__(self):
        self._pending: ContextVar[Optional[Dict[str, str]]] = ContextVar(
            f"record_store_pending_{id(self)}", default=None
        )

    def load(self, collection: str) -> List[Dict[str, Any]]:
        pending = self._pending.get()
        if pending is not None and collection in pending:
            return _decode(pending[collection], collection)
        return _decode(self._read(collection), collection)

    def save(self, collection: str, records: List[Dict[str, Any]]) -> None:
        payload = _encode(records, collection)
        pending = self._pending.get()
        if pending is not None:
            pending[collection] = payload
        else:
            self._write({collection: payload})

    @contextmanager
    def atomic(self):
        """Serialize a read-modify-write cycle and commit its saves together"""
        if self._pending.get() is not None:
            yield
            return

        with self._locked():
            pending: Dict[str, str] = {}
            token = self._pending.set(pending)
            try:
                yield
            finally:
                self._pending.reset(token)
            if pending:
                self._write(pending)

    def _read(self, collection: str) -> Any:
        raise NotImplementedError

    def _write(self, payloads: Dict[str, str]) -> None:
        raise NotImplementedError

    @contextmanager
    def _locked(self):
        yield


class MemoryRecordStore(RecordStore):
    """Process-local store, used for tests and the ``memory`` backend"""

    def __init__(self):
        super().__init__()
        self._collections: Dict[str, str] = {}
        self._lock = threading.RLock()

    def _read(self, collection: str) -> Any:
        return self._collections.get(collection)

    def _write(self, payloads: Dict[str, str]) -> None:
        self._collections.update(payloads)

    def clear(self) -> None:
        self._collections.clear()

    @contextmanager
    def _locked(self):
        with self._lock:
            yield


class SQLRecordStore(RecordStore):
    """Collections stored as JSON text rows through SQLAlchemy.

    ``atomic()`` runs in one database transaction holding a write lock:
    ``BEGIN IMMEDIATE`` on SQLite, ``SELECT ... FOR UPDATE`` on a lock row
    elsewhere. Other processes sharing the database wait for the commit.
    """

    def __init__(self, session_factory):
        super().__init__()
        self.session_factory = session_factory
        self._session: ContextVar[Optional[Session]] = ContextVar(
            f"record_store_session_{id(self)}", default=None
        )
        # a pooled SQLite memory database has one connection for all threads
        self._lock = threading.RLock()

    @staticmethod
    def _fetch(session: Session, collection: str) -> Optional[str]:
        row = session.get(RecordCollection, collection)
        return row.payload if row else None

    @staticmethod
    def _upsert(session: Session, payloads: Dict[str, str]) -> None:
        for collection, payload in payloads.items():
            row = session.get(RecordCollection, collection)
            if row is None:
                session.add(RecordCollection(key=collection, payload=payload))
            else:
                row.payload = payload

    def _read(self, collection: str) -> Any:
        session = self._session.get()
        try:
            if session is not None:
                return self._fetch(session, collection)
            with self.session_factory() as session:
                return self._fetch(session, collection)
        except SQLAlchemyError as e:
            raise handle_storage_error(e, f"load {collection}") from e

    def _write(self, payloads: Dict[str, str]) -> None:
        session = self._session.get()
        try:
            if session is not None:
                self._upsert(session, payloads)
                session.flush()
                return
            with self.session_factory() as session:
                self._upsert(session, payloads)
                session.commit()
        except SQLAlchemyError as e:
            raise handle_storage_error(e, f"save {', '.join(payloads)}") from e

    def _begin_locked(self, session: Session) -> None:
        if session.get_bind().dialect.name == "sqlite":
            session.connection(execution_options={"sqlite_immediate": True})
            return
        lock_row = session.get(RecordCollection, LOCK_KEY, with_for_update=True)
        if lock_row is None:
            session.add(RecordCollection(key=LOCK_KEY, payload="[]"))
            session.flush()

    @contextmanager
    def _locked(self):
        with self._lock:
            try:
                with self.session_factory() as session:
                    self._begin_locked(session)
                    token = self._session.set(session)
                    try:
                        yield
                    finally:
                        self._session.reset(token)
                    session.commit()
            except SQLAlchemyError as e:
                raise handle_storage_error(e, "atomic write") from e


class RedisRecordStore(RecordStore):
    """Collections stored as JSON strings under prefixed Redis keys"""

    def __init__(self, client: Redis, key_prefix: str = "rxcore:", lock_timeout: int = 10):
        super().__init__()
        self.client = client
        self.key_prefix = key_prefix
        self.lock_timeout = lock_timeout

    @classmethod
    def from_url(cls, redis_url: str, **kwargs) -> "RedisRecordStore":
        client = redis.from_url(
            redis_url,
            decode_responses=False,
            socket_timeout=5,
            socket_connect_timeout=5,
            retry_on_timeout=True
        )
        return cls(client, **kwargs)

    def _key(self, collection: str) -> str:
        return f"{self.key_prefix}{collection}"

    def _read(self, collection: str) -> Any:
        try:
            return self.client.get(self._key(collection))
        except RedisError as e:
            raise handle_storage_error(e, f"load {collection}") from e

    def _write(self, payloads: Dict[str, str]) -> None:
        pipe = self.client.pipeline(transaction=True)
        for collection, payload in payloads.items():
            pipe.set(self._key(collection), payload)
        try:
            pipe.execute()
        except RedisError as e:
            raise handle_storage_error(e, f"save {', '.join(payloads)}") from e

    @contextmanager
    def _locked(self):
        lock = self.client.lock(
            self._key("lock"),
            timeout=self.lock_timeout,
            blocking_timeout=self.lock_timeout
        )
        try:
            acquired = lock.acquire()
        except RedisError as e:
            raise handle_storage_error(e, "acquire lock") from e
        if not acquired:
            raise StorageError(
                message="Timed out waiting for the record store lock",
                details={"lock": self._key("lock")},
                error_code="STORAGE_LOCK_TIMEOUT"
            )
        try:
            yield
        finally:
            try:
                lock.release()
            except RedisError as e:
                # the lock expires on its own after lock_timeout
                logger.warning(f"Failed to release record store lock: {e}")


def build_record_store(config: Settings, session_factory: Optional[Any] = None) -> RecordStore:
    """Create the store selected by RECORD_STORE_BACKEND"""
    backend = config.RECORD_STORE_BACKEND
    if backend == "memory":
        return MemoryRecordStore()
    if backend == "sql":
        if session_factory is None:
            from rxcore.infrastructure.database import SessionLocal, engine, init_db
            init_db(engine)
            session_factory = SessionLocal
        return SQLRecordStore(session_factory)
    if backend == "redis":
        return RedisRecordStore.from_url(
            config.REDIS_URL,
            key_prefix=config.REDIS_KEY_PREFIX,
            lock_timeout=config.REDIS_LOCK_TIMEOUT
        )
    raise ConfigurationError(
        message=f"Unknown record store backend: {backend}",
        details={"backend": backend, "supported": ["memory", "sql", "redis"]}
    )


@lru_cache
def get_record_store() -> RecordStore:
    """Process-wide record store selected by RECORD_STORE_BACKEND"""
    return build_record_store(settings)
