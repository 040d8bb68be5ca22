"""Key/value persistence for the draw configuration and winner ledger.

Records are plain JSON-compatible values. Stores never validate their shape;
the reconciliation layer owns correctness. A record that cannot be decoded is
reported as absent so callers fall back to their defaults.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Protocol

from sqlalchemy import delete
from sqlalchemy.orm import Session, sessionmaker

from ..models.record import StoredRecord
from .utils import namespaced_key

logger = logging.getLogger(__name__)

CONFIG_KEY = "config"
LEDGER_KEY = "ledger"


class PersistenceStore(Protocol):
    """Storage port used by the draw engine."""

    def load(self, key: str) -> Optional[Any]:
        ...

    def save(self, key: str, record: Any) -> None:
        ...

    def clear(self, key: str) -> None:
        ...


def _decode(key: str, payload: Optional[str]) -> Optional[Any]:
    if payload is None:
        return None
    try:
        return json.loads(payload)
    except ValueError as exc:
        logger.warning(f"Ignoring malformed record '{key}': {exc}")
        return None


class InMemoryStore:
    """Process-local store keeping each record as a JSON string."""

    def __init__(self, namespace: Optional[str] = None) -> None:
        self._namespace = namespace
        self._payloads: dict[str, str] = {}

    def _key(self, key: str) -> str:
        return namespaced_key(key, self._namespace)

    def load(self, key: str) -> Optional[Any]:
        return _decode(key, self._payloads.get(self._key(key)))

    def save(self, key: str, record: Any) -> None:
        self._payloads[self._key(key)] = json.dumps(record, ensure_ascii=False)

    def clear(self, key: str) -> None:
        self._payloads.pop(self._key(key), None)

    def put_raw(self, key: str, payload: str) -> None:
        """Store ``payload`` verbatim, bypassing serialization."""
        self._payloads[self._key(key)] = payload

    def keys(self) -> list[str]:
        return sorted(self._payloads)


class SQLAlchemyStore:
    """Store backed by the ``stored_records`` table.

    Every call runs in its own transaction so each save is durable as soon as
    it returns.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        namespace: Optional[str] = None,
    ) -> None:
        """Create a store bound to a SQLAlchemy session factory.

        Parameters
        ----------
        session_factory : sessionmaker[Session]
            Factory producing sessions on the database holding ``stored_records``.
        namespace : Optional[str], default: None
            Key prefix isolating this draw from others sharing the database.
            When omitted, ``LUCKYDRAW_NAMESPACE`` is consulted.
        """

        self._session_factory = session_factory
        self._namespace = namespace

    def _key(self, key: str) -> str:
        return namespaced_key(key, self._namespace)

    def load(self, key: str) -> Optional[Any]:
        with self._session_factory() as session:
            record = StoredRecord.get_by_key(session, self._key(key))
            payload = record.payload if record is not None else None
        return _decode(key, payload)

    def save(self, key: str, record: Any) -> None:
        payload = json.dumps(record, ensure_ascii=False)
        with self._session_factory.begin() as session:
            # Overwrite in place so each key keeps a single row.
            existing = StoredRecord.get_by_key(session, self._key(key))
            if existing is None:
                session.add(StoredRecord(key=self._key(key), payload=payload))
            else:
                existing.payload = payload
        logger.debug(f"Saved record '{key}' ({len(payload)} bytes)")

    def clear(self, key: str) -> None:
        with self._session_factory.begin() as session:
            session.execute(
                delete(StoredRecord).where(StoredRecord.key == self._key(key))
            )
        logger.debug(f"Cleared record '{key}'")


__all__ = [
    "CONFIG_KEY",
    "LEDGER_KEY",
    "InMemoryStore",
    "PersistenceStore",
    "SQLAlchemyStore",
]
