"""
Key/Value Store Backends

The game keeps tracks in browser localStorage. The import engine only needs
a small ordered string-to-string interface, so it accepts any object that
satisfies KeyValueStore:

- InMemoryStore: plain ordered dict, used by tests and dry runs
- JsonFileStore: a localStorage dump saved as one JSON object
- SqlStore: SQLite table managed through SQLAlchemy
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Protocol, runtime_checkable

from sqlalchemy import Column, Integer, String, Text, create_engine, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

JSON_SUFFIXES = (".json",)
SQL_SUFFIXES = (".db", ".sqlite", ".sqlite3")


@runtime_checkable
class KeyValueStore(Protocol):
    """Ordered string key/value store."""

    def has(self, key: str) -> bool:
        ...

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def keys(self) -> list[str]:
        ...


def iter_entries(store: KeyValueStore) -> Iterator[tuple[str, str | None]]:
    """Yield (key, value) pairs in store order."""
    for key in store.keys():
        yield key, store.get(key)


class InMemoryStore:
    """Insertion-ordered in-memory store."""

    def __init__(self, entries: dict[str, str] | Iterable[tuple[str, str]] | None = None):
        self._data: dict[str, str] = dict(entries or {})

    def has(self, key: str) -> bool:
        return key in self._data

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)

    def to_dict(self) -> dict[str, str]:
        return dict(self._data)

    def __len__(self) -> int:
        return len(self._data)


class JsonFileStore(InMemoryStore):
    """
    localStorage dump backed by a JSON file.

    The file holds a single object mapping keys to string values. Every
    mutation rewrites the file, so a batch interrupted midway keeps all
    writes made before the failure.
    """

    def __init__(self, path: Path | str, indent: int | None = 2):
        self.path = Path(path)
        self.indent = indent
        super().__init__(self._load())

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            logger.info(f"Store file {self.path} does not exist yet; starting empty")
            return {}

        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")

        entries = {}
        for key, value in data.items():
            # Some exporters keep values as parsed JSON; storage holds strings
            entries[key] = value if isinstance(value, str) else json.dumps(value)
        logger.debug(f"Loaded {len(entries)} entries from {self.path}")
        return entries

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=self.indent, ensure_ascii=False)
        tmp_path.replace(self.path)

    def set(self, key: str, value: str) -> None:
        super().set(key, value)
        self.save()

    def remove(self, key: str) -> None:
        if key in self._data:
            super().remove(key)
            self.save()


# =============================================================================
# SQLite backend
# =============================================================================

Base = declarative_base()


class StorageEntry(Base):
    """One localStorage entry."""

    __tablename__ = "local_storage"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(1024), unique=True, nullable=False, index=True)
    value = Column(Text, nullable=False)


class SqlStore:
    """KeyValueStore persisted in a SQLite database via SQLAlchemy."""

    def __init__(self, db_path: Path | str | None = None, url: str | None = None):
        if url is None:
            if db_path is None:
                raise ValueError("SqlStore needs a database path or URL")
            db_path = Path(db_path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
            url = f"sqlite:///{db_path}"

        self.url = url
        self.engine = create_engine(url, echo=False)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)
        logger.debug(f"Opened SQL store at {url}")

    def get_session(self) -> Session:
        return self.SessionLocal()

    def _find(self, session: Session, key: str) -> StorageEntry | None:
        return session.execute(select(StorageEntry).where(StorageEntry.key == key)).scalar_one_or_none()

    def has(self, key: str) -> bool:
        with self.get_session() as session:
            return self._find(session, key) is not None

    def get(self, key: str) -> str | None:
        with self.get_session() as session:
            entry = self._find(session, key)
            return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        session = self.get_session()
        try:
            entry = self._find(session, key)
            if entry is None:
                session.add(StorageEntry(key=key, value=value))
            else:
                entry.value = value
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to write key {key!r}: {e}")
            raise
        finally:
            session.close()

    def remove(self, key: str) -> None:
        session = self.get_session()
        try:
            entry = self._find(session, key)
            if entry is not None:
                session.delete(entry)
                session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to remove key {key!r}: {e}")
            raise
        finally:
            session.close()

    def keys(self) -> list[str]:
        with self.get_session() as session:
            return list(session.execute(select(StorageEntry.key).order_by(StorageEntry.id)).scalars())

    def close(self) -> None:
        self.engine.dispose()


def open_store(path: Path | str, backend: str | None = None) -> KeyValueStore:
    """
    Open a store file, picking the backend from ``backend`` or the file suffix.

    Raises:
        ValueError: If the backend cannot be determined
    """
    path = Path(path)
    if backend is None:
        suffix = path.suffix.lower()
        if suffix in JSON_SUFFIXES:
            backend = "json"
        elif suffix in SQL_SUFFIXES:
            backend = "sql"
        else:
            raise ValueError(f"Cannot infer store backend from suffix {suffix!r}; pass a backend")

    backend = backend.lower()
    if backend == "json":
        return JsonFileStore(path)
    if backend in ("sql", "sqlite"):
        return SqlStore(path)
    if backend == "memory":
        return InMemoryStore()
    raise ValueError(f"Unknown store backend: {backend}")
