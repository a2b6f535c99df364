"""SQLAlchemy-backed local store for deployments that keep progress server side."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Engine, delete, select
from sqlalchemy.orm import Session, sessionmaker

from ..db.base import Base
from ..db.models import LocalStorageEntryModel
from ..db.session import build_session_factory, get_engine, session_scope


class DatabaseLocalStorage:
    """Key/value rows in ``local_storage_entries``."""

    def __init__(self, engine: Optional[Engine] = None, *, create_schema: bool = True) -> None:
        self._engine = engine or get_engine()
        self._factory: sessionmaker[Session] = build_session_factory(self._engine)
        if create_schema:
            Base.metadata.create_all(self._engine, tables=[LocalStorageEntryModel.__table__])

    def get_item(self, key: str) -> Optional[str]:
        with session_scope(commit=False, factory=self._factory) as session:
            return session.scalar(select(LocalStorageEntryModel.value).where(LocalStorageEntryModel.key == key))

    def set_item(self, key: str, value: str) -> None:
        with session_scope(factory=self._factory) as session:
            entry = session.get(LocalStorageEntryModel, key)
            if entry is None:
                session.add(LocalStorageEntryModel(key=key, value=value))
            else:
                entry.value = value

    def remove_item(self, key: str) -> None:
        with session_scope(factory=self._factory) as session:
            session.execute(delete(LocalStorageEntryModel).where(LocalStorageEntryModel.key == key))


__all__ = ["DatabaseLocalStorage"]
