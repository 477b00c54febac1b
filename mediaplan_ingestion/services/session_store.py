"""
Session store: durable holding area for import sessions between stages.

Contract:
    create() persists a new session; get() loads one or raises
    SessionNotFoundError; save() overwrites the whole document (idempotent,
    last writer wins); list_sessions() returns sessions oldest first.

Two backends:
    SqlSessionStore  -- import_sessions table; every call runs in its own
                        short transaction so session state survives a
                        rollback of the fact transaction.
    FileSessionStore -- one JSON file per session, replaced atomically.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Callable, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from mediaplan_kernel.db.engine import session_scope
from mediaplan_kernel.exceptions import SessionNotFoundError
from mediaplan_kernel.logging_config import get_logger

from mediaplan_ingestion.domain.types import ImportSession, ImportSessionStatus
from mediaplan_ingestion.models.session import ImportSessionModel

logger = get_logger("ingestion.session_store")


class SessionStore(Protocol):
    """Protocol for persisting import session documents."""

    def create(self, session: ImportSession) -> ImportSession:
        """Persist a new session. Fails if the id already exists."""
        ...

    def get(self, session_id: str) -> ImportSession:
        """Load a session. Raises SessionNotFoundError."""
        ...

    def save(self, session: ImportSession) -> ImportSession:
        """Overwrite the stored document."""
        ...

    def list_sessions(self, status: ImportSessionStatus | None = None) -> list[ImportSession]:
        """All sessions, optionally filtered by status, oldest first."""
        ...


class SqlSessionStore:
    """Session store backed by the import_sessions table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def create(self, session: ImportSession) -> ImportSession:
        with session_scope(self._session_factory) as db:
            db.add(ImportSessionModel.from_dto(session))
        logger.debug("session_created", extra={"session_id": session.session_id})
        return session

    def get(self, session_id: str) -> ImportSession:
        with session_scope(self._session_factory) as db:
            model = self._find(db, session_id)
            if model is None:
                raise SessionNotFoundError(session_id)
            return model.to_dto()

    def save(self, session: ImportSession) -> ImportSession:
        with session_scope(self._session_factory) as db:
            model = self._find(db, session.session_id)
            if model is None:
                db.add(ImportSessionModel.from_dto(session))
            else:
                model.apply_document(session.to_document())
        logger.debug(
            "session_saved",
            extra={"session_id": session.session_id, "status": session.status.value},
        )
        return session

    def list_sessions(self, status: ImportSessionStatus | None = None) -> list[ImportSession]:
        with session_scope(self._session_factory) as db:
            stmt = select(ImportSessionModel).order_by(ImportSessionModel.id)
            if status is not None:
                stmt = stmt.where(ImportSessionModel.status == status.value)
            return [m.to_dto() for m in db.scalars(stmt)]

    @staticmethod
    def _find(db: Session, session_id: str) -> ImportSessionModel | None:
        stmt = select(ImportSessionModel).where(ImportSessionModel.session_id == session_id)
        return db.scalars(stmt).one_or_none()


_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class FileSessionStore:
    """
    Session store keeping one ``<session_id>.json`` file per session.

    Writes go to a temporary file in the same directory which then replaces
    the target, so readers never see a half-written document.
    """

    def __init__(self, directory: Path):
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, session_id: str) -> Path:
        if not _SAFE_ID.match(session_id):
            raise SessionNotFoundError(session_id)
        return self._directory / f"{session_id}.json"

    def _write(self, session: ImportSession) -> None:
        target = self._path(session.session_id)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._directory, prefix=f".{session.session_id}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(session.to_document(), f, indent=2, sort_keys=True)
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def create(self, session: ImportSession) -> ImportSession:
        with self._lock:
            if self._path(session.session_id).exists():
                raise FileExistsError(f"Import session already exists: {session.session_id}")
            self._write(session)
        logger.debug("session_created", extra={"session_id": session.session_id})
        return session

    def get(self, session_id: str) -> ImportSession:
        path = self._path(session_id)
        try:
            with open(path, encoding="utf-8") as f:
                doc = json.load(f)
        except FileNotFoundError as e:
            raise SessionNotFoundError(session_id) from e
        return ImportSession.from_document(doc)

    def save(self, session: ImportSession) -> ImportSession:
        with self._lock:
            self._write(session)
        logger.debug(
            "session_saved",
            extra={"session_id": session.session_id, "status": session.status.value},
        )
        return session

    def list_sessions(self, status: ImportSessionStatus | None = None) -> list[ImportSession]:
        sessions = [self.get(p.stem) for p in self._directory.glob("*.json")]
        if status is not None:
            sessions = [s for s in sessions if s.status == status]
        return sorted(sessions, key=lambda s: (s.created_at is None, s.created_at, s.session_id))
