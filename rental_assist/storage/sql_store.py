"""SQLAlchemy-backed application store."""

import logging
from typing import Any, Optional

from sqlalchemy import JSON, Column, DateTime, String, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .base import STATUS_DRAFT, ApplicationRecord, ApplicationStore, utcnow

logger = logging.getLogger(__name__)

Base = declarative_base()


class ApplicationRow(Base):
    __tablename__ = "applications"
    id = Column(String(36), primary_key=True)
    session_id = Column("sessionId", String(64), unique=True, nullable=False, index=True)
    status = Column(String(16), nullable=False, default=STATUS_DRAFT)
    core = Column(JSON, nullable=False, default=dict)
    prompt = Column(Text, nullable=True)
    dynamic_spec = Column("dynamicSpec", JSON, nullable=True)
    dynamic_answers = Column("dynamicAnswers", JSON, nullable=True)
    created_at = Column("createdAt", DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column("updatedAt", DateTime(timezone=True), nullable=False, default=utcnow)


def _to_record(row: ApplicationRow) -> ApplicationRecord:
    return ApplicationRecord(
        id=row.id,
        session_id=row.session_id,
        status=row.status,
        core=dict(row.core or {}),
        prompt=row.prompt,
        dynamic_spec=row.dynamic_spec,
        dynamic_answers=row.dynamic_answers,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlApplicationStore(ApplicationStore):
    """
    Application records in a relational ``applications`` table.

    JSON attributes are stored in JSON columns and always written whole, so
    SQLAlchemy change tracking sees every update.
    """

    def __init__(self, database_url: str, echo: bool = False):
        engine_kwargs: dict = {"echo": echo, "future": True}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
                # One shared connection, otherwise each session gets an empty database
                engine_kwargs["poolclass"] = StaticPool

        self.engine = create_engine(database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)
        logger.info(f"SQL application store ready ({self.engine.url.drivername})")

    def get(self, session_id: str) -> Optional[ApplicationRecord]:
        with self.SessionLocal() as session:
            row = session.query(ApplicationRow).filter_by(session_id=session_id).one_or_none()
            return _to_record(row) if row is not None else None

    def merge(self, session_id: str, **changes: Any) -> ApplicationRecord:
        self._check_changes(changes)
        with self.SessionLocal() as session:
            row = session.query(ApplicationRow).filter_by(session_id=session_id).one_or_none()
            if row is None:
                record = ApplicationRecord(session_id=session_id)
                row = ApplicationRow(
                    id=record.id,
                    session_id=session_id,
                    status=record.status,
                    core={},
                    created_at=record.created_at,
                )
                session.add(row)
                logger.info(f"Created application {record.id}")
            for key, value in changes.items():
                setattr(row, key, value)
            row.updated_at = utcnow()
            session.commit()
            return _to_record(row)

    def clear(self, session_id: str) -> None:
        with self.SessionLocal() as session:
            deleted = session.query(ApplicationRow).filter_by(session_id=session_id).delete()
            session.commit()
        if deleted:
            logger.info(f"Cleared application for session {session_id[:8]}")
