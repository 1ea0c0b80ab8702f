"""Application record and the store interface."""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

STATUS_DRAFT = "draft"
STATUS_SUBMITTED = "submitted"

# Attributes a caller may change through ``merge``
MUTABLE_FIELDS = frozenset({"status", "core", "prompt", "dynamic_spec", "dynamic_answers"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ApplicationRecord:
    """
    One applicant's in-progress or submitted application.

    Attributes:
        id: Record identifier
        session_id: Browser session the record belongs to
        status: ``draft`` or ``submitted``
        core: Saved core sections keyed by section name
        prompt: Last screener prompt used for generation
        dynamic_spec: Canonical dump of the current generated specification
        dynamic_answers: Answer map for the generated questions
        created_at: Creation time (UTC)
        updated_at: Last modification time (UTC)
    """

    session_id: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: str = STATUS_DRAFT
    core: Dict[str, Any] = field(default_factory=dict)
    prompt: Optional[str] = None
    dynamic_spec: Optional[Dict[str, Any]] = None
    dynamic_answers: Optional[Dict[str, Any]] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_submitted(self) -> bool:
        return self.status == STATUS_SUBMITTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "status": self.status,
            "core": self.core,
            "prompt": self.prompt,
            "dynamicSpec": self.dynamic_spec,
            "dynamicAnswers": self.dynamic_answers,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


class ApplicationStore(ABC):
    """
    Persistence for application records, one per session.

    Writes are whole-attribute replacements: last write wins.
    """

    @abstractmethod
    def get(self, session_id: str) -> Optional[ApplicationRecord]:
        """Return the record for ``session_id``, or None."""

    @abstractmethod
    def merge(self, session_id: str, **changes: Any) -> ApplicationRecord:
        """
        Create or update the record for ``session_id``.

        Args:
            session_id: Session identifier
            **changes: New values for attributes in MUTABLE_FIELDS

        Returns:
            The stored record after the update
        """

    @abstractmethod
    def clear(self, session_id: str) -> None:
        """Delete the record for ``session_id`` if there is one."""

    @staticmethod
    def _check_changes(changes: Dict[str, Any]) -> None:
        unknown = set(changes) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update application attribute(s): {sorted(unknown)}")
        status = changes.get("status")
        if status is not None and status not in (STATUS_DRAFT, STATUS_SUBMITTED):
            raise ValueError(f"Invalid application status: {status!r}")
