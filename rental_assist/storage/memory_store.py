"""Process-local application store."""

import copy
import logging
import threading
from typing import Any, Dict, Optional

from .base import ApplicationRecord, ApplicationStore, utcnow

logger = logging.getLogger(__name__)


class InMemoryApplicationStore(ApplicationStore):
    """Records kept in a dict guarded by a lock; lost on restart."""

    def __init__(self):
        self._records: Dict[str, ApplicationRecord] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[ApplicationRecord]:
        with self._lock:
            record = self._records.get(session_id)
            return copy.deepcopy(record) if record is not None else None

    def merge(self, session_id: str, **changes: Any) -> ApplicationRecord:
        self._check_changes(changes)
        with self._lock:
            record = self._records.get(session_id)
            if record is None:
                record = ApplicationRecord(session_id=session_id)
                self._records[session_id] = record
                logger.info(f"Created application {record.id}")
            for key, value in changes.items():
                setattr(record, key, copy.deepcopy(value))
            record.updated_at = utcnow()
            return copy.deepcopy(record)

    def clear(self, session_id: str) -> None:
        with self._lock:
            record = self._records.pop(session_id, None)
        if record is not None:
            logger.info(f"Cleared application {record.id}")
