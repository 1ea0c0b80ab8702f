"""Application persistence."""

from .base import (
    STATUS_DRAFT,
    STATUS_SUBMITTED,
    ApplicationRecord,
    ApplicationStore,
)
from .memory_store import InMemoryApplicationStore
from .sql_store import SqlApplicationStore

__all__ = [
    'STATUS_DRAFT',
    'STATUS_SUBMITTED',
    'ApplicationRecord',
    'ApplicationStore',
    'InMemoryApplicationStore',
    'SqlApplicationStore',
]
