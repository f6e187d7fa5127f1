"""Memory module for persistent user and group records."""

from .buffer import append_bounded
from .index import NameIndex, normalize_username
from .manager import MemoryManager
from .models import (
    DEFAULT_LANGUAGE,
    GROUP_MESSAGES_LIMIT,
    HISTORY_LIMIT,
    GroupMessage,
    GroupRecord,
    HistoryEntry,
    RecordFormatError,
    RecordKind,
    UserRecord,
)
from .store import RecordStore, StoreConfig

__all__ = [
    "DEFAULT_LANGUAGE",
    "GROUP_MESSAGES_LIMIT",
    "HISTORY_LIMIT",
    "GroupMessage",
    "GroupRecord",
    "HistoryEntry",
    "MemoryManager",
    "NameIndex",
    "RecordFormatError",
    "RecordKind",
    "RecordStore",
    "StoreConfig",
    "UserRecord",
    "append_bounded",
    "normalize_username",
]
