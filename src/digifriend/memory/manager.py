"""Memory manager for user history and group logs."""

import asyncio
import logging

from .buffer import append_bounded
from .index import NameIndex
from .models import (
    GROUP_MESSAGES_LIMIT,
    HISTORY_LIMIT,
    GroupMessage,
    GroupRecord,
    HistoryEntry,
    RecordKind,
    UserRecord,
)
from .store import RecordStore

logger = logging.getLogger(__name__)


class MemoryManager:
    """Orchestrates record mutations on top of the store.

    Methods that load and save a record do so while holding that record's
    lock, so concurrent handlers touching the same record never overwrite
    each other's changes.
    """

    def __init__(
        self,
        store: RecordStore,
        history_limit: int = HISTORY_LIMIT,
        group_messages_limit: int = GROUP_MESSAGES_LIMIT,
    ) -> None:
        self.store = store
        self.index = NameIndex(store)
        self.history_limit = history_limit
        self.group_messages_limit = group_messages_limit

    def user_lock(self, user_id: int | str) -> asyncio.Lock:
        return self.store.lock(RecordKind.USER, user_id)

    def group_lock(self, chat_id: int | str) -> asyncio.Lock:
        return self.store.lock(RecordKind.GROUP, chat_id)

    def get_or_create_user(self, user_id: int | str) -> tuple[UserRecord, bool]:
        record, created = self.store.get_or_create(RecordKind.USER, user_id)
        assert isinstance(record, UserRecord)
        return record, created

    def add_to_history(self, record: UserRecord, role: str, content: str) -> None:
        """Append a message to the record's rolling history (not saved)."""
        record.history = append_bounded(
            record.history,
            HistoryEntry(role=role, content=content),
            self.history_limit,
        )
        record.touch()

    def find_user(self, username: str) -> UserRecord | None:
        return self.index.find_by_name(username)

    async def ensure_user(self, user_id: int | str, username: str | None = None) -> UserRecord:
        """Load a user, persisting it when new or when the username changed."""
        async with self.user_lock(user_id):
            record, created = self.get_or_create_user(user_id)
            changed = bool(username) and record.username != username
            if changed:
                record.username = username
            if created or changed:
                self.store.save_user(record)
            return record

    async def register_group(self, chat_id: int | str, title: str | None) -> GroupRecord:
        """Start a fresh record for a group the bot was added to."""
        async with self.group_lock(chat_id):
            record = GroupRecord(id=chat_id, title=title)
            self.store.save_group(record)
            logger.info(f"Registered group {chat_id} ({title})")
            return record

    async def add_group_message(
        self, chat_id: int | str, sender: str, content: str
    ) -> GroupRecord:
        """Append a message to a group's log, creating the group if unknown."""
        async with self.group_lock(chat_id):
            record, _ = self.store.get_or_create(RecordKind.GROUP, chat_id)
            assert isinstance(record, GroupRecord)
            record.recent_messages = append_bounded(
                record.recent_messages,
                GroupMessage(sender=sender, content=content),
                self.group_messages_limit,
            )
            self.store.save_group(record)
            return record

    def list_groups(self) -> list[GroupRecord]:
        return self.store.list_groups()
