"""JSON file storage for user and group records."""

import asyncio
import contextlib
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from ..logging import JSONLLogger, get_logger
from .models import RECORD_TYPES, GroupRecord, Record, RecordFormatError, RecordKind, UserRecord

logger = logging.getLogger(__name__)

KIND_DIRS = {
    RecordKind.USER: "users",
    RecordKind.GROUP: "groups",
}


@dataclass
class StoreConfig:
    """Configuration for the record store."""

    data_dir: Path | None = None

    def __post_init__(self) -> None:
        if self.data_dir is None:
            self.data_dir = Path.home() / ".digifriend" / "data"
        self.data_dir = Path(self.data_dir).expanduser()


class RecordStore:
    """Persistent storage for records, one JSON file per record.

    Loading never raises: a missing slot yields a fresh default record and
    an unreadable slot is moved aside to a backup file first. Saving never
    raises either; failures are logged and reported through the return value.
    """

    def __init__(
        self,
        config: StoreConfig | None = None,
        json_logger: JSONLLogger | None = None,
    ) -> None:
        self.config = config or StoreConfig()
        self.json_logger = json_logger or get_logger()
        self._locks: dict[tuple[RecordKind, str], asyncio.Lock] = {}

        for kind in RecordKind:
            self._kind_dir(kind).mkdir(parents=True, exist_ok=True)

    def _kind_dir(self, kind: RecordKind) -> Path:
        assert self.config.data_dir is not None
        return self.config.data_dir / KIND_DIRS[kind]

    def _slot(self, kind: RecordKind, record_id: int | str) -> Path:
        """Get the file path for a record."""
        return self._kind_dir(kind) / f"{record_id}.json"

    def _default(self, kind: RecordKind, record_id: int | str) -> Record:
        return RECORD_TYPES[kind](id=record_id)

    def _read(self, kind: RecordKind, path: Path) -> Record:
        """Parse a slot, raising on any decoding or shape problem."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return RECORD_TYPES[kind].from_dict(data)

    def _backup_path(self, path: Path) -> Path:
        backup = path.with_name(path.name + ".bak")
        n = 1
        while backup.exists():
            backup = path.with_name(f"{path.name}.bak.{n}")
            n += 1
        return backup

    def _quarantine(self, kind: RecordKind, record_id: int | str, path: Path, error: Exception) -> None:
        """Move an unreadable slot aside so it is never overwritten."""
        backup = self._backup_path(path)
        try:
            path.rename(backup)
        except OSError as e:
            logger.error(f"Could not back up corrupt {kind.value} record {record_id}: {e}")
            backup_name = None
        else:
            backup_name = backup.name
        logger.warning(f"Corrupt {kind.value} record {record_id}, moved to {backup_name}: {error}")
        self.json_logger.log_storage_failure(
            "storage_read_corrupt",
            kind.value,
            record_id,
            str(error),
            backup=backup_name,
        )

    def get_or_create(self, kind: RecordKind, record_id: int | str) -> tuple[Record, bool]:
        """Load a record, or build a default one if none is persisted.

        The default is not saved.

        Returns:
            The record and True if it was newly created.
        """
        path = self._slot(kind, record_id)
        if path.exists():
            try:
                return self._read(kind, path), False
            except (OSError, UnicodeDecodeError, json.JSONDecodeError, RecordFormatError) as e:
                self._quarantine(kind, record_id, path, e)
        return self._default(kind, record_id), True

    def load(self, kind: RecordKind, record_id: int | str) -> Record:
        """Load a record or a fresh default."""
        record, _ = self.get_or_create(kind, record_id)
        return record

    def save(self, kind: RecordKind, record_id: int | str, record: Record) -> bool:
        """Persist the whole record, replacing any previous slot.

        Returns:
            True on success, False if the write failed.
        """
        path = self._slot(kind, record_id)
        tmp = path.with_name(path.name + ".tmp")
        try:
            content = json.dumps(record.to_dict(), ensure_ascii=False, indent=2)
            tmp.write_text(content, encoding="utf-8")
            os.replace(tmp, path)
        except (OSError, TypeError, ValueError) as e:
            with contextlib.suppress(OSError):
                tmp.unlink(missing_ok=True)
            logger.error(f"Error saving {kind.value} record {record_id}: {e}")
            self.json_logger.log_storage_failure(
                "storage_write_failed", kind.value, record_id, str(e)
            )
            return False
        return True

    def list_all(self, kind: RecordKind) -> list[Record]:
        """Load every persisted record of a kind, skipping unreadable ones."""
        records: list[Record] = []
        for path in sorted(self._kind_dir(kind).glob("*.json")):
            try:
                records.append(self._read(kind, path))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError, RecordFormatError) as e:
                logger.warning(f"Skipping unreadable {kind.value} record {path.name}: {e}")
        return records

    def lock(self, kind: RecordKind, record_id: int | str) -> asyncio.Lock:
        """Get the lock that serializes read-modify-write cycles on a record."""
        key = (kind, str(record_id))
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    # Typed shortcuts

    def load_user(self, user_id: int | str) -> UserRecord:
        record = self.load(RecordKind.USER, user_id)
        assert isinstance(record, UserRecord)
        return record

    def save_user(self, record: UserRecord) -> bool:
        return self.save(RecordKind.USER, record.id, record)

    def load_group(self, chat_id: int | str) -> GroupRecord:
        record = self.load(RecordKind.GROUP, chat_id)
        assert isinstance(record, GroupRecord)
        return record

    def save_group(self, record: GroupRecord) -> bool:
        return self.save(RecordKind.GROUP, record.id, record)

    def list_users(self) -> list[UserRecord]:
        return [r for r in self.list_all(RecordKind.USER) if isinstance(r, UserRecord)]

    def list_groups(self) -> list[GroupRecord]:
        return [r for r in self.list_all(RecordKind.GROUP) if isinstance(r, GroupRecord)]

