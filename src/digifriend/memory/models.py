"""Data models for user and group records."""

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

DEFAULT_LANGUAGE = "ru"
HISTORY_LIMIT = 15
GROUP_MESSAGES_LIMIT = 50


class RecordKind(Enum):
    """Namespaces of persisted records."""

    USER = "user"
    GROUP = "group"


class RecordFormatError(ValueError):
    """Raised when persisted data does not have the shape of a record."""


def _require(data: dict[str, Any], key: str, types: type | tuple[type, ...]) -> Any:
    """Fetch a required key and check its type."""
    if key not in data:
        raise RecordFormatError(f"missing field '{key}'")
    value = data[key]
    if not isinstance(value, types):
        raise RecordFormatError(f"field '{key}' has type {type(value).__name__}")
    return value


def _optional(
    data: dict[str, Any], key: str, types: type | tuple[type, ...], default: Any
) -> Any:
    """Fetch an optional key, falling back to default when absent or null."""
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, types):
        raise RecordFormatError(f"field '{key}' has type {type(value).__name__}")
    return value


def _as_mapping(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise RecordFormatError(f"expected an object, got {type(data).__name__}")
    return data


@dataclass
class HistoryEntry:
    """One message of a user's conversation with the bot."""

    role: str
    content: str
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def from_dict(cls, data: Any) -> "HistoryEntry":
        data = _as_mapping(data)
        role = _require(data, "role", str)
        if role not in ("user", "assistant"):
            raise RecordFormatError(f"unknown history role '{role}'")
        return cls(
            role=role,
            content=_require(data, "content", str),
            timestamp=_optional(data, "timestamp", (int, float), 0.0),
        )


@dataclass
class GroupMessage:
    """A message observed in a group chat."""

    sender: str
    content: str
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def from_dict(cls, data: Any) -> "GroupMessage":
        data = _as_mapping(data)
        return cls(
            sender=_optional(data, "sender", str, ""),
            content=_require(data, "content", str),
            timestamp=_optional(data, "timestamp", (int, float), 0.0),
        )


@dataclass
class UserRecord:
    """Durable state for one user.

    Attributes:
        id: Telegram user id, the primary key.
        username: Display name without '@', may change and is not unique.
        language: Locale tag.
        facts: What the bot has learned about the user.
        history: Recent exchange, oldest first, at most HISTORY_LIMIT entries.
        last_interaction: Epoch seconds of the latest activity.
    """

    id: int | str
    username: str | None = None
    language: str = DEFAULT_LANGUAGE
    facts: dict[str, str] = field(default_factory=dict)
    history: list[HistoryEntry] = field(default_factory=list)
    last_interaction: float = field(default_factory=time.time)

    def touch(self) -> None:
        """Update last interaction timestamp."""
        self.last_interaction = time.time()

    def history_for_llm(self) -> list[dict[str, str]]:
        """Return history in chat-completion message format."""
        return [{"role": e.role, "content": e.content} for e in self.history]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "UserRecord":
        """Create from dictionary, raising RecordFormatError on bad shape."""
        data = _as_mapping(data)
        facts = _optional(data, "facts", dict, {})
        if not all(isinstance(k, str) and isinstance(v, str) for k, v in facts.items()):
            raise RecordFormatError("facts must map strings to strings")
        history = _optional(data, "history", list, [])
        return cls(
            id=_require(data, "id", (int, str)),
            username=_optional(data, "username", str, None),
            language=_optional(data, "language", str, DEFAULT_LANGUAGE),
            facts=dict(facts),
            history=[HistoryEntry.from_dict(item) for item in history],
            last_interaction=_optional(data, "last_interaction", (int, float), 0.0),
        )


@dataclass
class GroupRecord:
    """Durable state for one group chat the bot is in."""

    id: int | str
    title: str | None = None
    members_count: int = 0
    recent_messages: list[GroupMessage] = field(default_factory=list)
    added_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "GroupRecord":
        """Create from dictionary, raising RecordFormatError on bad shape."""
        data = _as_mapping(data)
        messages = _optional(data, "recent_messages", list, [])
        return cls(
            id=_require(data, "id", (int, str)),
            title=_optional(data, "title", str, None),
            members_count=_optional(data, "members_count", int, 0),
            recent_messages=[GroupMessage.from_dict(item) for item in messages],
            added_at=_optional(data, "added_at", (int, float), 0.0),
        )


Record = UserRecord | GroupRecord

RECORD_TYPES: dict[RecordKind, type[UserRecord] | type[GroupRecord]] = {
    RecordKind.USER: UserRecord,
    RecordKind.GROUP: GroupRecord,
}
