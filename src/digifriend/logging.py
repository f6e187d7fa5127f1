"""JSONL logging for observability."""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass
class LogEntry:
    """A single structured event."""

    timestamp: str
    event: str
    chat_id: str | None = None
    user_id: str | None = None
    kind: str | None = None
    record_id: str | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict, excluding None values."""
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None and v != {} and v != []}


def _str_or_none(value: Any) -> str | None:
    return None if value is None else str(value)


class JSONLLogger:
    """Logger that writes structured events in JSONL format."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "logs.jsonl",
        max_size_mb: float = 10.0,
    ) -> None:
        if log_dir is None:
            log_dir = Path.home() / ".digifriend" / "logs"
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)

    @property
    def log_path(self) -> Path:
        """Current log file path."""
        return self.log_dir / self.filename

    def _rotate_if_needed(self) -> None:
        """Rotate log file if it exceeds max size."""
        if not self.log_path.exists():
            return

        if self.log_path.stat().st_size >= self.max_size_bytes:
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
            rotated_name = f"{self.log_path.stem}_{timestamp}.jsonl"
            self.log_path.rename(self.log_dir / rotated_name)

    def _write(self, entry: LogEntry) -> None:
        """Write a log entry to the file."""
        self._rotate_if_needed()

        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict(), ensure_ascii=False, default=str) + "\n")

    def log(
        self,
        event: str,
        *,
        chat_id: Any = None,
        user_id: Any = None,
        kind: str | None = None,
        record_id: Any = None,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Log an event."""
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            chat_id=_str_or_none(chat_id),
            user_id=_str_or_none(user_id),
            kind=kind,
            record_id=_str_or_none(record_id),
            error=error,
            extra=extra if extra else {},
        )
        self._write(entry)

    def log_storage_failure(
        self,
        event: str,
        kind: str,
        record_id: Any,
        error: str,
        **extra: Any,
    ) -> None:
        """Log a read or write failure of a persisted record."""
        self.log(event, kind=kind, record_id=record_id, error=error, **extra)

    def log_directive_dropped(
        self,
        directive: str,
        error: str,
        *,
        user_id: Any = None,
        payload: str | None = None,
    ) -> None:
        """Log a directive that was removed from a reply without being applied."""
        self.log(
            "directive_dropped",
            user_id=user_id,
            kind=directive,
            error=error,
            payload=payload,
        )

    def log_reminder_scheduled(
        self,
        delay_seconds: float,
        *,
        user_id: Any = None,
        chat_id: Any = None,
    ) -> None:
        """Log a reminder registered with the scheduler."""
        self.log(
            "reminder_scheduled",
            user_id=user_id,
            chat_id=chat_id,
            delay_seconds=delay_seconds,
        )


# Global logger instance
_logger: JSONLLogger | None = None


def get_logger() -> JSONLLogger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = JSONLLogger()
    return _logger


def configure_logger(log_dir: str | Path | None = None, max_size_mb: float = 10.0) -> JSONLLogger:
    """Configure and return the global logger."""
    global _logger
    _logger = JSONLLogger(log_dir=log_dir, max_size_mb=max_size_mb)
    return _logger
