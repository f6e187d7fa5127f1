"""Parser and applier for control directives embedded in bot replies.

The model is instructed to append machine-readable tags to its replies:

    [UPDATE: {"name": "Alex"}]                     -> merge facts into memory
    [REMIND: {"minutes": 10, "text": "Tea!"}]      -> send a reminder later

Tags are found in a single left-to-right pass and applied in the order they
appear. Every tag is removed from the visible reply, even when its payload
cannot be parsed; a broken tag is dropped on its own and never affects the
others.
"""

import functools
import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from .logging import JSONLLogger, get_logger
from .memory import UserRecord
from .scheduler import DeferredScheduler

logger = logging.getLogger(__name__)

_OPENER = r"\[(?:UPDATE|REMIND):"

# A payload runs to the first "}]", or to the first "]" when it has none; it
# never crosses into the next tag.
DIRECTIVE_PATTERN = re.compile(
    rf"\[(UPDATE|REMIND):\s*"
    rf"(\{{(?:(?!{_OPENER}).)*?\}}|(?:(?!{_OPENER})[^\]])*)"
    r"\]",
    re.DOTALL,
)

DEFAULT_REMINDER_MINUTES = 1
DEFAULT_REMINDER_TEXT = "Напоминание!"
REMINDER_PREFIX = "⏰ Напоминание: "

Reply = Callable[[str], Awaitable[Any]]


class DirectiveError(ValueError):
    """Raised when a directive payload cannot be used."""


@dataclass(frozen=True)
class Reminder:
    """A reminder requested by a REMIND directive."""

    minutes: float
    text: str

    @property
    def delay_seconds(self) -> float:
        return self.minutes * 60

    @property
    def message(self) -> str:
        """Text delivered to the chat when the reminder fires."""
        return f"{REMINDER_PREFIX}{self.text}"


@dataclass
class DirectiveOutcome:
    """Result of processing a reply.

    Attributes:
        text: Reply with every directive removed. Empty means send nothing.
        updates: Facts merged into the record, in application order.
        reminders: Reminders that were scheduled.
        dropped: Number of directives removed without being applied.
    """

    text: str
    updates: dict[str, str] = field(default_factory=dict)
    reminders: list[Reminder] = field(default_factory=list)
    dropped: int = 0


def _load_object(payload: str) -> dict[str, Any]:
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise DirectiveError(f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise DirectiveError("payload is not an object")
    return data


def _fact_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def parse_update(payload: str) -> dict[str, str]:
    """Parse an UPDATE payload into fact strings.

    Null values are skipped; other non-string values keep their JSON text.
    """
    data = _load_object(payload)
    return {str(k): _fact_value(v) for k, v in data.items() if v is not None}


def _minutes(value: Any) -> float:
    if isinstance(value, bool):
        return DEFAULT_REMINDER_MINUTES
    if isinstance(value, (int, float)):
        minutes = float(value)
    elif isinstance(value, str):
        try:
            minutes = float(value.strip())
        except ValueError:
            return DEFAULT_REMINDER_MINUTES
    else:
        return DEFAULT_REMINDER_MINUTES
    if not math.isfinite(minutes) or minutes <= 0:
        return DEFAULT_REMINDER_MINUTES
    return minutes


def parse_remind(payload: str) -> Reminder:
    """Parse a REMIND payload, filling in defaults for missing fields."""
    data = _load_object(payload)
    text = data.get("text")
    if text is None or text == "":
        text = DEFAULT_REMINDER_TEXT
    elif not isinstance(text, str):
        text = _fact_value(text)
    return Reminder(minutes=_minutes(data.get("minutes")), text=text)


def strip_directives(text: str) -> str:
    """Remove every directive tag without applying anything."""
    return DIRECTIVE_PATTERN.sub("", text).strip()


class DirectiveProcessor:
    """Applies directives found in generated text to a user record."""

    def __init__(self, json_logger: JSONLLogger | None = None) -> None:
        self.json_logger = json_logger or get_logger()

    def apply(
        self,
        text: str,
        record: UserRecord,
        scheduler: DeferredScheduler,
        reply: Reply,
    ) -> DirectiveOutcome:
        """Apply all directives in `text` and return the cleaned reply.

        Facts are merged into `record` in place; persisting it is up to the
        caller. Reminders are scheduled to call `reply` with their message.
        """
        outcome = DirectiveOutcome(text="")
        pieces: list[str] = []
        pos = 0

        for match in DIRECTIVE_PATTERN.finditer(text):
            pieces.append(text[pos:match.start()])
            pos = match.end()
            name, payload = match.group(1), match.group(2)

            try:
                if name == "UPDATE":
                    updates = parse_update(payload)
                    record.facts.update(updates)
                    outcome.updates.update(updates)
                    logger.info(f"Updated memory for user {record.id}: {updates}")
                else:
                    reminder = parse_remind(payload)
                    scheduler.schedule(
                        reminder.delay_seconds,
                        functools.partial(reply, reminder.message),
                    )
                    outcome.reminders.append(reminder)
                    self.json_logger.log_reminder_scheduled(
                        reminder.delay_seconds, user_id=record.id
                    )
                    logger.info(
                        f"Scheduled reminder for user {record.id} in {reminder.minutes} minutes"
                    )
            except DirectiveError as e:
                outcome.dropped += 1
                logger.warning(f"Dropped {name} directive for user {record.id}: {e}")
                self.json_logger.log_directive_dropped(
                    name, str(e), user_id=record.id, payload=payload
                )

        pieces.append(text[pos:])
        outcome.text = "".join(pieces).strip()
        return outcome
