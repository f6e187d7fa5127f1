"""Per-turn orchestration of memory, generation and directives."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from ..directives import DirectiveProcessor, Reminder, Reply
from ..logging import JSONLLogger, get_logger
from ..memory import MemoryManager, UserRecord, normalize_username
from ..scheduler import DeferredScheduler
from .responder import Responder

logger = logging.getLogger(__name__)

WHO_IS_PATTERN = re.compile(r"(?:кто так\w*|who is|расскажи о)\s+@(\w+)", re.IGNORECASE)

GROUP_CHAT_KINDS = frozenset({"group", "supergroup"})


@dataclass
class AgentConfig:
    """Configuration for the conversation agent."""

    model: str = "llama-3.1-70b-versatile"
    timeout: float | None = 60.0


@dataclass
class InboundMessage:
    """A text message handed over by the transport."""

    sender_id: int | str
    sender_display_name: str | None
    text: str
    chat_kind: str = "private"
    is_addressed_to_agent: bool = True

    @property
    def is_group(self) -> bool:
        return self.chat_kind in GROUP_CHAT_KINDS


@dataclass
class TurnResult:
    """What the transport should do after a turn.

    An empty `reply_text` means nothing should be sent.
    """

    reply_text: str
    reminders: list[Reminder] = field(default_factory=list)
    handled: bool = True


def extract_target_username(text: str) -> str | None:
    """Return the username a "who is @name" question asks about."""
    match = WHO_IS_PATTERN.search(text)
    return match.group(1) if match else None


class ConversationAgent:
    """Runs one user turn from load to save.

    The whole turn holds the user's record lock, so two messages from the
    same user are processed one after the other and neither update is lost.
    """

    def __init__(
        self,
        memory: MemoryManager,
        responder: Responder,
        scheduler: DeferredScheduler,
        directives: DirectiveProcessor | None = None,
        json_logger: JSONLLogger | None = None,
    ) -> None:
        self.memory = memory
        self.responder = responder
        self.scheduler = scheduler
        self.json_logger = json_logger or get_logger()
        self.directives = directives or DirectiveProcessor(self.json_logger)

    def resolve_target(self, text: str, sender_username: str | None) -> UserRecord | None:
        """Find the user a message asks about, ignoring questions about oneself."""
        target_name = extract_target_username(text)
        if target_name is None:
            return None
        if normalize_username(target_name) == normalize_username(sender_username or ""):
            return None
        return self.memory.find_user(target_name)

    async def handle_message(self, event: InboundMessage, reply: Reply) -> TurnResult:
        """Process a message and return the cleaned reply.

        Args:
            event: The inbound message.
            reply: Coroutine function used later by fired reminders.

        Returns:
            TurnResult with the reply text and the scheduled reminders.
        """
        if event.is_group and not event.is_addressed_to_agent:
            return TurnResult(reply_text="", handled=False)

        async with self.memory.user_lock(event.sender_id):
            record, created = self.memory.get_or_create_user(event.sender_id)

            name = event.sender_display_name
            if name and record.username != name:
                record.username = name
                # Saved right away so the name index can find it
                self.memory.store.save_user(record)

            target = self.resolve_target(event.text, name)
            if target is not None:
                logger.info(f"User {record.id} asked about @{target.username}")

            raw = await self.responder.generate(event.text, record, target)
            outcome = self.directives.apply(raw, record, self.scheduler, reply)

            self.memory.add_to_history(record, "user", event.text)
            if outcome.text:
                self.memory.add_to_history(record, "assistant", outcome.text)
            self.memory.store.save_user(record)

        self.json_logger.log(
            "turn_complete",
            user_id=record.id,
            new_user=created,
            facts_updated=len(outcome.updates),
            reminders=len(outcome.reminders),
            dropped_directives=outcome.dropped,
        )
        return TurnResult(reply_text=outcome.text, reminders=outcome.reminders)
