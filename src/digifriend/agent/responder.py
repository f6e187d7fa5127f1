"""Generation client that turns a user turn into a reply."""

import asyncio
import logging
from typing import Any

from groq import AsyncGroq

from ..logging import JSONLLogger, get_logger
from ..memory import GroupMessage, UserRecord
from .prompt import build_group_summary_prompt, build_messages

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Что-то мне нехорошо (ошибка API)."
FALLBACK_SUMMARY = "Не удалось получить сводку."
EMPTY_GROUP_SUMMARY = "Сообщений пока нет."


class Responder:
    """Wraps AsyncGroq chat completions.

    Errors and timeouts never propagate: replies fall back to a fixed
    apology so the turn can carry on with its bookkeeping.
    """

    def __init__(
        self,
        client: AsyncGroq,
        model: str = "llama-3.1-70b-versatile",
        timeout: float | None = 60.0,
        json_logger: JSONLLogger | None = None,
    ) -> None:
        """Initialize the responder.

        Args:
            client: The AsyncGroq client instance to wrap.
            model: The model to use for completions.
            timeout: Seconds to wait for a completion, None for no limit.
            json_logger: Structured event logger.
        """
        self._client = client
        self._model = model
        self.timeout = timeout
        self.json_logger = json_logger or get_logger()

    @property
    def model(self) -> str:
        """Return the model being used."""
        return self._model

    async def _complete(self, messages: list[dict[str, Any]]) -> str:
        response = await asyncio.wait_for(
            self._client.chat.completions.create(
                model=self._model,
                messages=messages,
            ),
            timeout=self.timeout,
        )
        return response.choices[0].message.content or ""

    async def generate(
        self,
        message: str,
        record: UserRecord,
        target: UserRecord | None = None,
    ) -> str:
        """Generate the raw reply to `message`, directives included."""
        messages = build_messages(message, record, target)
        try:
            return await self._complete(messages)
        except Exception as e:
            logger.warning(f"Generation failed for user {record.id}: {e!r}")
            self.json_logger.log("generation_failed", user_id=record.id, error=repr(e))
            return FALLBACK_REPLY

    async def summarize_group(self, messages: list[GroupMessage]) -> str:
        """Summarize a group's recent messages for the admin report."""
        if not messages:
            return EMPTY_GROUP_SUMMARY

        prompt = build_group_summary_prompt(messages)
        try:
            summary = await self._complete([{"role": "user", "content": prompt}])
        except Exception as e:
            logger.warning(f"Group summary failed: {e!r}")
            self.json_logger.log("generation_failed", error=repr(e), purpose="group_summary")
            return FALLBACK_SUMMARY
        return summary.strip() or FALLBACK_SUMMARY
