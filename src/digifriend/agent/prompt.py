"""Prompt builder for the agent."""

from ..memory import GroupMessage, UserRecord

SYSTEM_PROMPT_BASE = """Ты — Digital Friend, близкий друг пользователя.
Твоя задача: поддерживать диалог, быть эмпатичным, веселым и, если уместно, немного саркастичным.
Твой язык: Русский.

О собеседнике ты знаешь следующее:
{facts}
{target_block}
Правила:
1. Не будь роботом. Отвечай коротко, живо.
2. Используй память. Если пользователь что-то рассказывал, упоминай это.
3. [ВАЖНО] Если ты узнал новый факт (имя, хобби, планы), добавь в конец: [UPDATE: {{"ключ": "значение"}}].
4. [ВАЖНО] Если пользователь просит напомнить о чем-то, добавь в конец: [REMIND: {{"minutes": X, "text": "напоминание"}}].
   Пример: "Окей, напомню." [REMIND: {{"minutes": 10, "text": "Выключи чайник!"}}]
5. Не используй теги, если нет повода.
"""

TARGET_BLOCK = """
Ты отвечаешь на вопрос о пользователе @{username}.
Вот что ты знаешь о нем:
{facts}
"""

NO_FACTS = "Ничего пока не известно."
NO_TARGET_FACTS = "Фактов нет."

GROUP_SUMMARY_PROMPT = """Вот последние сообщения из группового чата.
Кратко (2-3 предложения) опиши, о чем идет речь и какое настроение в группе.

{messages}"""


def format_facts(facts: dict[str, str]) -> str:
    """Render facts as a bullet list, or an empty string if there are none."""
    return "\n".join(f"- {key}: {value}" for key, value in facts.items())


def build_system_prompt(record: UserRecord, target: UserRecord | None = None) -> str:
    """Build the system prompt from what is known about the user.

    Args:
        record: The user the bot is talking to.
        target: Another user the message asks about. Only their facts are
            included, never their history.

    Returns:
        Complete system prompt string.
    """
    target_block = ""
    if target is not None:
        target_block = TARGET_BLOCK.format(
            username=target.username or target.id,
            facts=format_facts(target.facts) or NO_TARGET_FACTS,
        )

    return SYSTEM_PROMPT_BASE.format(
        facts=format_facts(record.facts) or NO_FACTS,
        target_block=target_block,
    )


def build_messages(
    message: str, record: UserRecord, target: UserRecord | None = None
) -> list[dict[str, str]]:
    """Build the chat-completion message list for one turn."""
    return [
        {"role": "system", "content": build_system_prompt(record, target)},
        *record.history_for_llm(),
        {"role": "user", "content": message},
    ]


def build_group_summary_prompt(messages: list[GroupMessage]) -> str:
    """Build the prompt asking for a summary of a group's recent messages."""
    lines = "\n".join(f"{m.sender}: {m.content}" for m in messages)
    return GROUP_SUMMARY_PROMPT.format(messages=lines)
