"""Telegram bot integration for Digital Friend."""

import logging
import os
from pathlib import Path

from groq import AsyncGroq
from telegram import Update, User
from telegram.constants import ChatMemberStatus, ChatType
from telegram.ext import (
    Application,
    ChatMemberHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from ..agent import AgentConfig, ConversationAgent, InboundMessage, Responder
from ..logging import get_logger
from ..memory import GroupRecord, MemoryManager, RecordStore, StoreConfig
from ..scheduler import DeferredScheduler

logger = logging.getLogger(__name__)


def _config_from_env() -> tuple[AgentConfig, StoreConfig]:
    """Load configuration from environment variables."""
    timeout = float(os.getenv("DIGIFRIEND_LLM_TIMEOUT") or 60)
    agent_config = AgentConfig(
        model=os.getenv("GROQ_MODEL", "llama-3.1-70b-versatile"),
        # Zero or negative disables the limit
        timeout=timeout if timeout > 0 else None,
    )

    data_dir = os.getenv("DIGIFRIEND_DATA_DIR")
    store_config = StoreConfig(data_dir=Path(data_dir) if data_dir else None)

    return agent_config, store_config


WELCOME_MESSAGE = "Привет! Я твой новый цифровой друг. Будем знакомы?"
ERROR_MESSAGE = "❌ Что-то пошло не так, попробуй еще раз."

MAX_MESSAGE_LENGTH = 4096
REPORT_CHUNK_LENGTH = 4000

JOINED_STATUSES = (ChatMemberStatus.MEMBER, ChatMemberStatus.ADMINISTRATOR)
LEFT_STATUSES = (ChatMemberStatus.LEFT, ChatMemberStatus.BANNED)


def split_message(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split text into chunks that fit Telegram limits."""
    if not text:
        return []
    return [text[i : i + max_length] for i in range(0, len(text), max_length)]


def sender_name(user: User | None) -> str:
    """Name used for a sender in group logs."""
    if user is None:
        return ""
    return user.username or user.first_name or str(user.id)


def is_addressed(
    text: str,
    bot_username: str | None,
    replied_to_id: int | None,
    bot_id: int | None,
) -> bool:
    """Check whether a group message mentions the bot or replies to it."""
    if bot_username and f"@{bot_username}".casefold() in text.casefold():
        return True
    return replied_to_id is not None and replied_to_id == bot_id


def format_group_report(groups: list[tuple[GroupRecord, str]]) -> str:
    """Build the admin report from (group, summary) pairs."""
    lines = ["📢 Отчет по группам", ""]
    for group, summary in groups:
        title = group.title or "без названия"
        lines.append(f"🔸 {title} (ID: {group.id})")
        lines.append(f"Сводка: {summary}")
        lines.append("")
    return "\n".join(lines).strip()


class TelegramBot:
    """Telegram bot for Digital Friend."""

    def __init__(
        self,
        token: str | None = None,
        admin_id: str | None = None,
        agent_config: AgentConfig | None = None,
        store_config: StoreConfig | None = None,
    ) -> None:
        self.token = token or os.getenv("TELEGRAM_TOKEN")
        if not self.token:
            raise ValueError("TELEGRAM_TOKEN not set")
        self.admin_id = admin_id or os.getenv("ADMIN_ID")

        # Load config from env if not provided
        if agent_config is None or store_config is None:
            env_agent, env_store = _config_from_env()
            agent_config = agent_config or env_agent
            store_config = store_config or env_store

        self.agent_config = agent_config
        self.json_logger = get_logger()

        self.store = RecordStore(store_config, json_logger=self.json_logger)
        self.memory = MemoryManager(self.store)
        self.scheduler = DeferredScheduler()

        groq_client = AsyncGroq(api_key=os.getenv("GROQ_API_KEY"))
        self.responder = Responder(
            groq_client,
            model=agent_config.model,
            timeout=agent_config.timeout,
            json_logger=self.json_logger,
        )
        self.agent = ConversationAgent(
            self.memory,
            self.responder,
            self.scheduler,
            json_logger=self.json_logger,
        )
        self._app: Application | None = None

    def _is_admin(self, update: Update) -> bool:
        chat = update.effective_chat
        user = update.effective_user
        if chat is None or user is None or not self.admin_id:
            return False
        return chat.type == ChatType.PRIVATE and str(user.id) == str(self.admin_id)

    async def _notify_admin(self, context: ContextTypes.DEFAULT_TYPE, text: str) -> None:
        if not self.admin_id:
            return
        try:
            await context.bot.send_message(chat_id=self.admin_id, text=text)
        except Exception as e:
            logger.warning(f"Could not notify admin: {e}")

    async def _handle_start(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /start command."""
        assert update.message is not None
        user = update.effective_user
        if user is not None:
            await self.memory.ensure_user(user.id, user.username)
            self.json_logger.log("telegram_start", user_id=user.id)

        await update.message.reply_text(WELCOME_MESSAGE)

    async def _handle_stats(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /stats command (admin only)."""
        assert update.message is not None
        if not self._is_admin(update):
            return

        groups = self.memory.list_groups()
        await update.message.reply_text(
            f"📊 Анализ групп (всего: {len(groups)})... подожди, читаю переписки..."
        )

        summaries = []
        for group in groups:
            summary = await self.responder.summarize_group(group.recent_messages)
            summaries.append((group, summary))

        report = format_group_report(summaries)
        for chunk in split_message(report, REPORT_CHUNK_LENGTH):
            await update.message.reply_text(chunk)

    async def _handle_my_chat_member(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Track the bot being added to or removed from groups."""
        member_update = update.my_chat_member
        if member_update is None:
            return
        chat = member_update.chat
        if chat.type not in (ChatType.GROUP, ChatType.SUPERGROUP):
            return
        status = member_update.new_chat_member.status

        if status in JOINED_STATUSES:
            await self.memory.register_group(chat.id, chat.title)
            self.json_logger.log("group_joined", chat_id=chat.id, title=chat.title)
            await self._notify_admin(
                context, f'🔔 Меня добавили в группу:\n"{chat.title}" (ID: {chat.id})'
            )
        elif status in LEFT_STATUSES:
            self.json_logger.log("group_left", chat_id=chat.id, title=chat.title)
            await self._notify_admin(
                context, f'👋 Меня удалили из группы:\n"{chat.title}" (ID: {chat.id})'
            )

    async def _handle_group_log(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Record every text message seen in a group."""
        message = update.message
        if message is None or message.text is None:
            return
        await self.memory.add_group_message(
            message.chat_id, sender_name(update.effective_user), message.text
        )

    def _build_event(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> InboundMessage:
        assert update.message is not None
        assert update.message.text is not None
        message = update.message
        user = update.effective_user
        assert user is not None

        replied_to = message.reply_to_message
        replied_to_id = (
            replied_to.from_user.id
            if replied_to is not None and replied_to.from_user is not None
            else None
        )
        return InboundMessage(
            sender_id=user.id,
            sender_display_name=user.username,
            text=message.text,
            chat_kind=message.chat.type,
            is_addressed_to_agent=is_addressed(
                message.text, context.bot.username, replied_to_id, context.bot.id
            ),
        )

    async def _handle_message(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle incoming text messages."""
        assert update.message is not None
        event = self._build_event(update, context)
        if event.is_group and not event.is_addressed_to_agent:
            return

        chat_id = update.message.chat_id

        async def reply(text: str) -> None:
            await context.bot.send_message(chat_id=chat_id, text=text)

        try:
            self.json_logger.log(
                "telegram_message",
                chat_id=chat_id,
                user_id=event.sender_id,
                message_length=len(event.text),
            )

            # Send typing indicator
            await update.message.chat.send_action("typing")

            result = await self.agent.handle_message(event, reply)

            for chunk in split_message(result.reply_text):
                await update.message.reply_text(chunk)

        except Exception as e:
            logger.exception("Error processing message")
            self.json_logger.log("telegram_error", chat_id=chat_id, error=str(e))
            await update.message.reply_text(ERROR_MESSAGE)

    async def _post_shutdown(self, application: Application) -> None:
        """Called after Application.shutdown()."""
        self.scheduler.shutdown()

    def build_app(self) -> Application:
        """Build the Telegram application."""
        self._app = (
            Application.builder()
            .token(self.token)
            .post_shutdown(self._post_shutdown)
            .build()
        )

        # Group logging runs before the regular handlers
        self._app.add_handler(
            MessageHandler(
                filters.UpdateType.MESSAGE & filters.ChatType.GROUPS & filters.TEXT,
                self._handle_group_log,
            ),
            group=-1,
        )
        self._app.add_handler(CommandHandler("start", self._handle_start))
        self._app.add_handler(CommandHandler("stats", self._handle_stats))
        self._app.add_handler(
            ChatMemberHandler(self._handle_my_chat_member, ChatMemberHandler.MY_CHAT_MEMBER)
        )
        self._app.add_handler(
            MessageHandler(
                filters.UpdateType.MESSAGE & filters.TEXT & ~filters.COMMAND,
                self._handle_message,
            )
        )

        return self._app

    def run(self) -> None:
        """Run the bot (blocking)."""
        app = self.build_app()

        logger.info("Digital Friend bot started")
        app.run_polling(allowed_updates=Update.ALL_TYPES)
