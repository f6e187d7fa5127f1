"""Tests for Telegram bot."""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest

from digifriend.agent import AgentConfig
from digifriend.logging import configure_logger
from digifriend.memory import GroupRecord, StoreConfig
from digifriend.telegram.bot import (
    MAX_MESSAGE_LENGTH,
    WELCOME_MESSAGE,
    _config_from_env,
    format_group_report,
    is_addressed,
    sender_name,
    split_message,
)


class TestSplitMessage:
    def test_short_message_single_chunk(self):
        assert split_message("Short message") == ["Short message"]

    def test_empty_message_no_chunks(self):
        assert split_message("") == []

    def test_long_message_split(self):
        chunks = split_message("x" * 5000)
        assert len(chunks) == 2
        assert all(len(c) <= MAX_MESSAGE_LENGTH for c in chunks)
        assert "".join(chunks) == "x" * 5000

    def test_custom_length(self):
        assert split_message("abcdef", 4) == ["abcd", "ef"]


class TestIsAddressed:
    def test_mention(self):
        assert is_addressed("hey @FriendBot how are you", "FriendBot", None, 99)

    def test_mention_case_insensitive(self):
        assert is_addressed("hey @friendbot", "FriendBot", None, 99)

    def test_reply_to_bot(self):
        assert is_addressed("sure", "FriendBot", 99, 99)

    def test_reply_to_someone_else(self):
        assert not is_addressed("sure", "FriendBot", 5, 99)

    def test_plain_message(self):
        assert not is_addressed("hello all", "FriendBot", None, 99)


class TestSenderName:
    def test_prefers_username(self):
        assert sender_name(SimpleNamespace(username="bob", first_name="Bob", id=1)) == "bob"

    def test_falls_back_to_first_name(self):
        assert sender_name(SimpleNamespace(username=None, first_name="Bob", id=1)) == "Bob"

    def test_no_user(self):
        assert sender_name(None) == ""


def test_format_group_report():
    report = format_group_report(
        [(GroupRecord(id=-1, title="Friends"), "Обсуждают футбол.")]
    )
    assert "Friends (ID: -1)" in report
    assert "Сводка: Обсуждают футбол." in report


class TestConfigFromEnv:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DIGIFRIEND_LLM_TIMEOUT", raising=False)
        monkeypatch.delenv("DIGIFRIEND_DATA_DIR", raising=False)

        agent_config, store_config = _config_from_env()

        assert agent_config.timeout == 60.0
        assert store_config.data_dir == Path.home() / ".digifriend" / "data"

    def test_custom_timeout(self, monkeypatch):
        monkeypatch.setenv("DIGIFRIEND_LLM_TIMEOUT", "15")
        agent_config, _ = _config_from_env()
        assert agent_config.timeout == 15.0

    @pytest.mark.parametrize("value", ["0", "-5"])
    def test_non_positive_timeout_disables_limit(self, monkeypatch, value):
        monkeypatch.setenv("DIGIFRIEND_LLM_TIMEOUT", value)
        agent_config, _ = _config_from_env()
        assert agent_config.timeout is None


@pytest.fixture
def bot(monkeypatch, tmp_path: Path):
    from digifriend.telegram import TelegramBot

    monkeypatch.setenv("GROQ_API_KEY", "test-key")
    configure_logger(log_dir=tmp_path / "logs")
    return TelegramBot(
        token="test-token",
        admin_id="1",
        agent_config=AgentConfig(),
        store_config=StoreConfig(data_dir=tmp_path / "data"),
    )


def make_update(chat_type: str = "private", user_id: int = 1, username: str = "alex"):
    message = Mock()
    message.reply_text = AsyncMock()
    update = Mock()
    update.message = message
    update.effective_chat = SimpleNamespace(type=chat_type, id=user_id)
    update.effective_user = SimpleNamespace(id=user_id, username=username, first_name="Alex")
    return update


class TestTelegramBot:
    def test_requires_token(self, monkeypatch):
        from digifriend.telegram import TelegramBot

        monkeypatch.delenv("TELEGRAM_TOKEN", raising=False)
        with pytest.raises(ValueError, match="TELEGRAM_TOKEN"):
            TelegramBot(token=None)

    def test_creates_with_token(self, bot):
        assert bot.token == "test-token"
        assert bot.agent is not None

    def test_build_app_registers_handlers(self, bot):
        app = bot.build_app()
        assert sum(len(handlers) for handlers in app.handlers.values()) == 5

    @pytest.mark.asyncio
    async def test_start_creates_record(self, bot):
        update = make_update()

        await bot._handle_start(update, Mock())

        update.message.reply_text.assert_awaited_once_with(WELCOME_MESSAGE)
        assert bot.store.load_user(1).username == "alex"

    @pytest.mark.asyncio
    async def test_stats_ignored_for_non_admin(self, bot):
        update = make_update(user_id=2)

        await bot._handle_stats(update, Mock())

        update.message.reply_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_stats_ignored_in_groups(self, bot):
        update = make_update(chat_type="group")

        await bot._handle_stats(update, Mock())

        update.message.reply_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_stats_reports_groups(self, bot):
        await bot.memory.add_group_message(-100, "bob", "гол!")
        bot.responder.summarize_group = AsyncMock(return_value="Футбол.")
        update = make_update()

        await bot._handle_stats(update, Mock())

        texts = [c.args[0] for c in update.message.reply_text.await_args_list]
        assert "всего: 1" in texts[0]
        assert "Сводка: Футбол." in texts[1]

    @pytest.mark.asyncio
    async def test_group_log_records_message(self, bot):
        update = make_update(chat_type="group")
        update.message.text = "hello"
        update.message.chat_id = -100

        await bot._handle_group_log(update, Mock())

        messages = bot.store.load_group(-100).recent_messages
        assert [(m.sender, m.content) for m in messages] == [("alex", "hello")]


def make_member_update(chat_type: str, status: str):
    update = Mock()
    update.my_chat_member.chat = SimpleNamespace(type=chat_type, id=-100, title="Friends")
    update.my_chat_member.new_chat_member.status = status
    return update


@pytest.mark.asyncio
class TestMyChatMember:
    async def test_join_registers_group_and_notifies_admin(self, bot):
        context = Mock()
        context.bot.send_message = AsyncMock()

        await bot._handle_my_chat_member(make_member_update("group", "member"), context)

        assert bot.store.load_group(-100).title == "Friends"
        context.bot.send_message.assert_awaited_once()
        assert context.bot.send_message.call_args.kwargs["chat_id"] == "1"

    async def test_leave_only_notifies(self, bot):
        context = Mock()
        context.bot.send_message = AsyncMock()

        await bot._handle_my_chat_member(make_member_update("supergroup", "kicked"), context)

        assert bot.memory.list_groups() == []
        context.bot.send_message.assert_awaited_once()

    async def test_private_chats_ignored(self, bot):
        context = Mock()
        context.bot.send_message = AsyncMock()

        await bot._handle_my_chat_member(make_member_update("private", "member"), context)

        assert bot.memory.list_groups() == []
        context.bot.send_message.assert_not_called()
