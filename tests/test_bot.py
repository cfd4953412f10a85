"""Tests for the Telegram bot commands and reply notifications."""
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy import select
from telegram import Chat, Message, Update
from telegram import User as TelegramUser
from telegram.error import TelegramError
from telegram.ext import CommandHandler

from glsbox.bot.commands import on_error, start, stop
from glsbox.bot.main import build_application
from glsbox.bot.notify import notify_comment_reply, reply_message
from glsbox.models import BotUser, Comment, User
from glsbox.models.base import async_session_factory


class FakeBot:
    """Records sent messages instead of calling the Bot API."""

    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send_message(self, chat_id, text, parse_mode=None, **kwargs):
        if self.fail:
            raise TelegramError("Forbidden: bot was blocked by the user")
        self.sent.append((chat_id, text))


def _update(text, username="alice_tg", user_id=77, chat_id=500):
    sender = TelegramUser(id=user_id, first_name="Alice", is_bot=False, username=username)
    chat = Chat(id=chat_id, type="private")
    message = Message(message_id=1, date=datetime.now(timezone.utc), chat=chat, from_user=sender, text=text)
    return Update(update_id=1, message=message)


def _context(bot, error=None):
    return SimpleNamespace(bot=bot, error=error)


async def _add_user(username, telegram=None):
    async with async_session_factory() as session:
        user = User(username=username, password_hash="x", telegram=telegram)
        session.add(user)
        await session.commit()
        return user


async def _bot_users():
    async with async_session_factory() as session:
        result = await session.execute(select(BotUser))
        return result.scalars().all()


def test_application_registers_commands():
    application = build_application("123456:TEST-TOKEN")
    handlers = application.handlers[0]
    assert all(isinstance(h, CommandHandler) for h in handlers)
    assert [set(h.commands) for h in handlers] == [{"start"}, {"stop"}]
    assert on_error in application.error_handlers


@pytest.mark.asyncio
async def test_start_links_chat():
    await _add_user("alice", telegram="alice_tg")
    bot = FakeBot()
    await start(_update("/start"), _context(bot))
    await start(_update("/start"), _context(bot))

    subs = await _bot_users()
    assert len(subs) == 1
    assert (subs[0].telegram_username, subs[0].telegram_user_id, subs[0].chat_id) == ("alice_tg", 77, 500)
    assert "[alice](" in bot.sent[0][1]
    assert bot.sent[1] == (500, "Enter /stop to stop receiving updates")


@pytest.mark.asyncio
async def test_start_unknown_or_anonymous():
    bot = FakeBot()
    await start(_update("/start", username=None), _context(bot))
    await start(_update("/start", username="nobody"), _context(bot))
    assert [text for _, text in bot.sent] == [
        "Telegram username is required to use this bot",
        "This telegram account is not assigned to any GLSBox users",
    ]
    assert await _bot_users() == []


@pytest.mark.asyncio
async def test_stop_unlinks():
    await _add_user("alice", telegram="alice_tg")
    bot = FakeBot()
    await start(_update("/start"), _context(bot))
    await start(_update("/start", chat_id=501), _context(bot))
    assert len(await _bot_users()) == 2

    await stop(_update("/stop"), _context(bot))
    assert await _bot_users() == []
    assert bot.sent[-1] == (500, "This account will no longer receive updates")


@pytest.mark.asyncio
async def test_error_handler_replies():
    bot = FakeBot()
    await on_error(_update("/start"), _context(bot, RuntimeError("boom")))
    assert bot.sent == [(500, "Internal error")]

    # Errors outside an update are only logged
    await on_error(None, _context(bot, RuntimeError("boom")))
    assert len(bot.sent) == 1


@pytest.mark.asyncio
async def test_notify_comment_reply():
    parent_author = await _add_user("alice", telegram="alice_tg")
    reply_author = await _add_user("bob")
    comment = Comment(id=3, author=reply_author.id, text="hi", parent_shader=1, parent_comment=2)
    bot = FakeBot()

    # Not subscribed yet
    assert await notify_comment_reply(parent_author, reply_author, comment, bot=bot) is False

    await start(_update("/start"), _context(FakeBot()))
    assert await notify_comment_reply(parent_author, reply_author, comment, bot=bot) is True
    assert bot.sent == [(500, reply_message(reply_author, comment))]
    assert "?comment=3" in bot.sent[0][1]
    assert "?comment=2" in bot.sent[0][1]


@pytest.mark.asyncio
async def test_notify_without_handle_or_on_error():
    parent_author = await _add_user("alice")
    reply_author = await _add_user("bob")
    comment = Comment(id=3, author=reply_author.id, text="hi", parent_shader=1, parent_comment=2)
    assert await notify_comment_reply(parent_author, reply_author, comment, bot=FakeBot()) is False

    # Bot disabled (no token, no bot)
    parent_author.telegram = "alice_tg"
    assert await notify_comment_reply(parent_author, reply_author, comment) is False

    async with async_session_factory() as session:
        session.add(BotUser(telegram_username="alice_tg", telegram_user_id=77, chat_id=500))
        await session.commit()
    assert await notify_comment_reply(parent_author, reply_author, comment, bot=FakeBot(fail=True)) is False
