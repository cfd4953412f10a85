"""Reply notifications sent through the Telegram bot."""
from __future__ import annotations

import logging

from sqlalchemy import select
from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import TelegramError

import config
from glsbox.models import BotUser, Comment, User
from glsbox.models.base import async_session_factory

logger = logging.getLogger("glsbox.bot.notify")


def user_link(user: User) -> str:
    return f"[{user.username}]({config.HOST}/users/{user.id})"


def reply_message(reply_author: User, comment: Comment) -> str:
    view = f"{config.HOST}/view/{comment.parent_shader}"
    return (
        f"User {user_link(reply_author)} left a [reply]({view}?comment={comment.id}) "
        f"to your [comment]({view}?comment={comment.parent_comment})"
    )


async def notify_comment_reply(
    parent_author: User,
    reply_author: User,
    comment: Comment,
    bot: Bot | None = None,
) -> bool:
    """Tell ``parent_author`` about a reply via Telegram. Returns True if a message was sent.

    No-op when the bot is disabled, the author has no telegram handle, or no
    chat is linked to it. Errors are logged, never raised (runs after the
    response has been sent).
    """
    if not (bot or config.BOT_TOKEN) or not parent_author.telegram:
        return False
    async with async_session_factory() as session:
        result = await session.execute(
            select(BotUser).where(BotUser.telegram_username == parent_author.telegram).limit(1)
        )
        bot_user = result.scalar_one_or_none()
    if not bot_user:
        return False

    text = reply_message(reply_author, comment)
    try:
        if bot is None:
            async with Bot(config.BOT_TOKEN) as own_bot:
                await own_bot.send_message(chat_id=bot_user.chat_id, text=text, parse_mode=ParseMode.MARKDOWN)
        else:
            await bot.send_message(chat_id=bot_user.chat_id, text=text, parse_mode=ParseMode.MARKDOWN)
        return True
    except TelegramError:
        logger.exception("Failed to notify user %d about comment %d", parent_author.id, comment.id)
        return False
