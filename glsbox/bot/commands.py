"""Bot commands: /start links a chat to site users, /stop unlinks it."""
from __future__ import annotations

import logging

from sqlalchemy import delete, select
from telegram import Update
from telegram.constants import ParseMode
from telegram.ext import ContextTypes

from glsbox.bot.notify import user_link
from glsbox.models import BotUser, User
from glsbox.models.base import async_session_factory

logger = logging.getLogger("glsbox.bot.commands")


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Link this chat to every site user whose telegram handle matches the sender."""
    sender = update.effective_user
    chat = update.effective_chat
    if not sender or not chat:
        return
    if not sender.username:
        await context.bot.send_message(chat_id=chat.id, text="Telegram username is required to use this bot")
        return

    async with async_session_factory() as session:
        result = await session.execute(select(User).where(User.telegram == sender.username).order_by(User.id))
        users = result.scalars().all()
        if not users:
            await context.bot.send_message(
                chat_id=chat.id, text="This telegram account is not assigned to any GLSBox users"
            )
            return

        existing = await session.execute(
            select(BotUser).where(BotUser.telegram_user_id == sender.id, BotUser.chat_id == chat.id)
        )
        if not existing.scalar_one_or_none():
            session.add(BotUser(telegram_username=sender.username, telegram_user_id=sender.id, chat_id=chat.id))
            await session.commit()
        logger.info("Chat %s subscribed for %s", chat.id, sender.username)

    links = ", ".join(user_link(u) for u in users)
    await context.bot.send_message(
        chat_id=chat.id, text=f"You will now receive updates for {links}", parse_mode=ParseMode.MARKDOWN
    )
    await context.bot.send_message(chat_id=chat.id, text="Enter /stop to stop receiving updates")


async def stop(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Remove every subscription of the sender."""
    sender = update.effective_user
    chat = update.effective_chat
    if not sender or not chat:
        return
    async with async_session_factory() as session:
        await session.execute(delete(BotUser).where(BotUser.telegram_user_id == sender.id))
        await session.commit()
    logger.info("Telegram user %s unsubscribed", sender.id)
    await context.bot.send_message(chat_id=chat.id, text="This account will no longer receive updates")


async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Log handler errors and tell the user something went wrong."""
    logger.error("Command error in update %s", update, exc_info=context.error)
    if isinstance(update, Update) and update.effective_chat:
        await context.bot.send_message(chat_id=update.effective_chat.id, text="Internal error")
