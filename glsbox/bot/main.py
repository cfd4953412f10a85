"""Telegram bot entry point: polls updates and dispatches /start and /stop."""
import logging

from telegram.ext import Application, CommandHandler

import config
from glsbox.bot.commands import on_error, start, stop
from glsbox.models import init_db

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("glsbox.bot")


async def _post_init(application: Application) -> None:
    await init_db()
    logger.info("Bot ready as @%s", application.bot.username)


def build_application(token: str) -> Application:
    """Application with the command handlers registered."""
    application = Application.builder().token(token).post_init(_post_init).build()
    application.add_handler(CommandHandler("start", start))
    application.add_handler(CommandHandler("stop", stop))
    application.add_error_handler(on_error)
    return application


def main() -> None:
    """Run the bot."""
    if not config.BOT_TOKEN:
        raise ValueError("BOT_TOKEN is required")
    build_application(config.BOT_TOKEN).run_polling(
        allowed_updates=["message"],
        timeout=config.BOT_POLL_TIMEOUT,
    )


if __name__ == "__main__":
    main()
