"""
NutriPilot — Entry Point.

`python main.py` starts the bot with long polling. Logging is configured
here, before any src module creates its logger.
"""

import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from telegram import Update

from src.bot.telegram_bot import build_app
from src.config import settings

logger = logging.getLogger("nutripilot")


def run() -> None:
    logger.info(
        "Starting NutriPilot (calendar=%s, timezone=%s, %d allowed user(s))",
        settings.CALENDAR_PROVIDER, settings.TIMEZONE, len(settings.ALLOWED_USER_IDS),
    )
    if not settings.ALLOWED_USER_IDS:
        logger.warning("ALLOWED_USER_IDS is empty: every message will be ignored")

    app = build_app()
    app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    run()
