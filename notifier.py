# notifier.py - Telegram delivery for engine notifications
import logging

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError, TelegramForbiddenError

log = logging.getLogger(__name__)


class TelegramNotifier:
    """Sends engine notices as bot messages. Failures are logged, never raised."""

    def __init__(self, bot: Bot):
        self.bot = bot

    async def notify(self, user_id: int, text: str, **kwargs) -> None:
        try:
            await self.bot.send_message(user_id, text, **kwargs)
        except TelegramForbiddenError:
            log.warning("[forbidden] user=%s blocked bot, notice dropped", user_id)
        except TelegramAPIError as e:
            log.warning("notify %s failed: %s", user_id, e)
