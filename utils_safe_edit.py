import logging

from aiogram.exceptions import TelegramBadRequest

log = logging.getLogger(__name__)


async def safe_edit_kb(message, reply_markup=None, **kwargs):
    """Swap or drop an inline keyboard; stale or unchanged cards are left alone."""
    try:
        return await message.edit_reply_markup(reply_markup=reply_markup, **kwargs)
    except TelegramBadRequest as e:
        text = str(e).lower()
        if "message is not modified" in text or "message to edit not found" in text:
            return message
        raise
