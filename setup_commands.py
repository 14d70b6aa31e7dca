# setup_commands.py - set_my_commands for RU/EN
import logging

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from aiogram.types import BotCommand

COMMANDS = {
    "ru": [
        ("start", "Запустить бота"),
        ("menu", "Главное меню"),
        ("browse", "Смотреть анкеты"),
        ("matches", "Мои мэтчи"),
        ("profile", "Мой профиль"),
        ("filters", "Фильтры поиска"),
        ("pass", "Купить пропуск в чат"),
        ("mypass", "Мой пропуск"),
        ("help", "Как это работает"),
    ],
    "en": [
        ("start", "Start the bot"),
        ("menu", "Main menu"),
        ("browse", "Browse profiles"),
        ("matches", "My matches"),
        ("profile", "My profile"),
        ("filters", "Browsing filters"),
        ("pass", "Buy a chat pass"),
        ("mypass", "My active pass"),
        ("help", "How it works"),
    ],
}


def bot_commands(lang: str):
    return [BotCommand(command=c, description=d) for c, d in COMMANDS[lang]]


async def ensure_bot_commands(bot: Bot):
    try:
        await bot.set_my_commands(bot_commands("ru"), language_code="ru")
        await bot.set_my_commands(bot_commands("en"), language_code="en")
        # default scope (no language)
        await bot.set_my_commands(bot_commands("en"))
    except TelegramAPIError as e:
        logging.warning("setup_commands skipped: %s", e)
