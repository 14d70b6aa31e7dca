# handlers/common.py - FSM states and send helpers shared by the routers
import logging
from html import escape
from typing import Optional

from aiogram import types
from aiogram.exceptions import TelegramForbiddenError
from aiogram.fsm.state import State, StatesGroup

from engine.models import Profile
from runtime import Engine
from texts_ui import lang_of, t

log = logging.getLogger(__name__)


class Reg(StatesGroup):
    name = State()
    age = State()
    location = State()
    gender = State()
    looking_for = State()


class Edit(StatesGroup):
    bio = State()
    university = State()
    filters = State()


async def safe_answer(message: types.Message, text: str, **kw):
    try:
        return await message.answer(text, **kw)
    except TelegramForbiddenError:
        log.warning("[forbidden] user=%s blocked bot", message.chat.id)
        return None


async def current_profile(engine: Engine, message: types.Message, user: Optional[types.User] = None) -> Optional[Profile]:
    """Profile of the sender, or None after telling them to /start."""
    user = user or message.from_user
    profile = await engine.profiles.find(user.id)
    if profile is None:
        await safe_answer(message, t(lang_of(None, user.language_code), "need_profile"))
    return profile


def badge(profile: Profile) -> str:
    return "✅" if profile.verified else ""


def candidate_card(lang: str, p: Profile) -> str:
    return t(lang, "candidate_card").format(
        name=escape(p.name), age=p.age, badge=badge(p), location=escape(p.location),
        university=f"🎓 {escape(p.university)}" if p.university else "",
        bio=escape(p.bio) if p.bio else t(lang, "no_bio"),
    )


def fmt_time(ts) -> str:
    return ts.strftime("%d.%m %H:%M UTC")
