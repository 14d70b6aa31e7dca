# handlers/onboarding.py - /start, menu and the name → age → location → gender → preference flow
from typing import Optional

from aiogram import F, Router, types
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext

from engine.errors import ValidationError
from engine.profiles import parse_age
from keyboards import kb_gender, kb_looking_for, kb_main
from runtime import Engine
from texts_ui import T, lang_of, t
from .common import Reg, safe_answer

router = Router(name="onboarding")

MAX_NAME = 64


def parse_choice(text: str, *, allow_any: bool = False) -> Optional[str]:
    """Map a gender/preference button label (any language) to its stored value."""
    text = (text or "").strip()
    for lang in T:
        if text == t(lang, "gender_male"):
            return "male"
        if text == t(lang, "gender_female"):
            return "female"
        if allow_any and text == t(lang, "pref_any"):
            return "any"
    return None


@router.message(CommandStart())
async def start_cmd(message: types.Message, state: FSMContext, engine: Engine):
    profile = await engine.profiles.find(message.from_user.id)
    lang = lang_of(profile, message.from_user.language_code)
    await state.clear()
    if profile is None:
        await state.update_data(lang=lang)
        await safe_answer(message, t(lang, "welcome"), reply_markup=types.ReplyKeyboardRemove())
        await state.set_state(Reg.name)
        return
    await safe_answer(message, t(lang, "welcome_back").format(name=profile.name), reply_markup=kb_main(lang))


@router.message(Command("menu"))
async def show_menu(message: types.Message, engine: Engine):
    profile = await engine.profiles.find(message.from_user.id)
    lang = lang_of(profile, message.from_user.language_code)
    await safe_answer(message, t(lang, "menu_title"), reply_markup=kb_main(lang))


@router.message(Command("help"))
async def show_help(message: types.Message, engine: Engine):
    profile = await engine.profiles.find(message.from_user.id)
    await safe_answer(message, t(lang_of(profile, message.from_user.language_code), "help"))


@router.message(Reg.name, F.text)
async def reg_name(message: types.Message, state: FSMContext):
    lang = (await state.get_data()).get("lang", "en")
    name = message.text.strip()
    if not name or len(name) > MAX_NAME or name.startswith("/"):
        await safe_answer(message, t(lang, "welcome"))
        return
    await state.update_data(name=name)
    await safe_answer(message, t(lang, "ask_age").format(name=name))
    await state.set_state(Reg.age)


@router.message(Reg.age, F.text)
async def reg_age(message: types.Message, state: FSMContext):
    lang = (await state.get_data()).get("lang", "en")
    try:
        age = parse_age(message.text)
    except ValidationError:
        await safe_answer(message, t(lang, "err_age"))
        return
    await state.update_data(age=age)
    await safe_answer(message, t(lang, "ask_location"))
    await state.set_state(Reg.location)


@router.message(Reg.location, F.text)
async def reg_location(message: types.Message, state: FSMContext):
    lang = (await state.get_data()).get("lang", "en")
    location = message.text.strip()
    if not location:
        await safe_answer(message, t(lang, "ask_location"))
        return
    await state.update_data(location=location)
    await safe_answer(message, t(lang, "ask_gender"), reply_markup=kb_gender(lang))
    await state.set_state(Reg.gender)


@router.message(Reg.gender, F.text)
async def reg_gender(message: types.Message, state: FSMContext):
    lang = (await state.get_data()).get("lang", "en")
    gender = parse_choice(message.text)
    if gender is None:
        await safe_answer(message, t(lang, "ask_gender"), reply_markup=kb_gender(lang))
        return
    await state.update_data(gender=gender)
    await safe_answer(message, t(lang, "ask_looking_for"), reply_markup=kb_looking_for(lang))
    await state.set_state(Reg.looking_for)


@router.message(Reg.looking_for, F.text)
async def reg_looking_for(message: types.Message, state: FSMContext, engine: Engine):
    data = await state.get_data()
    lang = data.get("lang", "en")
    looking_for = parse_choice(message.text, allow_any=True)
    if looking_for is None:
        await safe_answer(message, t(lang, "ask_looking_for"), reply_markup=kb_looking_for(lang))
        return
    await engine.profiles.complete_onboarding(
        message.from_user.id,
        name=data["name"], age=data["age"], location=data["location"],
        gender=data["gender"], looking_for=looking_for,
        handle=message.from_user.username, lang=lang,
    )
    await state.clear()
    await safe_answer(message, t(lang, "profile_created"), reply_markup=kb_main(lang))
