# handlers/profile.py - profile card, bio/university edits, browsing filters
from html import escape
from typing import Optional, Tuple

from aiogram import F, Router, types
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext

from engine.errors import ValidationError
from engine.models import CandidateFilters
from keyboards import kb_main, kb_profile_edit, menu_texts
from runtime import Engine
from texts_ui import t
from .common import Edit, badge, current_profile, safe_answer

router = Router(name="profile")

VERIFIED_WORDS = {"verified", "v", "верифицированные", "вериф"}
ANY_WORDS = {"any", "-", "любой"}


def parse_filters(text: str) -> Tuple[int, int, Optional[str], bool]:
    """`min max [city ...] [verified]` -> (min_age, max_age, location, verified_only)."""
    parts = (text or "").split()
    if len(parts) < 2:
        raise ValidationError("expected at least a min and max age")
    try:
        min_age, max_age = int(parts[0]), int(parts[1])
    except ValueError:
        raise ValidationError(f"ages must be numbers: {text!r}")
    rest = parts[2:]
    verified = bool(rest) and rest[-1].lower() in VERIFIED_WORDS
    if verified:
        rest = rest[:-1]
    location = " ".join(rest) or None
    if location and location.lower() in ANY_WORDS:
        location = None
    CandidateFilters(min_age=min_age, max_age=max_age).validate()
    return min_age, max_age, location, verified


@router.message(Command("profile"))
@router.message(F.text.in_(menu_texts("btn_profile")))
async def show_profile(message: types.Message, engine: Engine):
    p = await current_profile(engine, message)
    if p is None:
        return
    lang = p.lang
    await safe_answer(message, t(lang, "profile_card").format(
        badge=badge(p), name=escape(p.name), age=p.age, location=escape(p.location),
        university=escape(p.university) if p.university else t(lang, "not_set"),
        bio=escape(p.bio) if p.bio else t(lang, "not_set"),
    ), reply_markup=kb_profile_edit(lang))


@router.callback_query(F.data == "edit_bio")
async def ask_bio(callback: types.CallbackQuery, state: FSMContext, engine: Engine):
    p = await current_profile(engine, callback.message, callback.from_user)
    await callback.answer()
    if p is None:
        return
    await state.set_state(Edit.bio)
    await safe_answer(callback.message, t(p.lang, "ask_bio"))


@router.message(Edit.bio, F.text)
async def save_bio(message: types.Message, state: FSMContext, engine: Engine):
    p = await engine.profiles.set_bio(message.from_user.id, message.text)
    await state.set_state(None)
    await safe_answer(message, t(p.lang, "bio_saved"), reply_markup=kb_main(p.lang))


@router.callback_query(F.data == "edit_university")
async def ask_university(callback: types.CallbackQuery, state: FSMContext, engine: Engine):
    p = await current_profile(engine, callback.message, callback.from_user)
    await callback.answer()
    if p is None:
        return
    await state.set_state(Edit.university)
    await safe_answer(callback.message, t(p.lang, "ask_university"))


@router.message(Edit.university, F.text)
async def save_university(message: types.Message, state: FSMContext, engine: Engine):
    p = await engine.profiles.set_university(message.from_user.id, message.text)
    await state.set_state(None)
    await safe_answer(message, t(p.lang, "university_saved"), reply_markup=kb_main(p.lang))


@router.message(Command("filters"))
@router.message(F.text.in_(menu_texts("btn_filters")))
async def show_filters(message: types.Message, state: FSMContext, engine: Engine):
    p = await current_profile(engine, message)
    if p is None:
        return
    lang = p.lang
    await state.set_state(Edit.filters)
    await safe_answer(message, t(lang, "filters_prompt").format(
        min_age=p.pref_min_age, max_age=p.pref_max_age,
        location=escape(p.pref_location) if p.pref_location else t(lang, "any"),
        verified=t(lang, "yes") if p.pref_verified_only else t(lang, "no"),
    ))


@router.message(Edit.filters, F.text)
async def save_filters(message: types.Message, state: FSMContext, engine: Engine):
    p = await engine.profiles.get(message.from_user.id)
    try:
        min_age, max_age, location, verified = parse_filters(message.text)
    except ValidationError:
        await safe_answer(message, t(p.lang, "filters_invalid"))
        return
    await engine.profiles.set_preferences(
        p.user_id, min_age=min_age, max_age=max_age, location=location, verified_only=verified)
    # a new filter set starts a fresh browsing pass
    await state.set_state(None)
    await state.update_data(shown=[])
    await safe_answer(message, t(p.lang, "filters_saved"), reply_markup=kb_main(p.lang))
