# handlers/browse.py - candidate cards: like / skip / report / next
import logging

from aiogram import F, Router, types
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext

from engine.errors import NotFoundError, ValidationError
from engine.models import CandidateFilters, Profile
from keyboards import kb_candidate, menu_texts
from runtime import Engine
from texts_ui import t
from utils_safe_edit import safe_edit_kb
from .common import candidate_card, current_profile, safe_answer

router = Router(name="browse")
log = logging.getLogger(__name__)


async def show_next(message: types.Message, state: FSMContext, engine: Engine, me: Profile):
    """Send the next card of the current browsing pass, remembering it as shown."""
    shown = list((await state.get_data()).get("shown", []))
    candidate = await engine.selector.next(me.user_id, CandidateFilters.for_profile(me), shown)
    if candidate is None:
        await safe_answer(message, t(me.lang, "no_candidates"))
        return
    shown.append(candidate.user_id)
    await state.update_data(shown=shown)
    await safe_answer(message, candidate_card(me.lang, candidate), reply_markup=kb_candidate(me.lang, candidate.user_id))


def _target(callback: types.CallbackQuery) -> int:
    try:
        return int(callback.data.split(":", 1)[1])
    except (IndexError, ValueError):
        raise ValidationError(f"bad callback data {callback.data!r}")


@router.message(Command("browse"))
@router.message(F.text.in_(menu_texts("btn_browse")))
async def start_browse(message: types.Message, state: FSMContext, engine: Engine):
    me = await current_profile(engine, message)
    if me is None:
        return
    await state.set_state(None)
    await state.update_data(shown=[])
    await show_next(message, state, engine, me)


@router.callback_query(F.data.startswith("like:"))
async def like(callback: types.CallbackQuery, state: FSMContext, engine: Engine):
    me = await current_profile(engine, callback.message, callback.from_user)
    if me is None:
        await callback.answer()
        return
    try:
        outcome = await engine.orchestrator.like(me.user_id, _target(callback))
    except (NotFoundError, ValidationError):
        await callback.answer(t(me.lang, "cannot_like"), show_alert=True)
        return
    await callback.answer(t(me.lang, "its_a_match" if outcome.matched else "liked"))
    await safe_edit_kb(callback.message, None)
    await show_next(callback.message, state, engine, me)


@router.callback_query(F.data.startswith("skip:"))
async def skip(callback: types.CallbackQuery, state: FSMContext, engine: Engine):
    me = await current_profile(engine, callback.message, callback.from_user)
    if me is None:
        await callback.answer()
        return
    await callback.answer(t(me.lang, "skipped"))
    await safe_edit_kb(callback.message, None)
    await show_next(callback.message, state, engine, me)


@router.callback_query(F.data == "next")
async def next_card(callback: types.CallbackQuery, state: FSMContext, engine: Engine):
    me = await current_profile(engine, callback.message, callback.from_user)
    await callback.answer()
    if me is not None:
        await show_next(callback.message, state, engine, me)


@router.callback_query(F.data.startswith("report:"))
async def report(callback: types.CallbackQuery, state: FSMContext, engine: Engine):
    me = await current_profile(engine, callback.message, callback.from_user)
    if me is None:
        await callback.answer()
        return
    try:
        await engine.profiles.report(me.user_id, _target(callback), "reported from browse")
    except (NotFoundError, ValidationError):
        await callback.answer(t(me.lang, "cannot_like"), show_alert=True)
        return
    await callback.answer(t(me.lang, "reported"))
    await safe_edit_kb(callback.message, None)
    await show_next(callback.message, state, engine, me)
