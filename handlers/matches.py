# handlers/matches.py - match list and the manual "start chat" redemption
from html import escape

from aiogram import F, Router, types
from aiogram.filters import Command

from engine.errors import ConflictError, InvalidTransition, NotFoundError, ValidationError
from engine.models import MatchState
from keyboards import kb_matches, menu_texts
from runtime import Engine
from texts_ui import t
from .common import badge, current_profile, fmt_time, safe_answer

router = Router(name="matches")

REDEEMABLE = (MatchState.MATCHED, MatchState.PASS_PENDING)


@router.message(Command("matches"))
@router.message(F.text.in_(menu_texts("btn_matches")))
async def show_matches(message: types.Message, engine: Engine):
    me = await current_profile(engine, message)
    if me is None:
        return
    lang = me.lang
    matches = await engine.store.list_matches(me.user_id)
    if not matches:
        await safe_answer(message, t(lang, "no_matches"))
        return
    lines, pending = [t(lang, "matches_title").format(count=len(matches))], []
    for m in matches:
        other = await engine.profiles.find(m.other(me.user_id))
        if other is None:
            continue
        state, session = await engine.sessions.status(m)
        label = t(lang, f"state_{state.value}")
        if state is MatchState.SESSION_ACTIVE and session is not None:
            label = label.format(expires=fmt_time(session.expires_at))
        lines.append(t(lang, "match_line").format(
            badge=badge(other), name=escape(other.name), age=other.age,
            location=escape(other.location), state=label,
        ))
        if state in REDEEMABLE:
            pending.append((m.id, other.name))
    await safe_answer(message, "\n".join(lines), reply_markup=kb_matches(lang, pending))


@router.callback_query(F.data.startswith("redeem:"))
async def redeem(callback: types.CallbackQuery, engine: Engine):
    me = await current_profile(engine, callback.message, callback.from_user)
    if me is None:
        await callback.answer()
        return
    lang = me.lang
    try:
        match_id = int(callback.data.split(":", 1)[1])
        session = await engine.sessions.redeem_for_match(match_id, me.user_id)
    except (ValueError, NotFoundError, ValidationError, InvalidTransition):
        await callback.answer(t(lang, "redeem_invalid"), show_alert=True)
        return
    except ConflictError:
        await callback.answer(t(lang, "redeem_lost"), show_alert=True)
        return
    if session is None:
        await callback.answer(t(lang, "redeem_no_pass"), show_alert=True)
        return
    # both participants are notified by the session engine
    await callback.answer()
