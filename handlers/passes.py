# handlers/passes.py - Telegram Stars invoice for a chat pass, payment events, /mypass
import logging

from aiogram import Bot, F, Router, types
from aiogram.exceptions import TelegramAPIError
from aiogram.filters import Command
from aiogram.types import LabeledPrice, PreCheckoutQuery

import config
from engine.errors import ValidationError
from engine.payments import PaymentEvent, handle_payment_event, make_reference_id, parse_reference_id
from keyboards import kb_main, kb_pass_buy, menu_texts
from runtime import Engine
from texts_ui import t
from .common import current_profile, fmt_time, safe_answer

router = Router(name="passes")
log = logging.getLogger(__name__)


@router.message(Command("pass"))
@router.message(F.text.in_(menu_texts("btn_pass")))
async def show_pass(message: types.Message, engine: Engine):
    me = await current_profile(engine, message)
    if me is None:
        return
    await safe_answer(message, t(me.lang, "pass_text").format(
        price=config.PASS_PRICE_STARS,
        seconds=int(engine.sessions.duration.total_seconds()),
        hours=int(engine.ledger.validity.total_seconds() // 3600),
    ), reply_markup=kb_pass_buy(me.lang, config.PASS_PRICE_STARS))


@router.message(Command("mypass"))
async def my_pass(message: types.Message, engine: Engine):
    me = await current_profile(engine, message)
    if me is None:
        return
    active = await engine.ledger.active_pass(me.user_id)
    if active is None:
        await safe_answer(message, t(me.lang, "no_pass"))
        return
    await safe_answer(message, t(me.lang, "active_pass").format(expires=fmt_time(active.expires_at)))


@router.callback_query(F.data == "buy_pass")
async def buy_pass(callback: types.CallbackQuery, bot: Bot, engine: Engine):
    me = await current_profile(engine, callback.message, callback.from_user)
    if me is None:
        await callback.answer()
        return
    seconds = int(engine.sessions.duration.total_seconds())
    try:
        await bot.send_invoice(
            chat_id=callback.from_user.id,
            title=t(me.lang, "pass_invoice_title"),
            description=t(me.lang, "pass_invoice_desc").format(seconds=seconds),
            payload=make_reference_id(me.user_id),
            provider_token="",  # Stars
            currency="XTR",
            prices=[LabeledPrice(label=t(me.lang, "pass_invoice_title"), amount=config.PASS_PRICE_STARS)],
            start_parameter="matchpass-pass",
        )
        await callback.answer()
    except TelegramAPIError as e:
        log.error("invoice error: %s", e)
        await safe_answer(callback.message, t(me.lang, "payment_error"))


@router.pre_checkout_query()
async def pre_checkout_handler(pre_checkout_q: PreCheckoutQuery, bot: Bot):
    try:
        ok = parse_reference_id(pre_checkout_q.invoice_payload) == pre_checkout_q.from_user.id
    except ValidationError:
        ok = False
    if ok:
        await bot.answer_pre_checkout_query(pre_checkout_q.id, ok=True)
    else:
        log.warning("pre_checkout rejected: payload=%r user=%s",
                    pre_checkout_q.invoice_payload, pre_checkout_q.from_user.id)
        await bot.answer_pre_checkout_query(pre_checkout_q.id, ok=False, error_message="Invalid invoice")


@router.message(F.successful_payment)
async def payment_success(message: types.Message, engine: Engine):
    payment = message.successful_payment
    granted = await handle_payment_event(
        engine.ledger,
        PaymentEvent(external_reference_id=payment.invoice_payload, payer_identity=str(message.from_user.id)),
    )
    log.info("payment %s (charge %s) -> pass %s",
             payment.invoice_payload, payment.telegram_payment_charge_id, granted.id)
    me = await engine.profiles.find(message.from_user.id)
    lang = me.lang if me else "en"
    await safe_answer(message, t(lang, "pass_granted").format(expires=fmt_time(granted.expires_at)),
                      reply_markup=kb_main(lang))
