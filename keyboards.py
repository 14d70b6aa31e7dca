from aiogram.types import (
    InlineKeyboardButton, InlineKeyboardMarkup, KeyboardButton, ReplyKeyboardMarkup,
)

from texts_ui import t


def kb_main(lang: str):
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text=t(lang, "btn_browse")), KeyboardButton(text=t(lang, "btn_matches"))],
            [KeyboardButton(text=t(lang, "btn_profile")), KeyboardButton(text=t(lang, "btn_filters"))],
            [KeyboardButton(text=t(lang, "btn_pass"))],
        ],
        resize_keyboard=True
    )


def kb_gender(lang: str):
    return ReplyKeyboardMarkup(
        keyboard=[[KeyboardButton(text=t(lang, "gender_male")), KeyboardButton(text=t(lang, "gender_female"))]],
        resize_keyboard=True, one_time_keyboard=True
    )


def kb_looking_for(lang: str):
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text=t(lang, "gender_male")), KeyboardButton(text=t(lang, "gender_female"))],
            [KeyboardButton(text=t(lang, "pref_any"))],
        ],
        resize_keyboard=True, one_time_keyboard=True
    )


def kb_candidate(lang: str, user_id: int):
    return InlineKeyboardMarkup(inline_keyboard=[
        [
            InlineKeyboardButton(text=t(lang, "btn_like"), callback_data=f"like:{user_id}"),
            InlineKeyboardButton(text=t(lang, "btn_skip"), callback_data=f"skip:{user_id}"),
        ],
        [
            InlineKeyboardButton(text=t(lang, "btn_report"), callback_data=f"report:{user_id}"),
            InlineKeyboardButton(text=t(lang, "btn_next"), callback_data="next"),
        ],
    ])


def kb_profile_edit(lang: str):
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text=t(lang, "btn_edit_bio"), callback_data="edit_bio")],
        [InlineKeyboardButton(text=t(lang, "btn_edit_university"), callback_data="edit_university")],
    ])


def kb_pass_buy(lang: str, price: int):
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text=t(lang, "btn_buy_pass").format(price=price), callback_data="buy_pass")],
    ])


def kb_matches(lang: str, pending):
    """One "start chat" button per (match_id, name) still waiting for a pass."""
    rows = [
        [InlineKeyboardButton(text=t(lang, "btn_start_chat").format(name=name), callback_data=f"redeem:{match_id}")]
        for match_id, name in pending
    ]
    return InlineKeyboardMarkup(inline_keyboard=rows) if rows else None


def menu_texts(key: str) -> set:
    """Both language variants of a main-menu button, for text filters."""
    return {t("ru", key), t("en", key)}
