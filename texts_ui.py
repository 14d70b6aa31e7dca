# RU/EN texts
T = {
    "en": {
        # onboarding
        "welcome": "🍩 Welcome to <b>MatchPass</b>!\n\nLet's set up your profile. First, what's your name?",
        "welcome_back": "👋 Welcome back, {name}!",
        "ask_age": "Nice to meet you, {name}! 👋\n\nHow old are you?",
        "err_age": "Please enter a valid age (18–100).",
        "ask_location": "Got it! Where are you located? (city)",
        "ask_gender": "Your gender:",
        "ask_looking_for": "Who would you like to meet?",
        "gender_male": "Man",
        "gender_female": "Woman",
        "pref_any": "Anyone",
        "profile_created": "✅ Profile created!\n\nUse the menu to browse profiles, buy a pass or edit your profile.",
        "need_profile": "Please use /start to create your profile first.",
        "menu_title": "💬 Main menu:",
        "help": (
            "🍩 <b>MatchPass</b>\n\n"
            "/browse — browse profiles\n"
            "/matches — your matches\n"
            "/profile — view / edit profile\n"
            "/filters — browsing filters\n"
            "/pass — buy a chat pass\n"
            "/mypass — your active pass\n\n"
            "<b>How it works</b>\n"
            "1. Like profiles you are into.\n"
            "2. Both like each other — it's a match 💕\n"
            "3. A pass unlocks one timed chat with a match."
        ),
        # buttons
        "btn_browse": "🔎 Browse",
        "btn_matches": "💕 Matches",
        "btn_profile": "👤 Profile",
        "btn_pass": "🎟 Buy pass",
        "btn_filters": "⚙ Filters",
        "btn_like": "❤️ Like",
        "btn_skip": "💤 Skip",
        "btn_report": "🚫 Report",
        "btn_next": "➡️ Next",
        "btn_edit_bio": "✏️ Edit bio",
        "btn_edit_university": "🎓 Edit university",
        "btn_start_chat": "💬 Start chat with {name}",
        "btn_buy_pass": "🎟 Pay {price}⭐",
        # profile
        "profile_card": (
            "👤 <b>Your profile</b> {badge}\n\n"
            "Name: {name}\nAge: {age}\nLocation: {location}\n"
            "University: {university}\nBio: {bio}"
        ),
        "not_set": "not set",
        "ask_bio": "Send your new bio:",
        "ask_university": "Send your university name:",
        "bio_saved": "✅ Bio updated!",
        "university_saved": "✅ University updated!",
        # filters
        "filters_prompt": (
            "Current filters: age {min_age}–{max_age}, location: {location}, verified only: {verified}.\n\n"
            "Send new filters as <code>min max [city] [verified]</code>, e.g. <code>21 30 Mumbai verified</code>."
        ),
        "filters_saved": "✅ Filters saved.",
        "filters_invalid": "⚠️ Could not read that. Ages must be within 18–99 and min ≤ max.",
        "any": "any",
        "yes": "yes",
        "no": "no",
        # browse
        "candidate_card": "🍩 <b>{name}</b>, {age} {badge}\n📍 {location}\n{university}\n{bio}",
        "no_bio": "No bio yet",
        "no_candidates": "😔 No more profiles to show right now.\n\nCheck back later or adjust /filters!",
        "liked": "❤️ Liked! Use /browse to see more profiles.",
        "skipped": "💤 Skipped.",
        "reported": "🚫 Reported. Thank you.",
        "its_a_match": "💕 It's a match! Check /matches",
        "cannot_like": "⚠️ This profile is no longer available.",
        # matches
        "no_matches": "💔 No matches yet.\n\nUse /browse to start liking profiles!",
        "matches_title": "💕 <b>Your matches ({count})</b>\n",
        "match_line": "{badge}{name}, {age} — {location} · {state}",
        "state_matched": "new",
        "state_pass_pending": "waiting for a pass",
        "state_session_active": "chat open until {expires}",
        "state_session_expired": "chat ended",
        # session notifications
        "session_started": (
            "🎉 It's a match with {name}!\n\n"
            "💬 Your {seconds}s timed chat has started!\n"
            "Chat with: {contact}\n\n"
            "⏰ Session expires at {expires}"
        ),
        "match_pass_needed": "🎉 You matched with {name}!\n\nTo start a timed chat, buy a pass: /pass",
        "session_expired": "⏰ Your timed chat session has expired.\n\nBuy another pass to chat more: /pass",
        "redeem_no_pass": "🎟 You need an active pass first: /pass",
        "redeem_lost": "⚠️ Your pass was just used elsewhere. Try again with a new pass.",
        "redeem_invalid": "This match already had its chat.",
        # passes
        "pass_text": (
            "🎟 <b>Chat pass</b> — {price}⭐\n\n"
            "One {seconds}-second timed chat with a match.\n"
            "Valid for {hours} hours after purchase."
        ),
        "pass_invoice_title": "MatchPass chat pass",
        "pass_invoice_desc": "One {seconds}s timed chat session",
        "pass_granted": (
            "✅ Payment successful!\n\n"
            "🎟 You received a pass, valid until {expires}.\n"
            "It will be used on your next match, or from /matches."
        ),
        "no_pass": "You have no active pass. /pass",
        "active_pass": "🎟 Active pass, valid until {expires}.",
        "payment_error": "⚠️ Error creating payment. Try later.",
        # errors
        "error_generic": "❌ An error occurred. Please try again.",
        "store_down": "⏳ Service is busy, please try again in a moment.",
    },
    "ru": {
        "welcome": "🍩 Добро пожаловать в <b>MatchPass</b>!\n\nДавай настроим профиль. Как тебя зовут?",
        "welcome_back": "👋 С возвращением, {name}!",
        "ask_age": "Приятно познакомиться, {name}! 👋\n\nСколько тебе лет?",
        "err_age": "Введи корректный возраст (18–100).",
        "ask_location": "Отлично! Из какого ты города?",
        "ask_gender": "Твой пол:",
        "ask_looking_for": "С кем хочешь познакомиться?",
        "gender_male": "Парень",
        "gender_female": "Девушка",
        "pref_any": "Неважно",
        "profile_created": "✅ Профиль создан!\n\nВ меню можно смотреть анкеты, купить пропуск или изменить профиль.",
        "need_profile": "Сначала создай профиль: /start",
        "menu_title": "💬 Главное меню:",
        "help": (
            "🍩 <b>MatchPass</b>\n\n"
            "/browse — смотреть анкеты\n"
            "/matches — твои мэтчи\n"
            "/profile — профиль\n"
            "/filters — фильтры поиска\n"
            "/pass — купить пропуск в чат\n"
            "/mypass — активный пропуск\n\n"
            "<b>Как это работает</b>\n"
            "1. Лайкай понравившиеся анкеты.\n"
            "2. Взаимный лайк — это мэтч 💕\n"
            "3. Пропуск открывает один чат с мэтчем на время."
        ),
        "btn_browse": "🔎 Анкеты",
        "btn_matches": "💕 Мэтчи",
        "btn_profile": "👤 Профиль",
        "btn_pass": "🎟 Пропуск",
        "btn_filters": "⚙ Фильтры",
        "btn_like": "❤️ Лайк",
        "btn_skip": "💤 Пропустить",
        "btn_report": "🚫 Жалоба",
        "btn_next": "➡️ Дальше",
        "btn_edit_bio": "✏️ О себе",
        "btn_edit_university": "🎓 Университет",
        "btn_start_chat": "💬 Начать чат с {name}",
        "btn_buy_pass": "🎟 Оплатить {price}⭐",
        "profile_card": (
            "👤 <b>Твой профиль</b> {badge}\n\n"
            "Имя: {name}\nВозраст: {age}\nГород: {location}\n"
            "Университет: {university}\nО себе: {bio}"
        ),
        "not_set": "не указано",
        "ask_bio": "Напиши пару слов о себе:",
        "ask_university": "Напиши название университета:",
        "bio_saved": "✅ Описание обновлено!",
        "university_saved": "✅ Университет обновлён!",
        "filters_prompt": (
            "Сейчас: возраст {min_age}–{max_age}, город: {location}, только верифицированные: {verified}.\n\n"
            "Отправь новые фильтры: <code>мин макс [город] [verified]</code>, например <code>21 30 Москва verified</code>."
        ),
        "filters_saved": "✅ Фильтры сохранены.",
        "filters_invalid": "⚠️ Не получилось разобрать. Возраст 18–99, мин ≤ макс.",
        "any": "любой",
        "yes": "да",
        "no": "нет",
        "candidate_card": "🍩 <b>{name}</b>, {age} {badge}\n📍 {location}\n{university}\n{bio}",
        "no_bio": "Пока без описания",
        "no_candidates": "😔 Анкеты закончились.\n\nЗагляни позже или измени /filters!",
        "liked": "❤️ Лайк! /browse — смотреть дальше.",
        "skipped": "💤 Пропущено.",
        "reported": "🚫 Жалоба отправлена. Спасибо.",
        "its_a_match": "💕 Это мэтч! Смотри /matches",
        "cannot_like": "⚠️ Эта анкета больше недоступна.",
        "no_matches": "💔 Мэтчей пока нет.\n\n/browse — начни лайкать анкеты!",
        "matches_title": "💕 <b>Твои мэтчи ({count})</b>\n",
        "match_line": "{badge}{name}, {age} — {location} · {state}",
        "state_matched": "новый",
        "state_pass_pending": "ждёт пропуска",
        "state_session_active": "чат открыт до {expires}",
        "state_session_expired": "чат завершён",
        "session_started": (
            "🎉 Мэтч с {name}!\n\n"
            "💬 Твой чат на {seconds} сек. начался!\n"
            "Пиши: {contact}\n\n"
            "⏰ Сессия закончится в {expires}"
        ),
        "match_pass_needed": "🎉 У тебя мэтч с {name}!\n\nЧтобы начать чат, купи пропуск: /pass",
        "session_expired": "⏰ Время чата вышло.\n\nКупи новый пропуск, чтобы продолжить: /pass",
        "redeem_no_pass": "🎟 Сначала нужен активный пропуск: /pass",
        "redeem_lost": "⚠️ Пропуск только что был использован. Попробуй с новым пропуском.",
        "redeem_invalid": "У этого мэтча чат уже был.",
        "pass_text": (
            "🎟 <b>Пропуск в чат</b> — {price}⭐\n\n"
            "Один чат с мэтчем на {seconds} сек.\n"
            "Действует {hours} ч. после покупки."
        ),
        "pass_invoice_title": "Пропуск MatchPass",
        "pass_invoice_desc": "Один чат на {seconds} сек.",
        "pass_granted": (
            "✅ Оплата прошла!\n\n"
            "🎟 Пропуск активен до {expires}.\n"
            "Он сработает на следующем мэтче или из /matches."
        ),
        "no_pass": "Активного пропуска нет. /pass",
        "active_pass": "🎟 Пропуск активен до {expires}.",
        "payment_error": "⚠️ Ошибка при создании платежа. Попробуй позже.",
        "error_generic": "❌ Что-то пошло не так. Попробуй ещё раз.",
        "store_down": "⏳ Сервис занят, попробуй через минуту.",
    },
}


def t(lang: str, key: str) -> str:
    lang = lang if lang in T else "en"
    return T[lang].get(key, key)


def lang_of(profile=None, fallback: str = None) -> str:
    if profile is not None and getattr(profile, "lang", None) in T:
        return profile.lang
    if fallback and fallback[:2] in T:
        return fallback[:2]
    return "en"
