# bot.py - MatchPass entry point: store, engine, dispatcher, background loops
import asyncio
import logging
import sys
from datetime import timedelta
from typing import Optional

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.exceptions import TelegramForbiddenError
from aiogram.types.error_event import ErrorEvent

import config
from engine.errors import ConfigError, MatchPassError, StoreUnavailable
from handlers import browse, matches, onboarding, passes, profile
from notifier import TelegramNotifier
from runtime import Engine, build_store, create_engine
from store.fsm_storage import StoreFSMStorage
from texts_ui import lang_of, t

log = logging.getLogger("bot")


def _origin(event: ErrorEvent):
    upd = event.update
    if getattr(upd, "message", None):
        return upd.message.chat.id, upd.message.from_user
    if getattr(upd, "callback_query", None):
        return upd.callback_query.from_user.id, upd.callback_query.from_user
    return None, None


def build_dispatcher(engine: Engine) -> Dispatcher:
    dp = Dispatcher(storage=StoreFSMStorage(engine.store, ttl=timedelta(seconds=config.FSM_TTL_SECONDS),
                                            clock=engine.clock))
    dp["engine"] = engine
    # command and menu-button routers come before the free-text state handlers in profile
    dp.include_routers(onboarding.router, browse.router, matches.router, passes.router, profile.router)

    @dp.error()
    async def _errors_handler(event: ErrorEvent, bot: Bot):
        exc = event.exception
        chat_id, user = _origin(event)
        if isinstance(exc, TelegramForbiddenError):
            log.warning("[forbidden] user=%s blocked bot, ignoring", chat_id)
            return True
        if isinstance(exc, MatchPassError):
            if isinstance(exc, StoreUnavailable):
                log.warning("[store] %s", exc)
            else:
                log.info("[engine] %s: %s", type(exc).__name__, exc)
            if chat_id:
                lang = lang_of(None, getattr(user, "language_code", None))
                key = "store_down" if isinstance(exc, StoreUnavailable) else "error_generic"
                try:
                    await bot.send_message(chat_id, t(lang, key))
                except TelegramForbiddenError:
                    log.warning("[forbidden] user=%s blocked bot, error notice dropped", chat_id)
            return True
        log.error("[aiogram-error] %s: %s", type(exc).__name__, exc, exc_info=exc)

    return dp


async def main(store_backend: Optional[str] = None):
    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")
    if not config.TOKEN:
        raise ConfigError("TOKEN is not set")

    store = build_store(store_backend)
    await store.init()

    bot = Bot(token=config.TOKEN, default=DefaultBotProperties(parse_mode="HTML"))
    engine = create_engine(TelegramNotifier(bot), store)
    dp = build_dispatcher(engine)

    from setup_commands import ensure_bot_commands
    await ensure_bot_commands(bot)

    from sweeper import start_sweep_loop
    tasks = [asyncio.create_task(start_sweep_loop(engine.sessions))]
    if config.RUN_ADMIN_API:
        from admin_api import start_admin_server
        tasks.append(asyncio.create_task(start_admin_server(engine, host=config.ADMIN_HOST, port=config.ADMIN_PORT)))

    log.info("%s started (store=%s)", config.BOT_NAME, type(store).__name__)
    try:
        await dp.start_polling(bot)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await bot.session.close()
        await store.close()


if __name__ == "__main__":
    if sys.platform.startswith("win"):
        # prevents WinError 64 on asyncio sockets
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(main())
