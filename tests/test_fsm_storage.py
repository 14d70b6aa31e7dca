from datetime import timedelta

from aiogram.fsm.state import State, StatesGroup
from aiogram.fsm.storage.base import StorageKey

from store.fsm_storage import StoreFSMStorage, storage_key


class Flow(StatesGroup):
    step = State()


KEY = StorageKey(bot_id=1, chat_id=100, user_id=100)


def test_storage_key_is_stable():
    assert storage_key(KEY) == "1:100:100:default"


async def test_state_and_data_survive_a_new_storage_instance(store, clock):
    storage = StoreFSMStorage(store, ttl=timedelta(hours=1), clock=clock)
    await storage.set_state(KEY, Flow.step)
    await storage.set_data(KEY, {"name": "Ann", "shown": [2, 3]})

    restarted = StoreFSMStorage(store, ttl=timedelta(hours=1), clock=clock)
    assert await restarted.get_state(KEY) == Flow.step.state
    assert await restarted.get_data(KEY) == {"name": "Ann", "shown": [2, 3]}


async def test_update_data_merges(store, clock):
    storage = StoreFSMStorage(store, ttl=timedelta(hours=1), clock=clock)
    await storage.set_data(KEY, {"a": 1})
    await storage.update_data(KEY, {"b": 2})
    assert await storage.get_data(KEY) == {"a": 1, "b": 2}


async def test_conversation_expires_after_ttl(store, clock):
    storage = StoreFSMStorage(store, ttl=timedelta(minutes=30), clock=clock)
    await storage.set_state(KEY, "Reg:age")
    await storage.set_data(KEY, {"name": "Ann"})

    clock.advance(minutes=31)
    assert await storage.get_state(KEY) is None
    assert await storage.get_data(KEY) == {}


async def test_clearing_state_keeps_data(store, clock):
    storage = StoreFSMStorage(store, ttl=timedelta(hours=1), clock=clock)
    await storage.set_state(KEY, "Edit:bio")
    await storage.set_data(KEY, {"shown": [5]})
    await storage.set_state(KEY, None)

    assert await storage.get_state(KEY) is None
    assert await storage.get_data(KEY) == {"shown": [5]}
