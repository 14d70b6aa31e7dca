"""
store/fsm_storage.py - aiogram FSM storage backed by the Store.

Conversation state (onboarding step, filters being edited, browse history)
survives restarts and is shared by every worker using the same Store. Each
write pushes the expiry out by `ttl`; abandoned conversations simply stop
loading once they are past it.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from aiogram.fsm.state import State
from aiogram.fsm.storage.base import BaseStorage, StateType, StorageKey

from engine.ports import Store


def storage_key(key: StorageKey) -> str:
    parts = [str(key.bot_id), str(key.chat_id), str(key.user_id)]
    if key.thread_id:
        parts.append(str(key.thread_id))
    parts.append(key.destiny)
    return ":".join(parts)


class StoreFSMStorage(BaseStorage):
    def __init__(self, store: Store, *, ttl: timedelta,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.store = store
        self.ttl = ttl
        self.clock = clock

    async def _save(self, key: StorageKey, state: Optional[str], data: Mapping[str, Any]) -> None:
        await self.store.save_conversation(storage_key(key), state, dict(data), self.clock() + self.ttl)

    async def set_state(self, key: StorageKey, state: StateType = None) -> None:
        value = state.state if isinstance(state, State) else state
        _, data = await self.store.load_conversation(storage_key(key), self.clock())
        await self._save(key, value, data)

    async def get_state(self, key: StorageKey) -> Optional[str]:
        state, _ = await self.store.load_conversation(storage_key(key), self.clock())
        return state

    async def set_data(self, key: StorageKey, data: Mapping[str, Any]) -> None:
        state, _ = await self.store.load_conversation(storage_key(key), self.clock())
        await self._save(key, state, data)

    async def get_data(self, key: StorageKey) -> Dict[str, Any]:
        _, data = await self.store.load_conversation(storage_key(key), self.clock())
        return data

    async def close(self) -> None:
        # the Store is owned by the runtime and closed there
        return None
