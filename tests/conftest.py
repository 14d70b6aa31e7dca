"""
Shared fixtures: a real SQLite store on a temp file, a controllable clock,
a notifier that records every message, and a profile factory.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from typing import Any, List, Tuple

import pytest

from engine.models import Profile
from runtime import Engine, create_engine
from store.sqlite_store import SqliteStore

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingNotifier:
    def __init__(self):
        self.sent: List[Tuple[int, str]] = []

    async def notify(self, user_id: int, text: str, **kwargs: Any) -> None:
        self.sent.append((user_id, text))

    def to(self, user_id: int) -> List[str]:
        return [text for uid, text in self.sent if uid == user_id]


class FlatRandom(random.Random):
    """random() is always 0: ranking reduces to recency."""

    def random(self) -> float:
        return 0.0


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
async def store(tmp_path) -> SqliteStore:
    s = SqliteStore(str(tmp_path / "matchpass.sqlite3"), timeout=5)
    await s.init()
    yield s
    await s.close()


@pytest.fixture
def engine(store, notifier, clock) -> Engine:
    return create_engine(
        notifier, store, clock=clock, rng=FlatRandom(),
        pass_validity=timedelta(hours=24), session_duration=timedelta(seconds=120),
    )


@pytest.fixture
def make_profile(engine, clock):
    async def _make(user_id: int, *, name: str = None, age: int = 25, location: str = "Mumbai",
                    gender: str = "female", looking_for: str = "any", handle: str = None,
                    lang: str = "en") -> Profile:
        return await engine.profiles.complete_onboarding(
            user_id, name=name or f"user{user_id}", age=age, location=location,
            gender=gender, looking_for=looking_for, handle=handle, lang=lang,
        )
    return _make
