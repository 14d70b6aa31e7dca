from datetime import datetime, timedelta, timezone

import pytest

from engine.errors import StoreUnavailable, ValidationError
from engine.models import MatchState, Profile
from store.sqlite_store import SqliteStore

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


async def test_profile_roundtrip(store):
    saved = await store.save_profile(Profile(user_id=7, name="Mia", age=30, location="Pune",
                                             gender="female", handle="mia", created_at=T0))
    assert saved.name == "Mia" and saved.handle == "mia"
    assert saved.created_at == T0
    assert saved.verified is False and saved.banned is False


async def test_save_profile_keeps_moderation_flags(store):
    await store.save_profile(Profile(user_id=7, name="Mia", age=30, location="Pune", created_at=T0))
    await store.update_profile(7, banned=True, verified=True, bio="hi")

    again = await store.save_profile(Profile(user_id=7, name="Mia B", age=31, location="Pune", created_at=T0))
    assert again.name == "Mia B" and again.age == 31
    assert again.banned is True and again.verified is True
    assert again.bio == "hi"


async def test_update_profile_rejects_unknown_columns(store):
    with pytest.raises(ValidationError):
        await store.update_profile(7, created_at=T0)
    with pytest.raises(ValidationError):
        await store.update_profile(7, **{"name=name; --": "x"})


async def test_add_like_reports_new_edges_only(store):
    assert await store.add_like(1, 2, T0) is True
    assert await store.add_like(1, 2, T0) is False
    assert await store.has_like(1, 2) and not await store.has_like(2, 1)


async def test_create_match_is_unique_per_pair(store):
    first, created = await store.create_match(1, 2, T0)
    second, created_again = await store.create_match(2, 1, T0)

    assert created is True and created_again is False
    assert first.id == second.id
    assert (first.user_a, first.user_b) == (1, 2)
    assert first.state is MatchState.MATCHED


async def test_redeem_requires_open_match_and_active_pass(store):
    match, _ = await store.create_match(1, 2, T0)
    assert await store.redeem_pass(1, match.id, T0, T0 + timedelta(seconds=120)) is None
    # failed redemption leaves the match untouched
    assert (await store.get_match(match.id)).state is MatchState.MATCHED

    await store.insert_pass(1, "pass:1:1", T0, T0 + timedelta(hours=24))
    spent, session = await store.redeem_pass(1, match.id, T0, T0 + timedelta(seconds=120))
    assert spent.consumed_at == T0
    assert session.pass_id == spent.id and session.match_id == match.id

    await store.insert_pass(1, "pass:1:2", T0, T0 + timedelta(hours=24))
    assert await store.redeem_pass(1, match.id, T0, T0 + timedelta(seconds=120)) is None
    assert await store.active_pass(1, T0) is not None


async def test_conversation_state_expires(store):
    await store.save_conversation("k", "Reg:age", {"name": "Ann"}, T0 + timedelta(hours=1))

    assert await store.load_conversation("k", T0) == ("Reg:age", {"name": "Ann"})
    assert await store.load_conversation("k", T0 + timedelta(hours=2)) == (None, {})

    await store.save_conversation("k", None, {}, T0 + timedelta(hours=1))
    assert await store.load_conversation("k", T0) == (None, {})


async def test_reports_default_to_pending(store):
    created = await store.add_report(1, 2, "spam", T0)
    assert created.status == "pending"
    assert [r.id for r in await store.list_reports("pending")] == [created.id]
    assert await store.list_reports("resolved") == []


async def test_stats_counts(store):
    await store.save_profile(Profile(user_id=1, name="a", age=20, location="x", created_at=T0))
    await store.insert_pass(1, "pass:1:1", T0, T0 + timedelta(hours=24))
    stats = await store.get_stats(T0)
    assert stats["users_total"] == 1
    assert stats["passes_active"] == 1
    assert stats["sessions_active"] == 0


async def test_unreachable_database_is_store_unavailable(tmp_path):
    broken = SqliteStore(str(tmp_path / "missing" / "db.sqlite3"), timeout=0.1)
    with pytest.raises(StoreUnavailable):
        await broken.get_profile(1)


async def test_conditional_match_state_write(store):
    match, _ = await store.create_match(1, 2, T0)

    assert await store.set_match_state(match.id, MatchState.PASS_PENDING, expected=(MatchState.MATCHED,))
    assert not await store.set_match_state(match.id, MatchState.PASS_PENDING, expected=(MatchState.MATCHED,))
    assert (await store.get_match(match.id)).state is MatchState.PASS_PENDING
