from datetime import datetime, timedelta, timezone

import pytest

from engine.candidate_selector import recency
from engine.errors import ValidationError
from engine.models import CandidateFilters, Profile

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_recency_prefers_newer_profiles():
    fresh = Profile(user_id=1, name="a", age=20, location="x", created_at=T0)
    old = Profile(user_id=2, name="b", age=20, location="x", created_at=T0 - timedelta(days=365))
    assert recency(fresh, T0) == 1.0
    assert recency(old, T0) == pytest.approx(0.5)
    assert recency(fresh, T0) > recency(old, T0)


async def test_rank_orders_newest_first_without_noise(engine, make_profile, clock):
    await make_profile(1)
    for uid in (2, 3, 4):
        clock.advance(days=30)
        await make_profile(uid)

    ranked = await engine.selector.rank(1)
    assert [p.user_id for p in ranked] == [4, 3, 2]


async def test_excludes_self_liked_and_banned(engine, make_profile):
    for uid in (1, 2, 3, 4):
        await make_profile(uid)
    await engine.orchestrator.like(1, 2)
    await engine.profiles.ban(3)

    ranked = await engine.selector.rank(1)
    assert [p.user_id for p in ranked] == [4]


async def test_filters_age_location_verified_and_gender(engine, make_profile):
    await make_profile(1, gender="male")
    await make_profile(2, age=22, location="Mumbai", gender="female")
    await make_profile(3, age=40, location="Mumbai", gender="female")
    await make_profile(4, age=23, location="Delhi", gender="female")
    await make_profile(5, age=24, location="mumbai", gender="male")
    await engine.profiles.mark_verified(2)

    by_age = await engine.selector.rank(1, CandidateFilters(min_age=20, max_age=30))
    assert {p.user_id for p in by_age} == {2, 4, 5}

    by_city = await engine.selector.rank(1, CandidateFilters(location="Mumbai"))
    assert {p.user_id for p in by_city} == {2, 3, 5}

    verified = await engine.selector.rank(1, CandidateFilters(verified_only=True))
    assert [p.user_id for p in verified] == [2]

    women = await engine.selector.rank(1, CandidateFilters(gender="female", max_age=30))
    assert {p.user_id for p in women} == {2, 4}


async def test_profile_preferences_become_default_filters(engine, make_profile):
    me = await make_profile(1, looking_for="female")
    await make_profile(2, age=30, gender="female", location="Delhi")
    await make_profile(3, age=30, gender="male", location="Delhi")
    await make_profile(4, age=50, gender="female", location="Delhi")
    me = await engine.profiles.set_preferences(1, min_age=25, max_age=35, location="Delhi")

    ranked = await engine.selector.rank(1, CandidateFilters.for_profile(me))
    assert [p.user_id for p in ranked] == [2]


async def test_next_skips_profiles_shown_in_this_pass(engine, make_profile, clock):
    await make_profile(1)
    for uid in (2, 3):
        clock.advance(days=1)
        await make_profile(uid)

    first = await engine.selector.next(1)
    second = await engine.selector.next(1, shown=[first.user_id])
    assert first.user_id == 3
    assert second.user_id == 2
    assert await engine.selector.next(1, shown=[2, 3]) is None


async def test_empty_pool_returns_none(engine, make_profile):
    await make_profile(1)
    assert await engine.selector.next(1) is None


@pytest.mark.parametrize("filters", [
    CandidateFilters(min_age=30, max_age=20),
    CandidateFilters(min_age=17, max_age=30),
    CandidateFilters(min_age=18, max_age=120),
])
async def test_invalid_filters_are_rejected(engine, make_profile, filters):
    await make_profile(1)
    with pytest.raises(ValidationError):
        await engine.selector.rank(1, filters)
