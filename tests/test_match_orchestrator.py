import asyncio
from datetime import timedelta

import pytest

from engine.errors import NotFoundError, StoreUnavailable, ValidationError
from engine.models import MatchState
from texts_ui import t


async def test_one_way_like_is_not_a_match(engine, make_profile, notifier):
    await make_profile(1)
    await make_profile(2)

    outcome = await engine.orchestrator.like(1, 2)

    assert outcome.matched is False
    assert await engine.store.has_like(1, 2)
    assert await engine.store.find_match(1, 2) is None
    assert notifier.sent == []


async def test_mutual_like_without_passes_is_pass_pending(engine, make_profile, notifier):
    await make_profile(1, name="Ann")
    await make_profile(2, name="Bob")
    await engine.orchestrator.like(2, 1)

    outcome = await engine.orchestrator.like(1, 2)

    assert outcome.matched and outcome.created
    assert outcome.state is MatchState.PASS_PENDING
    assert outcome.session is None
    assert (await engine.store.get_match(outcome.match.id)).state is MatchState.PASS_PENDING
    assert notifier.to(1) == [t("en", "match_pass_needed").format(name="Bob")]
    assert notifier.to(2) == [t("en", "match_pass_needed").format(name="Ann")]


async def test_initiator_pass_is_preferred(engine, make_profile, notifier, clock):
    await make_profile(1, name="Ann", handle="ann")
    await make_profile(2, name="Bob", handle="bob")
    mine = await engine.ledger.grant(1, "pass:1:1")
    theirs = await engine.ledger.grant(2, "pass:2:1")
    await engine.orchestrator.like(2, 1)

    outcome = await engine.orchestrator.like(1, 2)

    assert outcome.state is MatchState.SESSION_ACTIVE
    assert outcome.session.pass_id == mine.id
    assert outcome.session.expires_at == clock() + timedelta(seconds=120)
    assert await engine.ledger.active_pass(1) is None
    assert (await engine.ledger.active_pass(2)).id == theirs.id
    assert "@bob" in notifier.to(1)[0]
    assert "@ann" in notifier.to(2)[0]


async def test_target_pass_used_when_initiator_has_none(engine, make_profile):
    await make_profile(1)
    await make_profile(2)
    theirs = await engine.ledger.grant(2, "pass:2:1")
    await engine.orchestrator.like(2, 1)

    outcome = await engine.orchestrator.like(1, 2)

    assert outcome.state is MatchState.SESSION_ACTIVE
    assert outcome.session.pass_id == theirs.id


async def test_repeated_likes_create_one_match_and_spend_one_pass(engine, make_profile):
    await make_profile(1)
    await make_profile(2)
    await engine.ledger.grant(1, "pass:1:1")
    await engine.ledger.grant(1, "pass:1:2")
    await engine.orchestrator.like(2, 1)
    first = await engine.orchestrator.like(1, 2)

    again = await engine.orchestrator.like(1, 2)
    reverse = await engine.orchestrator.like(2, 1)

    assert again.created is False and reverse.created is False
    assert again.match.id == reverse.match.id == first.match.id
    assert again.state is MatchState.SESSION_ACTIVE
    assert len(await engine.store.list_matches(1)) == 1
    # the second pass is still there
    assert await engine.ledger.active_pass(1) is not None


async def test_match_is_symmetric(engine, make_profile):
    await make_profile(1)
    await make_profile(2)
    await engine.orchestrator.like(1, 2)
    outcome = await engine.orchestrator.like(2, 1)

    assert (await engine.store.find_match(1, 2)).id == outcome.match.id
    assert (await engine.store.find_match(2, 1)).id == outcome.match.id
    assert outcome.match.other(1) == 2 and outcome.match.other(2) == 1


async def test_invalid_likes(engine, make_profile):
    await make_profile(1)
    await make_profile(2)
    await engine.profiles.ban(2)

    with pytest.raises(ValidationError):
        await engine.orchestrator.like(1, 1)
    with pytest.raises(ValidationError):
        await engine.orchestrator.like(0, 1)
    with pytest.raises(NotFoundError):
        await engine.orchestrator.like(1, 3)
    with pytest.raises(NotFoundError):
        await engine.orchestrator.like(1, 2)
    assert await engine.store.liked_ids(1) == []


async def test_concurrent_matches_share_one_pass(engine, make_profile, notifier):
    await make_profile(1)
    await make_profile(2)
    await make_profile(3)
    await engine.ledger.grant(1, "pass:1:1")
    await engine.orchestrator.like(2, 1)
    await engine.orchestrator.like(3, 1)

    a, b = await asyncio.gather(engine.orchestrator.like(1, 2), engine.orchestrator.like(1, 3))

    states = sorted([a.state.value, b.state.value])
    assert states == [MatchState.PASS_PENDING.value, MatchState.SESSION_ACTIVE.value]
    assert await engine.ledger.active_pass(1) is None


def _fail_once(monkeypatch, target, name):
    original = getattr(target, name)
    calls = []

    async def flaky(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            raise StoreUnavailable("database is locked")
        return await original(*args, **kwargs)
    monkeypatch.setattr(target, name, flaky)


async def test_retried_like_completes_match_after_store_failure(engine, make_profile, monkeypatch, notifier):
    await make_profile(1, name="Ann")
    await make_profile(2, name="Bob")
    await engine.orchestrator.like(2, 1)
    _fail_once(monkeypatch, engine.store, "has_like")

    with pytest.raises(StoreUnavailable):
        await engine.orchestrator.like(1, 2)
    # the edge is already written; a retry must still detect reciprocity
    outcome = await engine.orchestrator.like(1, 2)

    assert outcome.matched
    assert outcome.state is MatchState.PASS_PENDING
    assert (await engine.store.find_match(1, 2)).id == outcome.match.id
    assert notifier.to(1) == [t("en", "match_pass_needed").format(name="Bob")]


async def test_retried_like_finishes_interrupted_negotiation(engine, make_profile, monkeypatch, notifier):
    await make_profile(1, name="Ann")
    await make_profile(2, name="Bob")
    await engine.orchestrator.like(2, 1)
    _fail_once(monkeypatch, engine.store, "set_match_state")

    with pytest.raises(StoreUnavailable):
        await engine.orchestrator.like(1, 2)
    assert (await engine.store.find_match(1, 2)).state is MatchState.MATCHED
    assert notifier.sent == []

    outcome = await engine.orchestrator.like(1, 2)

    assert outcome.state is MatchState.PASS_PENDING
    assert outcome.created is False
    assert (await engine.store.get_match(outcome.match.id)).state is MatchState.PASS_PENDING
    assert notifier.to(2) == [t("en", "match_pass_needed").format(name="Ann")]
    # once negotiated, another like changes nothing
    await engine.orchestrator.like(1, 2)
    assert len(notifier.to(2)) == 1


async def test_outcome_carries_the_negotiated_state(engine, make_profile):
    await make_profile(1)
    await make_profile(2)
    await engine.orchestrator.like(2, 1)

    outcome = await engine.orchestrator.like(1, 2)

    assert outcome.match.state is MatchState.PASS_PENDING
    assert await engine.sessions.state_of(outcome.match) is MatchState.PASS_PENDING
