import asyncio
from datetime import timedelta

import pytest

from engine.errors import NotFoundError, ValidationError


async def test_grant_creates_active_pass(engine, make_profile, clock):
    await make_profile(1)
    granted = await engine.ledger.grant(1, "pass:1:1000")

    assert granted.owner_id == 1
    assert granted.reference_id == "pass:1:1000"
    assert granted.purchased_at == clock()
    assert granted.expires_at == clock() + timedelta(hours=24)
    assert granted.consumed_at is None
    assert (await engine.ledger.active_pass(1)).id == granted.id


async def test_grant_requires_existing_profile(engine):
    with pytest.raises(NotFoundError):
        await engine.ledger.grant(42, "pass:42:1")


@pytest.mark.parametrize("user_id,reference", [(0, "pass:0:1"), (1, ""), (1, "   ")])
async def test_grant_rejects_malformed_input(engine, make_profile, user_id, reference):
    await make_profile(1)
    with pytest.raises(ValidationError):
        await engine.ledger.grant(user_id, reference)


async def test_pass_outside_validity_window_is_not_active(engine, make_profile, clock):
    await make_profile(1)
    granted = await engine.ledger.grant(1, "pass:1:1")
    clock.advance(hours=25)

    assert await engine.ledger.active_pass(1) is None
    assert await engine.ledger.consume(1) is None
    # never consumed, just expired
    assert (await engine.store.find_pass_by_reference("pass:1:1")).consumed_at is None
    assert granted.is_active(clock()) is False


async def test_consume_is_oldest_first_and_one_way(engine, make_profile, clock):
    await make_profile(1)
    first = await engine.ledger.grant(1, "pass:1:1")
    clock.advance(minutes=5)
    second = await engine.ledger.grant(1, "pass:1:2")

    spent = await engine.ledger.consume(1)
    assert spent.id == first.id
    assert spent.consumed_at == clock()
    assert (await engine.ledger.active_pass(1)).id == second.id

    assert (await engine.ledger.consume(1)).id == second.id
    assert await engine.ledger.consume(1) is None


async def test_distinct_references_create_distinct_passes(engine, make_profile):
    await make_profile(1)
    a = await engine.ledger.grant(1, "pass:1:1")
    b = await engine.ledger.grant(1, "pass:1:2")
    assert a.id != b.id


async def test_concurrent_consumption_has_exactly_one_winner(engine, make_profile):
    await make_profile(1)
    await engine.ledger.grant(1, "pass:1:1")

    results = await asyncio.gather(*(engine.ledger.consume(1) for _ in range(5)))

    winners = [r for r in results if r is not None]
    assert len(winners) == 1
    assert await engine.ledger.active_pass(1) is None
