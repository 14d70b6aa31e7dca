import pytest

from engine.errors import NotFoundError, ValidationError
from engine.payments import (
    ADMIN_NAMESPACE, PaymentEvent, handle_payment_event, make_reference_id, parse_reference_id,
)


def test_make_reference_id_encodes_user_and_stamp():
    assert make_reference_id(77, at_ms=1700000000000) == "pass:77:1700000000000"
    assert make_reference_id(77, ADMIN_NAMESPACE, at_ms=5) == "admin_grant:77:5"


def test_make_reference_id_rejects_colon_namespace():
    with pytest.raises(ValidationError):
        make_reference_id(1, "a:b")


def test_parse_reference_id():
    assert parse_reference_id("pass:12345:1700000000000") == 12345
    assert parse_reference_id(make_reference_id(9, ADMIN_NAMESPACE)) == 9


@pytest.mark.parametrize("reference", [
    "", "pass", "pass:1", "pass::1", "pass:abc:1", "pass:-5:1", "pass:0:1", "a:1:2:3",
])
def test_parse_reference_id_rejects_malformed(reference):
    with pytest.raises(ValidationError):
        parse_reference_id(reference)


async def test_payment_event_grants_one_pass_per_reference(engine, make_profile):
    await make_profile(5)
    event = PaymentEvent(external_reference_id="pass:5:1000", payer_identity="5")

    first = await handle_payment_event(engine.ledger, event)
    replay = await handle_payment_event(engine.ledger, event)

    assert replay.id == first.id
    assert (await engine.ledger.consume(5)).id == first.id
    assert await engine.ledger.consume(5) is None


async def test_payment_replay_with_padded_reference_is_not_granted_twice(engine, make_profile):
    await make_profile(5)

    first = await handle_payment_event(engine.ledger, PaymentEvent("pass:5:1000"))
    replay = await handle_payment_event(engine.ledger, PaymentEvent("  pass:5:1000\n"))

    assert replay.id == first.id
    assert first.reference_id == "pass:5:1000"
    await engine.ledger.consume(5)
    assert await engine.ledger.active_pass(5) is None


async def test_payment_event_for_unknown_user(engine):
    with pytest.raises(NotFoundError):
        await handle_payment_event(engine.ledger, PaymentEvent("pass:404:1"))


async def test_payment_event_with_malformed_reference_changes_nothing(engine, make_profile):
    await make_profile(5)
    with pytest.raises(ValidationError):
        await handle_payment_event(engine.ledger, PaymentEvent("garbage"))
    assert await engine.ledger.active_pass(5) is None
