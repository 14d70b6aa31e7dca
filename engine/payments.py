"""
engine/payments.py - inbound payment events.

Reference ids carry the payer: `<namespace>:<userId>:<timestamp>`. The
payment collaborator owns that encoding; this module only decodes it and
turns a paid event into exactly one pass per reference id.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from .errors import ValidationError
from .models import Pass
from .pass_ledger import PassLedger

log = logging.getLogger(__name__)

PASS_NAMESPACE = "pass"
ADMIN_NAMESPACE = "admin_grant"


@dataclass(frozen=True)
class PaymentEvent:
    external_reference_id: str
    payer_identity: Optional[str] = None


def make_reference_id(user_id: int, namespace: str = PASS_NAMESPACE, at_ms: Optional[int] = None) -> str:
    if ":" in namespace:
        raise ValidationError("namespace must not contain ':'")
    stamp = at_ms if at_ms is not None else int(time.time() * 1000)
    return f"{namespace}:{int(user_id)}:{stamp}"


def parse_reference_id(reference_id: str) -> int:
    parts = (reference_id or "").split(":")
    if len(parts) != 3 or not all(parts):
        raise ValidationError(f"malformed reference id {reference_id!r}")
    try:
        user_id = int(parts[1])
    except ValueError:
        raise ValidationError(f"malformed user id in reference {reference_id!r}")
    if user_id <= 0:
        raise ValidationError(f"malformed user id in reference {reference_id!r}")
    return user_id


async def handle_payment_event(ledger: PassLedger, event: PaymentEvent) -> Pass:
    """Grant the pass paid for by `event`; replays return the pass already granted."""
    reference_id = (event.external_reference_id or "").strip()
    user_id = parse_reference_id(reference_id)
    existing = await ledger.store.find_pass_by_reference(reference_id)
    if existing is not None:
        log.info("payment %s already granted as pass %s", reference_id, existing.id)
        return existing
    return await ledger.grant(user_id, reference_id)
