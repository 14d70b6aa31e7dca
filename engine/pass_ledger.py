"""
engine/pass_ledger.py - purchased access passes.

A pass is active while it is unconsumed and its validity window is open.
Redemption is oldest-first. consume() is the authority: an earlier
active_pass() answer can be stale by the time a caller acts on it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

import config
from .errors import NotFoundError, ValidationError
from .models import Pass, utcnow
from .ports import Store

log = logging.getLogger(__name__)


class PassLedger:
    def __init__(self, store: Store, *, validity: Optional[timedelta] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.validity = validity or timedelta(hours=config.PASS_VALIDITY_HOURS)
        self.clock = clock

    async def grant(self, user_id: int, reference_id: str) -> Pass:
        """Create a new pass. Deduplication by reference id is the caller's job."""
        if not user_id:
            raise ValidationError("user id is required")
        if not reference_id or not reference_id.strip():
            raise ValidationError("reference id is required")
        if await self.store.get_profile(user_id) is None:
            raise NotFoundError(f"profile {user_id} not found")
        now = self.clock()
        granted = await self.store.insert_pass(user_id, reference_id.strip(), now, now + self.validity)
        log.info("pass %s granted to %s (ref=%s, expires %s)",
                 granted.id, user_id, granted.reference_id, granted.expires_at.isoformat())
        return granted

    async def active_pass(self, user_id: int) -> Optional[Pass]:
        return await self.store.active_pass(user_id, self.clock())

    async def consume(self, user_id: int) -> Optional[Pass]:
        consumed = await self.store.consume_pass(user_id, self.clock())
        if consumed is not None:
            log.info("pass %s of %s consumed", consumed.id, user_id)
        return consumed
