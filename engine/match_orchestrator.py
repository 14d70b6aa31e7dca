# engine/match_orchestrator.py
# "A likes B": record the edge, detect reciprocity, create the match once,
# then hand the new match to the session engine.

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable

from .errors import NotFoundError, ValidationError
from .models import LikeOutcome, MatchState, utcnow
from .ports import Store
from .session_engine import SessionEngine

log = logging.getLogger(__name__)


class MatchOrchestrator:
    def __init__(self, store: Store, sessions: SessionEngine, *,
                 clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.sessions = sessions
        self.clock = clock

    async def like(self, from_id: int, to_id: int) -> LikeOutcome:
        if not from_id or not to_id:
            raise ValidationError("both user ids are required")
        if from_id == to_id:
            raise ValidationError("cannot like yourself")
        target = await self.store.get_profile(to_id)
        if target is None or target.banned:
            raise NotFoundError(f"profile {to_id} not found")

        is_new = await self.store.add_like(from_id, to_id, self.clock())
        # a retried like re-runs every step below: each one is idempotent
        if not await self.store.has_like(to_id, from_id):
            if is_new:
                log.debug("%s liked %s, pending", from_id, to_id)
            return LikeOutcome(matched=False)

        match, created = await self.store.create_match(from_id, to_id, self.clock())
        if not created and match.state is not MatchState.MATCHED:
            return LikeOutcome(matched=True, match=match,
                               state=await self.sessions.state_of(match))

        if created:
            log.info("match %s created: %s <-> %s", match.id, from_id, to_id)
        else:
            log.info("match %s: resuming unfinished negotiation", match.id)
        state, session = await self.sessions.on_match(match, initiator_id=from_id)
        return LikeOutcome(matched=True, match=replace(match, state=state), state=state,
                           session=session, created=created)
