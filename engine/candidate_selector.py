# engine/candidate_selector.py
# Next-profile selection for browsing: hard exclusions first, then a noisy ranking.

from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Callable, Collection, List, Optional

from .errors import ValidationError
from .models import CandidateFilters, Profile, utcnow
from .ports import Store

log = logging.getLogger(__name__)

RANDOM_WEIGHT = 0.5
SECONDS_PER_YEAR = 365 * 24 * 3600


def recency(profile: Profile, now: datetime) -> float:
    """1.0 for a profile created now, decaying with its age in years."""
    years = max(0.0, (now - profile.created_at).total_seconds() / SECONDS_PER_YEAR)
    return 1.0 / (1.0 + years)


class CandidateSelector:
    def __init__(self, store: Store, *, rng: Optional[random.Random] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.rng = rng or random.Random()
        self.clock = clock

    def score(self, profile: Profile, now: datetime) -> float:
        return self.rng.random() * RANDOM_WEIGHT + recency(profile, now)

    async def rank(self, user_id: int, filters: Optional[CandidateFilters] = None) -> List[Profile]:
        if not user_id:
            raise ValidationError("user id is required")
        filters = (filters or CandidateFilters()).validate()
        exclude = {user_id, *await self.store.liked_ids(user_id)}
        pool = await self.store.list_candidates(exclude, filters)
        now = self.clock()
        scored = [(self.score(p, now), p) for p in pool if p.user_id not in exclude and not p.banned]
        scored.sort(key=lambda item: item[0], reverse=True)
        return [p for _, p in scored]

    async def next(self, user_id: int, filters: Optional[CandidateFilters] = None,
                   shown: Collection[int] = ()) -> Optional[Profile]:
        """Top-ranked eligible profile not yet shown in the current browsing pass."""
        for profile in await self.rank(user_id, filters):
            if profile.user_id not in shown:
                return profile
        log.debug("no candidates left for %s (shown=%d)", user_id, len(shown))
        return None
