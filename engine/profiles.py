"""
engine/profiles.py - Profile Store service.

Profiles are created when onboarding completes, mutated by edits and admin
actions, and never deleted: a ban only hides the profile from browsing.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional

from .errors import NotFoundError, ValidationError
from .models import (
    GENDERS, MAX_AGE, MAX_PROFILE_AGE, MIN_AGE, PREFERENCES,
    CandidateFilters, Profile, Report, utcnow,
)
from .ports import Store

log = logging.getLogger(__name__)

MAX_TEXT = 500


def _clean(value: Optional[str], field_name: str, *, required: bool = False) -> Optional[str]:
    value = (value or "").strip()
    if not value:
        if required:
            raise ValidationError(f"{field_name} is required")
        return None
    if len(value) > MAX_TEXT:
        raise ValidationError(f"{field_name} is longer than {MAX_TEXT} characters")
    return value


def parse_age(raw, *, low: int = MIN_AGE, high: int = MAX_PROFILE_AGE) -> int:
    try:
        age = int(str(raw).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"age must be a number, got {raw!r}")
    if not (low <= age <= high):
        raise ValidationError(f"age must be between {low} and {high}")
    return age


class ProfileService:
    def __init__(self, store: Store, *, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    async def get(self, user_id: int) -> Profile:
        profile = await self.store.get_profile(user_id)
        if profile is None:
            raise NotFoundError(f"profile {user_id} not found")
        return profile

    async def find(self, user_id: int) -> Optional[Profile]:
        return await self.store.get_profile(user_id)

    async def complete_onboarding(self, user_id: int, *, name: str, age, location: str,
                                  gender: Optional[str] = None, looking_for: str = "any",
                                  handle: Optional[str] = None, lang: str = "en") -> Profile:
        if not user_id:
            raise ValidationError("user id is required")
        if gender is not None and gender not in GENDERS:
            raise ValidationError(f"unknown gender {gender!r}")
        if looking_for not in PREFERENCES:
            raise ValidationError(f"unknown partner preference {looking_for!r}")
        existing = await self.store.get_profile(user_id)
        fields = dict(
            name=_clean(name, "name", required=True),
            age=parse_age(age),
            location=_clean(location, "location", required=True),
            gender=gender,
            looking_for=looking_for,
            handle=(handle or "").lstrip("@") or None,
            lang=lang if lang in ("ru", "en") else "en",
        )
        if existing is not None:
            profile = replace(existing, **fields)
        else:
            profile = Profile(user_id=user_id, created_at=self.clock(), **fields)
        saved = await self.store.save_profile(profile)
        log.info("profile %s onboarded (new=%s)", user_id, existing is None)
        return saved

    async def _update(self, user_id: int, **fields) -> Profile:
        profile = await self.store.update_profile(user_id, **fields)
        if profile is None:
            raise NotFoundError(f"profile {user_id} not found")
        return profile

    async def set_bio(self, user_id: int, bio: str) -> Profile:
        return await self._update(user_id, bio=_clean(bio, "bio"))

    async def set_university(self, user_id: int, university: str) -> Profile:
        return await self._update(user_id, university=_clean(university, "university"))

    async def set_preferences(self, user_id: int, *, min_age: int, max_age: int,
                              location: Optional[str] = None, verified_only: bool = False) -> Profile:
        CandidateFilters(min_age=min_age, max_age=max_age).validate()
        return await self._update(
            user_id,
            pref_min_age=min_age,
            pref_max_age=max_age,
            pref_location=_clean(location, "location"),
            pref_verified_only=bool(verified_only),
        )

    # --- admin actions ---

    async def ban(self, user_id: int) -> Profile:
        profile = await self._update(user_id, banned=True)
        log.info("profile %s banned", user_id)
        return profile

    async def unban(self, user_id: int) -> Profile:
        profile = await self._update(user_id, banned=False)
        log.info("profile %s unbanned", user_id)
        return profile

    async def mark_verified(self, user_id: int) -> Profile:
        return await self._update(user_id, verified=True)

    # --- reports ---

    async def report(self, reporter_id: int, target_id: int, reason: str = "") -> Report:
        if not reporter_id or not target_id:
            raise ValidationError("both user ids are required")
        if reporter_id == target_id:
            raise ValidationError("cannot report yourself")
        await self.get(target_id)
        created = await self.store.add_report(reporter_id, target_id, _clean(reason, "reason") or "", self.clock())
        log.info("report %s: %s -> %s", created.id, reporter_id, target_id)
        return created

    async def reports(self, status: Optional[str] = None) -> List[Report]:
        return await self.store.list_reports(status)


__all__ = ["ProfileService", "parse_age", "MIN_AGE", "MAX_AGE"]
