"""
engine/models.py - entity shapes shared by the engine, the stores and the bot.

All timestamps are timezone-aware UTC datetimes. Stores convert them to their
native column types on the way in and back on the way out.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from .errors import ValidationError

MIN_AGE = 18
MAX_AGE = 99
MAX_PROFILE_AGE = 100

GENDERS = ("male", "female")
PREFERENCES = ("male", "female", "any")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MatchState(str, Enum):
    MATCHED = "matched"
    PASS_PENDING = "pass_pending"
    SESSION_ACTIVE = "session_active"
    SESSION_EXPIRED = "session_expired"


class MatchEvent(str, Enum):
    NO_ACTIVE_PASS = "no_active_pass"
    REDEMPTION_LOST = "redemption_lost"
    SESSION_FUNDED = "session_funded"
    SESSION_EXPIRED = "session_expired"


@dataclass(frozen=True)
class Profile:
    user_id: int
    name: str
    age: int
    location: str
    gender: Optional[str] = None
    looking_for: str = "any"
    handle: Optional[str] = None
    university: Optional[str] = None
    bio: Optional[str] = None
    lang: str = "en"
    verified: bool = False
    banned: bool = False
    pref_min_age: int = MIN_AGE
    pref_max_age: int = MAX_AGE
    pref_location: Optional[str] = None
    pref_verified_only: bool = False
    created_at: datetime = field(default_factory=utcnow)

    @property
    def contact(self) -> str:
        if self.handle:
            return f"@{self.handle}"
        return f'<a href="tg://user?id={self.user_id}">{self.name}</a>'


@dataclass(frozen=True)
class LikeEdge:
    from_id: int
    to_id: int
    created_at: datetime


@dataclass(frozen=True)
class Match:
    id: int
    user_a: int
    user_b: int
    created_at: datetime
    state: MatchState = MatchState.MATCHED

    def other(self, user_id: int) -> int:
        if user_id == self.user_a:
            return self.user_b
        if user_id == self.user_b:
            return self.user_a
        raise ValidationError(f"user {user_id} is not part of match {self.id}")

    def involves(self, user_id: int) -> bool:
        return user_id in (self.user_a, self.user_b)


@dataclass(frozen=True)
class Pass:
    id: int
    owner_id: int
    reference_id: str
    purchased_at: datetime
    expires_at: datetime
    consumed_at: Optional[datetime] = None

    def is_active(self, at: datetime) -> bool:
        return self.consumed_at is None and at < self.expires_at


@dataclass(frozen=True)
class ChatSession:
    id: int
    match_id: int
    user_a: int
    user_b: int
    pass_id: int
    started_at: datetime
    expires_at: datetime
    notified: bool = False

    def is_expired(self, at: datetime) -> bool:
        return at >= self.expires_at


@dataclass(frozen=True)
class Report:
    id: int
    reporter_id: int
    target_id: int
    reason: str
    status: str
    created_at: datetime


@dataclass(frozen=True)
class CandidateFilters:
    min_age: int = MIN_AGE
    max_age: int = MAX_AGE
    location: Optional[str] = None
    verified_only: bool = False
    gender: Optional[str] = None

    def validate(self) -> "CandidateFilters":
        if not (MIN_AGE <= self.min_age <= MAX_AGE and MIN_AGE <= self.max_age <= MAX_AGE):
            raise ValidationError(f"age range must lie within [{MIN_AGE}, {MAX_AGE}]")
        if self.min_age > self.max_age:
            raise ValidationError("min_age must not exceed max_age")
        if self.gender is not None and self.gender not in GENDERS:
            raise ValidationError(f"unknown gender filter {self.gender!r}")
        return self

    @classmethod
    def for_profile(cls, profile: Profile) -> "CandidateFilters":
        return cls(
            min_age=profile.pref_min_age,
            max_age=profile.pref_max_age,
            location=profile.pref_location or None,
            verified_only=profile.pref_verified_only,
            gender=None if profile.looking_for == "any" else profile.looking_for,
        )


@dataclass(frozen=True)
class LikeOutcome:
    matched: bool
    match: Optional[Match] = None
    state: Optional[MatchState] = None
    session: Optional[ChatSession] = None
    created: bool = False
