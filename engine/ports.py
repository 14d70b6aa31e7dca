"""
engine/ports.py - the narrow interfaces the engine talks to.

Store: persistence for profiles, likes, matches, passes, sessions, reports
and conversation state. Implementations must raise StoreUnavailable on
transient backend failures and must make consume_pass/redeem_pass a single
atomic check-and-set.

Notifier: fire-and-forget delivery to a user's messaging identity.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Collection, Dict, List, Optional, Protocol, Tuple

from .models import (
    CandidateFilters, ChatSession, Match, MatchState, Pass, Profile, Report,
)


class Store(Protocol):
    async def init(self) -> None: ...
    async def close(self) -> None: ...

    # profiles
    async def get_profile(self, user_id: int) -> Optional[Profile]: ...
    async def save_profile(self, profile: Profile) -> Profile: ...
    async def update_profile(self, user_id: int, **fields: Any) -> Optional[Profile]: ...
    async def list_candidates(self, exclude: Collection[int], filters: CandidateFilters) -> List[Profile]: ...

    # likes
    async def add_like(self, from_id: int, to_id: int, at: datetime) -> bool: ...
    async def has_like(self, from_id: int, to_id: int) -> bool: ...
    async def liked_ids(self, user_id: int) -> List[int]: ...

    # matches
    async def create_match(self, initiator_id: int, target_id: int, at: datetime) -> Tuple[Match, bool]: ...
    async def get_match(self, match_id: int) -> Optional[Match]: ...
    async def find_match(self, a: int, b: int) -> Optional[Match]: ...
    async def list_matches(self, user_id: int) -> List[Match]: ...
    async def set_match_state(self, match_id: int, state: MatchState,
                              expected: Collection[MatchState] = ()) -> bool: ...

    # passes
    async def insert_pass(self, owner_id: int, reference_id: str, purchased_at: datetime, expires_at: datetime) -> Pass: ...
    async def find_pass_by_reference(self, reference_id: str) -> Optional[Pass]: ...
    async def active_pass(self, owner_id: int, at: datetime) -> Optional[Pass]: ...
    async def consume_pass(self, owner_id: int, at: datetime) -> Optional[Pass]: ...
    async def redeem_pass(self, owner_id: int, match_id: int, at: datetime,
                          session_expires_at: datetime) -> Optional[Tuple[Pass, ChatSession]]: ...

    # sessions
    async def get_session_for_match(self, match_id: int) -> Optional[ChatSession]: ...
    async def claim_expired_sessions(self, at: datetime, limit: int) -> List[ChatSession]: ...

    # reports
    async def add_report(self, reporter_id: int, target_id: int, reason: str, at: datetime) -> Report: ...
    async def list_reports(self, status: Optional[str] = None) -> List[Report]: ...

    # conversation state (aiogram FSM)
    async def load_conversation(self, key: str, at: datetime) -> Tuple[Optional[str], Dict[str, Any]]: ...
    async def save_conversation(self, key: str, state: Optional[str], data: Dict[str, Any],
                                expires_at: datetime) -> None: ...

    async def get_stats(self, at: datetime) -> Dict[str, Any]: ...


class Notifier(Protocol):
    async def notify(self, user_id: int, text: str, **kwargs: Any) -> None: ...
