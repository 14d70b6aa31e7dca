"""
engine/session_engine.py - match-pair state machine and timed chat sessions.

    Matched ──(pass redeemed)──────────► SessionActive ──(clock)──► SessionExpired
       │                                      ▲
       └──(no pass / redemption lost)──► PassPending ──(manual redeem)──┘

The transition table is pure and independent of storage. Expiry is never read
from a stored flag: a session is expired iff now >= expires_at. The stored
`notified` flag only guarantees the expiry notice goes out at most once.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple

import config
from texts_ui import t
from .errors import ConflictError, InvalidTransition, NotFoundError, StoreUnavailable, ValidationError
from .models import ChatSession, Match, MatchEvent, MatchState, Profile, utcnow
from .pass_ledger import PassLedger
from .ports import Notifier, Store

log = logging.getLogger(__name__)

TRANSITIONS: Dict[Tuple[MatchState, MatchEvent], MatchState] = {
    (MatchState.MATCHED, MatchEvent.SESSION_FUNDED): MatchState.SESSION_ACTIVE,
    (MatchState.MATCHED, MatchEvent.NO_ACTIVE_PASS): MatchState.PASS_PENDING,
    (MatchState.MATCHED, MatchEvent.REDEMPTION_LOST): MatchState.PASS_PENDING,
    (MatchState.PASS_PENDING, MatchEvent.SESSION_FUNDED): MatchState.SESSION_ACTIVE,
    (MatchState.PASS_PENDING, MatchEvent.REDEMPTION_LOST): MatchState.PASS_PENDING,
    (MatchState.SESSION_ACTIVE, MatchEvent.SESSION_EXPIRED): MatchState.SESSION_EXPIRED,
}


def transition(state: MatchState, event: MatchEvent) -> MatchState:
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransition(f"{state.value} has no transition on {event.value}") from None


def effective_state(match: Match, session: Optional[ChatSession], now: datetime) -> MatchState:
    """Stored state, advanced to SessionExpired when the clock says so."""
    if session is not None and session.is_expired(now):
        return MatchState.SESSION_EXPIRED
    if session is not None:
        return MatchState.SESSION_ACTIVE
    return match.state


def _fmt(ts: datetime) -> str:
    return ts.strftime("%H:%M:%S UTC")


class SessionEngine:
    def __init__(self, store: Store, ledger: PassLedger, notifier: Notifier, *,
                 duration: Optional[timedelta] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.ledger = ledger
        self.notifier = notifier
        self.duration = duration or timedelta(seconds=config.SESSION_DURATION_SECONDS)
        self.clock = clock

    # --- queries ---

    def is_expired(self, session: ChatSession, at: Optional[datetime] = None) -> bool:
        return session.is_expired(at or self.clock())

    async def status(self, match: Match) -> Tuple[MatchState, Optional[ChatSession]]:
        """Effective state of the stored match row; `match` may be a stale copy."""
        current = await self.store.get_match(match.id) or match
        session = await self.store.get_session_for_match(match.id)
        return effective_state(current, session, self.clock()), session

    async def state_of(self, match: Match) -> MatchState:
        state, _ = await self.status(match)
        return state

    # --- transitions ---

    async def on_match(self, match: Match, initiator_id: int) -> Tuple[MatchState, Optional[ChatSession]]:
        """Negotiate a session for a match still in Matched.

        The initiator's pass is preferred; the target's pass is used only when
        the initiator has none. Only the chosen pass is tried: losing the
        redemption race leaves the match PassPending. If another writer moved
        the match on first, its current status is returned untouched.
        """
        target_id = match.other(initiator_id)
        payer = None
        for candidate in (initiator_id, target_id):
            if await self.ledger.active_pass(candidate) is not None:
                payer = candidate
                break

        if payer is not None:
            session = await self._redeem(match, payer)
            if session is not None:
                return MatchState.SESSION_ACTIVE, session
            event = MatchEvent.REDEMPTION_LOST
        else:
            event = MatchEvent.NO_ACTIVE_PASS

        state = transition(MatchState.MATCHED, event)
        if not await self.store.set_match_state(match.id, state, expected=(MatchState.MATCHED,)):
            log.info("match %s: moved on by another writer, keeping it", match.id)
            return await self.status(match)
        if payer is None:
            log.info("match %s: no active pass, %s", match.id, state.value)
        else:
            log.warning("match %s: pass of %s vanished before redemption, %s",
                        match.id, payer, state.value)
        await self._announce_pending(match)
        return state, None

    async def redeem_for_match(self, match_id: int, requester_id: int) -> Optional[ChatSession]:
        """Explicit manual action: spend the requester's own pass on a pending match.

        Returns None when the requester holds no active pass. Losing the race
        for the pass (or for the match) raises ConflictError.
        """
        match = await self.store.get_match(match_id)
        if match is None:
            raise NotFoundError(f"match {match_id} not found")
        if not match.involves(requester_id):
            raise ValidationError(f"user {requester_id} is not part of match {match_id}")
        # raises InvalidTransition for matches that already had a session
        transition(match.state, MatchEvent.SESSION_FUNDED)
        if await self.ledger.active_pass(requester_id) is None:
            return None
        session = await self._redeem(match, requester_id)
        if session is None:
            log.warning("match %s: manual redemption by %s lost the race", match_id, requester_id)
            raise ConflictError(f"redemption for match {match_id} lost to a concurrent writer")
        return session

    async def _redeem(self, match: Match, payer_id: int) -> Optional[ChatSession]:
        now = self.clock()
        redeemed = await self.store.redeem_pass(payer_id, match.id, now, now + self.duration)
        if redeemed is None:
            return None
        spent, session = redeemed
        log.info("match %s: pass %s of %s redeemed, session %s until %s",
                 match.id, spent.id, payer_id, session.id, session.expires_at.isoformat())
        await self._announce_session(match, session)
        return session

    # --- expiry sweep ---

    async def sweep_expired(self, limit: Optional[int] = None) -> int:
        """Notify participants of sessions past expiry. Each session is claimed once."""
        now = self.clock()
        claimed = await self.store.claim_expired_sessions(now, limit or config.SWEEP_BATCH)
        for session in claimed:
            # the claim already set `notified`: notices go out before any further store write
            for uid in (session.user_a, session.user_b):
                await self._notify(uid, t(await self._lang(uid), "session_expired"))
            try:
                await self.store.set_match_state(
                    session.match_id,
                    transition(MatchState.SESSION_ACTIVE, MatchEvent.SESSION_EXPIRED),
                )
            except StoreUnavailable:
                log.warning("expiry sweep: match %s state not written", session.match_id, exc_info=True)
        if claimed:
            log.info("expiry sweep: %d session(s) closed", len(claimed))
        return len(claimed)

    async def _lang(self, user_id: int) -> str:
        try:
            profile = await self.store.get_profile(user_id)
        except StoreUnavailable:
            log.warning("profile %s unavailable, notice sent in English", user_id)
            return "en"
        return profile.lang if profile else "en"

    # --- notifications ---

    async def _notify(self, user_id: int, text: str) -> None:
        try:
            await self.notifier.notify(user_id, text)
        except Exception:
            log.warning("notify %s failed", user_id, exc_info=True)

    async def _profiles(self, match: Match) -> Tuple[Optional[Profile], Optional[Profile]]:
        return await self.store.get_profile(match.user_a), await self.store.get_profile(match.user_b)

    async def _announce_session(self, match: Match, session: ChatSession) -> None:
        a, b = await self._profiles(match)
        seconds = int((session.expires_at - session.started_at).total_seconds())
        for me, other in ((a, b), (b, a)):
            if me is None or other is None:
                continue
            await self._notify(me.user_id, t(me.lang, "session_started").format(
                name=other.name, contact=other.contact, seconds=seconds,
                expires=_fmt(session.expires_at),
            ))

    async def _announce_pending(self, match: Match) -> None:
        a, b = await self._profiles(match)
        for me, other in ((a, b), (b, a)):
            if me is None or other is None:
                continue
            await self._notify(me.user_id, t(me.lang, "match_pass_needed").format(name=other.name))
