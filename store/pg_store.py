"""
store/pg_store.py - asyncpg backend.

Pool-per-process. Redemption claims the match row, then the oldest active
pass with FOR UPDATE SKIP LOCKED, so two concurrent redemptions never read
the same unconsumed pass.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Collection, Dict, List, Optional, Tuple

import asyncpg

from engine.errors import StoreUnavailable, ValidationError
from engine.models import CandidateFilters, ChatSession, Match, MatchState, Pass, Profile, Report
from . import rows as rowmap
from .schema import PG_SCHEMA_SQL, UPDATABLE_PROFILE_COLUMNS

log = logging.getLogger(__name__)

UNAVAILABLE = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    asyncpg.CannotConnectNowError,
    asyncpg.TooManyConnectionsError,
    asyncpg.DeadlockDetectedError,
    OSError,
    asyncio.TimeoutError,
)

OPEN_MATCH_STATES = [MatchState.MATCHED.value, MatchState.PASS_PENDING.value]


class PgStore:
    def __init__(self, dsn: str, *, min_size: int = 1, max_size: int = 10, timeout: float = 10.0):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.timeout = timeout
        self.pool: Optional[asyncpg.Pool] = None

    @asynccontextmanager
    async def _con(self, tx: bool = False):
        if self.pool is None:
            raise StoreUnavailable("postgres pool is not initialised")
        try:
            async with self.pool.acquire(timeout=self.timeout) as con:
                if tx:
                    async with con.transaction():
                        yield con
                else:
                    yield con
        except UNAVAILABLE as e:
            raise StoreUnavailable(f"postgres: {e}") from e

    async def init(self, reset: bool = False) -> None:
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn, min_size=self.min_size, max_size=self.max_size,
                timeout=self.timeout, command_timeout=self.timeout,
            )
        except UNAVAILABLE as e:
            raise StoreUnavailable(f"postgres: {e}") from e
        async with self._con() as con:
            if reset:
                await con.execute(
                    "DROP TABLE IF EXISTS conversations, reports, chat_sessions, passes, matches, likes, profiles")
            await con.execute(PG_SCHEMA_SQL)
        log.info("[db] postgres pool ready (%s..%s)", self.min_size, self.max_size)

    async def close(self) -> None:
        if self.pool is not None:
            await self.pool.close()
            self.pool = None

    # --- profiles ---

    async def get_profile(self, user_id: int) -> Optional[Profile]:
        async with self._con() as con:
            r = await con.fetchrow("SELECT * FROM profiles WHERE user_id=$1", user_id)
            return rowmap.profile(r) if r else None

    async def save_profile(self, p: Profile) -> Profile:
        async with self._con() as con:
            r = await con.fetchrow("""
              INSERT INTO profiles (user_id, name, age, location, gender, looking_for, handle, university, bio,
                                    lang, verified, banned, pref_min_age, pref_max_age, pref_location,
                                    pref_verified_only, created_at, updated_at)
              VALUES ($1,$2,$3,$4,$5,$6,$7,$8,$9,$10,$11,$12,$13,$14,$15,$16,$17,now())
              ON CONFLICT (user_id) DO UPDATE SET
                name=EXCLUDED.name, age=EXCLUDED.age, location=EXCLUDED.location, gender=EXCLUDED.gender,
                looking_for=EXCLUDED.looking_for, handle=EXCLUDED.handle, lang=EXCLUDED.lang, updated_at=now()
              RETURNING *
            """, p.user_id, p.name, p.age, p.location, p.gender, p.looking_for, p.handle, p.university,
                p.bio, p.lang, p.verified, p.banned, p.pref_min_age, p.pref_max_age, p.pref_location,
                p.pref_verified_only, p.created_at)
            return rowmap.profile(r)

    async def update_profile(self, user_id: int, **fields: Any) -> Optional[Profile]:
        unknown = set(fields) - UPDATABLE_PROFILE_COLUMNS
        if unknown:
            raise ValidationError(f"unknown profile fields: {sorted(unknown)}")
        if not fields:
            return await self.get_profile(user_id)
        parts, params = [], []
        for k, v in fields.items():
            params.append(v)
            parts.append(f"{k}=${len(params)}")
        params.append(user_id)
        async with self._con() as con:
            r = await con.fetchrow(
                f"UPDATE profiles SET {', '.join(parts)}, updated_at=now() WHERE user_id=${len(params)} RETURNING *",
                *params)
            return rowmap.profile(r) if r else None

    async def list_candidates(self, exclude: Collection[int], filters: CandidateFilters) -> List[Profile]:
        conditions = ["banned=FALSE", "age BETWEEN $1 AND $2", "NOT (user_id = ANY($3::bigint[]))"]
        params: List[Any] = [filters.min_age, filters.max_age, list(exclude)]
        if filters.location:
            params.append(filters.location.strip())
            conditions.append(f"lower(location)=lower(${len(params)})")
        if filters.verified_only:
            conditions.append("verified=TRUE")
        if filters.gender:
            params.append(filters.gender)
            conditions.append(f"gender=${len(params)}")
        async with self._con() as con:
            rows = await con.fetch(f"SELECT * FROM profiles WHERE {' AND '.join(conditions)}", *params)
            return [rowmap.profile(r) for r in rows]

    # --- likes ---

    async def add_like(self, from_id: int, to_id: int, at: datetime) -> bool:
        async with self._con() as con:
            r = await con.fetchrow("""
              INSERT INTO likes (from_id, to_id, created_at) VALUES ($1,$2,$3)
              ON CONFLICT DO NOTHING RETURNING 1
            """, from_id, to_id, at)
            return r is not None

    async def has_like(self, from_id: int, to_id: int) -> bool:
        async with self._con() as con:
            return await con.fetchval(
                "SELECT EXISTS(SELECT 1 FROM likes WHERE from_id=$1 AND to_id=$2)", from_id, to_id)

    async def liked_ids(self, user_id: int) -> List[int]:
        async with self._con() as con:
            return [r["to_id"] for r in await con.fetch("SELECT to_id FROM likes WHERE from_id=$1", user_id)]

    # --- matches ---

    async def create_match(self, initiator_id: int, target_id: int, at: datetime) -> Tuple[Match, bool]:
        lo, hi = sorted((initiator_id, target_id))
        async with self._con() as con:
            r = await con.fetchrow("""
              INSERT INTO matches (user_a, user_b, user_lo, user_hi, state, created_at)
              VALUES ($1,$2,$3,$4,$5,$6) ON CONFLICT (user_lo, user_hi) DO NOTHING
              RETURNING *
            """, initiator_id, target_id, lo, hi, MatchState.MATCHED.value, at)
            if r is not None:
                return rowmap.match(r), True
            r = await con.fetchrow("SELECT * FROM matches WHERE user_lo=$1 AND user_hi=$2", lo, hi)
            return rowmap.match(r), False

    async def get_match(self, match_id: int) -> Optional[Match]:
        async with self._con() as con:
            r = await con.fetchrow("SELECT * FROM matches WHERE id=$1", match_id)
            return rowmap.match(r) if r else None

    async def find_match(self, a: int, b: int) -> Optional[Match]:
        lo, hi = sorted((a, b))
        async with self._con() as con:
            r = await con.fetchrow("SELECT * FROM matches WHERE user_lo=$1 AND user_hi=$2", lo, hi)
            return rowmap.match(r) if r else None

    async def list_matches(self, user_id: int) -> List[Match]:
        async with self._con() as con:
            rows = await con.fetch(
                "SELECT * FROM matches WHERE user_a=$1 OR user_b=$1 ORDER BY created_at DESC, id DESC", user_id)
            return [rowmap.match(r) for r in rows]

    async def set_match_state(self, match_id: int, state: MatchState,
                              expected: Collection[MatchState] = ()) -> bool:
        async with self._con() as con:
            if expected:
                status = await con.execute(
                    "UPDATE matches SET state=$1 WHERE id=$2 AND state = ANY($3::text[])",
                    state.value, match_id, [s.value for s in expected])
            else:
                status = await con.execute("UPDATE matches SET state=$1 WHERE id=$2", state.value, match_id)
            # asyncpg returns the command tag, e.g. "UPDATE 1"
            return status.split()[-1] != "0"

    # --- passes ---

    async def insert_pass(self, owner_id: int, reference_id: str, purchased_at: datetime,
                          expires_at: datetime) -> Pass:
        async with self._con() as con:
            r = await con.fetchrow("""
              INSERT INTO passes (owner_id, reference_id, purchased_at, expires_at)
              VALUES ($1,$2,$3,$4) RETURNING *
            """, owner_id, reference_id, purchased_at, expires_at)
            return rowmap.pass_(r)

    async def find_pass_by_reference(self, reference_id: str) -> Optional[Pass]:
        async with self._con() as con:
            r = await con.fetchrow(
                "SELECT * FROM passes WHERE reference_id=$1 ORDER BY id LIMIT 1", reference_id)
            return rowmap.pass_(r) if r else None

    async def active_pass(self, owner_id: int, at: datetime) -> Optional[Pass]:
        async with self._con() as con:
            r = await con.fetchrow("""
              SELECT * FROM passes WHERE owner_id=$1 AND consumed_at IS NULL AND expires_at > $2
              ORDER BY purchased_at, id LIMIT 1
            """, owner_id, at)
            return rowmap.pass_(r) if r else None

    @staticmethod
    async def _consume(con, owner_id: int, at: datetime) -> Optional[Pass]:
        r = await con.fetchrow("""
          UPDATE passes SET consumed_at=$2
           WHERE id = (SELECT id FROM passes
                        WHERE owner_id=$1 AND consumed_at IS NULL AND expires_at > $2
                        ORDER BY purchased_at, id
                        LIMIT 1
                        FOR UPDATE SKIP LOCKED)
             AND consumed_at IS NULL
          RETURNING *
        """, owner_id, at)
        return rowmap.pass_(r) if r else None

    async def consume_pass(self, owner_id: int, at: datetime) -> Optional[Pass]:
        async with self._con(tx=True) as con:
            return await self._consume(con, owner_id, at)

    async def redeem_pass(self, owner_id: int, match_id: int, at: datetime,
                          session_expires_at: datetime) -> Optional[Tuple[Pass, ChatSession]]:
        async with self._con() as con:
            tr = con.transaction()
            await tr.start()
            try:
                claimed = await con.fetchrow("""
                  UPDATE matches SET state=$1 WHERE id=$2 AND state = ANY($3::text[]) RETURNING *
                """, MatchState.SESSION_ACTIVE.value, match_id, OPEN_MATCH_STATES)
                spent = await self._consume(con, owner_id, at) if claimed else None
                if spent is None:
                    await tr.rollback()
                    return None
                m = rowmap.match(claimed)
                r = await con.fetchrow("""
                  INSERT INTO chat_sessions (match_id, user_a, user_b, pass_id, started_at, expires_at, notified)
                  VALUES ($1,$2,$3,$4,$5,$6,FALSE) RETURNING *
                """, m.id, m.user_a, m.user_b, spent.id, at, session_expires_at)
            except BaseException:
                await tr.rollback()
                raise
            await tr.commit()
            return spent, rowmap.session(r)

    # --- sessions ---

    async def get_session_for_match(self, match_id: int) -> Optional[ChatSession]:
        async with self._con() as con:
            r = await con.fetchrow("SELECT * FROM chat_sessions WHERE match_id=$1", match_id)
            return rowmap.session(r) if r else None

    async def claim_expired_sessions(self, at: datetime, limit: int) -> List[ChatSession]:
        async with self._con(tx=True) as con:
            rows = await con.fetch("""
              UPDATE chat_sessions SET notified=TRUE
               WHERE id IN (SELECT id FROM chat_sessions
                             WHERE notified=FALSE AND expires_at <= $1
                             ORDER BY expires_at
                             LIMIT $2
                             FOR UPDATE SKIP LOCKED)
              RETURNING *
            """, at, limit)
            return [rowmap.session(r) for r in rows]

    # --- reports ---

    async def add_report(self, reporter_id: int, target_id: int, reason: str, at: datetime) -> Report:
        async with self._con() as con:
            r = await con.fetchrow("""
              INSERT INTO reports (reporter_id, target_id, reason, status, created_at)
              VALUES ($1,$2,$3,'pending',$4) RETURNING *
            """, reporter_id, target_id, reason, at)
            return rowmap.report(r)

    async def list_reports(self, status: Optional[str] = None) -> List[Report]:
        async with self._con() as con:
            if status:
                rows = await con.fetch(
                    "SELECT * FROM reports WHERE status=$1 ORDER BY created_at DESC, id DESC", status)
            else:
                rows = await con.fetch("SELECT * FROM reports ORDER BY created_at DESC, id DESC")
            return [rowmap.report(r) for r in rows]

    # --- conversations ---

    async def load_conversation(self, key: str, at: datetime) -> Tuple[Optional[str], Dict[str, Any]]:
        async with self._con() as con:
            r = await con.fetchrow(
                "SELECT state, data FROM conversations WHERE key=$1 AND expires_at > $2", key, at)
            if r is None:
                return None, {}
            return r["state"], json.loads(r["data"] or "{}")

    async def save_conversation(self, key: str, state: Optional[str], data: Dict[str, Any],
                                expires_at: datetime) -> None:
        async with self._con() as con:
            if state is None and not data:
                await con.execute("DELETE FROM conversations WHERE key=$1", key)
                return
            await con.execute("""
              INSERT INTO conversations (key, state, data, expires_at) VALUES ($1,$2,$3,$4)
              ON CONFLICT (key) DO UPDATE SET state=EXCLUDED.state, data=EXCLUDED.data, expires_at=EXCLUDED.expires_at
            """, key, state, json.dumps(data), expires_at)

    # --- stats ---

    async def get_stats(self, at: datetime) -> Dict[str, Any]:
        async with self._con() as con:
            r = await con.fetchrow("""
              SELECT
                (SELECT COUNT(*) FROM profiles)                                               AS users_total,
                (SELECT COUNT(*) FROM profiles WHERE banned)                                  AS users_banned,
                (SELECT COUNT(*) FROM matches)                                                AS matches_total,
                (SELECT COUNT(*) FROM matches WHERE state=$2)                                 AS matches_pass_pending,
                (SELECT COUNT(*) FROM chat_sessions WHERE expires_at > $1)                    AS sessions_active,
                (SELECT COUNT(*) FROM passes WHERE consumed_at IS NULL AND expires_at > $1)   AS passes_active,
                (SELECT COUNT(*) FROM reports WHERE status='pending')                         AS reports_pending
            """, at.astimezone(timezone.utc), MatchState.PASS_PENDING.value)
            return dict(r)
