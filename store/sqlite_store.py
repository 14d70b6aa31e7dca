"""
store/sqlite_store.py - aiosqlite backend.

One connection per call (autocommit). Multi-statement units run inside
BEGIN IMMEDIATE so the write lock is taken before the first read; that is
what makes pass redemption a single check-and-set even across processes
sharing the file.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Collection, Dict, List, Optional, Tuple

import aiosqlite

from engine.errors import StoreUnavailable, ValidationError
from engine.models import (
    CandidateFilters, ChatSession, Match, MatchState, Pass, Profile, Report,
)
from . import rows as rowmap
from .schema import SQLITE_SCHEMA, UPDATABLE_PROFILE_COLUMNS

log = logging.getLogger(__name__)

OPEN_MATCH_STATES = (MatchState.MATCHED.value, MatchState.PASS_PENDING.value)


def _ts(dt: Optional[datetime]) -> Optional[float]:
    return dt.timestamp() if dt is not None else None


def _dt(value) -> Optional[datetime]:
    return datetime.fromtimestamp(value, tz=timezone.utc) if value is not None else None


def _profile(row) -> Profile:
    return rowmap.profile(row, _dt)


def _match(row) -> Match:
    return rowmap.match(row, _dt)


def _pass(row) -> Pass:
    return rowmap.pass_(row, _dt)


def _session(row) -> ChatSession:
    return rowmap.session(row, _dt)


def _report(row) -> Report:
    return rowmap.report(row, _dt)


class SqliteStore:
    def __init__(self, path: str, *, timeout: float = 10.0):
        self.path = path
        self.timeout = timeout

    @asynccontextmanager
    async def _db(self):
        try:
            async with aiosqlite.connect(self.path, timeout=self.timeout, isolation_level=None) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except (aiosqlite.OperationalError, OSError, asyncio.TimeoutError) as e:
            raise StoreUnavailable(f"sqlite: {e}") from e

    @asynccontextmanager
    async def _tx(self):
        async with self._db() as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                yield db
            except BaseException:
                if db.in_transaction:
                    await db.execute("ROLLBACK")
                raise
            if db.in_transaction:
                await db.execute("COMMIT")

    async def init(self, reset: bool = False) -> None:
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        if reset and os.path.exists(self.path):
            os.remove(self.path)
        async with self._db() as db:
            await db.execute("PRAGMA journal_mode=WAL")
            for stmt in SQLITE_SCHEMA:
                await db.execute(stmt)
        log.info("[db] sqlite ready -> %s", self.path)

    async def close(self) -> None:
        return None

    # --- profiles ---

    async def get_profile(self, user_id: int) -> Optional[Profile]:
        async with self._db() as db:
            rows = await db.execute_fetchall("SELECT * FROM profiles WHERE user_id=?", (user_id,))
            return _profile(rows[0]) if rows else None

    async def save_profile(self, p: Profile) -> Profile:
        now = _ts(datetime.now(timezone.utc))
        async with self._db() as db:
            await db.execute("""
              INSERT INTO profiles (user_id, name, age, location, gender, looking_for, handle, university, bio,
                                    lang, verified, banned, pref_min_age, pref_max_age, pref_location,
                                    pref_verified_only, created_at, updated_at)
              VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
              ON CONFLICT(user_id) DO UPDATE SET
                name=excluded.name, age=excluded.age, location=excluded.location, gender=excluded.gender,
                looking_for=excluded.looking_for, handle=excluded.handle, lang=excluded.lang,
                updated_at=excluded.updated_at
            """, (p.user_id, p.name, p.age, p.location, p.gender, p.looking_for, p.handle, p.university,
                  p.bio, p.lang, int(p.verified), int(p.banned), p.pref_min_age, p.pref_max_age,
                  p.pref_location, int(p.pref_verified_only), _ts(p.created_at), now))
        return await self.get_profile(p.user_id)

    async def update_profile(self, user_id: int, **fields: Any) -> Optional[Profile]:
        unknown = set(fields) - UPDATABLE_PROFILE_COLUMNS
        if unknown:
            raise ValidationError(f"unknown profile fields: {sorted(unknown)}")
        if fields:
            parts, params = [], []
            for k, v in fields.items():
                parts.append(f"{k}=?")
                params.append(int(v) if isinstance(v, bool) else v)
            parts.append("updated_at=?")
            params += [_ts(datetime.now(timezone.utc)), user_id]
            async with self._db() as db:
                await db.execute(f"UPDATE profiles SET {', '.join(parts)} WHERE user_id=?", params)
        return await self.get_profile(user_id)

    async def list_candidates(self, exclude: Collection[int], filters: CandidateFilters) -> List[Profile]:
        sql = "SELECT * FROM profiles WHERE banned=0 AND age BETWEEN ? AND ?"
        params: List[Any] = [filters.min_age, filters.max_age]
        if exclude:
            sql += f" AND user_id NOT IN ({','.join('?' * len(exclude))})"
            params += list(exclude)
        if filters.location:
            sql += " AND lower(location)=lower(?)"; params.append(filters.location.strip())
        if filters.verified_only:
            sql += " AND verified=1"
        if filters.gender:
            sql += " AND gender=?"; params.append(filters.gender)
        async with self._db() as db:
            return [_profile(r) for r in await db.execute_fetchall(sql, params)]

    # --- likes ---

    async def add_like(self, from_id: int, to_id: int, at: datetime) -> bool:
        async with self._db() as db:
            cur = await db.execute(
                "INSERT INTO likes (from_id, to_id, created_at) VALUES (?,?,?) ON CONFLICT DO NOTHING",
                (from_id, to_id, _ts(at)))
            return cur.rowcount == 1

    async def has_like(self, from_id: int, to_id: int) -> bool:
        async with self._db() as db:
            rows = await db.execute_fetchall("SELECT 1 FROM likes WHERE from_id=? AND to_id=?", (from_id, to_id))
            return bool(rows)

    async def liked_ids(self, user_id: int) -> List[int]:
        async with self._db() as db:
            rows = await db.execute_fetchall("SELECT to_id FROM likes WHERE from_id=?", (user_id,))
            return [r["to_id"] for r in rows]

    # --- matches ---

    async def create_match(self, initiator_id: int, target_id: int, at: datetime) -> Tuple[Match, bool]:
        lo, hi = sorted((initiator_id, target_id))
        async with self._db() as db:
            cur = await db.execute("""
              INSERT INTO matches (user_a, user_b, user_lo, user_hi, state, created_at)
              VALUES (?,?,?,?,?,?) ON CONFLICT(user_lo, user_hi) DO NOTHING
            """, (initiator_id, target_id, lo, hi, MatchState.MATCHED.value, _ts(at)))
            created = cur.rowcount == 1
            rows = await db.execute_fetchall("SELECT * FROM matches WHERE user_lo=? AND user_hi=?", (lo, hi))
            return _match(rows[0]), created

    async def get_match(self, match_id: int) -> Optional[Match]:
        async with self._db() as db:
            rows = await db.execute_fetchall("SELECT * FROM matches WHERE id=?", (match_id,))
            return _match(rows[0]) if rows else None

    async def find_match(self, a: int, b: int) -> Optional[Match]:
        lo, hi = sorted((a, b))
        async with self._db() as db:
            rows = await db.execute_fetchall("SELECT * FROM matches WHERE user_lo=? AND user_hi=?", (lo, hi))
            return _match(rows[0]) if rows else None

    async def list_matches(self, user_id: int) -> List[Match]:
        async with self._db() as db:
            rows = await db.execute_fetchall(
                "SELECT * FROM matches WHERE user_a=? OR user_b=? ORDER BY created_at DESC, id DESC",
                (user_id, user_id))
            return [_match(r) for r in rows]

    async def set_match_state(self, match_id: int, state: MatchState,
                              expected: Collection[MatchState] = ()) -> bool:
        """Write `state`; with `expected`, only while the row is still in one of those states."""
        sql, params = "UPDATE matches SET state=? WHERE id=?", [state.value, match_id]
        if expected:
            sql += f" AND state IN ({','.join('?' * len(expected))})"
            params += [s.value for s in expected]
        async with self._db() as db:
            cur = await db.execute(sql, params)
            return cur.rowcount > 0

    # --- passes ---

    async def insert_pass(self, owner_id: int, reference_id: str, purchased_at: datetime,
                          expires_at: datetime) -> Pass:
        async with self._db() as db:
            rows = await db.execute_fetchall("""
              INSERT INTO passes (owner_id, reference_id, purchased_at, expires_at, consumed_at)
              VALUES (?,?,?,?,NULL) RETURNING *
            """, (owner_id, reference_id, _ts(purchased_at), _ts(expires_at)))
            return _pass(rows[0])

    async def find_pass_by_reference(self, reference_id: str) -> Optional[Pass]:
        async with self._db() as db:
            rows = await db.execute_fetchall(
                "SELECT * FROM passes WHERE reference_id=? ORDER BY id LIMIT 1", (reference_id,))
            return _pass(rows[0]) if rows else None

    async def active_pass(self, owner_id: int, at: datetime) -> Optional[Pass]:
        async with self._db() as db:
            rows = await db.execute_fetchall("""
              SELECT * FROM passes WHERE owner_id=? AND consumed_at IS NULL AND expires_at > ?
              ORDER BY purchased_at, id LIMIT 1
            """, (owner_id, _ts(at)))
            return _pass(rows[0]) if rows else None

    @staticmethod
    async def _consume(db, owner_id: int, at: datetime) -> Optional[Pass]:
        rows = await db.execute_fetchall("""
          UPDATE passes SET consumed_at=?
           WHERE id = (SELECT id FROM passes
                        WHERE owner_id=? AND consumed_at IS NULL AND expires_at > ?
                        ORDER BY purchased_at, id LIMIT 1)
             AND consumed_at IS NULL
          RETURNING *
        """, (_ts(at), owner_id, _ts(at)))
        return _pass(rows[0]) if rows else None

    async def consume_pass(self, owner_id: int, at: datetime) -> Optional[Pass]:
        async with self._tx() as db:
            return await self._consume(db, owner_id, at)

    async def redeem_pass(self, owner_id: int, match_id: int, at: datetime,
                          session_expires_at: datetime) -> Optional[Tuple[Pass, ChatSession]]:
        async with self._tx() as db:
            claimed = await db.execute_fetchall(
                f"UPDATE matches SET state=? WHERE id=? AND state IN ({','.join('?' * len(OPEN_MATCH_STATES))}) "
                "RETURNING *",
                (MatchState.SESSION_ACTIVE.value, match_id, *OPEN_MATCH_STATES))
            if not claimed:
                await db.execute("ROLLBACK")
                return None
            spent = await self._consume(db, owner_id, at)
            if spent is None:
                await db.execute("ROLLBACK")
                return None
            match = _match(claimed[0])
            rows = await db.execute_fetchall("""
              INSERT INTO chat_sessions (match_id, user_a, user_b, pass_id, started_at, expires_at, notified)
              VALUES (?,?,?,?,?,?,0) RETURNING *
            """, (match.id, match.user_a, match.user_b, spent.id, _ts(at), _ts(session_expires_at)))
            return spent, _session(rows[0])

    # --- sessions ---

    async def get_session_for_match(self, match_id: int) -> Optional[ChatSession]:
        async with self._db() as db:
            rows = await db.execute_fetchall("SELECT * FROM chat_sessions WHERE match_id=?", (match_id,))
            return _session(rows[0]) if rows else None

    async def claim_expired_sessions(self, at: datetime, limit: int) -> List[ChatSession]:
        async with self._tx() as db:
            rows = await db.execute_fetchall("""
              UPDATE chat_sessions SET notified=1
               WHERE id IN (SELECT id FROM chat_sessions
                             WHERE notified=0 AND expires_at <= ?
                             ORDER BY expires_at LIMIT ?)
                 AND notified=0
              RETURNING *
            """, (_ts(at), limit))
            return [_session(r) for r in rows]

    # --- reports ---

    async def add_report(self, reporter_id: int, target_id: int, reason: str, at: datetime) -> Report:
        async with self._db() as db:
            rows = await db.execute_fetchall("""
              INSERT INTO reports (reporter_id, target_id, reason, status, created_at)
              VALUES (?,?,?,'pending',?) RETURNING *
            """, (reporter_id, target_id, reason, _ts(at)))
            return _report(rows[0])

    async def list_reports(self, status: Optional[str] = None) -> List[Report]:
        sql, params = "SELECT * FROM reports", []
        if status:
            sql += " WHERE status=?"; params.append(status)
        sql += " ORDER BY created_at DESC, id DESC"
        async with self._db() as db:
            return [_report(r) for r in await db.execute_fetchall(sql, params)]

    # --- conversations ---

    async def load_conversation(self, key: str, at: datetime) -> Tuple[Optional[str], Dict[str, Any]]:
        async with self._db() as db:
            rows = await db.execute_fetchall(
                "SELECT state, data FROM conversations WHERE key=? AND expires_at > ?", (key, _ts(at)))
            if not rows:
                return None, {}
            return rows[0]["state"], json.loads(rows[0]["data"] or "{}")

    async def save_conversation(self, key: str, state: Optional[str], data: Dict[str, Any],
                                expires_at: datetime) -> None:
        async with self._db() as db:
            if state is None and not data:
                await db.execute("DELETE FROM conversations WHERE key=?", (key,))
                return
            await db.execute("""
              INSERT INTO conversations (key, state, data, expires_at) VALUES (?,?,?,?)
              ON CONFLICT(key) DO UPDATE SET state=excluded.state, data=excluded.data, expires_at=excluded.expires_at
            """, (key, state, json.dumps(data), _ts(expires_at)))

    # --- stats ---

    async def get_stats(self, at: datetime) -> Dict[str, Any]:
        now = _ts(at)
        queries = {
            "users_total": ("SELECT COUNT(*) FROM profiles", ()),
            "users_banned": ("SELECT COUNT(*) FROM profiles WHERE banned=1", ()),
            "matches_total": ("SELECT COUNT(*) FROM matches", ()),
            "matches_pass_pending": ("SELECT COUNT(*) FROM matches WHERE state=?", (MatchState.PASS_PENDING.value,)),
            "sessions_active": ("SELECT COUNT(*) FROM chat_sessions WHERE expires_at > ?", (now,)),
            "passes_active": ("SELECT COUNT(*) FROM passes WHERE consumed_at IS NULL AND expires_at > ?", (now,)),
            "reports_pending": ("SELECT COUNT(*) FROM reports WHERE status='pending'", ()),
        }
        out: Dict[str, Any] = {}
        async with self._db() as db:
            for key, (sql, params) in queries.items():
                rows = await db.execute_fetchall(sql, params)
                out[key] = rows[0][0]
        return out
