"""Row -> model mapping shared by both backends.

Each mapper takes the backend's instant converter: SQLite hands back epoch
seconds, asyncpg hands back aware datetimes already.
"""

from datetime import datetime
from typing import Callable, Optional

from engine.models import ChatSession, Match, MatchState, Pass, Profile, Report

Instant = Callable[[object], Optional[datetime]]


def same(value):
    return value


def profile(row, dt: Instant = same) -> Profile:
    return Profile(
        user_id=row["user_id"], name=row["name"], age=row["age"], location=row["location"],
        gender=row["gender"], looking_for=row["looking_for"], handle=row["handle"],
        university=row["university"], bio=row["bio"], lang=row["lang"],
        verified=bool(row["verified"]), banned=bool(row["banned"]),
        pref_min_age=row["pref_min_age"], pref_max_age=row["pref_max_age"],
        pref_location=row["pref_location"], pref_verified_only=bool(row["pref_verified_only"]),
        created_at=dt(row["created_at"]),
    )


def match(row, dt: Instant = same) -> Match:
    return Match(id=row["id"], user_a=row["user_a"], user_b=row["user_b"],
                 created_at=dt(row["created_at"]), state=MatchState(row["state"]))


def pass_(row, dt: Instant = same) -> Pass:
    return Pass(id=row["id"], owner_id=row["owner_id"], reference_id=row["reference_id"],
                purchased_at=dt(row["purchased_at"]), expires_at=dt(row["expires_at"]),
                consumed_at=dt(row["consumed_at"]))


def session(row, dt: Instant = same) -> ChatSession:
    return ChatSession(id=row["id"], match_id=row["match_id"], user_a=row["user_a"],
                       user_b=row["user_b"], pass_id=row["pass_id"],
                       started_at=dt(row["started_at"]), expires_at=dt(row["expires_at"]),
                       notified=bool(row["notified"]))


def report(row, dt: Instant = same) -> Report:
    return Report(id=row["id"], reporter_id=row["reporter_id"], target_id=row["target_id"],
                  reason=row["reason"] or "", status=row["status"], created_at=dt(row["created_at"]))
