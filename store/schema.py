"""
store/schema.py - DDL for both backends (auto-created on init).

Tables:
  profiles(user_id PK, display attributes, verified, banned, browse preferences)
  likes(from_id, to_id) PK(from_id, to_id)           - one edge per direction
  matches(id, user_a, user_b, user_lo, user_hi)      - UNIQUE(user_lo, user_hi)
  passes(id, owner_id, reference_id, purchased_at, expires_at, consumed_at NULL)
  chat_sessions(id, match_id UNIQUE, pass_id UNIQUE, started_at, expires_at, notified)
  reports(id, reporter_id, target_id, reason, status)
  conversations(key PK, state, data, expires_at)     - aiogram FSM with TTL
SQLite stores instants as epoch seconds (REAL); Postgres uses TIMESTAMPTZ.
"""

SQLITE_SCHEMA = [
    """
CREATE TABLE IF NOT EXISTS profiles (
  user_id            INTEGER PRIMARY KEY,
  name               TEXT NOT NULL,
  age                INTEGER NOT NULL,
  location           TEXT NOT NULL,
  gender             TEXT,
  looking_for        TEXT NOT NULL DEFAULT 'any',
  handle             TEXT,
  university         TEXT,
  bio                TEXT,
  lang               TEXT NOT NULL DEFAULT 'en',
  verified           INTEGER NOT NULL DEFAULT 0,
  banned             INTEGER NOT NULL DEFAULT 0,
  pref_min_age       INTEGER NOT NULL DEFAULT 18,
  pref_max_age       INTEGER NOT NULL DEFAULT 99,
  pref_location      TEXT,
  pref_verified_only INTEGER NOT NULL DEFAULT 0,
  created_at         REAL NOT NULL,
  updated_at         REAL NOT NULL
)""",
    """
CREATE TABLE IF NOT EXISTS likes (
  from_id    INTEGER NOT NULL,
  to_id      INTEGER NOT NULL,
  created_at REAL NOT NULL,
  PRIMARY KEY (from_id, to_id)
)""",
    """
CREATE TABLE IF NOT EXISTS matches (
  id         INTEGER PRIMARY KEY AUTOINCREMENT,
  user_a     INTEGER NOT NULL,
  user_b     INTEGER NOT NULL,
  user_lo    INTEGER NOT NULL,
  user_hi    INTEGER NOT NULL,
  state      TEXT NOT NULL DEFAULT 'matched',
  created_at REAL NOT NULL,
  UNIQUE (user_lo, user_hi)
)""",
    """
CREATE TABLE IF NOT EXISTS passes (
  id           INTEGER PRIMARY KEY AUTOINCREMENT,
  owner_id     INTEGER NOT NULL,
  reference_id TEXT NOT NULL,
  purchased_at REAL NOT NULL,
  expires_at   REAL NOT NULL,
  consumed_at  REAL
)""",
    """
CREATE TABLE IF NOT EXISTS chat_sessions (
  id         INTEGER PRIMARY KEY AUTOINCREMENT,
  match_id   INTEGER NOT NULL UNIQUE,
  user_a     INTEGER NOT NULL,
  user_b     INTEGER NOT NULL,
  pass_id    INTEGER NOT NULL UNIQUE,
  started_at REAL NOT NULL,
  expires_at REAL NOT NULL,
  notified   INTEGER NOT NULL DEFAULT 0
)""",
    """
CREATE TABLE IF NOT EXISTS reports (
  id          INTEGER PRIMARY KEY AUTOINCREMENT,
  reporter_id INTEGER NOT NULL,
  target_id   INTEGER NOT NULL,
  reason      TEXT,
  status      TEXT NOT NULL DEFAULT 'pending',
  created_at  REAL NOT NULL
)""",
    """
CREATE TABLE IF NOT EXISTS conversations (
  key        TEXT PRIMARY KEY,
  state      TEXT,
  data       TEXT NOT NULL DEFAULT '{}',
  expires_at REAL NOT NULL
)""",
    "CREATE INDEX IF NOT EXISTS idx_passes_owner ON passes(owner_id, consumed_at, purchased_at)",
    "CREATE INDEX IF NOT EXISTS idx_passes_ref ON passes(reference_id)",
    "CREATE INDEX IF NOT EXISTS idx_sessions_expiry ON chat_sessions(notified, expires_at)",
    "CREATE INDEX IF NOT EXISTS idx_likes_to ON likes(to_id)",
]

PG_SCHEMA_SQL = r'''
CREATE TABLE IF NOT EXISTS profiles (
    user_id BIGINT PRIMARY KEY,
    name TEXT NOT NULL,
    age INT NOT NULL,
    location TEXT NOT NULL,
    gender TEXT,
    looking_for TEXT NOT NULL DEFAULT 'any',
    handle TEXT,
    university TEXT,
    bio TEXT,
    lang TEXT NOT NULL DEFAULT 'en',
    verified BOOLEAN NOT NULL DEFAULT FALSE,
    banned BOOLEAN NOT NULL DEFAULT FALSE,
    pref_min_age INT NOT NULL DEFAULT 18,
    pref_max_age INT NOT NULL DEFAULT 99,
    pref_location TEXT,
    pref_verified_only BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE TABLE IF NOT EXISTS likes (
    from_id BIGINT NOT NULL,
    to_id BIGINT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    PRIMARY KEY (from_id, to_id)
);
CREATE TABLE IF NOT EXISTS matches (
    id BIGSERIAL PRIMARY KEY,
    user_a BIGINT NOT NULL,
    user_b BIGINT NOT NULL,
    user_lo BIGINT NOT NULL,
    user_hi BIGINT NOT NULL,
    state TEXT NOT NULL DEFAULT 'matched',
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    UNIQUE (user_lo, user_hi)
);
CREATE TABLE IF NOT EXISTS passes (
    id BIGSERIAL PRIMARY KEY,
    owner_id BIGINT NOT NULL,
    reference_id TEXT NOT NULL,
    purchased_at TIMESTAMPTZ NOT NULL,
    expires_at TIMESTAMPTZ NOT NULL,
    consumed_at TIMESTAMPTZ
);
CREATE TABLE IF NOT EXISTS chat_sessions (
    id BIGSERIAL PRIMARY KEY,
    match_id BIGINT NOT NULL UNIQUE,
    user_a BIGINT NOT NULL,
    user_b BIGINT NOT NULL,
    pass_id BIGINT NOT NULL UNIQUE,
    started_at TIMESTAMPTZ NOT NULL,
    expires_at TIMESTAMPTZ NOT NULL,
    notified BOOLEAN NOT NULL DEFAULT FALSE
);
CREATE TABLE IF NOT EXISTS reports (
    id BIGSERIAL PRIMARY KEY,
    reporter_id BIGINT NOT NULL,
    target_id BIGINT NOT NULL,
    reason TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE TABLE IF NOT EXISTS conversations (
    key TEXT PRIMARY KEY,
    state TEXT,
    data TEXT NOT NULL DEFAULT '{}',
    expires_at TIMESTAMPTZ NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_passes_owner ON passes(owner_id, consumed_at, purchased_at);
CREATE INDEX IF NOT EXISTS idx_passes_ref ON passes(reference_id);
CREATE INDEX IF NOT EXISTS idx_sessions_expiry ON chat_sessions(notified, expires_at);
CREATE INDEX IF NOT EXISTS idx_likes_to ON likes(to_id);
'''

PROFILE_COLUMNS = (
    "user_id", "name", "age", "location", "gender", "looking_for", "handle", "university", "bio",
    "lang", "verified", "banned", "pref_min_age", "pref_max_age", "pref_location",
    "pref_verified_only", "created_at",
)

# columns an update may touch (user_id and created_at are fixed at creation)
UPDATABLE_PROFILE_COLUMNS = frozenset(PROFILE_COLUMNS) - {"user_id", "created_at"}
