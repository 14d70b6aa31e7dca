# runtime.py - backend selection and engine wiring (one Store per process)
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import config
from engine.candidate_selector import CandidateSelector
from engine.errors import ConfigError
from engine.match_orchestrator import MatchOrchestrator
from engine.models import utcnow
from engine.pass_ledger import PassLedger
from engine.ports import Notifier, Store
from engine.profiles import ProfileService
from engine.session_engine import SessionEngine

log = logging.getLogger(__name__)

BACKENDS = ("sqlite", "postgres")


def build_store(backend: Optional[str] = None) -> Store:
    backend = (backend if backend is not None else config.STORE_BACKEND).strip().lower()
    if backend == "sqlite":
        from store.sqlite_store import SqliteStore
        return SqliteStore(config.SQLITE_PATH, timeout=config.STORE_TIMEOUT)
    if backend == "postgres":
        from store.pg_store import PgStore
        return PgStore(config.PG_DSN, min_size=config.PG_POOL_MIN, max_size=config.PG_POOL_MAX,
                       timeout=config.STORE_TIMEOUT)
    raise ConfigError(f"STORE_BACKEND must be one of {BACKENDS}, got {backend!r}")


@dataclass
class Engine:
    store: Store
    profiles: ProfileService
    selector: CandidateSelector
    ledger: PassLedger
    sessions: SessionEngine
    orchestrator: MatchOrchestrator
    clock: Callable[[], datetime] = utcnow


def create_engine(notifier: Notifier, store: Optional[Store] = None, *,
                  clock: Callable[[], datetime] = utcnow,
                  rng: Optional[random.Random] = None,
                  pass_validity: Optional[timedelta] = None,
                  session_duration: Optional[timedelta] = None) -> Engine:
    store = store if store is not None else build_store()
    ledger = PassLedger(store, validity=pass_validity, clock=clock)
    sessions = SessionEngine(store, ledger, notifier, duration=session_duration, clock=clock)
    return Engine(
        store=store,
        profiles=ProfileService(store, clock=clock),
        selector=CandidateSelector(store, rng=rng, clock=clock),
        ledger=ledger,
        sessions=sessions,
        orchestrator=MatchOrchestrator(store, sessions, clock=clock),
        clock=clock,
    )
