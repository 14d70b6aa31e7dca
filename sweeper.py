# sweeper.py - periodic expiry sweep (runs beside polling, or via POST /cron/expire-sessions)
import asyncio
import logging

import config
from engine.errors import StoreUnavailable
from engine.session_engine import SessionEngine

log = logging.getLogger("sweeper")


async def start_sweep_loop(sessions: SessionEngine, interval: float = None, batch: int = None):
    interval = interval or config.SWEEP_INTERVAL_SECONDS
    batch = batch or config.SWEEP_BATCH
    log.info("expiry sweep every %ss (batch %s)", interval, batch)
    while True:
        try:
            # drain: a full batch means more expired sessions may be waiting
            while await sessions.sweep_expired(batch) >= batch:
                pass
        except StoreUnavailable as e:
            log.warning("expiry sweep skipped: %s", e)
        except Exception:
            log.exception("expiry sweep error")
        await asyncio.sleep(interval)
