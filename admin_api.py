# admin_api.py - FastAPI + uvicorn, background server: moderation, cron sweep, stats
import logging
import secrets
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel

import config
from engine.errors import NotFoundError, StoreUnavailable, ValidationError
from engine.payments import ADMIN_NAMESPACE, make_reference_id
from runtime import Engine

log = logging.getLogger("admin")


class UserAction(BaseModel):
    user_id: int


def _check(expected: str, given: Optional[str]) -> None:
    # an unset secret disables the endpoint
    if not expected or not given or not secrets.compare_digest(expected, given):
        raise HTTPException(status_code=401, detail="unauthorized")


def _report(r) -> Dict[str, Any]:
    return {
        "id": r.id, "reporter_id": r.reporter_id, "target_id": r.target_id,
        "reason": r.reason, "status": r.status, "created_at": r.created_at.isoformat(),
    }


def _profile(p) -> Dict[str, Any]:
    return {"user_id": p.user_id, "name": p.name, "verified": p.verified, "banned": p.banned}


def create_app(engine: Engine, *, admin_secret: Optional[str] = None, cron_secret: Optional[str] = None) -> FastAPI:
    admin_secret = config.ADMIN_SECRET if admin_secret is None else admin_secret
    cron_secret = config.CRON_SECRET if cron_secret is None else cron_secret
    app = FastAPI(title=f"{config.BOT_NAME} Admin")

    async def require_admin(x_admin_secret: Optional[str] = Header(default=None)):
        _check(admin_secret, x_admin_secret)

    async def require_cron(x_cron_secret: Optional[str] = Header(default=None)):
        _check(cron_secret, x_cron_secret)

    @app.exception_handler(ValidationError)
    async def _bad_request(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(StoreUnavailable)
    async def _unavailable(request: Request, exc: StoreUnavailable):
        log.warning("store unavailable on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=503, content={"error": "store unavailable"})

    @app.get("/", response_class=HTMLResponse)
    async def index() -> str:
        stats = await engine.store.get_stats(engine.clock())
        items = "".join(f"<li>{k}: <b>{v}</b></li>" for k, v in stats.items())
        return f"""
        <html><head><title>{config.BOT_NAME} Stats</title></head>
        <body style="font-family:system-ui;padding:16px;">
          <h1>{config.BOT_NAME} - Stats</h1>
          <ul>{items}</ul>
          <p><a href="/stats">/stats</a> (JSON)</p>
        </body></html>
        """

    @app.get("/stats")
    async def stats() -> Dict[str, Any]:
        return await engine.store.get_stats(engine.clock())

    @app.get("/healthz")
    async def healthz():
        return {"ok": True}

    @app.get("/admin/reports", dependencies=[Depends(require_admin)])
    async def reports(status: Optional[str] = None) -> List[Dict[str, Any]]:
        return [_report(r) for r in await engine.profiles.reports(status)]

    @app.post("/admin/ban", dependencies=[Depends(require_admin)])
    async def ban(body: UserAction):
        return _profile(await engine.profiles.ban(body.user_id))

    @app.post("/admin/unban", dependencies=[Depends(require_admin)])
    async def unban(body: UserAction):
        return _profile(await engine.profiles.unban(body.user_id))

    @app.post("/admin/mark_verified", dependencies=[Depends(require_admin)])
    async def mark_verified(body: UserAction):
        return _profile(await engine.profiles.mark_verified(body.user_id))

    @app.post("/admin/grant_pass", dependencies=[Depends(require_admin)])
    async def grant_pass(body: UserAction):
        granted = await engine.ledger.grant(body.user_id, make_reference_id(body.user_id, ADMIN_NAMESPACE))
        log.info("admin granted pass %s to %s", granted.id, body.user_id)
        return {"pass_id": granted.id, "reference_id": granted.reference_id,
                "expires_at": granted.expires_at.isoformat()}

    @app.post("/cron/expire-sessions", dependencies=[Depends(require_cron)])
    async def expire_sessions():
        return {"expired": await engine.sessions.sweep_expired()}

    return app


async def start_admin_server(engine: Engine, host: str = "127.0.0.1", port: int = 8000):
    server_config = uvicorn.Config(create_app(engine), host=host, port=port, loop="asyncio", log_level="info")
    server = uvicorn.Server(server_config)
    await server.serve()
