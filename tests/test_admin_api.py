import httpx
import pytest

from admin_api import create_app
from runtime import create_engine
from store.sqlite_store import SqliteStore

ADMIN = {"x-admin-secret": "s3cret"}
CRON = {"x-cron-secret": "tick"}


@pytest.fixture
async def client(engine):
    app = create_app(engine, admin_secret="s3cret", cron_secret="tick")
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c


async def test_healthz(client):
    r = await client.get("/healthz")
    assert r.status_code == 200 and r.json() == {"ok": True}


@pytest.mark.parametrize("headers", [{}, {"x-admin-secret": "nope"}])
async def test_admin_requires_secret(client, make_profile, headers):
    await make_profile(1)
    r = await client.post("/admin/ban", json={"user_id": 1}, headers=headers)
    assert r.status_code == 401


async def test_ban_unban_and_verify(client, engine, make_profile):
    await make_profile(1)

    r = await client.post("/admin/ban", json={"user_id": 1}, headers=ADMIN)
    assert r.status_code == 200 and r.json()["banned"] is True
    assert (await engine.profiles.get(1)).banned

    r = await client.post("/admin/unban", json={"user_id": 1}, headers=ADMIN)
    assert r.json()["banned"] is False

    r = await client.post("/admin/mark_verified", json={"user_id": 1}, headers=ADMIN)
    assert r.json()["verified"] is True


async def test_unknown_user_is_404(client):
    r = await client.post("/admin/ban", json={"user_id": 404}, headers=ADMIN)
    assert r.status_code == 404


async def test_grant_pass(client, engine, make_profile):
    await make_profile(1)
    r = await client.post("/admin/grant_pass", json={"user_id": 1}, headers=ADMIN)

    assert r.status_code == 200
    assert r.json()["reference_id"].startswith("admin_grant:1:")
    assert (await engine.ledger.active_pass(1)).id == r.json()["pass_id"]


async def test_reports_listing(client, engine, make_profile):
    await make_profile(1)
    await make_profile(2)
    await engine.profiles.report(1, 2, "fake photos")

    r = await client.get("/admin/reports", params={"status": "pending"}, headers=ADMIN)
    assert r.status_code == 200
    [row] = r.json()
    assert (row["reporter_id"], row["target_id"], row["reason"]) == (1, 2, "fake photos")


async def test_cron_expires_sessions(client, engine, make_profile, clock):
    await make_profile(1)
    await make_profile(2)
    await engine.ledger.grant(1, "pass:1:1")
    await engine.orchestrator.like(2, 1)
    await engine.orchestrator.like(1, 2)

    assert (await client.post("/cron/expire-sessions")).status_code == 401
    clock.advance(minutes=3)
    r = await client.post("/cron/expire-sessions", headers=CRON)
    assert r.json() == {"expired": 1}
    r = await client.post("/cron/expire-sessions", headers=CRON)
    assert r.json() == {"expired": 0}


async def test_stats(client, make_profile):
    await make_profile(1)
    r = await client.get("/stats")
    assert r.status_code == 200 and r.json()["users_total"] == 1


async def test_store_outage_is_503(tmp_path, notifier):
    broken = create_engine(notifier, SqliteStore(str(tmp_path / "missing" / "db.sqlite3"), timeout=0.1))
    app = create_app(broken, admin_secret="s3cret", cron_secret="tick")
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        r = await c.get("/stats")
    assert r.status_code == 503
