"""End-to-end API tests through the FastAPI app and its lifespan."""

import asyncio
import base64
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import SPAM_README, HashingEmbedder, MillisClock, good_readme
from skill_registry.api.app import create_app
from skill_registry.models.domain import User, UserRole, utcnow
from skill_registry.ratelimit.http import hash_token
from skill_registry.storage.sqlite_registry_store import SQLiteRegistryStore

TOKENS = {"alice": "tok-alice", "bob": "tok-bob", "root": "tok-root"}


async def _seed_users(db_path: str) -> dict[str, str]:
    store = SQLiteRegistryStore(db_path)
    await store.initialize()
    ids = {}
    for handle, token in TOKENS.items():
        role = UserRole.ADMIN if handle == "root" else UserRole.USER
        user = User(
            user_id=f"user-{handle}", handle=handle, role=role, created_at=utcnow() - timedelta(days=365)
        )
        await store.save_user(user)
        await store.save_api_token(hash_token(token), user.user_id)
        ids[handle] = user.user_id
    return ids


@pytest.fixture
def user_ids(settings):
    return asyncio.run(_seed_users(settings.sqlite_db_path))


@pytest.fixture
def app(settings, user_ids):
    return create_app(settings=settings, embedder=HashingEmbedder(), clock_ms=MillisClock(1_000_000))


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


def auth(handle: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {TOKENS[handle]}"}


def publish(client, handle, slug, version="1.0.0", readme=None, summary="Schedules reminders from time phrases."):
    body = {
        "slug": slug,
        "version": version,
        "summary": summary,
        "files": [{"path": "SKILL.md", "content": readme if readme is not None else good_readme(slug)}],
    }
    return client.post("/api/v1/skills", json=body, headers=auth(handle))


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "item_count": 0, "index_size": 0}
    assert "X-Request-ID" in response.headers


def test_publish_then_search(client):
    response = publish(client, "alice", "remind-me")
    assert response.status_code == 200
    body = response.json()
    assert body["created"] is True
    assert body["quality"]["decision"] == "accept"
    assert "X-RateLimit-Limit" in response.headers

    publish(client, "alice", "reminder-tool", readme=good_readme("reminder-tool", "Reminder Tool"))

    response = client.get("/api/v1/search", params={"q": "remind me"})
    assert response.status_code == 200
    slugs = [hit["slug"] for hit in response.json()["results"]]
    assert slugs == ["remind-me"]
    assert response.headers["X-RateLimit-Remaining"].isdigit()


def test_search_empty_query(client):
    response = client.get("/api/v1/search", params={"q": "   "})
    assert response.status_code == 200
    assert response.json()["results"] == []


def test_publish_requires_token(client):
    response = client.post(
        "/api/v1/skills",
        json={"slug": "x", "version": "1.0.0", "files": [{"path": "SKILL.md", "content": "# x"}]},
    )
    assert response.status_code == 401
    response = client.post(
        "/api/v1/skills",
        json={"slug": "x", "version": "1.0.0", "files": [{"path": "SKILL.md", "content": "# x"}]},
        headers={"Authorization": "Bearer nope"},
    )
    assert response.status_code == 401


def test_publish_base64_file(client):
    content = base64.b64encode(good_readme("remind-me").encode("utf-8")).decode("ascii")
    response = client.post(
        "/api/v1/skills",
        json={
            "slug": "remind-me",
            "version": "1.0.0",
            "summary": "Schedules reminders from time phrases.",
            "files": [{"path": "SKILL.md", "content": content, "encoding": "base64"}],
        },
        headers=auth("alice"),
    )
    assert response.status_code == 200


def test_quality_rejection_is_422(client):
    response = publish(client, "alice", "spam-skill", readme=SPAM_README, summary="Expert guidance for all.")
    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["reason"] == "quality.templated_content"


def test_conflicts_and_reservations(client):
    assert publish(client, "alice", "remind-me").status_code == 200
    assert publish(client, "bob", "remind-me").status_code == 409

    response = client.delete("/api/v1/skills/remind-me", headers=auth("alice"))
    assert response.status_code == 200
    assert response.json()["reserved_until"] is not None
    assert client.get("/api/v1/skills/remind-me").status_code == 404

    response = publish(client, "bob", "remind-me")
    assert response.status_code == 409
    assert "reserved for its previous owner" in response.json()["detail"]

    response = client.post("/api/v1/skills/remind-me/undelete", headers=auth("alice"))
    assert response.status_code == 200
    item = client.get("/api/v1/skills/remind-me").json()
    assert item["latest_version"] == "1.0.0"
    assert [f["path"] for f in item["files"]] == ["SKILL.md"]


def test_delete_by_stranger_is_forbidden(client):
    publish(client, "alice", "remind-me")
    assert client.delete("/api/v1/skills/remind-me", headers=auth("bob")).status_code == 403


def test_download_rate_limit(client):
    publish(client, "alice", "remind-me")
    # a fresh client address so earlier requests do not count
    headers = {"cf-connecting-ip": "203.0.113.9"}

    for _ in range(20):
        response = client.get("/api/v1/skills/remind-me/file", params={"path": "SKILL.md"}, headers=headers)
        assert response.status_code == 200
        assert "ETag" in response.headers
        assert "Retry-After" not in response.headers

    response = client.get("/api/v1/skills/remind-me/file", params={"path": "SKILL.md"}, headers=headers)
    assert response.status_code == 429
    assert response.text == "Rate limit exceeded"
    assert response.headers["Retry-After"] == "20"
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert response.headers["X-RateLimit-Reset"] == "1020"
    assert response.headers["Cache-Control"] == "no-store"


def test_download_missing_file(client):
    publish(client, "alice", "remind-me")
    response = client.get("/api/v1/skills/remind-me/file", params={"path": "nope.md"})
    assert response.status_code == 404


def test_admin_routes_require_admin(client, user_ids):
    response = client.post(
        "/api/v1/admin/reclaim",
        json={"slug": "remind-me", "rightful_owner_user_id": user_ids["bob"]},
        headers=auth("alice"),
    )
    assert response.status_code == 403


def test_admin_reclaim_and_badges(client, user_ids):
    publish(client, "alice", "remind-me")

    response = client.post(
        "/api/v1/admin/skills/remind-me/badges",
        json={"badges": ["highlighted"]},
        headers=auth("root"),
    )
    assert response.json() == {"slug": "remind-me", "badges": ["highlighted"]}

    hits = client.get("/api/v1/search", params={"q": "remind me", "highlightedOnly": "true"}).json()
    assert [h["slug"] for h in hits["results"]] == ["remind-me"]

    response = client.post(
        "/api/v1/admin/reclaim",
        json={"slug": "remind-me", "rightful_owner_user_id": user_ids["bob"], "transfer_in_place": True},
        headers=auth("root"),
    )
    assert response.status_code == 200
    assert response.json()["action"] == "ownership_transferred"
    assert client.get("/api/v1/skills/remind-me").json()["owner_user_id"] == user_ids["bob"]


def test_quality_sweep_run(app, settings):
    with TestClient(app) as client:
        publish(client, "alice", "remind-me")
        response = client.post(
            "/api/v1/admin/maintenance/quality-sweep", json={"dry_run": True}, headers=auth("root")
        )
        assert response.status_code == 202
        run_id = response.json()["run_id"]
        assert response.json()["task"] == "quality-sweep"

    # shutdown drains pending batches
    run = app.state.maintenance.runs[run_id]
    assert run["status"] == "done"
    assert run["stats"]["scanned"] == 1
    assert run["stats"]["rejected"] == 0


def test_resume_rejects_unknown_and_unfailed_runs(app):
    with TestClient(app) as client:
        missing = client.post("/api/v1/admin/maintenance/runs/nope/resume", headers=auth("root"))
        assert missing.status_code == 404

        started = client.post(
            "/api/v1/admin/maintenance/embedding-owners", json={}, headers=auth("root")
        )
        run_id = started.json()["run_id"]
        app.state.maintenance.runs[run_id]["status"] = "done"
        response = client.post(
            f"/api/v1/admin/maintenance/runs/{run_id}/resume", headers=auth("root")
        )
        assert response.status_code == 409
        status = client.get(f"/api/v1/admin/maintenance/runs/{run_id}", headers=auth("root"))
        assert status.json()["error"] is None
