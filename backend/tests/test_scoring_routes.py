"""Route integration tests for the scoring and leaderboard endpoints."""

from datetime import datetime, timezone

import pytest

from postscore.models import PublishEvent, User


@pytest.fixture
async def seed(session_factory):
    """Commit a user and their publish events so request sessions can see them."""
    async def _seed(username: str, posts: dict[int, datetime]) -> int:
        async with session_factory() as session:
            user = User(username=username)
            session.add(user)
            await session.flush()
            for post_id, published_at in posts.items():
                session.add(PublishEvent(user_id=user.id, post_id=post_id, published_at=published_at))
            await session.commit()
            return user.id

    return _seed


MARCH_2 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
MARCH_3 = datetime(2026, 3, 3, 12, 0, tzinfo=timezone.utc)


async def test_publish_event_route(client, seed):
    """POST /api/scoring/events scores the post and returns the breakdown."""
    user_id = await seed("poster", {1: MARCH_2})

    resp = await client.post("/api/scoring/events", json={"user_id": user_id, "post_id": 1})
    assert resp.status_code == 201

    data = resp.json()
    assert data["points_awarded"] == 35
    assert data["new_achievements"] == ["FIRST_POST"]
    assert data["current_streak"] == 1
    assert data["total_points"] == 60
    assert [line["label"] for line in data["breakdown"]] == ["Post: +10", "First Post Bonus: +25"]


async def test_publish_event_twice_conflicts(client, seed):
    user_id = await seed("poster", {1: MARCH_2})
    await client.post("/api/scoring/events", json={"user_id": user_id, "post_id": 1})

    resp = await client.post("/api/scoring/events", json={"user_id": user_id, "post_id": 1})
    assert resp.status_code == 409
    assert "already been scored" in resp.json()["detail"]


async def test_publish_event_unknown_user(client):
    resp = await client.post("/api/scoring/events", json={"user_id": 999, "post_id": 1})
    assert resp.status_code == 404
    assert "not found" in resp.json()["detail"].lower()


async def test_publish_event_unknown_post(client, seed):
    user_id = await seed("poster", {})
    resp = await client.post("/api/scoring/events", json={"user_id": user_id, "post_id": 77})
    assert resp.status_code == 404


async def test_publish_event_validation(client):
    resp = await client.post("/api/scoring/events", json={"user_id": 0, "post_id": 1})
    assert resp.status_code == 422


async def test_score_route(client, seed):
    user_id = await seed("poster", {1: MARCH_2, 2: MARCH_3})
    for post_id in (1, 2):
        await client.post("/api/scoring/events", json={"user_id": user_id, "post_id": post_id})

    resp = await client.get(f"/api/scoring/{user_id}/score")
    assert resp.status_code == 200
    data = resp.json()
    assert data["total_points"] == 60 + 12
    assert data["current_streak"] == 2
    assert data["best_streak"] == 2
    assert data["post_count"] == 2
    assert data["rank"] == 1
    assert data["total_users"] == 1
    assert data["last_post_date"] == "2026-03-03"


async def test_score_route_zero_state(client, seed):
    user_id = await seed("lurker", {})
    resp = await client.get(f"/api/scoring/{user_id}/score")
    assert resp.status_code == 200
    data = resp.json()
    assert (data["total_points"], data["current_streak"], data["best_streak"], data["post_count"]) == (0, 0, 0, 0)


async def test_score_route_not_found(client):
    resp = await client.get("/api/scoring/999/score")
    assert resp.status_code == 404


async def test_achievements_route(client, seed):
    user_id = await seed("poster", {1: MARCH_2})
    await client.post("/api/scoring/events", json={"user_id": user_id, "post_id": 1})

    resp = await client.get(f"/api/scoring/{user_id}/achievements")
    assert resp.status_code == 200
    data = resp.json()
    assert len(data) == 1
    assert data[0]["type_key"] == "FIRST_POST"
    assert data[0]["name"] == "First Post"
    assert data[0]["points_awarded"] == 25


async def test_history_route(client, seed):
    user_id = await seed("poster", {1: MARCH_2})
    await client.post("/api/scoring/events", json={"user_id": user_id, "post_id": 1})

    resp = await client.get(f"/api/scoring/{user_id}/history", params={"limit": 2})
    assert resp.status_code == 200
    data = resp.json()
    assert [(item["reason"], item["points"]) for item in data] == [
        ("achievement:FIRST_POST", 25),
        ("first_post_bonus", 25),
    ]
    assert data[1]["post_id"] == 1


async def test_history_route_limit_validation(client, seed):
    user_id = await seed("poster", {})
    resp = await client.get(f"/api/scoring/{user_id}/history", params={"limit": 0})
    assert resp.status_code == 422


async def test_recompute_route(client, seed):
    user_id = await seed("poster", {1: MARCH_2})
    await client.post("/api/scoring/events", json={"user_id": user_id, "post_id": 1})

    resp = await client.post(f"/api/scoring/{user_id}/recompute")
    assert resp.status_code == 200
    data = resp.json()
    assert data["total_points"] == 60
    assert data["last_post_date"] == "2026-03-02"


async def test_recompute_route_not_found(client):
    resp = await client.post("/api/scoring/999/recompute")
    assert resp.status_code == 404


async def test_leaderboard_route(client, seed):
    alice = await seed("alice", {1: MARCH_2, 2: MARCH_3})
    bob = await seed("bob", {3: MARCH_2})
    for user_id, post_id in ((alice, 1), (alice, 2), (bob, 3)):
        await client.post("/api/scoring/events", json={"user_id": user_id, "post_id": post_id})

    resp = await client.get("/api/leaderboard/", params={"limit": 5})
    assert resp.status_code == 200
    data = resp.json()
    assert [row["username"] for row in data] == ["alice", "bob"]
    assert [row["rank"] for row in data] == [1, 2]
    assert data[0]["post_count"] == 2


async def test_achievement_catalog_route(client):
    resp = await client.get("/api/leaderboard/achievements")
    assert resp.status_code == 200
    data = resp.json()
    assert len(data) == 8
    assert data[0] == {
        "type_key": "FIRST_POST",
        "name": "First Post",
        "description": "Published your first post",
        "points": 25,
    }


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
