"""
Integration Tests for the Rehabilitation Goals API

Tests for API endpoints: health, goal creation, breakdown, check-ins and
completion confirmations. Uses async httpx for ASGI app testing.
"""
import uuid

import pytest
import httpx

from rehab_goals.main import app


@pytest.fixture
async def async_client():
    """Create async test client."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client


@pytest.fixture
def patient_id() -> str:
    # The app keeps one in-memory service for the whole session
    return f"P-{uuid.uuid4().hex[:8]}"


async def _create_goal(client, patient_id, **overrides):
    payload = {
        "patient_id": patient_id,
        "title": "Independent community mobility",
        "start_date": "2026-01-01",
        "end_date": "2026-06-30",
        "evaluation_criteria": {"measure": "6MWT distance"},
    }
    payload.update(overrides)
    response = await client.post("/api/v1/goals", json=payload)
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
class TestHealthEndpoints:

    async def test_root_endpoint(self, async_client):
        response = await async_client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data

    async def test_health_endpoint(self, async_client):
        response = await async_client.get("/health")
        assert response.status_code == 200
        assert response.json()["goal_count"] >= 0


@pytest.mark.asyncio
class TestGoalEndpoints:

    async def test_create_and_fetch_goal(self, async_client, patient_id):
        created = await _create_goal(async_client, patient_id)

        assert created["tier"] == "long_term"
        assert created["status"] == "active"
        assert created["target_completion_rate"] == 100

        response = await async_client.get(f"/api/v1/goals/{created['id']}")
        assert response.status_code == 200
        assert response.json()["evaluation_criteria"] == {"measure": "6MWT distance"}

    async def test_inverted_dates_rejected(self, async_client, patient_id):
        response = await async_client.post("/api/v1/goals", json={
            "patient_id": patient_id,
            "title": "Backwards",
            "start_date": "2026-06-30",
            "end_date": "2026-01-01",
        })
        assert response.status_code == 422

    async def test_unknown_goal(self, async_client):
        response = await async_client.get("/api/v1/goals/does-not-exist")
        assert response.status_code == 404
        assert response.json()["error"] == "GOAL_NOT_FOUND"


@pytest.mark.asyncio
class TestBreakdownEndpoints:

    async def test_preview_does_not_save(self, async_client, patient_id):
        goal = await _create_goal(async_client, patient_id)

        response = await async_client.post(
            f"/api/v1/goals/{goal['id']}/breakdown/preview",
            json={"child_count": 6, "preserve_original_dates": True},
        )
        assert response.status_code == 200

        data = response.json()
        rates = [c["target_completion_rate"] for c in data["breakdown"]["children"]]
        assert rates == [16, 16, 16, 16, 16, 20]
        assert data["validation"]["is_valid"] is True

        children = await async_client.get(f"/api/v1/goals/{goal['id']}/children")
        assert children.json() == []

    async def test_apply_breakdown(self, async_client, patient_id):
        goal = await _create_goal(async_client, patient_id)

        response = await async_client.post(
            f"/api/v1/goals/{goal['id']}/breakdown", json={"preserve_original_dates": True}
        )
        assert response.status_code == 201
        created = response.json()["created"]
        assert len(created) == 6
        assert created[0]["evaluation_criteria"]["breakdown_source"] == "long_term_goal"

        again = await async_client.post(f"/api/v1/goals/{goal['id']}/breakdown", json={})
        assert again.status_code == 422
        assert again.json()["error"] == "BREAKDOWN_ERROR"

    async def test_invalid_child_count(self, async_client, patient_id):
        goal = await _create_goal(async_client, patient_id)
        response = await async_client.post(
            f"/api/v1/goals/{goal['id']}/breakdown", json={"child_count": 0}
        )
        assert response.status_code == 422

    async def test_suggestions_with_explicit_history(self, async_client, patient_id):
        goal = await _create_goal(async_client, patient_id)

        response = await async_client.post(
            f"/api/v1/goals/{goal['id']}/suggestions",
            json={"history_statuses": ["completed"] * 9 + ["cancelled"]},
        )
        assert response.status_code == 200

        data = response.json()
        assert len(data["suggestions"]) == 3
        assert data["suggestions"][2]["child_count"] == 5


@pytest.mark.asyncio
class TestProgressEndpoints:

    async def _weeks_of_first_month(self, client, patient_id):
        goal = await _create_goal(client, patient_id)
        created = (await client.post(
            f"/api/v1/goals/{goal['id']}/breakdown",
            json={"preserve_original_dates": True, "full_hierarchy": True},
        )).json()["created"]
        month = next(g for g in created if g["tier"] == "monthly" and g["sequence_number"] == 1)
        weeks = [g for g in created if g["parent_id"] == month["id"]]
        return goal, month, weeks

    async def test_check_in_requires_weekly_goal(self, async_client, patient_id):
        goal = await _create_goal(async_client, patient_id)
        response = await async_client.post(
            f"/api/v1/goals/{goal['id']}/check-in", json={"result": "achieved"}
        )
        assert response.status_code == 409
        assert response.json()["error"] == "CASCADE_ERROR"

    async def test_month_completion_needs_confirmation(self, async_client, patient_id):
        _, month, weeks = await self._weeks_of_first_month(async_client, patient_id)
        assert len(weeks) == 4

        for week in weeks[:3]:
            response = await async_client.post(
                f"/api/v1/goals/{week['id']}/check-in", json={"result": "achieved"}
            )
            assert response.json()["cascade"]["termination"] == "settled"

        response = await async_client.post(
            f"/api/v1/goals/{weeks[3]['id']}/check-in", json={"result": "not_achieved"}
        )
        data = response.json()
        assert data["goal"]["status"] == "cancelled"
        assert data["cascade"]["termination"] == "unanswered"
        assert data["cascade"]["pending_proposal"]["goal_id"] == month["id"]

        pending = (await async_client.get(f"/api/v1/patients/{patient_id}/pending-confirmations")).json()
        assert [p["goal_id"] for p in pending["pending"]] == [month["id"]]
        assert pending["needs_new_goal"] is False

        response = await async_client.post(
            f"/api/v1/goals/{month['id']}/confirm-completion", json={"confirmed": True}
        )
        assert response.status_code == 200
        assert response.json()["promoted_goal_ids"] == [month["id"]]

        promoted = (await async_client.get(f"/api/v1/goals/{month['id']}")).json()
        assert promoted["status"] == "completed"
        assert promoted["actual_completion_rate"] == 100

    async def test_confirm_without_proposal(self, async_client, patient_id):
        goal = await _create_goal(async_client, patient_id)
        response = await async_client.post(
            f"/api/v1/goals/{goal['id']}/confirm-completion", json={"confirmed": True}
        )
        assert response.status_code == 409

    async def test_status_change(self, async_client, patient_id):
        _, _, weeks = await self._weeks_of_first_month(async_client, patient_id)

        response = await async_client.post(
            f"/api/v1/goals/{weeks[0]['id']}/status", json={"status": "on_hold"}
        )
        assert response.status_code == 200
        assert response.json()["goal"]["status"] == "on_hold"
