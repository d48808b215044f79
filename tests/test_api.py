"""
End-to-end tests through the HTTP layer.

Requests go through httpx's ASGI transport; the database session dependency is
overridden with the test session so fixtures and requests share one database.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from feedback_desk.core.config import get_settings
from feedback_desk.core.database import get_session
from feedback_desk.core.security import create_access_token
from feedback_desk.main import app

API = get_settings().api_prefix


@pytest.fixture
async def client(session):
    async def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def auth(users):
    """Authorization headers for a user handle."""

    def headers(handle: str) -> dict[str, str]:
        user = users[handle]
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role.value)}"}

    return headers


async def _submit(client, auth, form_data) -> str:
    response = await client.post(
        f"{API}/feedback", json={"form_data": form_data}, headers=auth("student")
    )
    assert response.status_code == 201, response.text
    return response.json()["ticket_id"]


# =============================================================================
# TEST: AUTHENTICATION
# =============================================================================


class TestAuthentication:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_missing_token(self, client):
        response = await client.get(f"{API}/feedback")
        assert response.status_code == 401

    async def test_garbage_token(self, client):
        response = await client.get(
            f"{API}/feedback", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401

    async def test_unknown_subject(self, client, users):
        token = create_access_token("nobody", "admin")
        response = await client.get(f"{API}/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    async def test_me(self, client, auth, users, team):
        response = await client.get(f"{API}/me", headers=auth("lead"))

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == "lead-1"
        assert body["role"] == "team_lead"
        assert body["team_id"] == str(team.id)


# =============================================================================
# TEST: LIFECYCLE OVER HTTP
# =============================================================================


class TestLifecycleEndpoints:
    async def test_full_lifecycle(self, client, auth, users, team, template, form_data):
        ticket_id = await _submit(client, auth, form_data)

        response = await client.post(
            f"{API}/feedback/assign",
            json={"ticket_id": ticket_id, "team_id": str(team.id), "sla_hours": 24, "priority": "high"},
            headers=auth("auditor"),
        )
        assert response.status_code == 200, response.text
        body = response.json()
        assert body["status"] == "assigned"
        assert body["priority"] == "high"
        assert body["sla_deadline"] is not None
        assert body["is_overdue"] is False

        response = await client.post(
            f"{API}/feedback/assign-member",
            json={"ticket_id": ticket_id, "member_id": users["member_a"].id},
            headers=auth("lead"),
        )
        assert response.json()["status"] == "pending"

        response = await client.post(
            f"{API}/feedback/update-status",
            json={
                "ticket_id": ticket_id,
                "status": "resolved",
                "resolution_text": "Fixed the video.",
                "days_taken": 0,
            },
            headers=auth("member_a"),
        )
        assert response.status_code == 200, response.text
        assert response.json()["lead_approval_status"] == "pending"

        response = await client.post(
            f"{API}/feedback/approve-resolution",
            json={"ticket_id": ticket_id, "approved": True},
            headers=auth("lead"),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    async def test_student_reads(self, client, auth, template, form_data):
        ticket_id = await _submit(client, auth, form_data)

        response = await client.get(f"{API}/feedback/{ticket_id}", headers=auth("student"))
        assert response.status_code == 200
        assert response.json()["form_data"]["course"] == "Data Structures"

        response = await client.get(f"{API}/feedback/{ticket_id}", headers=auth("other_student"))
        assert response.status_code == 404

        response = await client.get(f"{API}/feedback", headers=auth("student"))
        assert response.json()["total"] == 1

    async def test_bulk_assign(self, client, auth, team, template, form_data):
        first = await _submit(client, auth, form_data)

        response = await client.post(
            f"{API}/feedback/bulk-assign",
            json={"ticket_ids": [first, "FB-0000000000000-GONE"], "team_id": str(team.id)},
            headers=auth("auditor"),
        )

        assert response.status_code == 200
        body = response.json()
        assert (body["assigned"], body["failed"]) == (1, 1)
        assert [r["success"] for r in body["results"]] == [True, False]

    async def test_suggestions(self, client, auth, team, template, form_data):
        ticket_id = await _submit(client, auth, form_data)

        response = await client.post(
            f"{API}/feedback/ai-suggestions",
            json={"ticket_id": ticket_id},
            headers=auth("member_a"),
        )

        assert response.status_code == 200
        assert set(response.json()) == {"proposed_solution", "preventive_measures"}

    async def test_form_template(self, client, auth, template):
        response = await client.get(f"{API}/form-templates/program/engineering", headers=auth("student"))
        assert response.status_code == 200
        assert [f["name"] for f in response.json()["fields"]][:2] == ["course", "unit"]

        response = await client.get(f"{API}/form-templates/program/law", headers=auth("student"))
        assert response.status_code == 404


# =============================================================================
# TEST: ERROR MAPPING
# =============================================================================


class TestErrorMapping:
    async def test_forbidden_is_403(self, client, auth, team, template, form_data):
        ticket_id = await _submit(client, auth, form_data)

        response = await client.post(
            f"{API}/feedback/assign",
            json={"ticket_id": ticket_id, "team_id": str(team.id)},
            headers=auth("member_a"),
        )
        assert response.status_code == 403

    async def test_invalid_transition_is_409(self, client, auth, team, template, form_data):
        ticket_id = await _submit(client, auth, form_data)
        payload = {"ticket_id": ticket_id, "team_id": str(team.id), "sla_hours": 24}

        first = await client.post(f"{API}/feedback/assign", json=payload, headers=auth("auditor"))
        second = await client.post(f"{API}/feedback/assign", json=payload, headers=auth("auditor"))

        assert first.status_code == 200
        assert second.status_code == 409

    async def test_validation_is_400_with_fields(self, client, auth, template, form_data):
        response = await client.post(
            f"{API}/feedback",
            json={"form_data": {**form_data, "rating": 42}},
            headers=auth("student"),
        )

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert "rating" in detail["fields"]

    async def test_missing_ticket_is_404(self, client, auth, team):
        response = await client.post(
            f"{API}/feedback/assign",
            json={"ticket_id": "FB-0000000000000-GONE", "team_id": str(team.id)},
            headers=auth("auditor"),
        )
        assert response.status_code == 404


# =============================================================================
# TEST: NOTIFICATIONS & ADMIN
# =============================================================================


class TestNotificationEndpoints:
    async def test_inbox_and_mark_read(self, client, auth, template, form_data):
        await _submit(client, auth, form_data)

        response = await client.get(f"{API}/me/notifications", headers=auth("auditor"))
        body = response.json()
        assert body["unread"] == 1
        notification_id = body["items"][0]["id"]

        response = await client.post(
            f"{API}/me/notifications/{notification_id}/read", headers=auth("auditor2")
        )
        assert response.status_code == 404

        response = await client.post(
            f"{API}/me/notifications/{notification_id}/read", headers=auth("auditor")
        )
        assert response.status_code == 200
        assert response.json()["read"] is True

        response = await client.post(f"{API}/me/notifications/read-all", headers=auth("auditor2"))
        assert response.json()["updated"] == 1

    async def test_broadcast_requires_admin(self, client, auth):
        payload = {"title": "Hello", "message": "World", "target_roles": ["student"]}

        response = await client.post(
            f"{API}/admin/notifications/broadcast", json=payload, headers=auth("lead")
        )
        assert response.status_code == 403

        response = await client.post(
            f"{API}/admin/notifications/broadcast", json=payload, headers=auth("admin")
        )
        assert response.status_code == 200
        assert response.json()["recipient_count"] == 2

    async def test_audit_logs(self, client, auth, template, form_data):
        ticket_id = await _submit(client, auth, form_data)

        response = await client.get(
            f"{API}/admin/audit-logs", params={"entity_id": ticket_id}, headers=auth("co_admin")
        )

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["action"] == "feedback_submitted"

        response = await client.get(f"{API}/admin/audit-logs", headers=auth("auditor"))
        assert response.status_code == 403
