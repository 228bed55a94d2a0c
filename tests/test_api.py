from datetime import date
from uuid import UUID

import pytest
from httpx import AsyncClient

from app.auth.security import token_for
from app.core.enums import DayOfWeek
from app.core.notifications import (
    ATTENDANCE_PARENT_APPROVED,
    CLASS_CONVERTED,
    DEMO_ASSIGNED,
    LEAD_ANNOUNCED,
)

from conftest import last_weekday, single_lead_payload


async def _create_and_post(client: AsyncClient, headers) -> tuple:
    response = await client.post("/api/v1/class-leads", json=single_lead_payload(), headers=headers)
    assert response.status_code == 201
    lead_id = response.json()["id"]
    response = await client.post(f"/api/v1/class-leads/{lead_id}/post", headers=headers)
    assert response.status_code == 200
    return lead_id, response.json()["announcement"]["id"]


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_lead_to_parent_approved_attendance(
    client: AsyncClient, auth_headers, notifier, manager, tutor, coordinator, parent
) -> None:
    as_manager = auth_headers(manager)
    as_tutor = auth_headers(tutor)

    lead_id, announcement_id = await _create_and_post(client, as_manager)

    response = await client.post(
        f"/api/v1/announcements/{announcement_id}/interest",
        json={"notes": "Free on weekdays", "profile": {"subjects": ["Math", "Science"], "ratings": 4}},
        headers=as_tutor,
    )
    assert response.status_code == 200
    assert response.json()["match_score"] == 72

    response = await client.get(f"/api/v1/announcements/{announcement_id}/interested-tutors", headers=as_manager)
    assert [i["tutor_id"] for i in response.json()] == [str(tutor.id)]

    response = await client.post(
        f"/api/v1/class-leads/{lead_id}/demo",
        json={"tutor_id": str(tutor.id), "demo_date": date.today().isoformat(), "demo_time": "17:00"},
        headers=as_manager,
    )
    assert response.status_code == 200
    demo_id = response.json()["demo"]["id"]
    assert response.json()["lead"]["status"] == "DEMO_SCHEDULED"

    response = await client.get("/api/v1/demos/my", headers=as_tutor)
    assert [d["id"] for d in response.json()] == [demo_id]

    response = await client.post(
        f"/api/v1/demos/{demo_id}/complete",
        json={"attendance_status": "PRESENT", "topic_covered": "Ratios", "duration": "60 min"},
        headers=as_tutor,
    )
    assert response.status_code == 200
    assert response.json()["lead"]["status"] == "DEMO_COMPLETED"

    response = await client.post(
        f"/api/v1/demos/{demo_id}/approve",
        json={"coordinator_id": str(coordinator.id), "parent_id": str(parent.id)},
        headers=as_manager,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["lead"]["status"] == "CONVERTED"
    assert body["demo"]["status"] == "APPROVED"
    class_id = body["final_class"]["id"]
    assert body["final_class"]["status"] == "ACTIVE"

    monday = last_weekday(DayOfWeek.MONDAY)
    response = await client.post(
        "/api/v1/attendance",
        json={"final_class_id": class_id, "session_date": monday.isoformat(), "topic_covered": "Percentages"},
        headers=as_tutor,
    )
    assert response.status_code == 201
    attendance_id = response.json()["attendance"]["id"]
    assert response.json()["final_class"]["completed_sessions"] == 1

    response = await client.post(
        f"/api/v1/attendance/{attendance_id}/parent-approve", headers=auth_headers(parent)
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "COORDINATOR_APPROVAL_REQUIRED"

    response = await client.post(
        f"/api/v1/attendance/{attendance_id}/coordinator-approve", headers=auth_headers(coordinator)
    )
    assert response.status_code == 200
    assert response.json()["status"] == "COORDINATOR_APPROVED"

    response = await client.post(
        f"/api/v1/attendance/{attendance_id}/parent-approve", headers=auth_headers(parent)
    )
    assert response.status_code == 200
    assert response.json()["status"] == "PARENT_APPROVED"

    response = await client.get(f"/api/v1/final-classes/{class_id}", headers=auth_headers(parent))
    assert response.json()["completed_sessions"] == 1

    response = await client.post(f"/api/v1/class-leads/{lead_id}/payment-received", headers=as_manager)
    assert response.json()["status"] == "PAYMENT_RECEIVED"

    events = notifier.events()
    for event in (LEAD_ANNOUNCED, DEMO_ASSIGNED, CLASS_CONVERTED, ATTENDANCE_PARENT_APPROVED):
        assert event in events


@pytest.mark.asyncio
async def test_attendance_guards_over_http(
    client: AsyncClient, auth_headers, manager, tutor, coordinator
) -> None:
    as_manager = auth_headers(manager)
    as_tutor = auth_headers(tutor)
    lead_id, _ = await _create_and_post(client, as_manager)
    response = await client.post(
        f"/api/v1/class-leads/{lead_id}/demo",
        json={
            "tutor_id": str(tutor.id),
            "demo_date": date.today().isoformat(),
            "demo_time": "17:00",
            "direct_assignment": True,
        },
        headers=as_manager,
    )
    demo_id = response.json()["demo"]["id"]
    await client.post(f"/api/v1/demos/{demo_id}/complete", json={"attendance_status": "ABSENT"}, headers=as_tutor)

    response = await client.post(f"/api/v1/demos/{demo_id}/approve", json={}, headers=as_manager)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "COORDINATOR_REQUIRED"

    response = await client.post(
        f"/api/v1/demos/{demo_id}/approve", json={"coordinator_id": str(coordinator.id)}, headers=as_manager
    )
    class_id = response.json()["final_class"]["id"]

    monday = last_weekday(DayOfWeek.MONDAY)
    first = await client.post(
        "/api/v1/attendance", json={"final_class_id": class_id, "session_date": monday.isoformat()}, headers=as_tutor
    )
    duplicate = await client.post(
        "/api/v1/attendance", json={"final_class_id": class_id, "session_date": monday.isoformat()}, headers=as_tutor
    )
    assert duplicate.status_code == 409
    detail = duplicate.json()["detail"]
    assert detail["code"] == "ALREADY_SUBMITTED"
    assert detail["existing_attendance_id"] == first.json()["attendance"]["id"]

    tuesday = last_weekday(DayOfWeek.TUESDAY)
    off_day = await client.post(
        "/api/v1/attendance", json={"final_class_id": class_id, "session_date": tuesday.isoformat()}, headers=as_tutor
    )
    assert off_day.status_code == 409
    assert off_day.json()["detail"]["code"] == "NOT_A_SCHEDULED_DAY"

    response = await client.post(
        f"/api/v1/attendance/{first.json()['attendance']['id']}/reject",
        json={"reason": ""},
        headers=auth_headers(coordinator),
    )
    assert response.status_code == 400
    assert response.json()["detail"]["field"] == "reason"

    response = await client.get("/api/v1/attendance/pending", headers=auth_headers(coordinator))
    assert [a["id"] for a in response.json()] == [first.json()["attendance"]["id"]]


@pytest.mark.asyncio
async def test_missing_token_is_unauthorized(client: AsyncClient) -> None:
    response = await client.get("/api/v1/class-leads")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_garbage_token_is_unauthorized(client: AsyncClient) -> None:
    response = await client.get("/api/v1/class-leads", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_expired_token_is_unauthorized(client: AsyncClient, manager) -> None:
    token = token_for(manager, expires_minutes=-5)
    response = await client.get("/api/v1/class-leads", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_wrong_role_is_forbidden(client: AsyncClient, auth_headers, tutor) -> None:
    response = await client.post("/api/v1/class-leads", json=single_lead_payload(), headers=auth_headers(tutor))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_passes_every_role_gate(client: AsyncClient, auth_headers, admin) -> None:
    response = await client.post("/api/v1/class-leads", json=single_lead_payload(), headers=auth_headers(admin))
    assert response.status_code == 201
    UUID(response.json()["id"])


@pytest.mark.asyncio
async def test_invalid_lead_body_is_rejected(client: AsyncClient, auth_headers, manager) -> None:
    response = await client.post(
        "/api/v1/class-leads",
        json=single_lead_payload(mode="OFFLINE"),
        headers=auth_headers(manager),
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_unknown_lead_is_not_found(client: AsyncClient, auth_headers, manager) -> None:
    response = await client.get(
        "/api/v1/class-leads/00000000-0000-0000-0000-000000000000", headers=auth_headers(manager)
    )
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_delete_lead(client: AsyncClient, auth_headers, manager) -> None:
    headers = auth_headers(manager)
    created = await client.post("/api/v1/class-leads", json=single_lead_payload(), headers=headers)
    lead_id = created.json()["id"]

    response = await client.delete(f"/api/v1/class-leads/{lead_id}", headers=headers)
    assert response.status_code == 204
    response = await client.get(f"/api/v1/class-leads/{lead_id}", headers=headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_assign_parent_over_http(client: AsyncClient, auth_headers, manager, tutor, coordinator, parent) -> None:
    as_manager = auth_headers(manager)
    lead_id, _ = await _create_and_post(client, as_manager)
    response = await client.post(
        f"/api/v1/class-leads/{lead_id}/demo",
        json={
            "tutor_id": str(tutor.id),
            "demo_date": date.today().isoformat(),
            "demo_time": "17:00",
            "direct_assignment": True,
        },
        headers=as_manager,
    )
    demo_id = response.json()["demo"]["id"]
    await client.post(
        f"/api/v1/demos/{demo_id}/complete", json={"attendance_status": "ABSENT"}, headers=auth_headers(tutor)
    )
    response = await client.post(
        f"/api/v1/demos/{demo_id}/approve", json={"coordinator_id": str(coordinator.id)}, headers=as_manager
    )
    class_id = response.json()["final_class"]["id"]
    assert response.json()["final_class"]["parent_id"] is None

    response = await client.post(
        f"/api/v1/final-classes/{class_id}/assign-parent",
        json={"parent_id": str(parent.id)},
        headers=auth_headers(coordinator),
    )
    assert response.status_code == 403

    response = await client.post(
        f"/api/v1/final-classes/{class_id}/assign-parent", json={"parent_id": str(parent.id)}, headers=as_manager
    )
    assert response.status_code == 200
    assert response.json()["parent_id"] == str(parent.id)

    response = await client.get(f"/api/v1/final-classes/{class_id}", headers=auth_headers(parent))
    assert response.status_code == 200
