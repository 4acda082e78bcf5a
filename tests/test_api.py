"""
API tests for the /sla routes
"""
from datetime import datetime, timedelta, timezone

import pytest

from conftest import ADMIN_HEADERS, AGENT_HEADERS, TENANT

CONFIG_BODY = {
    "priority": "high",
    "firstResponseMinutes": 60,
    "resolutionMinutes": 480,
    "businessHoursStart": "09:00",
    "businessHoursEnd": "18:00",
    "businessDays": [1, 2, 3, 4, 5],
    "timezone": "UTC",
}


def iso(moment):
    return moment.isoformat().replace("+00:00", "Z")


async def create_config(client, body=None):
    response = await client.post("/sla/configs", json=body or CONFIG_BODY, headers=ADMIN_HEADERS)
    assert response.status_code == 201
    return response.json()["data"]


async def start_tracking(client, ticket_id="TICKET-001", created_at=None):
    created_at = created_at or datetime.now(timezone.utc)
    return await client.post(
        "/sla/tickets",
        json={"ticketId": ticket_id, "priority": "high", "createdAt": iso(created_at)},
        headers=AGENT_HEADERS,
    )


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.parametrize("headers", [
    {},
    {"X-User-ID": "user-1"},
    {"X-Tenant-ID": TENANT},
])
async def test_missing_identity_is_unauthorized(client, headers):
    response = await client.get("/sla/configs", headers=headers)

    assert response.status_code == 401
    assert response.json()["success"] is False


async def test_create_config_uses_camel_case(client):
    data = await create_config(client)

    assert data["firstResponseMinutes"] == 60
    assert data["tenantId"] == TENANT
    assert data["categoryId"] is None
    assert data["isActive"] is True


async def test_create_config_accepts_snake_case(client):
    response = await client.post(
        "/sla/configs",
        json={"priority": "low", "first_response_minutes": 240, "resolution_minutes": 1920},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 201
    assert response.json()["data"]["resolutionMinutes"] == 1920


async def test_duplicate_config_conflicts(client):
    await create_config(client)
    response = await client.post("/sla/configs", json=CONFIG_BODY, headers=ADMIN_HEADERS)

    assert response.status_code == 409
    assert response.json()["success"] is False


@pytest.mark.parametrize("overrides", [
    {"firstResponseMinutes": 0},
    {"priority": "urgent"},
    {"businessHoursStart": "25:00"},
    {"businessHoursStart": "18:00", "businessHoursEnd": "09:00"},
    {"businessDays": [0]},
    {"timezone": "Nowhere/City"},
])
async def test_invalid_config_is_rejected(client, overrides):
    response = await client.post("/sla/configs", json={**CONFIG_BODY, **overrides}, headers=ADMIN_HEADERS)

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"


async def test_config_crud(client):
    config = await create_config(client)
    url = f"/sla/configs/{config['id']}"

    response = await client.patch(url, json={"resolutionMinutes": 600}, headers=ADMIN_HEADERS)
    assert response.status_code == 200
    assert response.json()["data"]["resolutionMinutes"] == 600

    response = await client.patch(url, json={"priority": "low"}, headers=ADMIN_HEADERS)
    assert response.status_code == 400

    response = await client.get("/sla/configs", params={"priority": "high"}, headers=ADMIN_HEADERS)
    assert [c["id"] for c in response.json()["data"]] == [config["id"]]

    response = await client.delete(url, headers=ADMIN_HEADERS)
    assert response.status_code == 200
    assert response.json()["success"] is True

    response = await client.get(url, headers=ADMIN_HEADERS)
    assert response.status_code == 404

    response = await client.get("/sla/logs", params={"action": "updated"}, headers=ADMIN_HEADERS)
    logs = response.json()["data"]
    assert len(logs) == 1
    assert logs[0]["oldValues"]["resolution_minutes"] == 480
    assert logs[0]["newValues"]["resolution_minutes"] == 600


async def test_config_is_invisible_to_other_tenants(client):
    config = await create_config(client)
    headers = {**ADMIN_HEADERS, "X-Tenant-ID": "tenant-2"}

    response = await client.get(f"/sla/configs/{config['id']}", headers=headers)
    assert response.status_code == 404


async def test_ticket_tracking_flow(client):
    config = await create_config(client)
    created_at = datetime.now(timezone.utc) - timedelta(minutes=5)

    response = await start_tracking(client, created_at=created_at)
    assert response.status_code == 200
    status = response.json()["data"]
    assert status["ticketId"] == "TICKET-001"
    assert status["slaConfigId"] == config["id"]
    assert status["firstResponseStatus"] == "compliant"

    response = await client.patch(
        "/sla/status",
        json={"ticketId": "TICKET-001", "firstResponseAt": iso(created_at + timedelta(minutes=3))},
        headers=AGENT_HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["data"]["firstResponseTimeSpent"] == 3

    response = await client.get("/sla/status/TICKET-001", headers=AGENT_HEADERS)
    data = response.json()["data"]
    assert data["status"]["firstResponseAt"] is not None
    assert data["config"]["id"] == config["id"]

    response = await client.get("/sla/status/TICKET-001/logs", headers=AGENT_HEADERS)
    assert [log["eventType"] for log in response.json()["data"]] == ["sla_tracking_started"]

    response = await client.get("/sla/status", params={"status": "compliant"}, headers=AGENT_HEADERS)
    assert [s["ticketId"] for s in response.json()["data"]] == ["TICKET-001"]


async def test_tracking_without_config_fails_open(client):
    response = await start_tracking(client)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] is None


async def test_status_update_requires_an_event(client):
    response = await client.patch("/sla/status", json={"ticketId": "TICKET-001"}, headers=AGENT_HEADERS)
    assert response.status_code == 400


async def test_status_update_for_unknown_ticket(client):
    response = await client.patch(
        "/sla/status",
        json={"ticketId": "UNKNOWN", "resolvedAt": iso(datetime.now(timezone.utc))},
        headers=AGENT_HEADERS,
    )
    assert response.status_code == 404
    assert response.json()["success"] is False


async def test_calculate_without_config(client):
    response = await client.post(
        "/sla/calculate",
        json={"ticketId": "TICKET-001", "priority": "critical", "createdAt": iso(datetime.now(timezone.utc))},
        headers=AGENT_HEADERS,
    )
    assert response.status_code == 422


async def test_calculate(client):
    await create_config(client)
    response = await client.post(
        "/sla/calculate",
        json={"ticketId": "TICKET-001", "priority": "high", "createdAt": "2024-01-01T10:00:00Z"},
        headers=AGENT_HEADERS,
    )

    data = response.json()["data"]
    assert data["firstResponseDueAt"] == "2024-01-01T11:00:00Z"
    assert data["resolutionDueAt"] == "2024-01-01T18:00:00Z"
    assert data["firstResponseStatus"] == "breached"


async def test_recalculate_all_requires_admin(client):
    response = await client.post("/sla/recalculate-all", headers=AGENT_HEADERS)

    assert response.status_code == 403
    assert response.json()["message"] == "Only administrators can recalculate all SLAs"


async def test_recalculate_all(client):
    await create_config(client)
    await start_tracking(client, created_at=datetime.now(timezone.utc) - timedelta(hours=2))

    response = await client.post("/sla/recalculate-all", headers=ADMIN_HEADERS)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["updated"] == 1
    assert data["errors"] == 0
    assert data["transitions"] == []

    response = await client.get("/sla/alerts", headers=AGENT_HEADERS)
    alerts = response.json()["data"]
    assert [a["type"] for a in alerts] == ["first_response_breach"]
    assert alerts[0]["priority"] == "critical"


async def test_reports_and_statistics(client):
    await create_config(client)
    now = datetime.now(timezone.utc)
    await start_tracking(client, created_at=now - timedelta(minutes=1))

    response = await client.get(
        "/sla/reports",
        params={"startDate": iso(now - timedelta(days=1)), "endDate": iso(now + timedelta(days=1))},
        headers=AGENT_HEADERS,
    )
    assert response.status_code == 200
    report = response.json()["data"]
    assert report["summary"]["totalTickets"] == 1
    assert report["summary"]["complianceRate"] == 100.0
    assert len(report["byPriority"]) == 4

    response = await client.get(
        "/sla/reports",
        params={"startDate": iso(now), "endDate": iso(now - timedelta(days=1))},
        headers=AGENT_HEADERS,
    )
    assert response.status_code == 400

    response = await client.get("/sla/statistics", headers=AGENT_HEADERS)
    stats = response.json()["data"]
    assert stats["configs"] == {"total": 1, "active": 1}
    assert stats["openTickets"] == 1
    assert stats["compliance"]["complianceRate"] == 100.0


async def test_report_accepts_mixed_naive_and_aware_dates(client):
    response = await client.get(
        "/sla/reports",
        params={"startDate": "2024-01-01T00:00:00", "endDate": "2024-01-31T00:00:00Z"},
        headers=AGENT_HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["data"]["summary"]["totalTickets"] == 0

    response = await client.get(
        "/sla/reports",
        params={"startDate": "2024-01-31T00:00:00Z", "endDate": "2024-01-01T00:00:00"},
        headers=AGENT_HEADERS,
    )
    assert response.status_code == 400
