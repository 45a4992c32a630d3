# tests/test_api.py
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tenancy_engine.auth import issue_token
from tenancy_engine.main import create_app


def _headers(email: str, role: str) -> dict[str, str]:
    return {"X-User-Email": email, "X-User-Role": role}


LANDLORD = _headers("landlord@t.local", "landlord")
TENANT = _headers("tenant@t.local", "tenant")
PAYMENTS = {"X-Payment-Collaborator-Key": "dev-payment-key"}


@pytest.fixture()
def client():
    return TestClient(create_app())


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["ok"] is True
    assert "engine_version" in body
    assert r.headers.get("X-Request-ID")


def test_missing_identity_is_401(client):
    r = client.get("/api/applications")
    assert r.status_code == 401


def test_dev_headers_auto_provision(client):
    r = client.get("/api/applications", headers=_headers("newcomer@t.local", "tenant"))
    assert r.status_code == 200, r.text
    assert r.json() == []


def test_lease_flow_over_http(client, world):
    r = client.post(
        "/api/applications",
        headers=TENANT,
        json={"property_id": world.property_id, "move_in_date": "2026-11-01", "number_of_occupants": 2},
    )
    assert r.status_code == 200, r.text
    app_id = r.json()["id"]
    assert r.json()["status"] == "pending"

    r = client.post(f"/api/applications/{app_id}/decision", headers=LANDLORD, json={"decision": {"decision": "accept"}})
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "accepted"

    r = client.post(f"/api/applications/{app_id}/decision", headers=LANDLORD, json={"decision": {"decision": "reject"}})
    assert r.status_code == 409, r.text
    body = r.json()
    assert body["error"] == "invalid_state_transition"
    assert body["current_state"] == "accepted"
    assert body["entity_type"] == "Application"

    r = client.get(f"/api/applications/by-property/{world.property_id}?ranked=true", headers=LANDLORD)
    assert r.status_code == 200, r.text
    assert r.json()[0]["tenant_score"] is not None

    r = client.post("/api/contracts", headers=LANDLORD, json={"application_id": app_id})
    assert r.status_code == 200, r.text
    cid = r.json()["id"]

    r = client.post(f"/api/contracts/{cid}/sign", headers=TENANT, json={"role": "tenant", "signature": "T"})
    assert r.status_code == 409, r.text

    r = client.post(f"/api/contracts/{cid}/sign", headers=LANDLORD, json={"role": "landlord", "signature": "L"})
    assert r.json()["status"] == "sent_to_tenant"
    r = client.post(f"/api/contracts/{cid}/sign", headers=TENANT, json={"role": "tenant", "signature": "T"})
    assert r.json()["status"] == "fully_signed"

    r = client.post(
        "/api/key-collections",
        headers=LANDLORD,
        json={"contract_id": cid, "collection_date": "2026-10-31T15:00:00", "location": "Front desk"},
    )
    assert r.status_code == 412, r.text
    assert r.json()["error"] == "precondition_not_met"

    for kind in ("deposit", "rent"):
        r = client.post(
            "/api/payments/events",
            headers=PAYMENTS,
            json={
                "contract_id": cid,
                "payment_type": kind,
                "amount_minor": 150000,
                "status": "completed",
                "external_reference": f"psp-{kind}",
            },
        )
        assert r.status_code == 200, r.text
    assert r.json()["gate_newly_satisfied"] is True
    assert r.json()["gate"]["satisfied"] is True

    r = client.get(f"/api/contracts/{cid}/payment-gate", headers=TENANT)
    assert r.json()["missing"] == []

    r = client.post(
        "/api/key-collections",
        headers=LANDLORD,
        json={"contract_id": cid, "collection_date": "2026-10-31T15:00:00", "location": "Front desk"},
    )
    assert r.status_code == 200, r.text
    kc_id = r.json()["id"]

    client.post(f"/api/key-collections/{kc_id}/confirm", headers=TENANT, json={"role": "tenant"})
    r = client.post(f"/api/key-collections/{kc_id}/confirm", headers=LANDLORD, json={"role": "landlord"})
    assert r.json()["status"] == "confirmed"

    r = client.post(f"/api/key-collections/{kc_id}/complete", headers=LANDLORD)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "completed"

    r = client.get(f"/api/contracts/{cid}", headers=TENANT)
    assert r.json()["keys_collected"] is True


def test_payment_webhook_requires_collaborator_key(client, world):
    payload = {
        "contract_id": 1,
        "payment_type": "deposit",
        "amount_minor": 1,
        "status": "completed",
        "external_reference": "x",
    }
    assert client.post("/api/payments/events", json=payload).status_code == 401
    r = client.post("/api/payments/events", json=payload, headers={"X-Payment-Collaborator-Key": "wrong"})
    assert r.status_code == 401


def test_unknown_contract_is_404(client, world):
    r = client.get("/api/contracts/999", headers=TENANT)
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"


def test_bearer_token(client, world):
    token = issue_token(world.tenant.user_id)
    r = client.get("/api/tenant-scores/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["tenant_id"] == world.tenant.user_id
    assert set(body["breakdown"]) == {"rental_history", "employment", "salary", "payment_history", "references"}

    r = client.get("/api/tenant-scores/me", headers={"Authorization": "Bearer not.a.token"})
    assert r.status_code == 401


def test_score_access_follows_applications(client, world):
    r = client.get(f"/api/tenant-scores/{world.other_tenant.user_id}", headers=TENANT)
    assert r.status_code == 403
    r = client.get(f"/api/tenant-scores/{world.tenant.user_id}", headers=LANDLORD)
    assert r.status_code == 403

    r = client.post("/api/applications", headers=TENANT, json={"property_id": world.property_id})
    assert r.status_code == 200, r.text

    r = client.get(f"/api/tenant-scores/{world.tenant.user_id}", headers=LANDLORD)
    assert r.status_code == 200, r.text
    assert r.json()["tenant_id"] == world.tenant.user_id
    r = client.get(f"/api/tenant-scores/{world.tenant.user_id}", headers=_headers("landlord2@t.local", "landlord"))
    assert r.status_code == 403
    r = client.get(f"/api/tenant-scores/{world.tenant.user_id}", headers=_headers("admin@t.local", "admin"))
    assert r.status_code == 200


def test_viewing_approval_validates_location(client, world):
    r = client.post(
        "/api/viewings",
        headers=TENANT,
        json={"property_id": world.property_id, "requested_date": "2026-10-25", "requested_time_slot": "14:00"},
    )
    assert r.status_code == 200, r.text
    vid = r.json()["id"]

    r = client.post(
        f"/api/viewings/{vid}/decision",
        headers=LANDLORD,
        json={"decision": {"decision": "approve", "meeting_location": " "}},
    )
    assert r.status_code == 422

    r = client.post(
        f"/api/viewings/{vid}/decision",
        headers=LANDLORD,
        json={"decision": {"decision": "approve", "meeting_location": "Lobby, 3rd floor"}},
    )
    assert r.status_code == 200, r.text
    assert r.json()["meeting_location"] == "Lobby, 3rd floor"


def test_timeline_and_audit_reads(client, world):
    r = client.post("/api/applications", headers=TENANT, json={"property_id": world.property_id})
    app_id = r.json()["id"]
    client.post(f"/api/applications/{app_id}/decision", headers=LANDLORD, json={"decision": {"decision": "reject"}})

    r = client.get(f"/api/workflow/events?property_id={world.property_id}", headers=LANDLORD)
    assert r.status_code == 200, r.text
    assert [e["event_type"] for e in r.json()] == ["application.rejected", "application.submitted"]
    assert r.json()[0]["payload"] == {"application_id": app_id}

    r = client.get(f"/api/workflow/events?property_id={world.property_id}", headers=TENANT)
    assert r.status_code == 403

    r = client.get("/api/audit?entity_type=Application", headers=TENANT)
    assert r.status_code == 403

    r = client.get(
        f"/api/audit?entity_type=Application&entity_id={app_id}",
        headers=_headers("admin@t.local", "admin"),
    )
    assert r.status_code == 200, r.text
    latest = r.json()[0]
    assert latest["action"] == "application.reject"
    assert latest["before"]["status"] == "pending"
    assert latest["after"]["status"] == "rejected"


def test_availability_windows_over_http(client, world):
    r = client.post(
        "/api/viewings/availability",
        headers=LANDLORD,
        json={
            "property_id": world.property_id,
            "available_date": "2026-10-25",
            "time_slots": ["10:00-11:00", "14:00-15:00"],
            "max_viewings_per_day": 2,
        },
    )
    assert r.status_code == 200, r.text
    avail_id = r.json()["id"]
    assert r.json()["open_slots"] == ["10:00-11:00", "14:00-15:00"]

    r = client.post(
        "/api/viewings/availability",
        headers=TENANT,
        json={"property_id": world.property_id, "available_date": "2026-10-26", "time_slots": ["09:00"]},
    )
    assert r.status_code == 403

    r = client.post(
        "/api/viewings",
        headers=TENANT,
        json={"property_id": world.property_id, "requested_date": "2026-10-25", "requested_time_slot": "18:00-19:00"},
    )
    assert r.status_code == 412, r.text

    r = client.post(
        "/api/viewings",
        headers=TENANT,
        json={"property_id": world.property_id, "requested_date": "2026-10-25", "requested_time_slot": "14:00-15:00"},
    )
    assert r.status_code == 200, r.text
    r = client.post(
        f"/api/viewings/{r.json()['id']}/decision",
        headers=LANDLORD,
        json={"decision": {"decision": "approve", "meeting_location": "Front door"}},
    )
    assert r.status_code == 200, r.text

    r = client.get(f"/api/viewings/availability/property/{world.property_id}", headers=TENANT)
    assert r.status_code == 200, r.text
    [window] = r.json()
    assert window["booked_slots"] == ["14:00-15:00"]
    assert window["open_slots"] == ["10:00-11:00"]
    assert window["remaining_viewings"] == 1

    r = client.post(f"/api/viewings/availability/{avail_id}/close", headers=LANDLORD)
    assert r.json()["is_open"] is False
    assert client.get(f"/api/viewings/availability/property/{world.property_id}", headers=TENANT).json() == []

    r = client.delete(f"/api/viewings/availability/{avail_id}", headers=LANDLORD)
    assert r.status_code == 204
    assert client.get("/api/viewings/availability/mine", headers=LANDLORD).json() == []
