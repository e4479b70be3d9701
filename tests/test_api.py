"""HTTP surface of both services through FastAPI's TestClient."""

import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from tutorhub.services.parent_calls.main import create_app as create_parent_calls_app
from tutorhub.services.payments.main import create_app as create_payments_app
from tutorhub.services.payments.models import Payment
from tutorhub.services.payments.signature import compute_signature

from conftest import WEBHOOK_SECRET


@pytest.fixture()
def payments_client(session_factory):
    with TestClient(create_payments_app(session_factory, webhook_secret=WEBHOOK_SECRET)) as client:
        yield client


@pytest.fixture()
def calls_client(session_factory, clock):
    with TestClient(create_parent_calls_app(session_factory, clock=clock)) as client:
        yield client


def _post_webhook(client, document, signature=None, event_id=None):
    body = json.dumps(document).encode("utf-8")
    headers = {
        "content-type": "application/json",
        "x-razorpay-signature": signature if signature is not None else compute_signature(body, WEBHOOK_SECRET),
    }
    if event_id:
        headers["x-razorpay-event-id"] = event_id
    return client.post("/webhooks/razorpay", content=body, headers=headers)


def test_webhook_missing_payment_acknowledged(payments_client, session_factory):
    """Signed capture for a payment we never stored: 200, no row created."""

    resp = _post_webhook(
        payments_client,
        {"event": "payment.captured", "payload": {"payment": {"entity": {"id": "pay_1", "notes": {}}}}},
    )

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    with session_factory() as db:
        assert db.execute(select(Payment)).first() is None


def test_webhook_bad_signature_is_400(payments_client, seed_payment):
    seed_payment("pay_1")
    resp = _post_webhook(
        payments_client,
        {"event": "payment.captured", "payload": {"payment": {"entity": {"id": "pay_1"}}}},
        signature="deadbeef",
    )

    assert resp.status_code == 400
    assert resp.json()["detail"]["error"] == "invalid_signature"
    assert payments_client.get("/payments/pay_1").json()["status"] == "created"


def test_webhook_malformed_body_is_400(payments_client):
    body = b"{not json"
    resp = payments_client.post(
        "/webhooks/razorpay",
        content=body,
        headers={"x-razorpay-signature": compute_signature(body, WEBHOOK_SECRET)},
    )

    assert resp.status_code == 400
    assert resp.json()["detail"]["error"] == "malformed_payload"


def test_webhook_capture_then_read(payments_client, seed_payment):
    seed_payment("pay_9", amount=129900)
    document = {
        "event": "payment.captured",
        "created_at": 1792000000,
        "payload": {"payment": {"entity": {"id": "pay_9", "amount": 129900}}},
    }

    for _ in range(3):
        assert _post_webhook(payments_client, document, event_id="evt_9").status_code == 200

    payment = payments_client.get("/payments/pay_9").json()
    assert payment["status"] == "captured"
    assert payment["amount"] == 129900
    assert payment["captured_at"] is not None


def test_unknown_payment_read_is_404(payments_client):
    assert payments_client.get("/payments/pay_nope").status_code == 404


def test_health_and_metrics(payments_client):
    assert payments_client.get("/health").json() == {"ok": True}
    metrics = payments_client.get("/metrics")
    assert metrics.status_code == 200
    assert "http_requests_total" in metrics.text


def test_parent_call_flow(calls_client, seed_enrollment, set_call_max):
    enrollment_id = seed_enrollment()
    set_call_max(1)

    created = calls_client.post("/parent-calls/request", json={"enrollment_id": enrollment_id, "notes": "hi"})
    assert created.status_code == 201
    call = created.json()
    assert call["status"] == "scheduled"

    rejected = calls_client.post("/parent-calls/request", json={"enrollment_id": enrollment_id})
    assert rejected.status_code == 429
    detail = rejected.json()["detail"]
    assert detail["error"] == "quota_exceeded"
    assert detail["quota"] == {"used": 1, "max": 1, "remaining": 0}

    listing = calls_client.get(f"/parent-calls/{enrollment_id}").json()
    assert [c["call_id"] for c in listing["calls"]] == [call["call_id"]]
    assert listing["quota"] == {"used": 1, "max": 1, "remaining": 0}

    completed = calls_client.post(f"/parent-calls/{call['call_id']}/complete", json={"notes": "went well"})
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"
    assert completed.json()["completed_at"] is not None

    again = calls_client.post(f"/parent-calls/{call['call_id']}/complete")
    assert again.status_code == 409
    assert again.json()["detail"]["error"] == "invalid_state_transition"


def test_cancel_then_complete_is_409(calls_client, seed_enrollment):
    enrollment_id = seed_enrollment()
    call = calls_client.post("/parent-calls/request", json={"enrollment_id": enrollment_id}).json()

    cancelled = calls_client.post(f"/parent-calls/{call['call_id']}/cancel", json={"reason": "travelling"})
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    resp = calls_client.post(f"/parent-calls/{call['call_id']}/complete", json={})
    assert resp.status_code == 409
    assert calls_client.get(f"/parent-calls/{enrollment_id}").json()["quota"]["used"] == 0


def test_unknown_enrollment_is_404(calls_client):
    resp = calls_client.post("/parent-calls/request", json={"enrollment_id": "enr_missing"})
    assert resp.status_code == 404
    assert resp.json()["detail"]["error"] == "not_found"


def test_invalid_initiator_is_422(calls_client, seed_enrollment):
    resp = calls_client.post(
        "/parent-calls/request", json={"enrollment_id": seed_enrollment(), "initiated_by": "admin"}
    )
    assert resp.status_code == 422
