import uuid

from fastapi.testclient import TestClient

from frontdesk.main import app


def test_error_responses_include_request_id_in_body_and_header():
    client = TestClient(app)

    r = client.get("/this-route-does-not-exist")
    assert r.status_code == 404

    payload = r.json()
    assert "request_id" in payload
    assert payload["request_id"], payload

    assert r.headers.get("x-request-id") == payload["request_id"]


def test_queue_errors_use_the_same_envelope_and_reuse_caller_request_id():
    client = TestClient(app)

    r = client.post(f"/api/v1/queue/{uuid.uuid4()}/cancel", headers={"X-Request-ID": "req-123"})
    assert r.status_code == 404

    payload = r.json()
    assert payload["request_id"] == "req-123"
    assert payload["detail"] == "Queue entry not found"
    assert r.headers.get("x-request-id") == "req-123"


def test_request_validation_errors_use_the_envelope():
    client = TestClient(app)

    r = client.get("/api/v1/queue/history", params={"page": 0})
    assert r.status_code == 422

    payload = r.json()
    assert isinstance(payload["detail"], list)
    assert payload["request_id"]
