# tests/test_health.py
from fastapi.testclient import TestClient


def test_health_reports_ok(client: TestClient) -> None:
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_root_describes_api(client: TestClient) -> None:
    """Root endpoint advertises the service name and docs location."""
    r = client.get("/")
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "Looks Ledger"
    assert body["docs"] == "/docs"


def test_unknown_route_uses_error_envelope(client: TestClient) -> None:
    r = client.get("/api/v1/nope")
    assert r.status_code == 404
    assert r.json() == {"error": "Not Found"}
