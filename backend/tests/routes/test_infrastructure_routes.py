"""Health and metrics endpoints."""

from contextlib import contextmanager
from unittest.mock import patch


def test_health_reports_database(client, db):
    @contextmanager
    def _session():
        yield db

    with patch("app.routes.v1.health.get_db_session", _session):
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] is True


def test_health_degrades_when_database_fails(client):
    @contextmanager
    def _broken():
        raise RuntimeError("connection refused")
        yield

    with patch("app.routes.v1.health.get_db_session", _broken):
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "degraded"


def test_prometheus_exposition(client, as_member, at):
    client.post(
        "/api/v1/reservations",
        json={"reserved_at": at(14).isoformat(), "reserved_until": at(16).isoformat()},
        headers=as_member,
    )

    response = client.get("/metrics/prometheus")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "practice_space_reservations_total" in response.text
