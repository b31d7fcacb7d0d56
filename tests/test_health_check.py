"""
Tests for the health check endpoint
"""


def test_health_check_returns_empty_200(client):
    response = client.get("/health_check")

    assert response.status_code == 200
    assert response.content == b""


def test_health_check_sets_correlation_id_header(client):
    response = client.get("/health_check")

    assert response.headers.get("X-Request-ID")
