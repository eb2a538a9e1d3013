def test_health_endpoint_returns_ok(api_client):
    """Test health endpoint returns 200 with status ok."""
    response = api_client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "cache": "ok", "backgroundRefreshes": 0}


def test_health_reports_degraded_cache(api_client, cache_service):
    """An open circuit breaker means the in-memory fallback is serving."""
    cache_service.circuit_breaker.open()

    response = api_client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json()["cache"] == "degraded"
