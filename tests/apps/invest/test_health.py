from unittest.mock import AsyncMock, patch


async def test_health(client):
    response = await client.get("/api/v1/invest/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "invest-api", "version": "1.0.0"}


async def test_security_headers(client):
    response = await client.get("/api/v1/invest/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


@patch("apps.invest.routes.health.redis_health_check", new_callable=AsyncMock)
async def test_redis_health(mock_check, client):
    mock_check.return_value = False
    response = await client.get("/api/v1/invest/health/redis")
    assert response.status_code == 503
    assert response.json()["status"] == "unavailable"

    mock_check.return_value = True
    response = await client.get("/api/v1/invest/health/redis")
    assert response.status_code == 200
