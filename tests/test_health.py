def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert isinstance(data.get("version"), str)
    assert "timestamp" in data


def test_detailed_health_reports_database(client):
    resp = client.get("/health/detailed")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["database"] == {"dialect": "sqlite", "reachable": True}
    assert data["environment"]["traceability_enabled"] is True
    assert "memory_percent" in data["system"]


def test_security_headers(client):
    resp = client.get("/health")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
