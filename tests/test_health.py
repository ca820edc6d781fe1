def test_health_endpoints(client):
    assert client.get("/api/health").json() == {"status": "ok"}
    assert client.get("/api/healthz").json() == {"ok": True}

    r = client.get("/api/readyz")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_request_id_is_generated_and_echoed(client):
    r = client.get("/api/health")
    assert r.headers.get("x-request-id")

    r = client.get("/api/health", headers={"X-Request-ID": "abc-123"})
    assert r.headers["x-request-id"] == "abc-123"


def test_error_payload_carries_request_id(client):
    r = client.get("/api/me", headers={"X-Request-ID": "trace-9"})
    assert r.status_code == 401
    assert r.json()["error"]["request_id"] == "trace-9"


def test_security_headers_present(client):
    r = client.get("/api/health")
    assert r.headers.get("x-content-type-options") == "nosniff"
