from fastapi.testclient import TestClient
from expense_tracker.main import app
from expense_tracker.core.config import settings

client = TestClient(app)

ALLOWED_ORIGIN = "http://localhost:5173"

def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}

def test_response_time_header():
    response = client.get("/health")
    assert response.headers["X-Response-Time"].endswith("ms")

def test_client_routes_fall_back_to_entry_document():
    for path in ["/", "/expenses", "/expenses/42", "/some/deep/client/route"]:
        response = client.get(path)
        assert response.status_code == 200, path
        assert response.headers["content-type"].startswith("text/html")
        assert '<div id="root"></div>' in response.text
        assert settings.PROJECT_NAME in response.text

def test_unknown_api_route_is_json_404():
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"detail": "Not Found"}

def test_existing_static_file_is_served(tmp_path, monkeypatch):
    (tmp_path / "assets").mkdir()
    (tmp_path / "assets" / "index.js").write_text("console.log('hi')")
    monkeypatch.setattr(settings, "STATIC_DIR", str(tmp_path))

    response = client.get("/assets/index.js")
    assert response.status_code == 200
    assert response.text == "console.log('hi')"

    # Missing assets still get the SPA document
    assert '<div id="root"></div>' in client.get("/assets/missing.js").text

def test_static_lookup_does_not_escape_root(tmp_path, monkeypatch):
    public = tmp_path / "public"
    public.mkdir()
    (tmp_path / "secret.txt").write_text("nope")
    monkeypatch.setattr(settings, "STATIC_DIR", str(public))

    response = client.get("/..%2Fsecret.txt")
    assert "nope" not in response.text

def test_cors_preflight_allowed_origin():
    response = client.options("/api/expenses", headers={
        "Origin": ALLOWED_ORIGIN,
        "Access-Control-Request-Method": "POST",
        "Access-Control-Request-Headers": "Content-Type",
    })
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == ALLOWED_ORIGIN
    assert "PATCH" in response.headers["access-control-allow-methods"]

def test_cors_preflight_rejects_unknown_origin():
    response = client.options("/api/expenses", headers={
        "Origin": "http://evil.example",
        "Access-Control-Request-Method": "DELETE",
    })
    assert response.status_code == 400
    assert "access-control-allow-origin" not in response.headers

def test_cors_preflight_rejects_undeclared_header():
    response = client.options("/api/expenses", headers={
        "Origin": ALLOWED_ORIGIN,
        "Access-Control-Request-Method": "POST",
        "Access-Control-Request-Headers": "X-Custom",
    })
    assert response.status_code == 400

def test_cors_headers_only_on_api_paths():
    api = client.get("/api/expenses", headers={"Origin": ALLOWED_ORIGIN})
    assert api.headers["access-control-allow-origin"] == ALLOWED_ORIGIN

    health = client.get("/health", headers={"Origin": ALLOWED_ORIGIN})
    assert "access-control-allow-origin" not in health.headers
