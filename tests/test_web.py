"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from jitphone.config import Settings
from jitphone.service import TransformationService
from web.backend.app.main import app
from web.backend.app.routers.jit import get_service

POINT_SWIFT = """
struct Point {
    var x: Double
    var y: Double
}
"""

WAT_ADD = """
(module
  (func $add (param $a i32) (param $b i32) (result i32)
    local.get $a
    local.get $b
    i32.add))
"""


def _client_for(service):
    app.dependency_overrides[get_service] = lambda: service
    return TestClient(app)


@pytest.fixture
def client():
    yield _client_for(TransformationService(settings=Settings()))
    app.dependency_overrides.clear()


# --- Meta ---


def test_root_and_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").json()["name"] == "jitphone API"


# --- Compile ---


def test_compile(client):
    body = {"source": POINT_SWIFT, "dialect": "swift", "target_profile": "webview"}
    response = client.post("/jit/compile", json=body)
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["compatibility_verdict"]["compatible"] is True
    assert data["metadata"]["target_profile"] == "web-rendering-host"
    assert data["metadata"]["cache_hit"] is False

    again = client.post("/jit/compile", json=body).json()
    assert again["metadata"]["cache_hit"] is True


def test_compile_error_statuses(client):
    unknown_dialect = client.post("/jit/compile", json={"source": "x", "dialect": "cobol"})
    assert unknown_dialect.status_code == 400
    assert unknown_dialect.json()["kind"] == "unsupported_format"

    unknown_profile = client.post("/jit/compile", json={"source": "x", "dialect": "js", "target_profile": "nope"})
    assert unknown_profile.status_code == 404
    assert unknown_profile.json()["kind"] == "unknown_profile"

    bad_level = client.post("/jit/compile", json={"source": "x", "dialect": "js", "optimization_level": 7})
    assert bad_level.status_code == 422


def test_compile_size_limit():
    client = _client_for(TransformationService(settings=Settings(max_input_size=10)))
    try:
        response = client.post("/jit/compile", json={"source": "x" * 11, "dialect": "js"})
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 413
    assert response.json() == {"kind": "size_limit", "message": "Input size 11 exceeds maximum of 10 characters"}


# --- Convert / execute / analyze ---


def test_convert(client):
    response = client.post("/jit/convert", json={"instructions": WAT_ADD, "source_format": "wasm"})
    assert response.status_code == 200
    data = response.json()
    assert data["functions"][0]["name"] == "add"
    assert "var t0 = a + b;" in data["generated_code"]


def test_execute(client):
    ok = client.post("/jit/execute", json={"code": "return 2 * 21;"}).json()
    assert ok["success"] is True
    assert ok["result"] == 42

    failed = client.post("/jit/execute", json={"code": "throw new Error('x');"})
    assert failed.status_code == 200
    assert failed.json()["error"]["kind"] == "execution"


def test_analyze(client):
    data = client.post("/jit/analyze", json={"code": "eval(x);"}).json()
    assert data["security"]["score"] == 70
    assert data["compatibility"]["compatible"] is False


# --- Introspection ---


def test_formats_and_profiles(client):
    formats = client.get("/jit/formats").json()
    assert "swift" in formats["dialects"]
    assert len(formats["instruction_formats"]) == 9

    profiles = client.get("/jit/profiles").json()
    assert [p["name"] for p in profiles] == ["embedded-automation-host", "web-rendering-host", "minimal-script-host"]


def test_stats_and_clear_cache(client):
    client.post("/jit/compile", json={"source": "var x = 1;", "dialect": "js"})
    stats = client.get("/jit/stats").json()
    assert stats["caches"][0]["misses"] == 1

    assert client.delete("/jit/cache").json() == {"cleared": True}
    assert client.get("/jit/stats").json()["caches"][0]["size"] == 0
