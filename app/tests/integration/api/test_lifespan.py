import pytest
from fastapi.testclient import TestClient

from server.server import create_app

pytestmark = pytest.mark.integration


def test_lifespan_starts_and_stops_engine():
    app = create_app()

    with TestClient(app) as client:
        engine = app.state.engine
        assert engine.running
        assert client.get("/health").json() == {"status": "ok", "engine_running": True}

    assert not engine.running


def test_autostart_disabled(monkeypatch):
    monkeypatch.setenv("ENGINE_AUTOSTART", "false")
    app = create_app()

    with TestClient(app) as client:
        assert not app.state.engine.running
        assert client.get("/health").json()["engine_running"] is False
