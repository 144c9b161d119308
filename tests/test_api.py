from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from pawtrack.api.main import app
from pawtrack.api.services import state
from pawtrack.core.config.settings import PawSettings


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(state, "_settings", PawSettings(bed_zone=(100.0, 200.0)))
    monkeypatch.setattr(state, "_zones", None)
    monkeypatch.setattr(state, "_override", None)
    monkeypatch.setattr(state, "_broadcaster", None)
    monkeypatch.setattr(state, "_camera", None)
    with TestClient(app) as c:
        yield c


def _activity(**overrides):
    payload = {
        "petName": "Rex",
        "activity": "Walking",
        "confidence": 0.7,
        "movement": 12.5,
        "timestamp": 1_700_000_000_000,
        "position": {"centerX": 10, "centerY": 20},
    }
    payload.update(overrides)
    return {"event": "pet-activity", "data": payload}


def test_health_endpoint(client: TestClient):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok", "broadcaster": True}


def test_zones_seeded_from_settings_and_updatable(client: TestClient):
    assert client.get("/zones").json() == {"bed": {"x": 100.0, "y": 200.0}}

    res = client.put("/zones/food", json={"x": 5, "y": 6})
    assert res.status_code == 200
    assert client.get("/zones").json()["food"] == {"x": 5.0, "y": 6.0}


def test_unknown_zone_is_404(client: TestClient):
    assert client.put("/zones/litter", json={"x": 1, "y": 1}).status_code == 404


def test_override_endpoints(client: TestClient):
    assert client.get("/override").json() == {"enabled": False, "activity": None}

    res = client.post("/override", json={"enabled": True, "activity": "Drinking"})
    assert res.json() == {"enabled": True, "activity": "Drinking"}

    res = client.post("/override/key/2")
    assert res.json() == {"enabled": True, "activity": "Running/Playing"}

    res = client.post("/override/key/0")
    assert res.json() == {"enabled": False, "activity": None}

    assert client.post("/override/key/x").status_code == 404
    assert client.post("/override", json={"enabled": True, "activity": "Flying"}).status_code == 422
    assert client.post("/override", json={"enabled": True, "activity": "Unknown"}).status_code == 422


def test_config_roundtrip_and_validation(client: TestClient, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(state, "load_settings", lambda: PawSettings())
    cfg = client.get("/config").json()
    assert cfg["pet_name"] == "My Dog"

    cfg["pet_name"] = "Biscuit"
    res = client.post("/config", json=cfg)
    assert res.status_code == 200
    assert res.json()["pet_name"] == "Biscuit"

    cfg["confidence"] = 1.2
    assert client.post("/config", json=cfg).status_code == 422


def test_camera_start_failure_is_503(client: TestClient, monkeypatch: pytest.MonkeyPatch):
    class BrokenSession:
        def __init__(self, *_a, **_k):
            self.running = False
            self.last_error = "Failed to open video source: permission denied"
            self.source_id = "camera-x"

        def start(self):
            return False

        def stop(self):
            pass

    monkeypatch.setattr(state, "CameraSession", BrokenSession)
    res = client.post("/camera/start")
    assert res.status_code == 503
    assert "permission denied" in res.json()["detail"]


def test_camera_status_without_session(client: TestClient):
    res = client.get("/camera/status")
    assert res.status_code == 200
    assert res.json()["running"] is False


def test_websocket_ingest_snapshot_and_disconnect(client: TestClient):
    with client.websocket_connect("/ws") as dashboard:
        dashboard.send_json({"event": "request-pet-activities"})
        assert dashboard.receive_json() == {
            "event": "pet-activities-update",
            "data": {"current": [], "history": []},
        }

        with client.websocket_connect("/ws") as camera:
            camera.send_json(_activity())
            update = dashboard.receive_json()["data"]
            assert len(update["current"]) == 1
            assert update["current"][0]["petName"] == "Rex"
            assert update["current"][0]["activity"] == "Walking"
            assert update["current"][0]["position"] == {"centerX": 10.0, "centerY": 20.0}
            assert len(update["history"]) == 1
            # The sender receives the broadcast too.
            assert camera.receive_json()["data"] == update

            stats = client.get("/activities/stats").json()
            assert stats["statistics"]["Rex"]["total"] == 1
            assert stats["statistics"]["Rex"]["avg_confidence"] == 70.0
            assert stats["timeline"][0]["activity"] == "Walking"

        after = dashboard.receive_json()["data"]
        assert after["current"] == []
        assert len(after["history"]) == 1

    snapshot = client.get("/activities").json()
    assert snapshot["current"] == []
    assert snapshot["history"][0]["petName"] == "Rex"


def test_websocket_drops_malformed_events(client: TestClient):
    with client.websocket_connect("/ws") as ws:
        ws.send_json(_activity(confidence=1.5))
        ws.send_json(_activity(movement=-1))
        ws.send_json(_activity(activity="Dancing"))
        ws.send_json({"event": "pet-activity"})
        ws.send_json({"event": "request-pet-activities"})
        assert ws.receive_json()["data"] == {"current": [], "history": []}


def test_config_update_applies_history_bounds_and_zone_seeds(client: TestClient, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(state, "load_settings", lambda: PawSettings())
    cfg = client.get("/config").json()
    cfg.update({"snapshot_history": 1, "food_zone": [12, 34]})
    assert client.post("/config", json=cfg).status_code == 200

    assert client.get("/zones").json()["food"] == {"x": 12.0, "y": 34.0}

    with client.websocket_connect("/ws") as ws:
        ws.send_json(_activity(timestamp=1))
        ws.receive_json()
        ws.send_json(_activity(timestamp=2))
        history = ws.receive_json()["data"]["history"]
    assert [e["timestamp"] for e in history] == [2]
