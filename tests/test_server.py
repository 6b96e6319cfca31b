"""Tests for the websocket bridge."""

import json
import math

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from highway_planner.bridge import MANUAL_MESSAGE, create_app


@pytest.fixture
def client(config, loop_map):
    return TestClient(create_app(config, loop_map))


@pytest.fixture
def telemetry_frame(loop_map):
    x, y = loop_map.to_cartesian(0.0, 6.0)
    data = {
        "x": x, "y": y, "s": 0.0, "d": 6.0,
        "yaw": math.degrees(loop_map.heading_at(0.0)), "speed": 0.0,
        "previous_path_x": [], "previous_path_y": [],
        "end_path_s": 0.0, "end_path_d": 0.0,
        "sensor_fusion": [],
    }
    return "42" + json.dumps(["telemetry", data])


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["tick_count"] == 0
    assert body["lane"] == 1
    assert body["reference_speed"] == 0.0


def test_telemetry_gets_control(client, config, telemetry_frame):
    with client.websocket_connect("/") as websocket:
        websocket.send_text(telemetry_frame)
        reply = websocket.receive_text()

    assert reply.startswith('42["control",')
    _, body = json.loads(reply[2:])
    assert len(body["next_x"]) == config.horizon
    assert len(body["next_y"]) == config.horizon

    health = client.get("/api/health").json()
    assert health["tick_count"] == 1
    assert health["reference_speed"] == pytest.approx(config.accel_step)


def test_state_survives_reconnect(client, config, telemetry_frame):
    for _ in range(2):
        with client.websocket_connect("/socket.io/") as websocket:
            websocket.send_text(telemetry_frame)
            websocket.receive_text()

    health = client.get("/api/health").json()
    assert health["tick_count"] == 2
    assert health["reference_speed"] == pytest.approx(2 * config.accel_step)

    assert client.post("/api/reset").json() == {"status": "reset"}
    assert client.get("/api/health").json()["tick_count"] == 0


def test_ping_and_empty_frames(client):
    with client.websocket_connect("/") as websocket:
        websocket.send_text("2")
        assert websocket.receive_text() == "3"

        websocket.send_text('42["telemetry",null]')
        assert websocket.receive_text() == MANUAL_MESSAGE

    assert client.get("/api/health").json()["tick_count"] == 0


def test_planning_error_answered_with_manual(client, telemetry_frame):
    session = client.app.state.session
    with patch.object(session, "step", side_effect=RuntimeError("spline fit failed")):
        with client.websocket_connect("/") as websocket:
            websocket.send_text(telemetry_frame)
            assert websocket.receive_text() == MANUAL_MESSAGE

            # The connection stays open
            websocket.send_text("2")
            assert websocket.receive_text() == "3"
