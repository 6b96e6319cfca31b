"""Tests for simulator message framing."""

import json
import math
from unittest.mock import Mock

import pytest

from highway_planner.bridge import (
    MANUAL_MESSAGE,
    ProtocolError,
    control_message,
    handle_message,
    parse_message,
    telemetry_from_json,
)
from highway_planner.bridge.protocol import extract_payload
from highway_planner.core import Trajectory


@pytest.fixture
def telemetry_data():
    return {
        "x": 909.48, "y": 1128.67, "s": 124.83, "d": 6.16,
        "yaw": 90.0, "speed": 22.4,
        "previous_path_x": [910.0, 910.5], "previous_path_y": [1129.0, 1129.1],
        "end_path_s": 126.0, "end_path_d": 6.0,
        "sensor_fusion": [[0, 1000.0, 1130.0, 10.0, 0.0, 200.0, 2.0]],
    }


def frame(event, data):
    return "42" + json.dumps([event, data])


def test_extract_payload():
    assert extract_payload('42["telemetry",{"a":1}]') == '["telemetry",{"a":1}]'
    assert extract_payload('42["telemetry",null]') is None
    assert extract_payload('42') is None


def test_parse_message():
    assert parse_message('42["manual",{}]') == ("manual", {})
    assert parse_message('42["telemetry",null]') is None

    with pytest.raises(ProtocolError):
        parse_message('0{"sid":"abc"}')
    with pytest.raises(ProtocolError):
        parse_message('42["telemetry",{bad json}]')
    with pytest.raises(ProtocolError):
        parse_message('42[1, 2]')


def test_telemetry_units(telemetry_data):
    telemetry = telemetry_from_json(telemetry_data)

    assert telemetry.ego.yaw == pytest.approx(math.pi / 2)
    assert telemetry.ego.speed == pytest.approx(10.0)
    assert len(telemetry.retained_path) == 2
    assert telemetry.retained_path.end_s == 126.0
    assert telemetry.planning_s == 126.0

    vehicle = telemetry.vehicles[0]
    assert vehicle.id == 0
    assert vehicle.speed == pytest.approx(10.0)
    assert vehicle.d == 2.0


def test_telemetry_errors(telemetry_data):
    with pytest.raises(ProtocolError):
        telemetry_from_json([1, 2, 3])

    missing = dict(telemetry_data)
    del missing["x"]
    with pytest.raises(ProtocolError):
        telemetry_from_json(missing)

    short_row = dict(telemetry_data, sensor_fusion=[[0, 1.0, 2.0]])
    with pytest.raises(ProtocolError):
        telemetry_from_json(short_row)

    uneven = dict(telemetry_data, previous_path_y=[1.0])
    with pytest.raises(ProtocolError):
        telemetry_from_json(uneven)


def test_control_message():
    message = control_message(Trajectory(x=[1.0, 2.0], y=[3.0, 4.0]))
    assert message.startswith('42["control",')
    event, body = json.loads(message[2:])
    assert event == "control"
    assert body == {"next_x": [1.0, 2.0], "next_y": [3.0, 4.0]}


def test_handle_telemetry(telemetry_data):
    session = Mock()
    session.step.return_value = Trajectory(x=[1.0, 2.0], y=[3.0, 4.0])

    reply = handle_message(session, frame("telemetry", telemetry_data))

    session.step.assert_called_once()
    assert reply == control_message(session.step.return_value)


def test_handle_without_payload():
    session = Mock()
    assert handle_message(session, '42["telemetry",null]') == MANUAL_MESSAGE
    session.step.assert_not_called()


def test_handle_malformed_telemetry_leaves_state(telemetry_data):
    session = Mock()
    del telemetry_data["speed"]
    assert handle_message(session, frame("telemetry", telemetry_data)) == MANUAL_MESSAGE
    assert handle_message(session, '42["telemetry",{oops]') == MANUAL_MESSAGE
    session.step.assert_not_called()


def test_handle_ignores_other_frames():
    session = Mock()
    assert handle_message(session, '0{"sid":"abc"}') is None
    assert handle_message(session, '42') is None
    assert handle_message(session, frame("reset", {})) is None
    session.step.assert_not_called()
