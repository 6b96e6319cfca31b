"""Simulator message framing.

The simulator speaks socket.io over a websocket. Event frames start with
``42`` (``4`` message, ``2`` event) followed by a JSON array
``["<event>", {...}]``. Telemetry events are answered with a ``control``
event carrying the next trajectory; frames without a payload get the
``manual`` acknowledgement and never reach the planner.
"""

import json
import math
from typing import Any, Optional, Tuple, TYPE_CHECKING

from loguru import logger

from ..config import MPH_TO_MPS
from ..core.data_structures import (
    EgoState,
    RetainedPath,
    Telemetry,
    Trajectory,
    VehicleObservation,
)

if TYPE_CHECKING:
    from ..planning.motion_planner import PlanningSession


EVENT_PREFIX = "42"
MANUAL_MESSAGE = '42["manual",{}]'
TELEMETRY_EVENT = "telemetry"
CONTROL_EVENT = "control"


class ProtocolError(ValueError):
    """Raised when a simulator message cannot be decoded."""
    pass


def extract_payload(text: str) -> Optional[str]:
    """JSON array inside an event frame, or None when there is no payload."""
    if "null" in text:
        return None
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end < start:
        return None
    return text[start:end + 1]


def parse_message(text: str) -> Optional[Tuple[str, Any]]:
    """Split an event frame into event name and data.

    Args:
        text: Raw websocket text

    Returns:
        (event, data), or None when the frame has no payload

    Raises:
        ProtocolError: If the frame is not an event or the JSON is invalid
    """
    if len(text) <= len(EVENT_PREFIX) or not text.startswith(EVENT_PREFIX):
        raise ProtocolError(f"Not an event frame: {text[:20]!r}")

    payload = extract_payload(text)
    if payload is None:
        return None

    try:
        message = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Invalid JSON payload: {e}") from e

    if not isinstance(message, list) or not message or not isinstance(message[0], str):
        raise ProtocolError(f"Event payload must be [name, data], got {payload[:40]!r}")

    data = message[1] if len(message) > 1 else None
    return message[0], data


def telemetry_from_json(data: Any) -> Telemetry:
    """Decode a telemetry event body.

    The simulator reports yaw in degrees and ego speed in mph; the planner
    works in radians and m/s.

    Raises:
        ProtocolError: On missing or malformed fields
    """
    if not isinstance(data, dict):
        raise ProtocolError(f"Telemetry must be an object, got {type(data).__name__}")

    try:
        ego = EgoState(
            x=float(data["x"]),
            y=float(data["y"]),
            s=float(data["s"]),
            d=float(data["d"]),
            yaw=math.radians(float(data["yaw"])),
            speed=float(data["speed"]) * MPH_TO_MPS,
        )
        retained = RetainedPath(
            x=[float(v) for v in data.get("previous_path_x", [])],
            y=[float(v) for v in data.get("previous_path_y", [])],
            end_s=float(data.get("end_path_s", 0.0)),
            end_d=float(data.get("end_path_d", 0.0)),
        )
        vehicles = [
            VehicleObservation.from_row(row)
            for row in data.get("sensor_fusion", [])
        ]
    except (KeyError, TypeError, ValueError, IndexError) as e:
        raise ProtocolError(f"Malformed telemetry: {e!r}") from e

    return Telemetry(ego=ego, retained_path=retained, vehicles=vehicles)


def control_message(trajectory: Trajectory) -> str:
    """Encode a trajectory as a ``control`` event frame."""
    next_x, next_y = trajectory.to_lists()
    body = json.dumps([CONTROL_EVENT, {"next_x": next_x, "next_y": next_y}])
    return EVENT_PREFIX + body


def handle_message(session: 'PlanningSession', text: str) -> Optional[str]:
    """Answer one simulator frame.

    Args:
        session: Planning session owning the planner state
        text: Raw websocket text

    Returns:
        Reply frame, or None when the frame needs no reply
    """
    if len(text) <= len(EVENT_PREFIX) or not text.startswith(EVENT_PREFIX):
        return None

    try:
        parsed = parse_message(text)
    except ProtocolError as e:
        logger.warning(f"Dropping frame: {e}")
        return MANUAL_MESSAGE

    if parsed is None:
        return MANUAL_MESSAGE

    event, data = parsed
    if event != TELEMETRY_EVENT:
        logger.debug(f"Ignoring event {event!r}")
        return None

    try:
        telemetry = telemetry_from_json(data)
    except ProtocolError as e:
        logger.warning(f"Telemetry rejected, planner state untouched: {e}")
        return MANUAL_MESSAGE

    trajectory = session.step(telemetry)
    return control_message(trajectory)
