"""Bridge between the highway simulator and the planner."""

from .protocol import (
    MANUAL_MESSAGE,
    ProtocolError,
    parse_message,
    telemetry_from_json,
    control_message,
    handle_message,
)
from .server import create_app, run_server

__all__ = [
    'MANUAL_MESSAGE',
    'ProtocolError',
    'parse_message',
    'telemetry_from_json',
    'control_message',
    'handle_message',
    'create_app',
    'run_server',
]
