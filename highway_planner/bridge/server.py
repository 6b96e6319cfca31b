"""FastAPI websocket endpoint for the driving simulator.

The simulator connects over a websocket and pushes one telemetry frame per
tick. Every frame is answered on the same socket by
:func:`~highway_planner.bridge.protocol.handle_message`. A single
:class:`PlanningSession` lives for the whole process, so the planner state
survives reconnects unless the session is reset explicitly.
"""

from typing import Optional

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from loguru import logger

from ..config import PlannerConfig
from ..core.data_structures import PlannerState
from ..core.waypoint_map import WaypointMap
from ..planning.motion_planner import MotionPlanner, PlanningSession
from .protocol import MANUAL_MESSAGE, handle_message


# engine.io keep-alive frames
PING_FRAME = "2"
PONG_FRAME = "3"


def create_app(config: PlannerConfig, waypoint_map: Optional[WaypointMap] = None) -> FastAPI:
    """Build the bridge application.

    Args:
        config: Planner configuration
        waypoint_map: Track to plan on; built from ``config`` when omitted

    Returns:
        FastAPI application with the websocket and health endpoints
    """
    if waypoint_map is None:
        waypoint_map = WaypointMap.from_config(config)

    planner = MotionPlanner.from_config(config, waypoint_map)
    session = PlanningSession(planner, PlannerState.initial(config.initial_lane))

    app = FastAPI(title="Highway Planner Bridge")
    app.state.session = session

    async def simulator_socket(websocket: WebSocket):
        await websocket.accept()
        logger.info(f"Simulator connected from {websocket.client}")
        try:
            while True:
                text = await websocket.receive_text()
                if text == PING_FRAME:
                    await websocket.send_text(PONG_FRAME)
                    continue

                try:
                    reply = handle_message(session, text)
                except Exception:
                    logger.exception(f"Planning failed after {session.tick_count} ticks, replying manual")
                    reply = MANUAL_MESSAGE
                if reply is not None:
                    await websocket.send_text(reply)
        except WebSocketDisconnect as e:
            logger.info(
                f"Simulator disconnected (code {e.code}) after {session.tick_count} ticks"
            )

    app.add_api_websocket_route("/", simulator_socket)
    app.add_api_websocket_route("/socket.io/", simulator_socket)

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "tick_count": session.tick_count,
            "lane": session.state.lane,
            "reference_speed": session.state.reference_speed,
        }

    @app.post("/api/reset")
    async def reset_session():
        """Put the planner back into its initial state."""
        session.reset()
        return {"status": "reset"}

    return app


def run_server(config: PlannerConfig, waypoint_map: Optional[WaypointMap] = None):
    """Serve the bridge until interrupted."""
    app = create_app(config, waypoint_map)
    logger.info(f"Listening for the simulator on ws://{config.host}:{config.port}")
    uvicorn.run(app, host=config.host, port=config.port, log_level="warning")
