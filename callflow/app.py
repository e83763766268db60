"""FastAPI application: HTTP + WebSocket endpoints for appointment calls.

Endpoints:

  GET  /health                                  Health check
  GET  /api/workflow                            State/action registry dump
  POST /api/calls                               Create a call session (returns call request)
  GET  /api/calls                               List active call sessions
  GET  /api/calls/{id}                          Call detail (record, instruction, events)
  DEL  /api/calls/{id}                          Drop a call session
  GET  /api/calls/{id}/actions                  Actions legal in the current state
  POST /api/calls/{id}/actions                  Operator: apply an action locally
  POST /api/calls/{id}/reset                    Operator: restart from the Initial state
  POST /api/calls/{id}/wrap-up                  Operator: "wrap it up" instruction
  POST /api/calls/{id}/tools/updateState        Agent tool bridge
  POST /api/calls/{id}/tools/checkDesiredDate   Agent tool bridge
  WS   /api/calls/{id}/debug                    Live debug event stream

The call flow:
  1. Operator POSTs the appointment details to /api/calls
  2. The response carries the call request (system prompt, first
     instruction, tool definitions) for the voice client
  3. The voice client relays every agent tool call to /tools/*
  4. Operators watch /debug and may step in via /actions
"""

from __future__ import annotations

# Load .env into os.environ before settings are read.
from dotenv import load_dotenv
load_dotenv()

import logging
import time
from typing import Any

from fastapi import Depends, FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from callflow.config import settings

# Configure root logger early so all callflow.* loggers have a handler
# when run via `uvicorn callflow.app:app`.
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from callflow.auth import require_admin_token, require_admin_ws
from callflow.debug_events import get_broadcaster, remove_broadcaster
from callflow.errors import InvalidTransition
from callflow.models.appointment import AppointmentDetails
from callflow.session import (
    CallSession,
    get_active_sessions,
    get_session,
    register_session,
    unregister_session,
)
from callflow.workflows.appointment_confirmation import (
    action_descriptions_for,
    workflow_summary,
)

log = logging.getLogger("callflow.app")

_START_TIME = time.time()


def _not_found() -> JSONResponse:
    return JSONResponse({"error": "Session not found"}, status_code=404)


def _session_payload(session: CallSession) -> dict[str, Any]:
    """Response body after a state change."""
    return {
        "session_id": session.session_id,
        "conversation": session.conversation_state.to_record(),
        "available_actions": session.available_actions,
        "instruction": session.current_instruction(),
        "is_done": session.is_done,
    }


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    for warning in settings.validate_startup():
        log.warning(warning)

    app = FastAPI(
        title="Appointment Call Controller",
        description="State-machine controller for appointment confirmation calls",
        version="0.1.0",
    )

    @app.exception_handler(InvalidTransition)
    async def invalid_transition_handler(request: Request, exc: InvalidTransition) -> JSONResponse:
        return JSONResponse(exc.to_dict(), status_code=409)

    admin = [Depends(require_admin_token)]

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({
            "status": "ok",
            "uptime": uptime,
            "active_calls": len(get_active_sessions()),
        })

    # ── Registry ───────────────────────────────────────────────

    @app.get("/api/workflow", dependencies=admin)
    async def get_workflow() -> JSONResponse:
        """Return the state/action registry as JSON."""
        return JSONResponse(workflow_summary())

    # ── Call sessions ──────────────────────────────────────────

    @app.post("/api/calls", dependencies=admin, status_code=201)
    async def create_call(details: AppointmentDetails) -> JSONResponse:
        """Create a call session and return the voice client's call request."""
        session = CallSession(details)
        sid = register_session(session)
        session.attach_broadcaster(get_broadcaster(sid))
        log.info("Call %s created for appointment on %s %s",
                 sid, details.appointment_date, details.appointment_time)
        return JSONResponse(
            {
                "session_id": sid,
                "call_request": session.call_request(),
                "conversation": session.conversation_state.to_record(),
            },
            status_code=201,
        )

    @app.get("/api/calls", dependencies=admin)
    async def list_calls() -> JSONResponse:
        sessions = get_active_sessions()
        return JSONResponse({
            "sessions": [s.to_dict() for s in sessions.values()],
            "count": len(sessions),
        })

    @app.get("/api/calls/{session_id}", dependencies=admin)
    async def get_call(session_id: str) -> JSONResponse:
        session = get_session(session_id)
        if not session:
            return _not_found()
        return JSONResponse(session.to_dict(detail=True))

    @app.delete("/api/calls/{session_id}", dependencies=admin)
    async def delete_call(session_id: str) -> JSONResponse:
        session = get_session(session_id)
        if not session:
            return _not_found()
        record = session.conversation_state.to_record()
        remove_broadcaster(session_id)
        unregister_session(session_id)
        return JSONResponse({"session_id": session_id, "conversation": record})

    # ── Manual control surface ─────────────────────────────────

    @app.get("/api/calls/{session_id}/actions", dependencies=admin)
    async def list_actions(session_id: str) -> JSONResponse:
        """Actions legal in the call's current state, with descriptions."""
        session = get_session(session_id)
        if not session:
            return _not_found()
        return JSONResponse({
            "current_state": session.current_state.value,
            "actions": action_descriptions_for(session.current_state),
        })

    @app.post("/api/calls/{session_id}/actions", dependencies=admin)
    async def perform_action(session_id: str, request: Request) -> JSONResponse:
        """Apply an operator-chosen action. 409 with the legal actions if rejected."""
        session = get_session(session_id)
        if not session:
            return _not_found()

        try:
            body = await request.json()
        except ValueError:
            body = None
        action = body.get("action") if isinstance(body, dict) else None
        if not action or not isinstance(action, str):
            return JSONResponse(
                {"error": "'action' is required and must be a string"}, status_code=400,
            )

        session.perform_action(action)
        return JSONResponse(_session_payload(session))

    @app.post("/api/calls/{session_id}/reset", dependencies=admin)
    async def reset_call(session_id: str) -> JSONResponse:
        session = get_session(session_id)
        if not session:
            return _not_found()
        session.reset()
        return JSONResponse(_session_payload(session))

    @app.post("/api/calls/{session_id}/wrap-up", dependencies=admin)
    async def wrap_up_call(session_id: str) -> JSONResponse:
        """Instruction text the voice client should inject to end a long call."""
        session = get_session(session_id)
        if not session:
            return _not_found()
        return JSONResponse({"instruction": session.wrap_up_instruction()})

    # ── Agent tool bridge ──────────────────────────────────────

    @app.post("/api/calls/{session_id}/tools/{tool_name}")
    async def invoke_tool(session_id: str, tool_name: str, request: Request) -> JSONResponse:
        """Run an agent tool. Tool failures come back as result text, not HTTP errors."""
        session = get_session(session_id)
        if not session:
            return _not_found()
        tool = session.tools.get(tool_name)
        if not tool:
            return JSONResponse({"error": f"Unknown tool: {tool_name}"}, status_code=404)

        try:
            body = await request.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        result = await tool.execute(**body)
        log.info("Tool %s for call %s → %s", tool_name, session_id, result[:100])
        return JSONResponse({"result": result})

    # ── Debug stream WebSocket ─────────────────────────────────

    @app.websocket("/api/calls/{session_id}/debug")
    async def debug_stream(
        websocket: WebSocket, session_id: str, token: str = Query(default=""),
    ) -> None:
        """Stream the call's debug events as JSON messages."""
        if not await require_admin_ws(websocket, token):
            return

        session = get_session(session_id)
        if not session:
            await websocket.close(code=4004, reason="Session not found")
            return

        await websocket.accept()
        broadcaster = get_broadcaster(session_id)
        session.attach_broadcaster(broadcaster)
        queue = broadcaster.subscribe()

        try:
            while True:
                event = await queue.get()
                await websocket.send_json(event)
        except WebSocketDisconnect:
            pass
        finally:
            broadcaster.unsubscribe(queue)

    return app


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "callflow.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=log_config,
    )
