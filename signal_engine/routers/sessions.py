"""
Session Router - Live Signal Engine
signal_engine/routers/sessions.py

Live session lifecycle (start / stop), fragment ingestion, latest analysis,
and the per-session WebSocket push channel.
"""

import json
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect, status
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from signal_engine.core.dependencies import get_analysis_service, get_connection_manager
from signal_engine.core.exceptions import DuplicateSessionException, SessionNotFoundException
from signal_engine.models.analysis import AnalysisUpdate
from signal_engine.models.enumerations import AdmitReason, ProspectType
from signal_engine.models.signals import PillarWeightOverride
from signal_engine.services.analysis_service import LiveAnalysisService
from signal_engine.services.publisher import ConnectionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Sessions"])
ws_router = APIRouter(tags=["Sessions"])


#  Validation Error Handler


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors and "json_invalid" in errors[0].get("type", ""):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error_code": "INVALID_REQUEST",
                "message": "Malformed JSON request body",
                "details": None,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", []) if part != "body"),
            "type": err.get("type", ""),
            "message": err.get("msg", ""),
        }
        for err in errors
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": details or None,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


#  Schemas


class ErrorResponse(BaseModel):
    error_code: str
    message: str
    details: Optional[dict] = None


class SessionCreate(BaseModel):
    session_id: Optional[str] = Field(default=None, min_length=1, max_length=128)
    prospect_type: Optional[ProspectType] = None
    pillar_weights: Optional[List[PillarWeightOverride]] = None
    custom_script_prompt: Optional[str] = Field(default=None, max_length=4000)


class SessionResponse(BaseModel):
    session_id: str
    prospect_type: Optional[ProspectType] = None
    started_at: str


class FragmentRequest(BaseModel):
    text: str = Field(max_length=20000)


class FragmentResponse(BaseModel):
    session_id: str
    reason: AdmitReason
    cycle_started: bool
    cycle_seq: Optional[int] = None
    retry_after: float = 0.0


#  Exception Helpers


def raise_error(status_code: int, error_code: str, message: str):
    raise HTTPException(
        status_code=status_code,
        detail=ErrorResponse(error_code=error_code, message=message).model_dump(mode="json"),
    )

def raise_session_not_found(session_id: str):
    raise_error(status.HTTP_404_NOT_FOUND, "SESSION_NOT_FOUND", f"Session {session_id} not found")

def raise_duplicate_session(session_id: str):
    raise_error(status.HTTP_409_CONFLICT, "DUPLICATE_SESSION", f"Session {session_id} already exists")


#  REST Endpoints


@router.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a live session",
    description="Creates session state. Weight overrides and prospect type are optional.",
)
async def start_session(
    body: SessionCreate,
    service: LiveAnalysisService = Depends(get_analysis_service),
) -> SessionResponse:
    try:
        state = service.start_session(
            session_id=body.session_id,
            prospect_type=body.prospect_type,
            pillar_weights=body.pillar_weights,
            custom_script_prompt=body.custom_script_prompt,
        )
    except DuplicateSessionException as e:
        raise_duplicate_session(e.session_id)
    return SessionResponse(
        session_id=state.session_id,
        prospect_type=state.prospect_type,
        started_at=state.started_at,
    )


@router.delete(
    "/sessions/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Stop a live session",
    description="Discards session state. In-flight cycles are not awaited.",
)
async def stop_session(
    session_id: str,
    service: LiveAnalysisService = Depends(get_analysis_service),
) -> None:
    try:
        service.stop_session(session_id)
    except SessionNotFoundException:
        raise_session_not_found(session_id)


@router.post(
    "/sessions/{session_id}/fragments",
    response_model=FragmentResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Ingest a transcript fragment",
    description="Admits, buffers or drops a committed speech-to-text fragment.",
)
async def ingest_fragment(
    session_id: str,
    body: FragmentRequest,
    service: LiveAnalysisService = Depends(get_analysis_service),
) -> FragmentResponse:
    try:
        decision = await service.ingest(session_id, body.text)
    except SessionNotFoundException:
        raise_session_not_found(session_id)
    return FragmentResponse(
        session_id=session_id,
        reason=decision.reason,
        cycle_started=decision.should_run_cycle,
        cycle_seq=decision.cycle_seq,
        retry_after=round(decision.retry_after, 3),
    )


@router.get(
    "/sessions/{session_id}/analysis",
    response_model=AnalysisUpdate,
    summary="Latest analysis",
    description="Returns the latest published full-state update for a session.",
)
async def get_analysis(
    session_id: str,
    service: LiveAnalysisService = Depends(get_analysis_service),
) -> AnalysisUpdate:
    try:
        return service.get_latest(session_id)
    except SessionNotFoundException:
        raise_session_not_found(session_id)


#  WebSocket Channel


class _StartMessage(BaseModel):
    prospect_type: Optional[ProspectType] = None
    pillar_weights: Optional[List[PillarWeightOverride]] = None
    custom_script_prompt: Optional[str] = None


@ws_router.websocket("/ws/sessions/{session_id}")
async def session_socket(
    websocket: WebSocket,
    session_id: str,
    service: LiveAnalysisService = Depends(get_analysis_service),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    """
    Messages in:  {"type": "start", ...}, {"type": "transcript", "text": "..."},
                  {"type": "stop"}
    Messages out: {"type": "analysis", "data": {...}}, {"type": "ack", ...},
                  {"type": "error", "message": "..."}
    """
    await websocket.accept()
    manager.connect(session_id, websocket)

    if session_id in service.store:
        latest = service.get_latest(session_id)
        await websocket.send_json({"type": "analysis", "data": latest.model_dump(mode="json")})

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Malformed JSON message"})
                continue
            kind = message.get("type") if isinstance(message, dict) else None

            if kind == "start":
                event = "started"
                try:
                    options = _StartMessage.model_validate(message)
                    service.start_session(
                        session_id=session_id,
                        prospect_type=options.prospect_type,
                        pillar_weights=options.pillar_weights,
                        custom_script_prompt=options.custom_script_prompt,
                    )
                except ValidationError as e:
                    await websocket.send_json({"type": "error", "message": str(e)})
                    continue
                except DuplicateSessionException:
                    # Reconnecting client; keep the running session
                    event = "resumed"
                await websocket.send_json({"type": "ack", "event": event, "session_id": session_id})

            elif kind == "transcript":
                try:
                    text = message.get("text")
                    decision = await service.ingest(session_id, text if isinstance(text, str) else None)
                except SessionNotFoundException:
                    await websocket.send_json({"type": "error", "message": "Session not started"})
                    continue
                await websocket.send_json({
                    "type": "ack",
                    "event": "fragment",
                    "reason": decision.reason.value,
                    "cycle_started": decision.should_run_cycle,
                })

            elif kind == "stop":
                try:
                    service.stop_session(session_id)
                except SessionNotFoundException:
                    await websocket.send_json({"type": "error", "message": "Session not started"})
                    continue
                await websocket.send_json({"type": "ack", "event": "stopped", "session_id": session_id})

            else:
                await websocket.send_json({"type": "error", "message": f"Unknown message type: {kind}"})

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected from session {session_id}")
    finally:
        manager.disconnect(session_id, websocket)
