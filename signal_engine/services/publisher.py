"""
Presentation channel
signal_engine/services/publisher.py

AnalysisPublisher.publish(session_id, update) is the only way analysis
leaves the engine. ConnectionManager fans each update out to the WebSocket
clients watching a session.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import DefaultDict, List, Set, Tuple

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

from signal_engine.models.analysis import AnalysisUpdate

logger = logging.getLogger(__name__)


class AnalysisPublisher(ABC):
    @abstractmethod
    async def publish(self, session_id: str, update: AnalysisUpdate) -> None:
        ...


class InMemoryPublisher(AnalysisPublisher):
    """Keeps every published update, in order."""

    def __init__(self) -> None:
        self.published: List[Tuple[str, AnalysisUpdate]] = []

    async def publish(self, session_id: str, update: AnalysisUpdate) -> None:
        self.published.append((session_id, update))

    def for_session(self, session_id: str) -> List[AnalysisUpdate]:
        return [u for sid, u in self.published if sid == session_id]


class ConnectionManager(AnalysisPublisher):
    """Tracks WebSocket connections per session and pushes full-state updates."""

    def __init__(self) -> None:
        self._connections: DefaultDict[str, Set[WebSocket]] = defaultdict(set)

    def connect(self, session_id: str, websocket: WebSocket) -> None:
        self._connections[session_id].add(websocket)
        logger.info(f"WebSocket attached to session {session_id} ({len(self._connections[session_id])} open)")

    def disconnect(self, session_id: str, websocket: WebSocket) -> None:
        sockets = self._connections.get(session_id)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            self._connections.pop(session_id, None)

    async def publish(self, session_id: str, update: AnalysisUpdate) -> None:
        payload = {"type": "analysis", "data": update.model_dump(mode="json")}
        for websocket in list(self._connections.get(session_id, ())):
            if websocket.client_state != WebSocketState.CONNECTED:
                self.disconnect(session_id, websocket)
                continue
            try:
                await websocket.send_json(payload)
            except (WebSocketDisconnect, RuntimeError, ConnectionError) as e:
                logger.warning(f"Dropping WebSocket for session {session_id}: {e}")
                self.disconnect(session_id, websocket)
