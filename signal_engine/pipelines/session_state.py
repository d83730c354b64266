from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from signal_engine.core.exceptions import DuplicateSessionException, SessionNotFoundException
from signal_engine.models.enumerations import ProspectType


@dataclass
class SessionState:
    """
    Live state for one conversation.
    Mutated only by the ingestion throttle and the cycle finalize step.
    """

    session_id: str
    prospect_type: Optional[ProspectType] = None
    weight_overrides: Optional[Any] = None
    custom_script_prompt: Optional[str] = None

    # Accumulated transcript (bounded)
    window: str = ""
    last_fragment: str = ""

    # Latest score per indicator (latest cycle wins)
    indicators: Dict[int, float] = field(default_factory=dict)

    # Cycle bookkeeping (monotonic clock seconds)
    last_cycle_started_at: Optional[float] = None
    in_flight: bool = False
    in_flight_since: Optional[float] = None
    cycle_seq: int = 0
    published_seq: int = 0
    has_pending: bool = False
    stuck_resets: int = 0

    # Latest published update (AnalysisUpdate) and background tasks
    latest: Optional[Any] = None
    tasks: List[asyncio.Task] = field(default_factory=list)
    trailing_handle: Optional[asyncio.TimerHandle] = None
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    closed: bool = False


class SessionStore:
    """In-process keyed store of live sessions (create / get / dispose)."""

    def __init__(self) -> None:
        self._sessions: Dict[str, SessionState] = {}

    def create(self, session_id: Optional[str] = None, **kwargs: Any) -> SessionState:
        sid = session_id or uuid.uuid4().hex
        if sid in self._sessions:
            raise DuplicateSessionException(sid)
        state = SessionState(session_id=sid, **kwargs)
        self._sessions[sid] = state
        return state

    def get(self, session_id: str) -> SessionState:
        state = self._sessions.get(session_id)
        if state is None:
            raise SessionNotFoundException(session_id)
        return state

    def dispose(self, session_id: str) -> SessionState:
        state = self._sessions.pop(session_id, None)
        if state is None:
            raise SessionNotFoundException(session_id)
        state.closed = True
        return state

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def ids(self) -> List[str]:
        return list(self._sessions)
