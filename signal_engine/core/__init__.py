"""
Core Package - Live Signal Engine
signal_engine/core/__init__.py

Core infrastructure: dependencies, exceptions, logging.
Import dependencies from signal_engine.core.dependencies directly; it pulls
in the service layer, which itself imports the exceptions below.
"""

from signal_engine.core.exceptions import (
    DuplicateSessionException,
    MalformedTaskOutputException,
    ScoringTaskException,
    ScoringTaskTimeoutException,
    SessionNotFoundException,
    SignalEngineException,
)

__all__ = [
    "DuplicateSessionException",
    "MalformedTaskOutputException",
    "ScoringTaskException",
    "ScoringTaskTimeoutException",
    "SessionNotFoundException",
    "SignalEngineException",
]
