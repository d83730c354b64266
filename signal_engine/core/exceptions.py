"""
Custom Exceptions - Live Signal Engine
signal_engine/core/exceptions.py

Custom exception classes for session handling and scoring tasks.
"""


class SignalEngineException(Exception):
    """Base exception for the live signal engine."""

    pass


class SessionNotFoundException(SignalEngineException):
    """Session is not (or no longer) live."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session with ID {session_id} not found")


class DuplicateSessionException(SignalEngineException):
    """A live session with the same ID already exists."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session with ID {session_id} already exists")


class ScoringTaskException(SignalEngineException):
    """A single scoring task failed."""

    def __init__(self, task: str, message: str = "Scoring task failed"):
        self.task = task
        self.message = message
        super().__init__(f"{task}: {message}")


class ScoringTaskTimeoutException(ScoringTaskException):
    """A single scoring task exceeded its timeout."""

    def __init__(self, task: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(task, f"timed out after {timeout_seconds}s")


class MalformedTaskOutputException(ScoringTaskException):
    """A scoring task returned something that is not a JSON object."""

    def __init__(self, task: str, message: str = "Malformed task output"):
        super().__init__(task, message)
