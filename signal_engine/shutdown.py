"""
signal_engine/shutdown.py

Shared shutdown flag for graceful termination of live analysis cycles.
Both main.py and the analysis service import from here to avoid circular imports.
"""

import asyncio

_shutdown_event = asyncio.Event()


def set_shutdown():
    """Signal that the app is shutting down."""
    _shutdown_event.set()


def clear_shutdown():
    """Reset the flag (app restart within one process, e.g. tests)."""
    _shutdown_event.clear()


def is_shutting_down() -> bool:
    """Check if the app is shutting down. Used before admitting new fragments."""
    return _shutdown_event.is_set()
