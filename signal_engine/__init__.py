"""Live Signal Engine - live conversation scoring against the 7-pillar rubric."""

__version__ = "1.0.0"
