"""Real-time collaboration service for mood-board projects."""

__version__ = "1.0.0"
