"""Single-player practice mode: one human against four house bots."""

from .session import PracticeSession

__all__ = ["PracticeSession"]
