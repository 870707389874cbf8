"""Database package."""

from .models import Attempt, Base, ScoreEntry, WrongAnswer

__all__ = [
    "Attempt",
    "Base",
    "ScoreEntry",
    "WrongAnswer",
]
