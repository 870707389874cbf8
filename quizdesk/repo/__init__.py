"""Async SQLAlchemy repositories."""

from . import attempts, scores, wrong_answers

__all__ = ["attempts", "scores", "wrong_answers"]
