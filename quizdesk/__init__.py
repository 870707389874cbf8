"""Multiple-choice quiz session engine."""

__version__ = "0.4.0"
