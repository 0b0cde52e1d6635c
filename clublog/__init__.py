"""Event log and failure classification for the club website."""

from clublog.event_log import EventLog, Level, LogEntry
from clublog.failures import Category, ClassificationResult, FailureClassifier

__all__ = [
    "Category",
    "ClassificationResult",
    "EventLog",
    "FailureClassifier",
    "Level",
    "LogEntry",
]
