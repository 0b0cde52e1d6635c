"""Bounded, durably mirrored record of leveled application events."""

import collections
import json
import logging
import os
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum

import jsonschema

from clublog.storage import StorageError

logger = logging.getLogger(__name__)

SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "schemas", "log_entries.json")
DEFAULT_STORAGE_KEY = "app_logs"
DEFAULT_MAX_LOGS = 1000


class Level(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    SUCCESS = "SUCCESS"
    DEBUG = "DEBUG"


@dataclass(frozen=True)
class LogEntry:
    timestamp: str
    level: str
    message: str
    data: str | None = None
    origin: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict) -> "LogEntry":
        return cls(
            timestamp=raw["timestamp"],
            level=raw["level"],
            message=raw["message"],
            data=raw.get("data"),
            origin=dict(raw.get("origin") or {}),
        )


@dataclass(frozen=True)
class Export:
    filename: str
    content: str


class DirectoryExporter:
    """File-save collaborator that writes exports into a directory."""

    def __init__(self, directory: str):
        self._directory = directory

    def __call__(self, filename: str, content: str) -> str:
        os.makedirs(self._directory, exist_ok=True)
        path = os.path.join(self._directory, filename)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        logger.info("Exported event log to %s", path)
        return path


def _load_validator():
    with open(SCHEMA_PATH, "r") as f:
        schema = json.load(f)
    return jsonschema.Draft202012Validator(schema)


def parse_level(level) -> Level:
    """Coerce a level name (any case) or Level into a Level. Raises ValueError."""
    if isinstance(level, Level):
        return level
    try:
        return Level(str(level).strip().upper())
    except ValueError:
        raise ValueError(f"Unknown log level: {level!r}") from None


def serialize_data(data) -> str | None:
    """Render an optional payload as pretty-printed JSON text.

    Values json cannot encode are rendered through str(); a payload that
    still cannot be encoded (e.g. a reference cycle) raises ValueError.
    """
    if data is None:
        return None
    return json.dumps(data, indent=2, default=str)


class EventLog:
    """Append-only event log capped at ``max_logs`` entries.

    Every record() overwrites the full sequence under ``storage_key`` in the
    backing store. Storage problems never reach the caller: they are logged,
    counted in ``failure_count`` and passed to ``on_failure(stage, exc)``.
    """

    def __init__(
        self,
        store,
        max_logs: int = DEFAULT_MAX_LOGS,
        development: bool = False,
        storage_key: str = DEFAULT_STORAGE_KEY,
        save_file=None,
        origin_provider=None,
        on_failure=None,
        time_func=None,
    ):
        if max_logs < 1:
            raise ValueError("max_logs must be at least 1")
        self._store = store
        self._max_logs = max_logs
        self._development = bool(development)
        self._storage_key = storage_key
        self._save_file = save_file
        self._origin_provider = origin_provider or (lambda: {"location": None, "client": None})
        self._on_failure = on_failure
        self._time_func = time_func or (lambda: datetime.now(timezone.utc))
        self._validator = _load_validator()
        self._entries = collections.deque(maxlen=max_logs)
        self._lock = threading.Lock()
        self._failure_count = 0
        self._local = threading.local()

        self.rehydrate()

    @property
    def development(self) -> bool:
        return self._development

    @property
    def max_logs(self) -> int:
        return self._max_logs

    @property
    def failure_count(self) -> int:
        """Number of storage/serialization failures handled so far."""
        return self._failure_count

    def __len__(self):
        return len(self._entries)

    def _report_failure(self, stage: str, exc: Exception):
        """Count, log and hand a failure to the hook. Never called with self._lock held."""
        with self._lock:
            self._failure_count += 1
        logger.warning("Event log %s failed: %s", stage, exc)
        # A hook that records into this log must not re-enter itself
        if self._on_failure is None or getattr(self._local, "in_hook", False):
            return
        self._local.in_hook = True
        try:
            self._on_failure(stage, exc)
        except Exception:
            logger.exception("Event log failure hook raised")
        finally:
            self._local.in_hook = False

    def _persist_locked(self) -> Exception | None:
        """Mirror the whole sequence to storage. Must be called with self._lock held.

        Returns the failure instead of reporting it, so the caller can report
        after releasing the lock.
        """
        try:
            payload = json.dumps([entry.to_dict() for entry in self._entries])
            self._store.set(self._storage_key, payload)
        except (StorageError, OSError, TypeError, ValueError) as exc:
            return exc
        return None

    def _capture_origin(self) -> dict:
        try:
            origin = dict(self._origin_provider())
        except Exception as exc:
            self._report_failure("origin", exc)
            return {"location": None, "client": None}
        return {str(key): None if value is None else str(value) for key, value in origin.items()}

    def record(self, level, message: str, data=None):
        """Append an entry and mirror the log to storage. Never raises."""
        try:
            level = parse_level(level)
        except ValueError as exc:
            self._report_failure("record", exc)
            return
        if not message:
            self._report_failure("record", ValueError("message must not be empty"))
            return
        if level is Level.DEBUG and not self._development:
            return

        try:
            serialized = serialize_data(data)
        except (TypeError, ValueError) as exc:
            self._report_failure("serialize", exc)
            serialized = None

        entry = LogEntry(
            timestamp=self._time_func().isoformat(),
            level=level.value,
            message=str(message),
            data=serialized,
            origin=self._capture_origin(),
        )
        with self._lock:
            self._entries.append(entry)
            failure = self._persist_locked()
        if failure is not None:
            self._report_failure("persist", failure)

    def info(self, message: str, data=None):
        self.record(Level.INFO, message, data)

    def warn(self, message: str, data=None):
        self.record(Level.WARN, message, data)

    def error(self, message: str, data=None):
        self.record(Level.ERROR, message, data)

    def success(self, message: str, data=None):
        self.record(Level.SUCCESS, message, data)

    def debug(self, message: str, data=None):
        self.record(Level.DEBUG, message, data)

    def query(self, level=None) -> list[LogEntry]:
        """Return entries in insertion order, optionally only one level."""
        wanted = parse_level(level) if level is not None else None
        with self._lock:
            entries = list(self._entries)
        if wanted is None:
            return entries
        return [entry for entry in entries if entry.level == wanted.value]

    def search(self, text: str, level=None) -> list[LogEntry]:
        """Case-insensitive match on message, level or data."""
        needle = (text or "").lower()
        entries = self.query(level)
        if not needle:
            return entries
        return [
            entry for entry in entries
            if needle in entry.message.lower()
            or needle in entry.level.lower()
            or (entry.data is not None and needle in entry.data.lower())
        ]

    def counts(self) -> dict:
        """Number of stored entries per level, every level present."""
        with self._lock:
            levels = [entry.level for entry in self._entries]
        counts = {level.value: 0 for level in Level}
        for level in levels:
            counts[level] = counts.get(level, 0) + 1
        return counts

    def clear(self):
        """Drop every entry from memory and storage."""
        failure = None
        with self._lock:
            self._entries.clear()
            try:
                self._store.delete(self._storage_key)
            except (StorageError, OSError) as exc:
                failure = exc
        if failure is not None:
            self._report_failure("clear", failure)

    def export(self) -> Export:
        """Serialize the log and hand it to the file-save collaborator, if any."""
        with self._lock:
            entries = [entry.to_dict() for entry in self._entries]
        export = Export(
            filename=f"app_logs_{self._time_func().date().isoformat()}.json",
            content=json.dumps(entries, indent=2),
        )
        if self._save_file is not None:
            self._save_file(export.filename, export.content)
        return export

    def rehydrate(self) -> bool:
        """Replace memory with the persisted sequence. Returns True if loaded."""
        try:
            raw = self._store.get(self._storage_key)
            if raw is None:
                return False
            payload = json.loads(raw)
            self._validator.validate(payload)
        except (StorageError, OSError, ValueError, jsonschema.ValidationError) as exc:
            self._report_failure("rehydrate", exc)
            return False

        entries = [LogEntry.from_dict(item) for item in payload]
        with self._lock:
            self._entries = collections.deque(entries, maxlen=self._max_logs)
        logger.debug("Rehydrated %d event log entries", len(self._entries))
        return True
