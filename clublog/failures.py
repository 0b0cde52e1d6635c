"""Failure classification and handling.

Turns a raw failure from a network call into one of a fixed set of
categories, a user-facing message, an ERROR entry in the event log and any
category-specific side effect (an AUTH failure schedules a forced navigation
to the login page). Nothing here raises to the caller.

Classification is an ordered table of (predicate, category) rules; the first
rule that matches wins:

- NETWORK: transport error code / ConnectionError / TimeoutError, or offline
- AUTH: status 401 or 403
- VALIDATION: status in [400, 500)
- SERVER: status >= 500
- UNKNOWN: anything else
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from clublog.event_log import Level

logger = logging.getLogger(__name__)

DEFAULT_LOGIN_PATH = "/volunteer/login"
DEFAULT_REDIRECT_DELAY_SECONDS = 2
VALIDATION_FALLBACK_MESSAGE = "Validation failed"
TRANSPORT_ERROR_CODES = frozenset({"NETWORK_ERROR", "ERR_NETWORK"})


class Category(str, Enum):
    NETWORK = "NETWORK"
    VALIDATION = "VALIDATION"
    AUTH = "AUTH"
    SERVER = "SERVER"
    UNKNOWN = "UNKNOWN"


MESSAGES = {
    Category.NETWORK: "Network connection failed. Please check your internet connection.",
    Category.AUTH: "Session expired. Please login again.",
    Category.VALIDATION: "Invalid data provided. Please check your input.",
    Category.SERVER: "Server error occurred. Please try again later.",
    Category.UNKNOWN: "An unexpected error occurred. Please try again.",
}


def _lookup(obj, name):
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _dig(obj, *path):
    for name in path:
        obj = _lookup(obj, name)
        if obj is None:
            return None
    return obj


def _as_status(value) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


@dataclass(frozen=True)
class FailureInfo:
    """The parts of a raw failure the classifier looks at."""

    code: str | None = None
    status: int | None = None
    message: str | None = None
    url: str | None = None
    method: str | None = None
    response: object = None
    transport_error: bool = False

    @classmethod
    def from_error(cls, error) -> FailureInfo:
        if error is None:
            return cls()

        status = _as_status(_first(
            _lookup(error, "status"),
            _lookup(error, "status_code"),
            _dig(error, "response", "status"),
            _dig(error, "response", "status_code"),
        ))

        message = _lookup(error, "message")
        if message is None and isinstance(error, BaseException):
            message = str(error) or type(error).__name__

        code = _lookup(error, "code")
        return cls(
            code=str(code) if code is not None else None,
            status=status,
            message=str(message) if message is not None else None,
            url=_first(_dig(error, "config", "url"), _dig(error, "request", "url")),
            method=_first(_dig(error, "config", "method"), _dig(error, "request", "method")),
            response=_dig(error, "response", "data"),
            transport_error=isinstance(error, (ConnectionError, TimeoutError)),
        )

    def snapshot(self, category: Category) -> dict:
        """Diagnostic payload for the event log; absent fields are left out."""
        snapshot = {"category": category.value}
        for key in ("status", "message", "url", "method", "response"):
            value = getattr(self, key)
            if value is not None:
                snapshot[key] = value
        return snapshot


@dataclass(frozen=True)
class ClassificationResult:
    category: Category
    message: str
    original_error: object = None
    errors: list | None = None

    def to_dict(self) -> dict:
        """JSON-safe view. original_error is for programmatic use only and is omitted."""
        result = {"category": self.category.value, "message": self.message}
        if self.errors is not None:
            result["errors"] = self.errors
        return result


def _is_network(info: FailureInfo, online: bool) -> bool:
    return info.transport_error or info.code in TRANSPORT_ERROR_CODES or not online


def _is_auth(info: FailureInfo, online: bool) -> bool:
    return info.status in (401, 403)


def _is_validation(info: FailureInfo, online: bool) -> bool:
    return info.status is not None and 400 <= info.status < 500


def _is_server(info: FailureInfo, online: bool) -> bool:
    return info.status is not None and info.status >= 500


RULES = (
    (_is_network, Category.NETWORK),
    (_is_auth, Category.AUTH),
    (_is_validation, Category.VALIDATION),
    (_is_server, Category.SERVER),
)


def classify(error, online: bool = True) -> Category:
    """Return the category of the first matching rule, else UNKNOWN."""
    info = error if isinstance(error, FailureInfo) else FailureInfo.from_error(error)
    for predicate, category in RULES:
        if predicate(info, online):
            return category
    return Category.UNKNOWN


class FailureClassifier:
    def __init__(
        self,
        event_log,
        notifier=None,
        navigation=None,
        is_online=None,
        login_path: str = DEFAULT_LOGIN_PATH,
        redirect_delay_seconds: float = DEFAULT_REDIRECT_DELAY_SECONDS,
    ):
        self._event_log = event_log
        self._notifier = notifier
        self._navigation = navigation
        self._is_online = is_online or (lambda: True)
        self._login_path = login_path
        self._redirect_delay_seconds = redirect_delay_seconds

    def classify(self, error) -> Category:
        return classify(error, online=bool(self._is_online()))

    def classify_and_handle(self, error, context: str = "") -> ClassificationResult:
        """Classify, log at ERROR, notify once and return the result.

        AUTH failures also schedule navigation to the login page.
        """
        info = FailureInfo.from_error(error)
        category = self.classify(info)
        message = MESSAGES[category]

        self._record(
            Level.ERROR,
            f"{category.value} error in {context or 'application'}",
            info.snapshot(category),
        )
        if category is Category.AUTH:
            self._schedule_login_redirect()
        self._notify("error", message)

        return ClassificationResult(category=category, message=message, original_error=error)

    def classify_validation_errors(self, errors, context: str = "") -> ClassificationResult:
        """Handle one validation error or a list of them.

        The whole list is logged at WARN; the user sees the first error's message.
        """
        if isinstance(errors, (list, tuple)):
            items = list(errors)
        else:
            items = [errors]

        first = items[0] if items else None
        message = _lookup(first, "message")
        message = str(message) if message else VALIDATION_FALLBACK_MESSAGE

        self._record(Level.WARN, f"Validation error in {context or 'application'}", items)
        self._notify("error", message)

        return ClassificationResult(
            category=Category.VALIDATION,
            message=message,
            original_error=errors,
            errors=items,
        )

    def handle_success(self, message: str, data=None):
        self._record(Level.SUCCESS, message, data)
        self._notify("success", message)

    def handle_info(self, message: str, data=None):
        self._record(Level.INFO, message, data)
        self._notify("info", message)

    def wrap(self, fn, context: str = ""):
        """Call fn(); a raised exception is classified and its result returned instead."""
        try:
            return fn()
        except Exception as exc:
            return self.classify_and_handle(exc, context)

    async def wrap_async(self, fn, context: str = ""):
        try:
            return await fn()
        except Exception as exc:
            return self.classify_and_handle(exc, context)

    def _record(self, level, message: str, data=None):
        try:
            self._event_log.record(level, message, data)
        except Exception:
            logger.exception("Event log rejected %r", message)

    def _notify(self, severity: str, message: str):
        if self._notifier is None:
            return
        try:
            self._notifier.notify(severity, message)
        except Exception:
            logger.exception("Notifier failed to deliver %r", message)

    def _schedule_login_redirect(self):
        if self._navigation is None:
            return
        try:
            self._navigation.schedule(self._login_path, self._redirect_delay_seconds)
        except Exception:
            logger.exception("Could not schedule navigation to %s", self._login_path)
