"""Log entry models.

Entries are designed to be:
- Immutable once constructed (they are shared between writer threads and the flush path).
- Close to the persisted row: one field per table column, absent text stays `None`.
"""

from __future__ import annotations

import traceback
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(tz=timezone.utc)


class LogLevel(str, Enum):
    """Severity stored in the `Level` column."""

    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"
    FATAL_ERROR = "FatalError"


class LogItem(BaseModel):
    """A single structured log entry waiting to be persisted."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    level: LogLevel
    timestamp: datetime = Field(default_factory=utc_now)

    # Free-form text columns; None is persisted as NULL.
    component: str | None = None
    process: str | None = None
    context: str | None = None
    type: str | None = None
    stack: str | None = None
    message: str | None = None


def root_cause(exc: BaseException) -> BaseException:
    """Follow `__cause__` / `__context__` down to the innermost exception."""
    seen: set[int] = set()
    current = exc
    while id(current) not in seen:
        seen.add(id(current))
        inner = current.__cause__ or current.__context__
        if inner is None:
            break
        current = inner
    return current


def exception_type_name(exc: BaseException) -> str:
    """Qualified type name, without the module prefix for builtins."""
    cls = type(exc)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def exception_stack(exc: BaseException) -> str | None:
    """Formatted traceback of `exc`, or None when it was never raised."""
    if exc.__traceback__ is None:
        return None
    return "".join(traceback.format_tb(exc.__traceback__))


def error_item(
    level: LogLevel,
    *,
    component: str | None,
    process: str | None,
    context: str | None,
    message: str | None,
    exception: BaseException,
    timestamp: datetime | None = None,
) -> LogItem:
    """Build an entry describing `exception`.

    The message is suffixed with the exception text; stack and type come from
    the root cause so wrapped errors report where they originally failed.
    """
    cause = root_cause(exception)
    return LogItem(
        level=level,
        timestamp=timestamp or utc_now(),
        component=component,
        process=process,
        context=context,
        message=f"{message or ''} - {exception}",
        stack=exception_stack(cause),
        type=exception_type_name(cause),
    )
