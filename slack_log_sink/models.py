"""Log event and Slack message models."""

import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Optional

from slack_log_sink.errors import ConfigurationError


class LogLevel(IntEnum):
    VERBOSE = 0
    DEBUG = 1
    INFORMATION = 2
    WARNING = 3
    ERROR = 4
    FATAL = 5

    @property
    def label(self) -> str:
        return self.name.title()

    def __str__(self) -> str:
        return self.label

    @classmethod
    def from_logging_level(cls, levelno: int) -> "LogLevel":
        """Map a stdlib logging level number onto the sink's levels."""
        if levelno < logging.DEBUG:
            return cls.VERBOSE
        if levelno < logging.INFO:
            return cls.DEBUG
        if levelno < logging.WARNING:
            return cls.INFORMATION
        if levelno < logging.ERROR:
            return cls.WARNING
        if levelno < logging.CRITICAL:
            return cls.ERROR
        return cls.FATAL

    @classmethod
    def parse(cls, value) -> "LogLevel":
        """Accept a LogLevel, a label ("Warning") or a stdlib alias ("WARN")."""
        if isinstance(value, cls):
            return value
        name = str(value).strip().upper()
        name = _LEVEL_ALIASES.get(name, name)
        try:
            return cls[name]
        except KeyError:
            raise ConfigurationError(f"Unknown log level: {value!r}") from None


_LEVEL_ALIASES = {
    "TRACE": "VERBOSE",
    "INFO": "INFORMATION",
    "WARN": "WARNING",
    "CRITICAL": "FATAL",
}


class OverridableProperty(Enum):
    """Message fields that an event property of the same name may override."""

    CUSTOM_CHANNEL = "CustomChannel"
    CUSTOM_USER_NAME = "CustomUserName"
    CUSTOM_ICON = "CustomIcon"

    @classmethod
    def parse(cls, value) -> "OverridableProperty":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        for member in cls:
            if key in (member.value.lower(), member.name.lower()):
                return member
        try:
            return _OVERRIDE_ALIASES[key]
        except KeyError:
            raise ConfigurationError(f"Unknown overridable property: {value!r}") from None


_OVERRIDE_ALIASES = {
    "channel": OverridableProperty.CUSTOM_CHANNEL,
    "username": OverridableProperty.CUSTOM_USER_NAME,
    "user_name": OverridableProperty.CUSTOM_USER_NAME,
    "icon": OverridableProperty.CUSTOM_ICON,
    "icon_emoji": OverridableProperty.CUSTOM_ICON,
}


# ------------------------------------------------------------------
# Log events
# ------------------------------------------------------------------

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

# Attributes every LogRecord carries; anything else came in through extra=.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
) | {"message", "asctime", "taskName"}


@dataclass(frozen=True)
class LogEvent:
    level: LogLevel
    timestamp: datetime
    message_template: str = ""
    properties: Mapping[str, Any] = field(default_factory=dict)
    exception: Optional[BaseException] = None
    rendered_message: str = ""


def render_property_value(value: Any) -> str:
    """Render a property value as display text."""
    if isinstance(value, str):
        return value
    if value is None:
        return "null"
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


def render_template(template: str, properties: Mapping[str, Any]) -> str:
    """Substitute {name} placeholders; unknown names are left as written."""

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name in properties:
            return render_property_value(properties[name])
        return match.group(0)

    return _PLACEHOLDER.sub(_replace, template)


def create_log_event(
    level: LogLevel,
    message_template: str,
    properties: Optional[Mapping[str, Any]] = None,
    exception: Optional[BaseException] = None,
    timestamp: Optional[datetime] = None,
) -> LogEvent:
    """Factory function that creates a LogEvent with its message rendered."""
    props = dict(properties) if properties is not None else {}
    return LogEvent(
        level=LogLevel.parse(level),
        timestamp=timestamp or datetime.now(timezone.utc),
        message_template=message_template,
        properties=props,
        exception=exception,
        rendered_message=render_template(message_template, props),
    )


def event_from_record(record: logging.LogRecord) -> LogEvent:
    """Convert a stdlib LogRecord into a LogEvent.

    Named mapping arguments (``log.info("%(user)s", {"user": ...})``) and
    ``extra=`` attributes become event properties, in that order.
    """
    properties: dict[str, Any] = {}
    if isinstance(record.args, Mapping):
        properties.update(record.args)
    for key, value in vars(record).items():
        if key not in _RECORD_ATTRS and not key.startswith("_"):
            properties[key] = value

    exception = record.exc_info[1] if record.exc_info else None

    return LogEvent(
        level=LogLevel.from_logging_level(record.levelno),
        timestamp=datetime.fromtimestamp(record.created).astimezone(),
        message_template=str(record.msg),
        properties=properties,
        exception=exception,
        rendered_message=record.getMessage(),
    )


# ------------------------------------------------------------------
# Slack wire entities
# ------------------------------------------------------------------

@dataclass
class Field:
    title: str
    value: str
    short: Optional[bool] = None


@dataclass
class Attachment:
    fallback: str
    color: Optional[str] = None
    title: Optional[str] = None
    fields: list[Field] = field(default_factory=list)
    mrkdwn_in: list[str] = field(default_factory=list)


@dataclass
class Message:
    text: Optional[str] = None
    channel: Optional[str] = None
    username: Optional[str] = None
    icon_emoji: Optional[str] = None
    attachments: list[Attachment] = field(default_factory=list)
