"""Configuration module: frozen SinkOptions loaded from YAML, env vars and CLI args."""

import argparse
import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields
from datetime import timedelta
from typing import Optional

import yaml

from slack_log_sink.errors import ConfigurationError
from slack_log_sink.models import LogLevel, OverridableProperty

logger = logging.getLogger(__name__)

FALLBACK_COLOR = "#777"

DEFAULT_ATTACHMENT_COLORS: dict[LogLevel, str] = {
    LogLevel.VERBOSE: "#777",
    LogLevel.DEBUG: "#777",
    LogLevel.INFORMATION: "#5bc0de",
    LogLevel.WARNING: "#f0ad4e",
    LogLevel.ERROR: "#d9534f",
    LogLevel.FATAL: "#d9534f",
}

_UNBOUNDED = ("", "none", "null", "unbounded")


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


def _parse_list(value) -> Optional[list[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return list(value)


def _parse_queue_limit(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in _UNBOUNDED:
        return None
    return int(value)


def _normalize_names(names: Optional[Iterable[str]], option: str) -> Optional[frozenset]:
    if names is None:
        return None
    if isinstance(names, str):
        names = [names]
    normalized = set()
    for name in names:
        if not isinstance(name, str):
            raise ConfigurationError(f"{option} entries must be strings, got {name!r}")
        if name.strip():
            normalized.add(name.strip().casefold())
    # An empty list means the option was left unset.
    return frozenset(normalized) or None


@dataclass(frozen=True)
class SinkOptions:
    webhook_url: str
    batch_size_limit: int = 50
    period: float = 5.0
    queue_limit: Optional[int] = 100000
    minimum_level: LogLevel = LogLevel.VERBOSE
    show_default_attachments: bool = True
    default_attachments_short_format: bool = True
    show_property_attachments: bool = True
    property_attachments_short_format: bool = True
    show_exception_attachments: bool = True
    attachment_colors: Mapping[LogLevel, str] = field(
        default_factory=lambda: dict(DEFAULT_ATTACHMENT_COLORS)
    )
    custom_channel: Optional[str] = None
    custom_user_name: Optional[str] = None
    custom_icon: Optional[str] = None
    property_allow_list: Optional[frozenset] = None
    property_deny_list: Optional[frozenset] = None
    property_override_list: frozenset = frozenset()
    timestamp_format: Optional[str] = None
    shutdown_timeout: float = 10.0
    request_timeout: float = 10.0

    def __post_init__(self):
        if not isinstance(self.webhook_url, str) or not self.webhook_url.strip():
            raise ConfigurationError("webhook_url is required")

        period = self.period
        if isinstance(period, timedelta):
            period = period.total_seconds()
        object.__setattr__(self, "period", float(period))

        if self.batch_size_limit <= 0:
            raise ConfigurationError("batch_size_limit must be positive")
        if self.period <= 0:
            raise ConfigurationError("period must be positive")
        if self.queue_limit is not None and self.queue_limit <= 0:
            raise ConfigurationError("queue_limit must be positive or None")
        if self.shutdown_timeout < 0 or self.request_timeout < 0:
            raise ConfigurationError("timeouts must not be negative")

        object.__setattr__(self, "minimum_level", LogLevel.parse(self.minimum_level))
        object.__setattr__(
            self,
            "property_allow_list",
            _normalize_names(self.property_allow_list, "property_allow_list"),
        )
        object.__setattr__(
            self,
            "property_deny_list",
            _normalize_names(self.property_deny_list, "property_deny_list"),
        )
        object.__setattr__(
            self,
            "property_override_list",
            frozenset(OverridableProperty.parse(p) for p in self.property_override_list),
        )
        object.__setattr__(self, "attachment_colors", self._complete_colors())

    def _complete_colors(self) -> dict[LogLevel, str]:
        colors = {LogLevel.parse(level): color for level, color in self.attachment_colors.items()}
        missing = [level for level in LogLevel if level not in colors]
        if missing:
            logger.warning(
                "No attachment color for %s, using %s",
                ", ".join(level.label for level in missing),
                FALLBACK_COLOR,
            )
            for level in missing:
                colors[level] = FALLBACK_COLOR
        return colors

    def color_for(self, level: LogLevel) -> str:
        return self.attachment_colors.get(level, FALLBACK_COLOR)


# ------------------------------------------------------------------
# Loading
# ------------------------------------------------------------------

# Environment variable -> (field name, parser)
_ENV_VARS = {
    "SLACK_WEBHOOK_URL": ("webhook_url", str),
    "SLACK_BATCH_SIZE_LIMIT": ("batch_size_limit", int),
    "SLACK_PERIOD": ("period", float),
    "SLACK_QUEUE_LIMIT": ("queue_limit", _parse_queue_limit),
    "SLACK_MINIMUM_LEVEL": ("minimum_level", LogLevel.parse),
    "SLACK_SHOW_DEFAULT_ATTACHMENTS": ("show_default_attachments", _parse_bool),
    "SLACK_DEFAULT_ATTACHMENTS_SHORT_FORMAT": ("default_attachments_short_format", _parse_bool),
    "SLACK_SHOW_PROPERTY_ATTACHMENTS": ("show_property_attachments", _parse_bool),
    "SLACK_PROPERTY_ATTACHMENTS_SHORT_FORMAT": ("property_attachments_short_format", _parse_bool),
    "SLACK_SHOW_EXCEPTION_ATTACHMENTS": ("show_exception_attachments", _parse_bool),
    "SLACK_CHANNEL": ("custom_channel", str),
    "SLACK_USERNAME": ("custom_user_name", str),
    "SLACK_ICON": ("custom_icon", str),
    "SLACK_PROPERTY_ALLOW_LIST": ("property_allow_list", _parse_list),
    "SLACK_PROPERTY_DENY_LIST": ("property_deny_list", _parse_list),
    "SLACK_PROPERTY_OVERRIDE_LIST": ("property_override_list", _parse_list),
    "SLACK_TIMESTAMP_FORMAT": ("timestamp_format", str),
    "SLACK_SHUTDOWN_TIMEOUT": ("shutdown_timeout", float),
    "SLACK_REQUEST_TIMEOUT": ("request_timeout", float),
}


def load_yaml_config(path: Optional[str]) -> dict:
    """Load option values from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    known = {f.name for f in fields(SinkOptions)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("Ignoring unknown options in %s: %s", path, ", ".join(unknown))

    logger.info("Loaded YAML config from %s", path)
    return {key: value for key, value in data.items() if key in known}


def _yaml_values(data: dict) -> dict:
    values = dict(data)
    if "queue_limit" in values:
        values["queue_limit"] = _parse_queue_limit(values["queue_limit"])
    if "attachment_colors" in values:
        values["attachment_colors"] = {
            LogLevel.parse(level): color
            for level, color in (values["attachment_colors"] or {}).items()
        }
        # YAML only overrides the colors it names.
        values["attachment_colors"] = {**DEFAULT_ATTACHMENT_COLORS, **values["attachment_colors"]}
    for key in ("property_allow_list", "property_deny_list", "property_override_list"):
        if key in values:
            values[key] = _parse_list(values[key])
    if values.get("property_override_list") is None:
        values.pop("property_override_list", None)
    return values


def _env_values() -> dict:
    values = {}
    for var, (name, parse) in _ENV_VARS.items():
        raw = os.environ.get(var)
        if raw is None:
            continue
        try:
            values[name] = parse(raw)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid value for {var}: {raw!r}") from exc
    if values.get("property_override_list") is None:
        values.pop("property_override_list", None)
    return values


def load_options(argv=None) -> SinkOptions:
    """Build SinkOptions from a YAML file, env vars and CLI args.

    Precedence is CLI flag > environment variable > YAML file > default.
    Pass argv for testability; when None, argparse reads sys.argv.
    """
    parser = argparse.ArgumentParser(description="Slack log sink")
    parser.add_argument("--config", type=str, default=None)
    parser.add_argument("--webhook-url", type=str, default=None)
    parser.add_argument("--batch-size-limit", type=int, default=None)
    parser.add_argument("--period", type=float, default=None)
    parser.add_argument("--queue-limit", type=str, default=None)
    parser.add_argument("--minimum-level", type=str, default=None)
    parser.add_argument("--channel", type=str, default=None)
    parser.add_argument("--username", type=str, default=None)
    parser.add_argument("--icon", type=str, default=None)
    parser.add_argument("--timestamp-format", type=str, default=None)

    args = parser.parse_args(argv)

    config_path = args.config or os.environ.get("SLACK_SINK_CONFIG")
    values = _yaml_values(load_yaml_config(config_path))
    values.update(_env_values())

    cli_values = {
        "webhook_url": args.webhook_url,
        "batch_size_limit": args.batch_size_limit,
        "period": args.period,
        "minimum_level": args.minimum_level,
        "custom_channel": args.channel,
        "custom_user_name": args.username,
        "custom_icon": args.icon,
        "timestamp_format": args.timestamp_format,
    }
    values.update({key: value for key, value in cli_values.items() if value is not None})
    if args.queue_limit is not None:
        values["queue_limit"] = _parse_queue_limit(args.queue_limit)

    values.setdefault("webhook_url", "")
    return SinkOptions(**values)
