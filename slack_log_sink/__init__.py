"""Batched Slack webhook sink for Python logging."""

from slack_log_sink.config import SinkOptions, load_options
from slack_log_sink.errors import ConfigurationError
from slack_log_sink.formatter import MessageFormatter, TextFormatter, format_message
from slack_log_sink.handler import SlackHandler, add_slack_handler
from slack_log_sink.models import (
    Attachment,
    Field,
    LogEvent,
    LogLevel,
    Message,
    OverridableProperty,
    create_log_event,
)
from slack_log_sink.sink import SlackSink

__all__ = [
    "Attachment",
    "ConfigurationError",
    "Field",
    "LogEvent",
    "LogLevel",
    "Message",
    "MessageFormatter",
    "OverridableProperty",
    "SinkOptions",
    "SlackHandler",
    "SlackSink",
    "TextFormatter",
    "add_slack_handler",
    "create_log_event",
    "format_message",
    "load_options",
]
