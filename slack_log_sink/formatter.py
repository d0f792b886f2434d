"""Message formatter: turns a LogEvent into a Slack Message."""

from typing import Optional, Protocol

from slack_log_sink import flatten
from slack_log_sink.config import SinkOptions
from slack_log_sink.models import (
    Attachment,
    Field,
    LogEvent,
    LogLevel,
    Message,
    OverridableProperty,
    render_property_value,
)

MAX_FIELD_LENGTH = 1000


class EventTextFormatter(Protocol):
    def render(self, event: LogEvent) -> str: ...


class TextFormatter:
    """Renders the message text from a str.format template.

    Available placeholders: ``message``, ``template``, ``level`` and
    ``timestamp``. The default template is just the rendered message.
    """

    def __init__(self, template: str = "{message}"):
        self._template = template

    def render(self, event: LogEvent) -> str:
        return self._template.format(
            message=event.rendered_message,
            template=event.message_template,
            level=event.level.label,
            timestamp=event.timestamp.isoformat(),
        )


class MessageFormatter:
    """Builds the Slack message for a single log event.

    Attachments are emitted in a fixed order (default, properties,
    exception), each only when enabled and only when at least one of its
    fields survives the allow/deny lists.
    """

    def __init__(
        self,
        options: SinkOptions,
        text_formatter: Optional[EventTextFormatter] = None,
    ):
        self._options = options
        self._text_formatter = text_formatter or TextFormatter()

    def format(self, event: LogEvent) -> Message:
        opts = self._options
        return Message(
            text=self._text_formatter.render(event),
            channel=self._resolve(event, OverridableProperty.CUSTOM_CHANNEL, opts.custom_channel),
            username=self._resolve(event, OverridableProperty.CUSTOM_USER_NAME, opts.custom_user_name),
            icon_emoji=self._resolve(event, OverridableProperty.CUSTOM_ICON, opts.custom_icon),
            attachments=self.create_attachments(event),
        )

    def create_attachments(self, event: LogEvent) -> list[Attachment]:
        attachments = [
            self._default_attachment(event),
            self._property_attachment(event),
            self._exception_attachment(event),
        ]
        return [a for a in attachments if a is not None and a.fields]

    # ------------------------------------------------------------------
    # Field filtering
    # ------------------------------------------------------------------

    def is_allowed(self, name: str) -> bool:
        """Allow list wins outright; the deny list only applies without one."""
        key = name.casefold()
        if self._options.property_allow_list is not None:
            return key in self._options.property_allow_list
        if self._options.property_deny_list is not None:
            return key not in self._options.property_deny_list
        return True

    def _is_override(self, name: str) -> bool:
        key = name.casefold()
        return any(p.value.casefold() == key for p in self._options.property_override_list)

    def _add_field(self, attachment: Attachment, field: Field):
        if self.is_allowed(field.title):
            attachment.fields.append(field)

    def _resolve(self, event: LogEvent, prop: OverridableProperty, default: Optional[str]) -> Optional[str]:
        if prop not in self._options.property_override_list:
            return default

        wanted = prop.value.casefold()
        for name, value in event.properties.items():
            if name.casefold() == wanted:
                text = render_property_value(value).replace('"', "")
                return text or default
        return default

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def _fallback(self, event: LogEvent) -> str:
        return f"[{event.level.label}]{event.rendered_message}"

    def _format_timestamp(self, event: LogEvent) -> str:
        if self._options.timestamp_format:
            return event.timestamp.strftime(self._options.timestamp_format)
        return event.timestamp.isoformat()

    def _default_attachment(self, event: LogEvent) -> Optional[Attachment]:
        opts = self._options
        if not opts.show_default_attachments:
            return None

        attachment = Attachment(
            fallback=self._fallback(event),
            color=opts.color_for(event.level),
        )
        short = opts.default_attachments_short_format
        self._add_field(attachment, Field("Level", event.level.label, short))
        self._add_field(attachment, Field("Timestamp", self._format_timestamp(event), short))
        return attachment

    def _property_attachment(self, event: LogEvent) -> Optional[Attachment]:
        opts = self._options
        if not opts.show_property_attachments:
            return None

        attachment = Attachment(
            fallback=self._fallback(event),
            color=opts.color_for(event.level),
        )
        for name, value in event.properties.items():
            if self._is_override(name):
                continue
            self._add_field(
                attachment,
                Field(name, render_property_value(value), opts.property_attachments_short_format),
            )
        return attachment

    def _exception_attachment(self, event: LogEvent) -> Optional[Attachment]:
        exc = event.exception
        if exc is None or not self._options.show_exception_attachments:
            return None

        message = flatten.exception_message(exc)
        trace = flatten.stack_trace(exc)
        attachment = Attachment(
            title="Exception",
            fallback=f"Exception: {message} \n {flatten.shorten(trace, MAX_FIELD_LENGTH)}",
            color=self._options.color_for(LogLevel.FATAL),
            mrkdwn_in=["fields"],
        )

        self._add_field(attachment, Field("Message", flatten.shorten(message, MAX_FIELD_LENGTH)))
        self._add_field(attachment, Field("Type", f"`{flatten.flattened_type(exc)}`"))
        flat_message = flatten.shorten(flatten.flattened_message(exc), MAX_FIELD_LENGTH)
        self._add_field(attachment, Field("Exception", f"```{flat_message}```", short=False))
        if trace:
            flat_trace = flatten.shorten(flatten.flattened_stack_trace(exc), MAX_FIELD_LENGTH)
            self._add_field(attachment, Field("Stack Trace", f"```{flat_trace}```", short=False))
        return attachment


def format_message(
    event: LogEvent,
    options: SinkOptions,
    text_formatter: Optional[EventTextFormatter] = None,
) -> Message:
    """Format a single event without keeping a formatter around."""
    return MessageFormatter(options, text_formatter).format(event)
