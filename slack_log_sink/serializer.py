"""Message serializer: Slack webhook JSON with empty fields left out."""

import json

from slack_log_sink.models import Attachment, Field, Message


def _compact(values: dict) -> dict:
    return {key: value for key, value in values.items() if value not in (None, "", [])}


def field_to_dict(field: Field) -> dict:
    return _compact({"title": field.title, "value": field.value, "short": field.short})


def attachment_to_dict(attachment: Attachment) -> dict:
    return _compact(
        {
            "title": attachment.title,
            "fallback": attachment.fallback,
            "color": attachment.color,
            "fields": [field_to_dict(f) for f in attachment.fields],
            "mrkdwn_in": list(attachment.mrkdwn_in),
        }
    )


def message_to_dict(message: Message) -> dict:
    """Convert a Message to the webhook payload shape."""
    return _compact(
        {
            "text": message.text,
            "channel": message.channel,
            "username": message.username,
            "icon_emoji": message.icon_emoji,
            "attachments": [
                attachment_to_dict(a) for a in message.attachments if a.fields
            ],
        }
    )


def serialize_message(message: Message) -> bytes:
    """Serialize a Message to UTF-8 JSON bytes."""
    return json.dumps(message_to_dict(message)).encode("utf-8")
