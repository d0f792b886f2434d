"""Tests for the message formatter."""

from datetime import datetime, timezone

import pytest

from slack_log_sink.formatter import MessageFormatter, TextFormatter, format_message
from slack_log_sink.models import LogLevel, create_log_event

TS = datetime(2024, 1, 15, 10, 30, 0, tzinfo=timezone.utc)


def _event(level="Information", template="Hello", properties=None, exception=None):
    return create_log_event(level, template, properties, exception=exception, timestamp=TS)


def _raised(exc):
    try:
        raise exc
    except BaseException as caught:  # noqa: B902
        return caught


def _titles(attachment):
    return [f.title for f in attachment.fields]


class TestMessageText:
    def test_default_text_is_rendered_message(self, make_options):
        msg = format_message(_event(template="Order {id} shipped", properties={"id": 7}), make_options())
        assert msg.text == "Order 7 shipped"

    def test_custom_text_formatter(self, make_options):
        formatter = MessageFormatter(make_options(), TextFormatter("[{level}] {message}"))
        assert formatter.format(_event(level="Warning")).text == "[Warning] Hello"

    def test_defaults_for_channel_username_icon(self, make_options):
        opts = make_options(custom_channel="#logs", custom_user_name="bot", custom_icon=":ghost:")
        msg = format_message(_event(), opts)
        assert (msg.channel, msg.username, msg.icon_emoji) == ("#logs", "bot", ":ghost:")


class TestOverrides:
    def test_channel_override(self, make_options):
        opts = make_options(custom_channel="#logs", property_override_list=["channel"])
        msg = format_message(_event(properties={"CustomChannel": "#ops"}), opts)
        assert msg.channel == "#ops"

    def test_override_name_is_case_insensitive(self, make_options):
        opts = make_options(custom_user_name="bot", property_override_list=["username"])
        msg = format_message(_event(properties={"customusername": "oncall"}), opts)
        assert msg.username == "oncall"

    def test_override_not_enabled(self, make_options):
        opts = make_options(custom_channel="#logs")
        msg = format_message(_event(properties={"CustomChannel": "#ops"}), opts)
        assert msg.channel == "#logs"

    def test_empty_override_falls_back_to_default(self, make_options):
        opts = make_options(custom_icon=":ghost:", property_override_list=["icon"])
        msg = format_message(_event(properties={"CustomIcon": ""}), opts)
        assert msg.icon_emoji == ":ghost:"

    def test_override_quotes_are_stripped(self, make_options):
        opts = make_options(property_override_list=["channel"])
        msg = format_message(_event(properties={"CustomChannel": '"#ops"'}), opts)
        assert msg.channel == "#ops"

    def test_consumed_override_not_in_property_fields(self, make_options):
        opts = make_options(property_override_list=["channel"])
        msg = format_message(_event(properties={"CustomChannel": "#ops", "user_id": "u1"}), opts)
        props = msg.attachments[1]
        assert _titles(props) == ["user_id"]

    def test_disabled_override_property_is_a_normal_field(self, make_options):
        msg = format_message(_event(properties={"CustomChannel": "#ops"}), make_options())
        assert _titles(msg.attachments[1]) == ["CustomChannel"]


class TestDefaultAttachment:
    def test_fields_and_fallback(self, make_options):
        msg = format_message(_event(level="Warning", template="Disk low"), make_options())
        default = msg.attachments[0]
        assert default.fallback == "[Warning]Disk low"
        assert default.color == "#f0ad4e"
        assert _titles(default) == ["Level", "Timestamp"]
        assert default.fields[0].value == "Warning"
        assert default.fields[1].value == TS.isoformat()
        assert all(f.short is True for f in default.fields)

    def test_timestamp_format(self, make_options):
        msg = format_message(_event(), make_options(timestamp_format="%Y-%m-%d %H:%M"))
        assert msg.attachments[0].fields[1].value == "2024-01-15 10:30"

    def test_short_format_off(self, make_options):
        msg = format_message(_event(), make_options(default_attachments_short_format=False))
        assert all(f.short is False for f in msg.attachments[0].fields)

    def test_disabled(self, make_options):
        opts = make_options(show_default_attachments=False)
        assert format_message(_event(), opts).attachments == []

    def test_unmapped_color_uses_fallback(self, make_options):
        opts = make_options(attachment_colors={LogLevel.ERROR: "#f00"})
        msg = format_message(_event(level="Information"), opts)
        assert msg.attachments[0].color == "#777"


class TestPropertyAttachment:
    def test_properties_in_event_order(self, make_options):
        msg = format_message(_event(properties={"b": 1, "a": "two"}), make_options())
        props = msg.attachments[1]
        assert [(f.title, f.value) for f in props.fields] == [("b", "1"), ("a", "two")]
        assert props.color == "#5bc0de"

    def test_no_properties_no_attachment(self, make_options):
        msg = format_message(_event(), make_options())
        assert len(msg.attachments) == 1

    def test_deny_list(self, make_options):
        opts = make_options(property_deny_list=["Password"])
        msg = format_message(_event(properties={"password": "x", "user": "u"}), opts)
        assert _titles(msg.attachments[1]) == ["user"]

    def test_allow_list_wins_over_deny_list(self, make_options):
        opts = make_options(
            show_default_attachments=False,
            property_allow_list=["user_id"],
            property_deny_list=["user_id"],
        )
        msg = format_message(_event(properties={"user_id": "u-1", "other": 2}), opts)
        assert len(msg.attachments) == 1
        assert _titles(msg.attachments[0]) == ["user_id"]

    def test_allow_list_also_filters_default_fields(self, make_options):
        opts = make_options(property_allow_list=["Level", "user_id"])
        msg = format_message(_event(properties={"user_id": "u-1"}), opts)
        assert _titles(msg.attachments[0]) == ["Level"]
        assert _titles(msg.attachments[1]) == ["user_id"]

    def test_fully_filtered_attachments_are_dropped(self, make_options):
        opts = make_options(property_allow_list=["nothing_matches"])
        msg = format_message(
            _event(properties={"user": "u"}, exception=_raised(ValueError("x"))), opts
        )
        assert msg.attachments == []

    def test_short_format_flag(self, make_options):
        opts = make_options(property_attachments_short_format=False)
        msg = format_message(_event(properties={"k": "v"}), opts)
        assert msg.attachments[1].fields[0].short is False


class TestExceptionAttachment:
    def test_fields(self, make_options):
        exc = _raised(ValueError("bad input"))
        msg = format_message(_event(level="Information", exception=exc), make_options())
        attachment = msg.attachments[-1]
        assert attachment.title == "Exception"
        assert attachment.color == "#d9534f"
        assert attachment.mrkdwn_in == ["fields"]
        assert _titles(attachment) == ["Message", "Type", "Exception", "Stack Trace"]
        values = {f.title: f.value for f in attachment.fields}
        assert values["Message"] == "bad input"
        assert values["Type"] == "`ValueError`"
        assert values["Exception"] == "```bad input```"
        assert attachment.fallback.startswith("Exception: bad input \n ")

    def test_colour_is_fatal_regardless_of_level(self, make_options):
        opts = make_options(attachment_colors={LogLevel.FATAL: "#000", LogLevel.DEBUG: "#999"})
        msg = format_message(_event(level="Debug", exception=_raised(ValueError("x"))), opts)
        assert msg.attachments[0].color == "#999"
        assert msg.attachments[-1].color == "#000"

    def test_unraised_exception_has_no_stack_trace(self, make_options):
        msg = format_message(_event(exception=ValueError("x")), make_options())
        assert "Stack Trace" not in _titles(msg.attachments[-1])

    def test_aggregate_exception(self, make_options):
        group = ExceptionGroup("batch", [ValueError("first"), TypeError("second")])
        msg = format_message(_event(exception=group), make_options())
        values = {f.title: f.value for f in msg.attachments[-1].fields}
        assert values["Exception"] == "```batch ---> first | second```"
        assert values["Type"] == "`ExceptionGroup ---> ValueError | TypeError`"

    def test_long_message_truncated(self, make_options):
        msg = format_message(_event(exception=ValueError("z" * 5000)), make_options())
        values = {f.title: f.value for f in msg.attachments[-1].fields}
        assert len(values["Message"]) == 1000
        assert values["Exception"] == "```" + "z" * 997 + "...```"

    def test_disabled(self, make_options):
        opts = make_options(show_exception_attachments=False)
        msg = format_message(_event(exception=_raised(ValueError("x"))), opts)
        assert all(a.title != "Exception" for a in msg.attachments)

    @pytest.mark.parametrize("denied", ["stack trace", "Message"])
    def test_deny_list_applies_to_exception_fields(self, make_options, denied):
        opts = make_options(property_deny_list=[denied])
        msg = format_message(_event(exception=_raised(ValueError("x"))), opts)
        assert denied.casefold() not in [t.casefold() for t in _titles(msg.attachments[-1])]
