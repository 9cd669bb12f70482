import re

import pytest

from slack_utils import (
    convert_channel_name,
    create_plain_text_options,
    find_channel_by_name,
    is_generic_message_event,
    make_team_list,
    make_unregistered_lesson_list,
    member_ids_for_emails,
    view_state_values,
)


def test_convert_channel_name_replaces_symbols_and_roman_numerals():
    assert convert_channel_name("Team Ⅰ!") == "team_1"


@pytest.mark.parametrize("value", [None, ""])
def test_convert_channel_name_empty(value):
    assert convert_channel_name(value) == ""


def test_convert_channel_name_handles_japanese_punctuation():
    assert convert_channel_name("情報処理、演習。") == "情報処理_演習"


def test_convert_channel_name_lowercase_roman_numerals():
    assert convert_channel_name("Java ⅱ") == "java_2"


@pytest.mark.parametrize(
    "value",
    ["Hello, World!!", "A-B.C/D", "  spaced out  ", "Prog(2024)#1", "x___", "Ⅴ~Ⅳ"],
)
def test_convert_channel_name_ascii_output_is_channel_safe(value):
    converted = convert_channel_name(value)

    assert re.fullmatch(r"[a-z0-9_]*", converted)
    assert not converted.endswith("_")


def test_make_team_list_dedupes_in_order():
    assert make_team_list(["A", "B", "A", "C"]) == ["A", "B", "C"]


def test_make_team_list_drops_blanks():
    assert make_team_list(["", "A", None, "A"]) == ["A"]


def test_make_unregistered_lesson_list_filters_linked_rows():
    rows = [["L1", "C1"], ["L2", ""]]

    assert make_unregistered_lesson_list(rows) == [{"id": "L2", "name": "L2"}]


def test_make_unregistered_lesson_list_short_and_empty_rows():
    assert make_unregistered_lesson_list([["L3"], []]) == [{"id": "L3", "name": "L3"}]
    assert make_unregistered_lesson_list(None) == []
    assert make_unregistered_lesson_list([]) == []


def test_create_plain_text_options_uses_name_as_value():
    options = create_plain_text_options([{"id": "L2", "name": "L2"}])

    assert options == [{"text": {"type": "plain_text", "text": "L2"}, "value": "L2"}]


def test_member_ids_for_emails_matches_profile_email():
    members = [
        {"id": "U1", "profile": {"email": "a@example.com"}},
        {"id": "U2", "profile": {"email": "b@example.com"}},
        {"id": "U3", "profile": {}},
    ]

    assert member_ids_for_emails(members, ["b@example.com", ""]) == ["U2"]


def test_find_channel_by_name():
    channels = [{"id": "C1", "name": "general"}, {"id": "C2", "name": "教師用"}]

    assert find_channel_by_name(channels, "教師用") == {"id": "C2", "name": "教師用"}
    assert find_channel_by_name(channels, "missing") is None


def test_view_state_values_tolerates_missing_view():
    assert view_state_values({}) == {}
    assert view_state_values({"view": {"state": {"values": {"a": 1}}}}) == {"a": 1}


def test_is_generic_message_event():
    assert is_generic_message_event({"type": "message", "text": "hi"})
    assert not is_generic_message_event({"type": "message", "subtype": "message_changed"})
    assert not is_generic_message_event({"type": "message", "bot_id": "B1"})
