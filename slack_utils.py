"""Pure helpers shared by the Slack handlers."""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

# Slack channel names: no upper case, no symbols except - and _, no roman numerals
_CHANNEL_DISALLOWED = re.compile(r"[!\"#$%&'()*+\-.,/:;<=>?@\[\\\]^_`{|}~\s、。]")
_ROMAN_NUMERALS = str.maketrans(
    {
        "Ⅰ": "1",
        "ⅰ": "1",
        "Ⅱ": "2",
        "ⅱ": "2",
        "Ⅲ": "3",
        "ⅲ": "3",
        "Ⅳ": "4",
        "ⅳ": "4",
        "Ⅴ": "5",
        "ⅴ": "5",
    }
)


def convert_channel_name(original_channel_name: Optional[str]) -> str:
    """Turn free text into a value Slack accepts as a channel name."""
    if not original_channel_name:
        return ""
    converted = _CHANNEL_DISALLOWED.sub("_", original_channel_name.lower())
    converted = converted.translate(_ROMAN_NUMERALS)
    return converted.rstrip("_")


def make_team_list(sheet_teams: Iterable[Optional[str]]) -> List[str]:
    """Unique team names in first-seen order."""
    team_list: List[str] = []
    for team in sheet_teams:
        if team and team not in team_list:
            team_list.append(team)
    return team_list


def make_unregistered_lesson_list(sheet_lessons: Optional[Sequence[Sequence[Any]]]) -> List[Dict[str, str]]:
    """Lessons from the lesson sheet that have no channel yet.

    Rows are ``[lessonName, channelId, ...]``; lesson names are assumed unique.
    """
    if not sheet_lessons:
        return []
    return [
        {"id": lesson[0], "name": lesson[0]}
        for lesson in sheet_lessons
        if lesson and (len(lesson) < 2 or not lesson[1])
    ]


def create_plain_text_options(items: Iterable[Dict[str, str]]) -> List[Dict[str, Any]]:
    return [
        {"text": {"type": "plain_text", "text": item["name"]}, "value": item["name"]}
        for item in items
    ]


def member_ids_for_emails(members: Iterable[Dict[str, Any]], emails: Iterable[str]) -> List[str]:
    """Slack user ids of workspace members whose profile email is in ``emails``."""
    wanted = {email for email in emails if email}
    return [
        member["id"]
        for member in members
        if member.get("id") and (member.get("profile") or {}).get("email") in wanted
    ]


def find_channel_by_name(channels: Iterable[Dict[str, Any]], name: str) -> Optional[Dict[str, Any]]:
    return next((channel for channel in channels if channel.get("name") == name), None)


def view_state_values(payload: Dict[str, Any]) -> Dict[str, Any]:
    return ((payload.get("view") or {}).get("state") or {}).get("values") or {}


def is_generic_message_event(event: Dict[str, Any]) -> bool:
    """True for plain user messages (no subtype, not posted by a bot)."""
    return event.get("subtype") is None and not event.get("bot_id")
