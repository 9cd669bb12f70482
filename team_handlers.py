"""Team channels: one channel per team listed on the student tab."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from classroom_context import ClassroomContext, ViewSubmissionOutcome
from slack_blocks import (
    build_create_team_channel_modal_view,
    build_failed_create_team_channel_modal_view,
    build_team_sections,
    plain_text,
)
from slack_utils import convert_channel_name, find_channel_by_name, make_team_list, view_state_values

logger = logging.getLogger(__name__)

CHANNEL_TYPES = "public_channel,private_channel"


def _channels(ctx: ClassroomContext) -> List[Dict[str, Any]]:
    return ctx.slack.conversations_list(types=CHANNEL_TYPES).get("channels") or []


def _team_list(ctx: ClassroomContext) -> List[str]:
    teams = ctx.sheets.find_team_list(ctx.lesson_sheet_id)
    if not teams.ok:
        logger.error("team_list_unavailable", extra={"error": teams.error})
    return make_team_list(teams.value_or([]))


def teacher_options(ctx: ClassroomContext) -> List[Dict[str, Any]]:
    """Select options for every member of the teacher channel."""
    teacher_channel = find_channel_by_name(_channels(ctx), ctx.settings.teacher_channel_name)
    if not teacher_channel:
        logger.warning("teacher_channel_missing", extra={"channel_name": ctx.settings.teacher_channel_name})
        return []

    options = []
    for member in ctx.slack.conversations_members(channel=teacher_channel["id"]).get("members") or []:
        user = ctx.slack.users_info(user=member).get("user") or {}
        options.append({"text": plain_text(user.get("real_name") or user.get("name") or member), "value": member})
    return options


def new_team_request(ctx: ClassroomContext, payload: Dict[str, Any]) -> None:
    opened = ctx.slack.views_open(
        trigger_id=payload["trigger_id"],
        view=build_create_team_channel_modal_view([], []),
    )
    view = build_create_team_channel_modal_view(build_team_sections(_team_list(ctx)), teacher_options(ctx))
    ctx.slack.views_update(view_id=opened["view"]["id"], view=view)


def team_member_ids(
    members: Sequence[Dict[str, Any]],
    students: Sequence[Sequence[Any]],
    team: str,
) -> List[str]:
    """Workspace user ids of students whose 学生 row (email, name, user name, team) is in ``team``."""
    emails = {row[0] for row in students if len(row) > 3 and row[0] and row[3] == team}
    return [
        member["id"]
        for member in members
        if member.get("id") and (member.get("profile") or {}).get("email") in emails
    ]


def submit_team_request(ctx: ClassroomContext, payload: Dict[str, Any]) -> ViewSubmissionOutcome:
    selected = ((view_state_values(payload).get("teacher") or {}).get("selectTeacher") or {}).get(
        "selected_options"
    ) or []
    teachers = [option["value"] for option in selected]

    team_list = _team_list(ctx)
    existing = {channel.get("name") for channel in _channels(ctx)}
    duplicates = [team for team in team_list if convert_channel_name(team) in existing]
    if duplicates:
        logger.info("team_channels_already_exist", extra={"teams": duplicates})
        return ViewSubmissionOutcome.update(build_failed_create_team_channel_modal_view(duplicates))

    return ViewSubmissionOutcome(followup=lambda: create_team_channels(ctx, team_list, teachers))


def create_team_channels(ctx: ClassroomContext, team_list: List[str], teachers: List[str]) -> None:
    members = ctx.slack.users_list().get("members") or []
    students = ctx.sheets.read_students_info(ctx.lesson_sheet_id).value_or([])

    for team in team_list:
        created = ctx.slack.conversations_create(name=convert_channel_name(team))
        channel_id = (created.get("channel") or {}).get("id")
        if not channel_id:
            raise RuntimeError(f"team channel for {team!r} was not created")

        invitees = [*teachers, *team_member_ids(members, students, team)]
        if invitees:
            ctx.slack.conversations_invite(channel=channel_id, users=",".join(invitees))
        logger.info("team_channel_created", extra={"team": team, "channel": channel_id, "members": len(invitees)})
