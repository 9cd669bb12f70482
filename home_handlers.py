"""Home tab: lesson and assignment channel links for teachers and students."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from classroom_context import ClassroomContext
from classroom_models import Assignment, ChannelLink, Lesson
from slack_blocks import build_home_view
from slack_utils import find_channel_by_name

logger = logging.getLogger(__name__)

TEACHER_LESSON_TASK = "成績シート閲覧"
STUDENT_ASSIGNMENT_TASK = "課題回答ページ"


def fetch_lessons(ctx: ClassroomContext) -> List[Lesson]:
    """Lessons that already have a channel."""
    rows = ctx.sheets.read_lessons(ctx.lesson_sheet_id)
    if not rows.ok:
        logger.error("lesson_list_unavailable", extra={"error": rows.error})
        return []
    lessons = [Lesson.from_row(row) for row in rows.value if row]
    return [lesson for lesson in lessons if lesson.channel_id]


def fetch_assignments(ctx: ClassroomContext, spreadsheet_id: str) -> List[Assignment]:
    if not spreadsheet_id:
        return []
    rows = ctx.sheets.read_assignments(spreadsheet_id).value_or([])
    return [Assignment.from_row(row) for row in rows if row]


def student_lessons(ctx: ClassroomContext, lessons: List[Lesson], email: Optional[str]) -> List[Lesson]:
    if not email:
        return []
    enrolled = []
    for lesson in lessons:
        if not lesson.spreadsheet_id:
            continue
        if email in ctx.sheets.read_students(lesson.spreadsheet_id).value_or([]):
            enrolled.append(lesson)
    return enrolled


def lesson_links(ctx: ClassroomContext, lessons: List[Lesson], *, is_teacher: bool) -> List[ChannelLink]:
    links = []
    for lesson in lessons:
        link = ChannelLink(channel_name=lesson.name, channel_id=lesson.channel_id)
        if is_teacher:
            link.task_name = TEACHER_LESSON_TASK
            link.task_url = ctx.settings.spreadsheet_url(lesson.spreadsheet_id)
        links.append(link)
    return links


def assignment_links(ctx: ClassroomContext, lessons: List[Lesson], *, is_teacher: bool) -> List[ChannelLink]:
    links = []
    for lesson in lessons:
        for assignment in fetch_assignments(ctx, lesson.spreadsheet_id):
            link = ChannelLink(channel_name=assignment.name, channel_id=assignment.channel_id)
            if not is_teacher and assignment.url:
                link.task_name = STUDENT_ASSIGNMENT_TASK
                link.task_url = assignment.url
            links.append(link)
    return links


def is_teacher(ctx: ClassroomContext, user_id: str) -> bool:
    channels = ctx.slack.conversations_list(types="public_channel,private_channel").get("channels") or []
    teacher_channel = find_channel_by_name(channels, ctx.settings.teacher_channel_name)
    if not teacher_channel:
        return False
    members = ctx.slack.conversations_members(channel=teacher_channel["id"]).get("members") or []
    return user_id in members


def app_home_opened(ctx: ClassroomContext, event: Dict[str, Any]) -> None:
    user_id = event["user"]
    user = ctx.slack.users_info(user=user_id).get("user") or {}
    teacher = is_teacher(ctx, user_id)

    lessons = fetch_lessons(ctx)
    if teacher:
        visible = [lesson for lesson in lessons if lesson.teacher_id]
    else:
        visible = student_lessons(ctx, lessons, (user.get("profile") or {}).get("email"))

    view = build_home_view(
        lesson_links(ctx, visible, is_teacher=teacher),
        assignment_links(ctx, visible, is_teacher=teacher),
        ctx.settings.channel_url,
        is_teacher=teacher,
    )
    ctx.slack.views_publish(user_id=user_id, view=view)
    logger.info("home_published", extra={"user": user_id, "is_teacher": teacher, "lessons": len(visible)})
