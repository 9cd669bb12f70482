"""
Slack Block Kit builders for the classroom modals, messages and home tab.
Provides composable functions returning plain dict payloads.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from classroom_models import AssignmentProgress, ChannelLink

Block = Dict[str, Any]

LESSON_CALLBACK_ID = "submitLesson"
ASSIGNMENT_CALLBACK_ID = "submitAsignment"
TEAM_CALLBACK_ID = "submitTeam"
TEAM_FAILED_CALLBACK_ID = "failedTeam"
QUESTION_CALLBACK_ID = "submitQuestion"
PROGRESS_CALLBACK_ID = "submitSelectAsignmentRequest"
PROGRESS_BLOCK_ID = f"{PROGRESS_CALLBACK_ID}Block"
PROGRESS_ACTION_ID = f"{PROGRESS_CALLBACK_ID}Action"

GITHUB_CLASSROOM_URL = "https://classroom.github.com/classrooms"
PLACEHOLDER_IMAGE_URL = "https://api.slack.com/img/blocks/bkb_template_images/placeholder.png"


def plain_text(text: str, emoji: bool = True) -> Dict[str, Any]:
    return {"type": "plain_text", "text": text, "emoji": emoji}


def mrkdwn_section(text: str) -> Block:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def divider() -> Block:
    return {"type": "divider"}


def header(text: str) -> Block:
    return {"type": "header", "text": plain_text(text)}


def modal(
    callback_id: str,
    title: str,
    blocks: List[Block],
    submit: Optional[str] = None,
    close: str = "キャンセル",
) -> Dict[str, Any]:
    view: Dict[str, Any] = {
        "type": "modal",
        "callback_id": callback_id,
        "title": plain_text(title),
        "close": plain_text(close),
        "blocks": blocks,
    }
    if submit:
        view["submit"] = plain_text(submit)
    return view


# ----------------------------------------------------------------------
# Lesson registration
# ----------------------------------------------------------------------
def build_regist_lesson_modal_view(options: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Lesson picker; the select is left out until options are loaded."""
    blocks: List[Block] = [
        header("slack授業チャンネル作成"),
        mrkdwn_section("セレクトボックスからslackに取り込みたい授業を選択してください。"),
    ]
    if options:
        blocks.append(
            {
                "type": "input",
                "block_id": "lesson",
                "element": {
                    "type": "static_select",
                    "placeholder": plain_text("授業を選択してください"),
                    "action_id": "selectLesson",
                    "options": options,
                },
                "label": plain_text("授業"),
            }
        )
    return modal(LESSON_CALLBACK_ID, "授業作成", blocks, submit="登録")


def build_new_master_info(lesson_name: str, spreadsheet_url: str) -> List[Block]:
    return [
        mrkdwn_section(
            ":bulb: *マスタURLのご案内*\n\n授業の情報が記載されているシートURLです。\n"
            "成績や進捗はこちらのシートからご覧ください。"
        ),
        divider(),
        mrkdwn_section(f"*{lesson_name}*\n\n{spreadsheet_url}\n\n"),
        divider(),
    ]


# ----------------------------------------------------------------------
# Assignment registration
# ----------------------------------------------------------------------
def build_assignment_modal_view() -> Dict[str, Any]:
    blocks: List[Block] = [
        mrkdwn_section("Github Classroomで作成した課題URLを入力してください。"),
        divider(),
        {
            "type": "input",
            "block_id": "lesson",
            "label": plain_text("授業選択"),
            "element": {
                "action_id": "selectLesson",
                "type": "conversations_select",
                "default_to_current_conversation": True,
                "placeholder": plain_text("チャンネル一覧から授業を選択"),
                "filter": {"include": ["public", "private"], "exclude_bot_users": True},
            },
        },
        {
            "type": "input",
            "block_id": "name",
            "element": {"type": "plain_text_input", "action_id": "inputName"},
            "label": plain_text("課題名"),
        },
        {
            "type": "input",
            "block_id": "url",
            "element": {"type": "plain_text_input", "action_id": "inputURL"},
            "label": plain_text("課題URL"),
        },
    ]
    return modal(ASSIGNMENT_CALLBACK_ID, "課題登録", blocks, submit="登録")


def build_new_assignment_info(assignment_name: str, assignment_url: str) -> List[Block]:
    return [
        mrkdwn_section(
            "\n\n:new: *新しい課題のおしらせ* :new:\n\n"
            "下記のURLからアクセスし、課題に取り組んでください。\n\n質問はこちらのチャンネルにどうぞ！"
        ),
        divider(),
        mrkdwn_section(
            f":memo: *課題名*\n\n{assignment_name}\n\n\n:memo: *課題URL*\n\n {assignment_url}"
        ),
    ]


# ----------------------------------------------------------------------
# Team channels
# ----------------------------------------------------------------------
def build_team_sections(team_list: Iterable[str]) -> List[Block]:
    return [mrkdwn_section(f"・ {team}") for team in team_list]


def build_create_team_channel_modal_view(
    team_sections: List[Block],
    teacher_options: List[Dict[str, Any]],
) -> Dict[str, Any]:
    blocks: List[Block] = [
        header("チームチャンネル作成"),
        mrkdwn_section("以下のチームチャンネルを作成します。"),
        *team_sections,
    ]
    if teacher_options:
        blocks.append(
            {
                "type": "input",
                "block_id": "teacher",
                "element": {
                    "type": "multi_static_select",
                    "action_id": "selectTeacher",
                    "placeholder": plain_text("追加する教師を選択してください。", emoji=False),
                    "options": teacher_options,
                },
                "label": plain_text("教師"),
            }
        )
    return modal(TEAM_CALLBACK_ID, "チームチャンネル作成", blocks, submit="作成")


def build_failed_create_team_channel_modal_view(team_list: Sequence[str]) -> Dict[str, Any]:
    blocks: List[Block] = [
        header("チームチャンネル作成失敗"),
        mrkdwn_section("以下のチームチャンネルが既に存在するためチャンネルの作成が行えませんでした。"),
        *build_team_sections(team_list),
        mrkdwn_section("チームチャンネルを新たに作成したい場合は全てのチームチャンネルを削除してください。"),
    ]
    return modal(TEAM_FAILED_CALLBACK_ID, "チームチャンネル作成", blocks)


# ----------------------------------------------------------------------
# Questions
# ----------------------------------------------------------------------
FIRST_QUESTION_OPTIONS = {
    "1": "意味を教えてほしい",
    "2": "使い方を教えてほしい",
    "3": "自由記述",
}
SECOND_QUESTION_OPTIONS = {
    "1": "Javaのコードの内容",
    "2": "Javaのエラーの内容",
}
FREE_TEXT_CHOICE = "3"


def _static_options(choices: Dict[str, str]) -> List[Dict[str, Any]]:
    return [{"text": plain_text(label, emoji=False), "value": value} for value, label in choices.items()]


def build_ask_question_modal_view(hidden_block_ids: Iterable[str] = ()) -> Dict[str, Any]:
    hidden = set(hidden_block_ids)
    blocks: List[Block] = [
        {
            "type": "input",
            "block_id": "firstQuestion",
            "dispatch_action": True,
            "element": {
                "type": "static_select",
                "placeholder": plain_text("選択してください", emoji=False),
                "action_id": "selectFirstQuestion",
                "options": _static_options(FIRST_QUESTION_OPTIONS),
            },
            "label": plain_text("概要", emoji=False),
        },
        {
            "type": "input",
            "block_id": "secondQuestion",
            "dispatch_action": True,
            "element": {
                "type": "static_select",
                "placeholder": plain_text("選択してください", emoji=False),
                "action_id": "selectSecondQuestion",
                "options": _static_options(SECOND_QUESTION_OPTIONS),
            },
            "label": plain_text("内容", emoji=False),
        },
        {
            "type": "input",
            "block_id": "content",
            "element": {
                "type": "plain_text_input",
                "action_id": "content",
                "multiline": True,
                "placeholder": plain_text("質問したい単語やエラーメッセージを貼りつけてください", emoji=False),
            },
            "label": plain_text("キーワードを入力", emoji=False),
        },
    ]
    blocks = [block for block in blocks if block["block_id"] not in hidden]
    return modal(QUESTION_CALLBACK_ID, "質問", blocks, submit="実行")


# ----------------------------------------------------------------------
# Progress report
# ----------------------------------------------------------------------
def build_select_progress_modal_view(lesson_options: List[Dict[str, Any]]) -> Dict[str, Any]:
    blocks: List[Block] = [
        mrkdwn_section("今日の進捗一覧を確認します"),
        {
            "type": "input",
            "block_id": PROGRESS_BLOCK_ID,
            "label": plain_text("授業"),
            "element": {
                "type": "static_select",
                "placeholder": plain_text("確認したい授業"),
                "options": lesson_options,
                "action_id": PROGRESS_ACTION_ID,
            },
        },
    ]
    return modal(PROGRESS_CALLBACK_ID, "進捗を見る", blocks, submit="確認する")


def build_progress_section(data: AssignmentProgress) -> Block:
    section = mrkdwn_section(
        f"`{data.repo}`: \n:white_check_mark: {data.tests} :no_entry: {data.failures} "
        f":waving_white_flag: {data.ignored} :hourglass_flowing_sand: {data.success_rate}"
    )
    section["accessory"] = {"type": "button", "text": plain_text("準備中..."), "value": data.repo or "progress"}
    return section


def build_progress_context(data: AssignmentProgress) -> Block:
    return {
        "type": "context",
        "elements": [{"type": "mrkdwn", "text": f"_{data.username}_ {data.date}"}],
    }


def build_progress_report(
    sheet_map: Dict[str, List[AssignmentProgress]],
    now: Optional[datetime] = None,
) -> List[Block]:
    now = now or datetime.now()
    blocks: List[Block] = [
        header(":newspaper:  進捗状況  :newspaper:"),
        {
            "type": "context",
            "elements": [
                {"type": "mrkdwn", "text": f"*{now.strftime('%Y/%m/%d %H:%M:%S')}*  |  現在の最新進捗"}
            ],
        },
        divider(),
    ]
    for sheet_name, rows in sheet_map.items():
        blocks.append(mrkdwn_section(f":runner: *{sheet_name}* :runner:"))
        for row in rows:
            blocks.append(build_progress_section(row))
            blocks.append(build_progress_context(row))
    blocks.append(divider())
    blocks.append(
        {
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": ":pushpin: 詳細を見るとさらに細かいデータが確認できます"}],
        }
    )
    return blocks


# ----------------------------------------------------------------------
# Home tab
# ----------------------------------------------------------------------
def build_blank() -> Block:
    return {
        "type": "context",
        "elements": [{"type": "image", "image_url": PLACEHOLDER_IMAGE_URL, "alt_text": "  "}],
    }


def build_title(title: str) -> List[Block]:
    return [mrkdwn_section(f"*{title}*"), divider()]


def build_button_section(text: str, button_text: str, url: str = "", value: str = "") -> Block:
    accessory: Dict[str, Any] = {"type": "button", "text": plain_text(button_text)}
    if url:
        accessory["url"] = url
    if value:
        accessory["value"] = value
    section = mrkdwn_section(text)
    section["accessory"] = accessory
    return section


def build_github_classroom_link() -> Block:
    return build_button_section(":link: *GitHub Classroom* ", "Go to classroom", GITHUB_CLASSROOM_URL)


def build_channel_links(links: List[ChannelLink], channel_url) -> List[Block]:
    """One button row per channel; ``channel_url`` maps a channel id to its web URL."""
    if not links:
        return [mrkdwn_section("チャンネルが見つかりませんでした。")]
    blocks = []
    for link in links:
        if link.task_name:
            text = f"*{link.channel_name}*\n\n    :clipboard:<{link.task_url}|{link.task_name}>"
        else:
            text = f"*{link.channel_name}*"
        blocks.append(build_button_section(text, "Go to channel", channel_url(link.channel_id)))
    return blocks


def build_home_view(
    lesson_links: List[ChannelLink],
    assignment_links: List[ChannelLink],
    channel_url,
    *,
    is_teacher: bool,
) -> Dict[str, Any]:
    blocks: List[Block] = [header(" 遠隔教育プラットフォーム "), divider()]
    if is_teacher:
        blocks.append(build_github_classroom_link())
    blocks.extend(
        [
            build_blank(),
            *build_title("授業チャンネル"),
            *build_channel_links(lesson_links, channel_url),
            divider(),
            build_blank(),
            *build_title("課題チャンネル"),
            *build_channel_links(assignment_links, channel_url),
            divider(),
        ]
    )
    return {"type": "home", "blocks": blocks}
