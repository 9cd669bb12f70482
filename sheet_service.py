# sheet_service.py

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError

from classroom_models import RESULT_SHEET_HEADER, UtResult
from service_result import ServiceResult

T = TypeVar("T")

LAST_COLUMN = "AA"

# Lesson master workbook
MASTER_SHEETNAME_LESSON = "lesson"
MASTER_LESSON_INSERT_START_COLUMN = "B"
MASTER_LESSON_NAME_COLUMN = "A"
MASTER_LESSON_CHANNEL_ID_COLUMN = "B"
MASTER_LESSON_TEACHER_ID_COLUMN = "C"
MASTER_LESSON_SPREADSHEET_ID_COLUMN = "D"

# Per-lesson workbook
LESSONSHEET_SHEETNAME_STUDENT = "学生"
LESSONSHEET_SHEETNAME_ASSIGNMENT = "課題一覧"
LESSONSHEET_SHEETNAME_SCORE = "成績"
STUDENT_TEAM_COLUMN_INDEX = 3

# First column that holds assignment titles on the score sheet (C)
SCORE_FIRST_ASSIGNMENT_COLUMN = 3

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def column_letter(column_number: int) -> str:
    """Convert a 1-based column number to its A1 letters (1 -> A, 27 -> AA)."""
    if column_number < 1:
        raise ValueError(f"column number must be positive, got {column_number}")
    letters = ""
    while column_number:
        column_number, remainder = divmod(column_number - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def next_score_column(header_row: Sequence[Any]) -> int:
    """Column number for the next assignment title on the score sheet.

    Titles start at column C and are separated by one blank column, so the
    next one goes two columns past the last populated cell read from C1.
    """
    if not header_row:
        return SCORE_FIRST_ASSIGNMENT_COLUMN
    return SCORE_FIRST_ASSIGNMENT_COLUMN - 1 + len(header_row) + 2


def rows_to_records(values: List[List[Any]]) -> List[Dict[str, Any]]:
    if not values:
        return []
    header, *rows = values
    return [
        {key: (row[index] if index < len(row) else None) for index, key in enumerate(header)}
        for row in rows
    ]


class SheetManager:
    """Google Sheets wrapper for the lesson master and the per-lesson workbooks.

    Every operation returns a ServiceResult; API errors are logged here and
    handed back to the caller as a failure result.
    """

    def __init__(self, service_factory: Callable[[], Any], correlation_id: Optional[str] = None):
        self._service_factory = service_factory
        self.correlation_id = correlation_id or "no-correlation-id"

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _values(self):
        return self._service_factory().spreadsheets().values()

    def _spreadsheets(self):
        return self._service_factory().spreadsheets()

    def _call(self, operation: str, func: Callable[[], T], **context: Any) -> ServiceResult[T]:
        try:
            return ServiceResult.success(func())
        except (HttpError, GoogleAuthError, OSError) as exc:
            logger.error(
                "sheet_api_error",
                extra={
                    "correlation_id": self.correlation_id,
                    "operation": operation,
                    "error": str(exc),
                    **context,
                },
            )
            return ServiceResult.failure(exc)

    def _get_values(self, spreadsheet_id: str, range_: str, major_dimension: Optional[str] = None):
        params: Dict[str, Any] = {"spreadsheetId": spreadsheet_id, "range": range_}
        if major_dimension:
            params["majorDimension"] = major_dimension
        return self._values().get(**params).execute().get("values") or []

    def _append(self, spreadsheet_id: str, range_: str, values: List[List[Any]], insert_option: str = "INSERT_ROWS"):
        return (
            self._values()
            .append(
                spreadsheetId=spreadsheet_id,
                range=range_,
                valueInputOption="USER_ENTERED",
                insertDataOption=insert_option,
                body={"values": values},
            )
            .execute()
        )

    def _update(self, spreadsheet_id: str, range_: str, values: List[List[Any]]):
        return (
            self._values()
            .update(
                spreadsheetId=spreadsheet_id,
                range=range_,
                valueInputOption="USER_ENTERED",
                body={"majorDimension": "ROWS", "range": range_, "values": values},
            )
            .execute()
        )

    def _sheet_properties(self, spreadsheet_id: str) -> List[Dict[str, Any]]:
        spreadsheet = self._spreadsheets().get(spreadsheetId=spreadsheet_id).execute()
        return [sheet.get("properties", {}) for sheet in spreadsheet.get("sheets", [])]

    def _batch_update(self, spreadsheet_id: str, requests: List[Dict[str, Any]]):
        return (
            self._spreadsheets()
            .batchUpdate(spreadsheetId=spreadsheet_id, body={"requests": requests})
            .execute()
        )

    def _lookup_cell(
        self,
        spreadsheet_id: str,
        search_column: str,
        search_word: str,
        target_column: str,
    ) -> ServiceResult[str]:
        row_result = self.find_row_num(spreadsheet_id, MASTER_SHEETNAME_LESSON, search_column, search_word)
        if not row_result.ok:
            return row_result  # type: ignore[return-value]

        cell = f"{MASTER_SHEETNAME_LESSON}!{target_column}{row_result.value}"
        values = self._call(
            "lookup_cell",
            lambda: self._get_values(spreadsheet_id, cell),
            spreadsheet_id=spreadsheet_id,
            range=cell,
        )
        if not values.ok:
            return values  # type: ignore[return-value]
        if not values.value or not values.value[0]:
            return ServiceResult.not_found(f"{cell} is empty")
        return ServiceResult.success(str(values.value[0][0]))

    # ------------------------------------------------------------------
    # Generic sheet access
    # ------------------------------------------------------------------
    def find_sheet(self, spreadsheet_id: str, sheet_name: str) -> ServiceResult[List[Dict[str, Any]]]:
        """Read a whole tab as records keyed by its first row."""
        return self._call(
            "find_sheet",
            lambda: rows_to_records(self._get_values(spreadsheet_id, sheet_name)),
            spreadsheet_id=spreadsheet_id,
            sheet_name=sheet_name,
        )

    def read_sheet(self, spreadsheet_id: str, sheet_title: str) -> ServiceResult[List[List[Any]]]:
        cells = f"{sheet_title}!A:{LAST_COLUMN}"
        return self._call(
            "read_sheet",
            lambda: self._get_values(spreadsheet_id, cells),
            spreadsheet_id=spreadsheet_id,
            range=cells,
        )

    def write_sheet(self, spreadsheet_id: str, sheet_title: str, values: List[List[Any]]) -> ServiceResult[Any]:
        return self._call(
            "write_sheet",
            lambda: self._append(spreadsheet_id, f"{sheet_title}!A1", values),
            spreadsheet_id=spreadsheet_id,
            sheet_title=sheet_title,
        )

    def find_row_num(
        self,
        spreadsheet_id: str,
        sheet_name: str,
        search_column: str,
        search_word: str,
    ) -> ServiceResult[int]:
        """1-based row number of the first cell in ``search_column`` equal to ``search_word``."""
        column_range = f"{sheet_name}!{search_column}:{search_column}"
        columns = self._call(
            "find_row_num",
            lambda: self._get_values(spreadsheet_id, column_range, "COLUMNS"),
            spreadsheet_id=spreadsheet_id,
            range=column_range,
        )
        if not columns.ok:
            return columns  # type: ignore[return-value]
        cells = columns.value[0] if columns.value else []
        for index, cell in enumerate(cells):
            if cell == search_word:
                return ServiceResult.success(index + 1)
        return ServiceResult.not_found(f"{search_word!r} not in {column_range}")

    def get_all_sheets(self, spreadsheet_id: str) -> ServiceResult[List[str]]:
        return self._call(
            "get_all_sheets",
            lambda: [props.get("title", "") for props in self._sheet_properties(spreadsheet_id)],
            spreadsheet_id=spreadsheet_id,
        )

    def _find_sheet_id(self, spreadsheet_id: str, key: str, expected: Any) -> ServiceResult[int]:
        properties = self._call(
            "find_sheet_id",
            lambda: self._sheet_properties(spreadsheet_id),
            spreadsheet_id=spreadsheet_id,
        )
        if not properties.ok:
            return properties  # type: ignore[return-value]
        for props in properties.value:
            if props.get(key) == expected and props.get("sheetId") is not None:
                return ServiceResult.success(int(props["sheetId"]))
        return ServiceResult.not_found(f"no sheet with {key}={expected!r}")

    def find_sheet_id_by_title(self, spreadsheet_id: str, sheet_title: str) -> ServiceResult[int]:
        return self._find_sheet_id(spreadsheet_id, "title", sheet_title)

    def find_sheet_id_by_index(self, spreadsheet_id: str, sheet_index: int) -> ServiceResult[int]:
        return self._find_sheet_id(spreadsheet_id, "index", sheet_index)

    def create_spreadsheet(self, title: str) -> ServiceResult[str]:
        result = self._call(
            "create_spreadsheet",
            lambda: self._spreadsheets().create(body={"properties": {"title": title}}).execute(),
            title=title,
        )
        if not result.ok:
            return result  # type: ignore[return-value]
        spreadsheet_id = (result.value or {}).get("spreadsheetId")
        if not spreadsheet_id:
            return ServiceResult.failure(f"spreadsheet {title!r} was not created")
        logger.info("spreadsheet_created", extra={"title": title, "spreadsheet_id": spreadsheet_id})
        return ServiceResult.success(spreadsheet_id)

    def create_sheet(self, spreadsheet_id: str, title: str) -> ServiceResult[Any]:
        return self._call(
            "create_sheet",
            lambda: self._batch_update(
                spreadsheet_id, [{"addSheet": {"properties": {"title": title}}}]
            ),
            spreadsheet_id=spreadsheet_id,
            title=title,
        )

    def rename_sheet(self, spreadsheet_id: str, sheet_id: int, title: str) -> ServiceResult[Any]:
        return self._call(
            "rename_sheet",
            lambda: self._batch_update(
                spreadsheet_id,
                [
                    {
                        "updateSheetProperties": {
                            "properties": {"sheetId": sheet_id, "title": title},
                            "fields": "title",
                        }
                    }
                ],
            ),
            spreadsheet_id=spreadsheet_id,
            sheet_id=sheet_id,
            title=title,
        )

    def copy_sheet(self, spreadsheet_id: str, sheet_id: int, destination_spreadsheet_id: str) -> ServiceResult[int]:
        result = self._call(
            "copy_sheet",
            lambda: self._spreadsheets()
            .sheets()
            .copyTo(
                spreadsheetId=spreadsheet_id,
                sheetId=sheet_id,
                body={"destinationSpreadsheetId": destination_spreadsheet_id},
            )
            .execute(),
            spreadsheet_id=spreadsheet_id,
            destination=destination_spreadsheet_id,
        )
        if not result.ok:
            return result  # type: ignore[return-value]
        new_sheet_id = (result.value or {}).get("sheetId")
        if new_sheet_id is None:
            return ServiceResult.failure("copyTo returned no sheetId")
        return ServiceResult.success(int(new_sheet_id))

    # ------------------------------------------------------------------
    # CI results
    # ------------------------------------------------------------------
    def write_github_result(
        self,
        spreadsheet_id: str,
        sheet_title: str,
        result: UtResult,
        sha: str,
    ) -> ServiceResult[Any]:
        return self._call(
            "write_github_result",
            lambda: self._append(spreadsheet_id, f"{sheet_title}!A1", [result.to_row(sha)]),
            spreadsheet_id=spreadsheet_id,
            sheet_title=sheet_title,
            repo=result.repo,
        )

    def create_assignment_sheet(self, spreadsheet_id: str, title: str) -> ServiceResult[Any]:
        """Add a result tab for an assignment and write its header row."""
        created = self.create_sheet(spreadsheet_id, title)
        if not created.ok:
            return created
        return self._call(
            "create_assignment_sheet",
            lambda: self._append(spreadsheet_id, f"{title}!A1", [RESULT_SHEET_HEADER], "OVERWRITE"),
            spreadsheet_id=spreadsheet_id,
            title=title,
        )

    def write_assignment_to_score_sheet(self, spreadsheet_id: str, title: str) -> ServiceResult[str]:
        header_range = f"{LESSONSHEET_SHEETNAME_SCORE}!C1:X1"
        header = self._call(
            "read_score_header",
            lambda: self._get_values(spreadsheet_id, header_range),
            spreadsheet_id=spreadsheet_id,
        )
        if not header.ok:
            return header  # type: ignore[return-value]

        header_row = header.value[0] if header.value else []
        target = f"{LESSONSHEET_SHEETNAME_SCORE}!{column_letter(next_score_column(header_row))}1"
        written = self._call(
            "write_assignment_to_score_sheet",
            lambda: self._update(spreadsheet_id, target, [[title]]),
            spreadsheet_id=spreadsheet_id,
            range=target,
        )
        if not written.ok:
            return written  # type: ignore[return-value]
        logger.info(
            "score_sheet_title_written",
            extra={"spreadsheet_id": spreadsheet_id, "range": target, "title": title},
        )
        return ServiceResult.success(target)

    # ------------------------------------------------------------------
    # Lesson master
    # ------------------------------------------------------------------
    def read_lessons(self, spreadsheet_id: str) -> ServiceResult[List[List[Any]]]:
        # row 1 is the header
        cells = f"{MASTER_SHEETNAME_LESSON}!A2:{LAST_COLUMN}"
        return self._call(
            "read_lessons",
            lambda: self._get_values(spreadsheet_id, cells),
            spreadsheet_id=spreadsheet_id,
        )

    def read_students_from_lesson_master(self, spreadsheet_id: str, lesson_name: str) -> ServiceResult[List[str]]:
        """Student emails from the master tab named after the lesson (column A)."""
        cells = f"{lesson_name}!A2:B"
        columns = self._call(
            "read_students_from_lesson_master",
            lambda: self._get_values(spreadsheet_id, cells, "COLUMNS"),
            spreadsheet_id=spreadsheet_id,
            lesson_name=lesson_name,
        )
        if not columns.ok:
            return columns  # type: ignore[return-value]
        return ServiceResult.success(list(columns.value[0]) if columns.value else [])

    def write_lesson_channel(
        self,
        spreadsheet_id: str,
        lesson_name: str,
        lesson_channel: str,
        teacher_id: str,
        lesson_spreadsheet_id: str,
    ) -> ServiceResult[int]:
        """Fill columns B..D of the lesson's row; returns the row number written."""
        row_result = self.find_row_num(spreadsheet_id, MASTER_SHEETNAME_LESSON, MASTER_LESSON_NAME_COLUMN, lesson_name)
        if not row_result.ok:
            return row_result

        target = f"{MASTER_SHEETNAME_LESSON}!{MASTER_LESSON_INSERT_START_COLUMN}{row_result.value}"
        written = self._call(
            "write_lesson_channel",
            lambda: self._update(spreadsheet_id, target, [[lesson_channel, teacher_id, lesson_spreadsheet_id]]),
            spreadsheet_id=spreadsheet_id,
            range=target,
        )
        if not written.ok:
            return written  # type: ignore[return-value]
        return ServiceResult.success(row_result.value)

    def find_spreadsheet_by_channel_id(self, spreadsheet_id: str, channel_id: str) -> ServiceResult[str]:
        return self._lookup_cell(
            spreadsheet_id,
            MASTER_LESSON_CHANNEL_ID_COLUMN,
            channel_id,
            MASTER_LESSON_SPREADSHEET_ID_COLUMN,
        )

    def find_channel_spreadsheet_id(self, spreadsheet_id: str, lesson_name: str) -> ServiceResult[str]:
        return self._lookup_cell(
            spreadsheet_id,
            MASTER_LESSON_NAME_COLUMN,
            lesson_name,
            MASTER_LESSON_SPREADSHEET_ID_COLUMN,
        )

    def find_teacher_by_channel_id(self, spreadsheet_id: str, channel_id: str) -> ServiceResult[str]:
        return self._lookup_cell(
            spreadsheet_id,
            MASTER_LESSON_CHANNEL_ID_COLUMN,
            channel_id,
            MASTER_LESSON_TEACHER_ID_COLUMN,
        )

    def find_team_list(self, spreadsheet_id: str) -> ServiceResult[List[str]]:
        cells = f"{LESSONSHEET_SHEETNAME_STUDENT}!A2:D"
        columns = self._call(
            "find_team_list",
            lambda: self._get_values(spreadsheet_id, cells, "COLUMNS"),
            spreadsheet_id=spreadsheet_id,
        )
        if not columns.ok:
            return columns  # type: ignore[return-value]
        if len(columns.value) <= STUDENT_TEAM_COLUMN_INDEX:
            return ServiceResult.success([])
        return ServiceResult.success(list(columns.value[STUDENT_TEAM_COLUMN_INDEX]))

    def read_students_info(self, spreadsheet_id: str) -> ServiceResult[List[List[Any]]]:
        cells = f"{LESSONSHEET_SHEETNAME_STUDENT}!A2:{LAST_COLUMN}"
        return self._call(
            "read_students_info",
            lambda: self._get_values(spreadsheet_id, cells),
            spreadsheet_id=spreadsheet_id,
        )

    # ------------------------------------------------------------------
    # Per-lesson workbook
    # ------------------------------------------------------------------
    def read_students(self, spreadsheet_id: str) -> ServiceResult[List[str]]:
        cells = f"{LESSONSHEET_SHEETNAME_STUDENT}!A2:B"
        columns = self._call(
            "read_students",
            lambda: self._get_values(spreadsheet_id, cells, "COLUMNS"),
            spreadsheet_id=spreadsheet_id,
        )
        if not columns.ok:
            return columns  # type: ignore[return-value]
        return ServiceResult.success(list(columns.value[0]) if columns.value else [])

    def read_assignments(self, spreadsheet_id: str) -> ServiceResult[List[List[Any]]]:
        cells = f"{LESSONSHEET_SHEETNAME_ASSIGNMENT}!A2:C"
        return self._call(
            "read_assignments",
            lambda: self._get_values(spreadsheet_id, cells),
            spreadsheet_id=spreadsheet_id,
        )

    def write_assignment_data(
        self,
        master_spreadsheet_id: str,
        lesson_channel_id: str,
        channel_name: str,
        channel_id: str,
        url: str,
    ) -> ServiceResult[Any]:
        """Append an assignment row to the workbook of the lesson owning ``lesson_channel_id``."""
        lesson_sheet = self.find_spreadsheet_by_channel_id(master_spreadsheet_id, lesson_channel_id)
        if not lesson_sheet.ok:
            return lesson_sheet
        return self._call(
            "write_assignment_data",
            lambda: self._append(
                lesson_sheet.value,
                f"{LESSONSHEET_SHEETNAME_ASSIGNMENT}!A1",
                [[channel_name, channel_id, url]],
            ),
            spreadsheet_id=lesson_sheet.value,
            channel_id=channel_id,
        )
