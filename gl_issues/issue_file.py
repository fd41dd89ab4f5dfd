"""Reading issue definitions from CSV and JSON files."""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path

from gl_issues.models import DEFAULT_SEPARATOR, DEFAULT_TITLE_KEY, SUPPORTED_FILE_TYPES, IssueFromFile


class IssueFileError(ValueError):
    """The issue file cannot be read or does not match the field mapping."""


class FileParser:
    """
    Turn the rows of a CSV file, or the objects of a JSON file, into issues.

    Columns are selected by header name (case-insensitive) or zero-based index.
    JSON files only support key names.
    """

    def __init__(
        self,
        path: str | Path,
        separator: str = DEFAULT_SEPARATOR,
        no_header: bool = False,
        title_key: str | None = None,
        title_column: int | None = None,
        description_key: str | None = None,
        description_column: int | None = None,
        prepend_title: str | None = None,
        combine_remaining: bool = False,
    ):
        self.path = Path(path)
        self.file_type = self.path.suffix.lstrip(".").lower()
        self.separator = separator
        self.no_header = no_header
        if title_key is None and title_column is None:
            title_key = DEFAULT_TITLE_KEY
        self.title_key = title_key
        self.title_column = title_column
        self.description_key = description_key
        self.description_column = description_column
        self.prepend_title = prepend_title
        self.combine_remaining = combine_remaining
        self.logger = logging.getLogger("gl-issues")

    def get_issues(self) -> list[IssueFromFile]:
        if not self.path.exists():
            raise IssueFileError(f"File does not exist: {self.path}")
        if not self.path.is_file():
            raise IssueFileError(f"Not a regular file: {self.path}")
        if self.file_type not in SUPPORTED_FILE_TYPES:
            raise IssueFileError(
                f"Unsupported file type '{self.file_type or self.path.name}' "
                f"(supported: {', '.join(SUPPORTED_FILE_TYPES)})"
            )
        if self.file_type == "csv":
            return self.csv_to_issues()
        return self.json_to_issues()

    # -- CSV --

    def csv_to_issues(self) -> list[IssueFromFile]:
        self.logger.debug(f"Parsing CSV file {self.path} (separator={self.separator!r}, no_header={self.no_header})")
        if len(self.separator) != 1:
            raise IssueFileError(f"Separator must be a single character, got {self.separator!r}")

        try:
            with self.path.open(newline="", encoding="utf-8-sig") as fh:
                reader = csv.reader(fh, delimiter=self.separator)
                # (file line, fields), blank lines skipped
                rows = [(reader.line_num, row) for row in reader if row]
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            raise IssueFileError(f"Could not read CSV file {self.path}: {e}") from e

        if not rows:
            return []

        if self.no_header:
            headers = [f"Column {i}" for i in range(len(rows[0][1]))]
            records = rows
        else:
            headers = [h.strip() for h in rows[0][1]]
            records = rows[1:]
            self.logger.debug(f"CSV file has headers {headers}")

        title_index = self._column_index(headers, self.title_key, self.title_column, "title")
        description_index = None
        if self.combine_remaining:
            self.logger.debug("Combining remaining columns into the description")
        elif self.description_key is not None or self.description_column is not None:
            description_index = self._column_index(
                headers, self.description_key, self.description_column, "description"
            )

        issues = []
        for row_number, record in records:
            if title_index >= len(record):
                raise IssueFileError(f"Row {row_number} has no title column (index {title_index})")
            title = record[title_index]

            description = None
            if self.combine_remaining:
                description = "".join(
                    f"{(headers[i] if i < len(headers) else f'Column {i}').strip()}: {value}\n\n"
                    for i, value in enumerate(record)
                    if i != title_index
                ) or None
            elif description_index is not None:
                if description_index >= len(record):
                    raise IssueFileError(f"Row {row_number} has no description column (index {description_index})")
                description = record[description_index]

            issues.append(self._make_issue(title, description, row_number))
        return issues

    def _column_index(self, headers: list[str], key: str | None, column: int | None, what: str) -> int:
        if column is not None:
            if column < 0 or column >= len(headers):
                raise IssueFileError(f"{what} column index {column} is out of bounds ({len(headers)} columns)")
            return column

        if self.no_header:
            raise IssueFileError(f"Cannot select the {what} column by name '{key}' in a file without a header")

        self.logger.debug(f"Looking up {what} column '{key}'")
        wanted = key.strip().lower()
        for i, header in enumerate(headers):
            if header.lower() == wanted:
                self.logger.debug(f"Found {what} column index: {i}")
                return i
        raise IssueFileError(f"Could not find column with name '{key}'")

    # -- JSON --

    def json_to_issues(self) -> list[IssueFromFile]:
        self.logger.debug(f"Parsing JSON file {self.path}")
        if self.title_column is not None or self.description_column is not None:
            raise IssueFileError("Column indexes are not supported for JSON files, use key names")

        try:
            data = json.loads(self.path.read_text(encoding="utf-8-sig"))
        except OSError as e:
            raise IssueFileError(f"Could not read file {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise IssueFileError(f"Could not parse JSON: {e}") from e

        if isinstance(data, dict):
            return [self._object_to_issue(data, 1)]
        if isinstance(data, list) and all(isinstance(item, dict) for item in data):
            return [self._object_to_issue(item, i) for i, item in enumerate(data, start=1)]
        raise IssueFileError("JSON data is not of a format that can be parsed (expected an object or a list of objects)")

    def _object_to_issue(self, data: dict, row_number: int) -> IssueFromFile:
        title_name = self.title_key.strip().lower()
        description_name = self.description_key.strip().lower() if self.description_key else None

        title = None
        description = None
        combined = []
        for key, value in data.items():
            text = self._stringify(key, value, row_number)
            if key.lower() == title_name:
                title = text
            elif self.combine_remaining:
                combined.append(f"{key.strip()}: {text}\n\n")
            elif description_name is not None and key.lower() == description_name:
                description = text

        if title is None:
            raise IssueFileError(f"Object {row_number} has no title key '{self.title_key}'")
        if combined:
            description = "".join(combined)
        return self._make_issue(title, description, row_number)

    @staticmethod
    def _stringify(key: str, value, row_number: int) -> str:
        if isinstance(value, str):
            return value
        if value is None:
            return "null"
        if isinstance(value, (bool, int, float)):
            # json.dumps gives true/false and the JSON form of numbers
            return json.dumps(value)
        raise IssueFileError(f"Object {row_number}: value of '{key}' must be a string, number, boolean or null")

    def _make_issue(self, title: str, description: str | None, row_number: int) -> IssueFromFile:
        if not title.strip():
            raise IssueFileError(f"Row {row_number} has an empty title")
        if self.prepend_title:
            title = f"{self.prepend_title} {title}"
        return IssueFromFile(title=title, description=description)
