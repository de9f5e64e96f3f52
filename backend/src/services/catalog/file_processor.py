"""
Product spreadsheet processing for bulk catalog imports.

Uploads arrive as CSV or Excel bytes. Headers are matched loosely
("Care Instructions", "care_instructions" and "careInstructions" are the
same column), list columns are split on semicolons, and each row is
validated on its own so one bad row never rejects the whole file.
"""

import io
import re
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from pydantic import ValidationError

from src.core.logging import get_logger
from src.schemas.catalog import ProductImportRow

logger = get_logger(__name__)


class FileProcessingError(Exception):
    """Base exception for file processing errors."""

    def __init__(
        self,
        message: str,
        code: str,
        line_number: Optional[int] = None,
        **context: Any,
    ):
        super().__init__(message)
        self.code = code
        self.line_number = line_number
        self.context = context


class FileValidationError(FileProcessingError):
    """Exception raised for file validation errors."""

    pass


class FileParsingError(FileProcessingError):
    """Exception raised for file parsing errors."""

    pass


class FileProcessorConfig:
    """Configuration for file processor."""

    MAX_FILE_SIZE_MB: int = 10
    MAX_ROWS: int = 1000
    SUPPORTED_EXTENSIONS: set[str] = {".csv", ".xlsx"}
    REQUIRED_COLUMNS: set[str] = {"name", "category", "description"}
    LIST_SEPARATOR: str = ";"
    CSV_ENCODING: str = "utf-8-sig"


# Normalized header -> ProductImportRow field
COLUMN_MAP: dict[str, str] = {
    "name": "name",
    "slug": "slug",
    "category": "category",
    "price": "price",
    "description": "description",
    "features": "features",
    "colors": "colors",
    "colours": "colors",
    "materials": "materials",
    "careinstructions": "care_instructions",
    "deliverytime": "delivery_time",
    "returnpolicy": "return_policy",
    "warranty": "warranty",
    "instock": "in_stock",
    "isweeklybestseller": "is_weekly_best_seller",
    "weeklybestseller": "is_weekly_best_seller",
}

LIST_FIELDS = {"features", "colors", "materials", "care_instructions"}
BOOLEAN_FIELDS = {"in_stock", "is_weekly_best_seller"}
TRUE_VALUES = {"true", "yes", "y", "1"}


def normalize_header(header: Any) -> str:
    return re.sub(r"[^a-z0-9]", "", str(header).lower())


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    return str(value).strip().lower() in TRUE_VALUES


def clean_price(value: Any) -> str:
    """Strip currency symbols and thousands separators; validation happens on the row."""
    return str(value).strip().replace("$", "").replace(",", "")


def describe_validation_error(error: ValidationError) -> str:
    """One line per failed field, e.g. ``description: Field required``."""
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        messages.append(f"{location}: {item['msg']}" if location else item["msg"])
    return "; ".join(messages)


class ProductFileProcessor:
    """
    Turns an uploaded product spreadsheet into validated import rows.

    Line numbers count the header as line 1, matching what the uploader
    sees in a spreadsheet application.
    """

    def __init__(self, config: Optional[FileProcessorConfig] = None):
        self.config = config or FileProcessorConfig()

    def process(
        self,
        content: bytes,
        filename: str,
        sheet_name: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Parse and validate an uploaded file.

        Args:
            content: Raw file bytes
            filename: Original file name; its extension selects the parser
            sheet_name: Excel sheet to read. Defaults to the second sheet when
                the workbook has more than one (the first holds instructions
                in the downloadable template), otherwise the first.

        Returns:
            Dictionary with ``rows`` (list of ``(line_number, ProductImportRow)``),
            ``errors`` (list of per-row failures) and ``total_rows``

        Raises:
            FileValidationError: If the file is empty, too large or of an
                unsupported type
            FileParsingError: If the file cannot be read or lacks columns
        """
        extension = self._validate(content, filename)
        frame = self._read_frame(content, extension, filename, sheet_name)

        columns = {column: COLUMN_MAP.get(normalize_header(column)) for column in frame.columns}
        missing = self.config.REQUIRED_COLUMNS - set(columns.values())
        if missing:
            raise FileParsingError(
                f"Missing required columns: {', '.join(sorted(missing))}",
                code="MISSING_COLUMNS",
                filename=filename,
                missing_columns=sorted(missing),
            )

        if frame.empty:
            raise FileParsingError(
                "File must contain a header row and at least one data row",
                code="EMPTY_FILE",
                filename=filename,
            )

        if len(frame) > self.config.MAX_ROWS:
            raise FileParsingError(
                f"File exceeds maximum allowed rows of {self.config.MAX_ROWS}",
                code="TOO_MANY_ROWS",
                filename=filename,
                max_rows=self.config.MAX_ROWS,
            )

        rows: list[tuple[int, ProductImportRow]] = []
        errors: list[dict[str, Any]] = []

        for position, record in enumerate(frame.to_dict(orient="records")):
            line_number = position + 2
            raw = {k: (None if pd.isna(v) else v) for k, v in record.items()}
            data = self._map_row(raw, columns)
            if not data:
                continue
            try:
                rows.append((line_number, ProductImportRow.model_validate(data)))
            except ValidationError as e:
                errors.append(
                    {
                        "line_number": line_number,
                        "name": data.get("name"),
                        "error": describe_validation_error(e),
                        "error_type": type(e).__name__,
                    }
                )

        logger.info(
            "Product file processed",
            filename=filename,
            valid_rows=len(rows),
            invalid_rows=len(errors),
        )

        return {"rows": rows, "errors": errors, "total_rows": len(rows) + len(errors)}

    def _validate(self, content: bytes, filename: str) -> str:
        extension = Path(filename or "").suffix.lower()
        if extension not in self.config.SUPPORTED_EXTENSIONS:
            raise FileValidationError(
                f"Unsupported file type: {extension or 'none'}. Upload a .csv or .xlsx file",
                code="UNSUPPORTED_EXTENSION",
                filename=filename,
                extension=extension,
            )

        if not content:
            raise FileValidationError("Uploaded file is empty", code="EMPTY_FILE", filename=filename)

        size_mb = len(content) / (1024 * 1024)
        if size_mb > self.config.MAX_FILE_SIZE_MB:
            raise FileValidationError(
                f"File size exceeds maximum allowed size of {self.config.MAX_FILE_SIZE_MB}MB",
                code="FILE_TOO_LARGE",
                filename=filename,
                file_size_mb=round(size_mb, 2),
            )
        return extension

    def _read_frame(
        self,
        content: bytes,
        extension: str,
        filename: str,
        sheet_name: Optional[str],
    ) -> pd.DataFrame:
        if extension == ".csv":
            try:
                return pd.read_csv(
                    io.BytesIO(content),
                    dtype=str,
                    keep_default_na=False,
                    encoding=self.config.CSV_ENCODING,
                    skip_blank_lines=True,
                )
            except pd.errors.EmptyDataError as e:
                raise FileParsingError(
                    "File must contain a header row and at least one data row",
                    code="EMPTY_FILE",
                    filename=filename,
                ) from e
            except (pd.errors.ParserError, UnicodeDecodeError) as e:
                raise FileParsingError(
                    f"CSV parsing error: {e}",
                    code="CSV_PARSE_ERROR",
                    filename=filename,
                ) from e

        try:
            workbook = pd.ExcelFile(io.BytesIO(content), engine="openpyxl")
        except Exception as e:
            raise FileParsingError(
                f"Excel parsing error: {e}",
                code="EXCEL_PARSE_ERROR",
                filename=filename,
            ) from e

        with workbook:
            sheets = workbook.sheet_names
            if sheet_name is not None and sheet_name not in sheets:
                raise FileParsingError(
                    f"Sheet not found: {sheet_name}",
                    code="SHEET_NOT_FOUND",
                    filename=filename,
                    sheets=sheets,
                )
            if sheet_name is None:
                sheet_name = sheets[1] if len(sheets) > 1 else sheets[0]
            return workbook.parse(sheet_name)

    def _map_row(self, raw: dict[Any, Any], columns: dict[Any, Optional[str]]) -> dict[str, Any]:
        """Spreadsheet cells to ``ProductImportRow`` input; blank cells are left out."""
        data: dict[str, Any] = {}
        for column, value in raw.items():
            field = columns.get(column)
            if field is None or value is None:
                continue
            if isinstance(value, str):
                value = value.strip()
                if not value:
                    continue
            if isinstance(value, float) and value.is_integer() and field != "price":
                value = int(value)

            if field in LIST_FIELDS:
                data[field] = [
                    part.strip()
                    for part in str(value).split(self.config.LIST_SEPARATOR)
                    if part.strip()
                ]
            elif field in BOOLEAN_FIELDS:
                data[field] = parse_bool(value)
            elif field == "price":
                data[field] = clean_price(value)
            else:
                data[field] = str(value)
        return data
