# lambdas/backup_report/renderer.py
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, NamedTuple, Union

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import IllegalCharacterError

from models import BackupReportError, LogRecord


class RenderError(BackupReportError):
    """Raised when a report workbook cannot be written."""


class ReportColumn(NamedTuple):
    key: str
    width: int
    is_datetime: bool = False


# Keys and order follow the LogRecord fields.
REPORT_COLUMNS: List[ReportColumn] = [
    ReportColumn("TaskID", 20),
    ReportColumn("BackupID", 20),
    ReportColumn("TaskType", 15),
    ReportColumn("Status", 15),
    ReportColumn("ResourceID", 20),
    ReportColumn("ResourceName", 20),
    ReportColumn("ResourceType", 20),
    ReportColumn("VaultID", 20),
    ReportColumn("VaultName", 20),
    ReportColumn("Started", 20, is_datetime=True),
    ReportColumn("Ended", 20, is_datetime=True),
]

SHEET_TITLE = "CBR Logs"
DATETIME_NUMBER_FORMAT = "yyyy-mm-dd hh:mm:ss"

# Header styling
HEADER_FONT = Font(bold=True, color="FFFFFFFF")
HEADER_FILL = PatternFill(fill_type="solid", fgColor="FF4F81BD")
HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center")


class ReportRenderer:
    """Writes the report rows of one vault into a styled .xlsx workbook."""

    def __init__(self, sheet_title: str = SHEET_TITLE):
        self.sheet_title = sheet_title

    def render(self, records: Iterable[LogRecord], file_path: Union[str, Path]) -> Path:
        """
        Renders the rows, in the given order, into a workbook at file_path.

        Raises:
            RenderError: If the workbook cannot be built or saved.
        """
        path = Path(file_path)
        try:
            workbook = self._build_workbook(records)
            path.parent.mkdir(parents=True, exist_ok=True)
            workbook.save(path)
        except (OSError, ValueError, TypeError, IllegalCharacterError) as e:
            print(f"❌ Failed to write report '{path}': {e}")
            raise RenderError(f"Report could not be written: {path.name}") from e

        print(f"✅ Report written to {path}")
        return path

    def _build_workbook(self, records: Iterable[LogRecord]) -> Workbook:
        workbook = Workbook()
        worksheet = workbook.active
        worksheet.title = self.sheet_title

        worksheet.append([column.key for column in REPORT_COLUMNS])
        for cell in worksheet[1]:
            cell.font = HEADER_FONT
            cell.fill = HEADER_FILL
            cell.alignment = HEADER_ALIGNMENT

        for index, column in enumerate(REPORT_COLUMNS, start=1):
            worksheet.column_dimensions[get_column_letter(index)].width = column.width

        datetime_columns = [index for index, column in enumerate(REPORT_COLUMNS, start=1) if column.is_datetime]
        for record in records:
            worksheet.append(self._to_cells(record))
            for index in datetime_columns:
                worksheet.cell(row=worksheet.max_row, column=index).number_format = DATETIME_NUMBER_FORMAT

        return workbook

    @staticmethod
    def _to_cells(record: LogRecord) -> list:
        """Converts a row to cell values, timestamps become real datetimes."""
        cells = record.as_row()
        for index, column in enumerate(REPORT_COLUMNS):
            value = cells[index]
            if column.is_datetime and value:
                cells[index] = datetime.fromisoformat(value)
        return cells
