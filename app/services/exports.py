"""
CSV and Excel renderings of an assembled report table.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterator, Sequence
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def render_csv(table: Sequence[Sequence[Any]]) -> Iterator[str]:
    """Yield the table one CSV line at a time for a streaming response."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    for row in table:
        writer.writerow(row)
        yield buffer.getvalue()
        buffer.seek(0)
        buffer.truncate(0)


def render_xlsx(table: Sequence[Sequence[Any]], sheet_title: str = "Activity Report") -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]

    widths: dict[int, int] = {}
    for r, row in enumerate(table, start=1):
        for c, value in enumerate(row, start=1):
            cell = ws.cell(row=r, column=c, value=value)
            cell.alignment = Alignment(vertical="center")
            widths[c] = max(widths.get(c, 0), len(str(value)))
        # Section headings and row labels sit in the first column.
        if row:
            ws.cell(row=r, column=1).font = Font(bold=True, size=14 if r == 1 else 11)

    for col, width in widths.items():
        ws.column_dimensions[get_column_letter(col)].width = min(max(width + 2, 10), 45)

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()
