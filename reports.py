"""
Booking report export.
Turns a filtered booking list into a fixed-column table and renders it
as an XLSX workbook.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, List, Optional, Sequence

import pytz
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from config import DISPLAY_TIMEZONE
from models import Booking, ensure_utc, utc_now

logger = logging.getLogger(__name__)

REPORT_TITLE = "FLIGHT BOOKING REPORT"

HEADERS = [
    "PNR", "STATUS", "CATEGORY", "CLIENT NAME", "NOTES", "PASSENGERS", "ROUTE", "AIRLINE",
    "DEPARTURE", "RETURN", "PRICE", "CURRENCY", "DEADLINE",
]

COLUMN_WIDTHS = [10, 12, 12, 25, 20, 35, 20, 20, 12, 12, 10, 8, 22]

DATE_FORMAT = "%d/%m/%Y"
DATETIME_FORMAT = "%d/%m/%Y %H:%M"

STATUS_COLORS = {
    "Ticketed": "16A34A",
    "Pending": "CA8A04",
    "Optioned": "9333EA",
    "Cancelled": "DC2626",
}


class NothingToExportError(Exception):
    """Raised instead of producing a header-only report."""
    pass


@dataclass
class BookingReport:
    title: str
    generated_at: datetime
    headers: List[str]
    rows: List[List[Any]] = field(default_factory=list)


def _tz(tz):
    if tz is None:
        return pytz.timezone(DISPLAY_TIMEZONE)
    return pytz.timezone(tz) if isinstance(tz, str) else tz


def _local(value: datetime, tz) -> datetime:
    return ensure_utc(value).astimezone(tz)


def booking_row(booking: Booking, tz=None) -> List[Any]:
    tz = _tz(tz)
    return [
        booking.pnr,
        booking.status.value,
        booking.category.value,
        booking.client_name,
        booking.client_divers or "",
        ", ".join(booking.passenger_names),
        booking.route,
        booking.airline,
        _local(booking.departure_date, tz).strftime(DATE_FORMAT),
        _local(booking.return_date, tz).strftime(DATE_FORMAT) if booking.return_date else "-",
        booking.price,
        booking.currency,
        _local(booking.ticketing_deadline, tz).strftime(DATETIME_FORMAT),
    ]


def to_report(
    bookings: Sequence[Booking],
    generated_at: Optional[datetime] = None,
    tz=None,
) -> BookingReport:
    """One row per booking, in the order given."""
    if not bookings:
        raise NothingToExportError("No bookings to export.")
    return BookingReport(
        title=REPORT_TITLE,
        generated_at=generated_at or utc_now(),
        headers=list(HEADERS),
        rows=[booking_row(b, tz) for b in bookings],
    )


def report_filename(day: Optional[date] = None) -> str:
    day = day or utc_now().date()
    return f"TravelPro_Bookings_{day.isoformat()}.xlsx"


# ==================== XLSX RENDERING ====================

_THIN = Side(style="thin", color="E2E8F0")
_CELL_BORDER = Border(top=_THIN, bottom=_THIN, left=_THIN, right=_THIN)
_HEADER_BORDER = Border(
    bottom=Side(style="medium", color="FFFFFF"),
    right=Side(style="thin", color="FFFFFF"),
)

TITLE_ROW = 1
META_ROW = 2
HEADER_ROW = 4
FIRST_DATA_ROW = 5
STATUS_COL = 2
PRICE_COL = 11


def render_xlsx(report: BookingReport, tz=None) -> bytes:
    """Render the report as a styled single-sheet workbook."""
    tz = _tz(tz)
    wb = Workbook()
    ws = wb.active
    ws.title = "Bookings"
    last_col = len(report.headers)

    ws.cell(row=TITLE_ROW, column=1, value=report.title)
    ws.merge_cells(start_row=TITLE_ROW, start_column=1, end_row=TITLE_ROW, end_column=last_col)
    title = ws.cell(row=TITLE_ROW, column=1)
    title.font = Font(name="Arial", size=18, bold=True, color="FFFFFF")
    title.fill = PatternFill("solid", fgColor="4F46E5")
    title.alignment = Alignment(horizontal="center", vertical="center")

    generated = _local(report.generated_at, tz).strftime(DATETIME_FORMAT)
    ws.cell(row=META_ROW, column=1, value=f"Generated on: {generated}")
    ws.merge_cells(start_row=META_ROW, start_column=1, end_row=META_ROW, end_column=last_col)
    meta = ws.cell(row=META_ROW, column=1)
    meta.font = Font(name="Arial", size=10, italic=True, color="64748B")
    meta.fill = PatternFill("solid", fgColor="F1F5F9")
    meta.alignment = Alignment(horizontal="right", vertical="center")

    for col, header in enumerate(report.headers, start=1):
        cell = ws.cell(row=HEADER_ROW, column=col, value=header)
        cell.font = Font(name="Arial", size=11, bold=True, color="FFFFFF")
        cell.fill = PatternFill("solid", fgColor="1E293B")
        cell.alignment = Alignment(horizontal="center", vertical="center")
        cell.border = _HEADER_BORDER

    for r, row in enumerate(report.rows, start=FIRST_DATA_ROW):
        for col, value in enumerate(row, start=1):
            cell = ws.cell(row=r, column=col, value=value)
            cell.border = _CELL_BORDER
            cell.font = Font(name="Arial", size=10, color="334155")
            cell.alignment = Alignment(horizontal="left", vertical="center", wrap_text=True)
            if col == STATUS_COL:
                cell.font = Font(name="Arial", size=10, bold=True, color=STATUS_COLORS.get(value, "334155"))
                cell.alignment = Alignment(horizontal="center")
            elif col == PRICE_COL:
                cell.font = Font(name="Arial", size=10, bold=True)
                cell.alignment = Alignment(horizontal="right")

    for col, width in enumerate(COLUMN_WIDTHS[:last_col], start=1):
        ws.column_dimensions[get_column_letter(col)].width = width

    buffer = io.BytesIO()
    wb.save(buffer)
    logger.info("Rendered booking report with %d rows", len(report.rows))
    return buffer.getvalue()
