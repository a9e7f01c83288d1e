from __future__ import annotations

from datetime import datetime, timezone
from io import BytesIO
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

from ats.utils.datetime import to_display_tz

APPLICATION_COLUMNS = ["applicationId", "jobTitle", "name", "email", "status", "resumeScore", "appliedAt", "updatedAt"]


def _auto_fit(ws) -> None:
    for col in ws.columns:
        longest = max((len(str(c.value)) for c in col if c.value is not None), default=0)
        ws.column_dimensions[get_column_letter(col[0].column)].width = min(max(12, longest + 2), 60)


def _write_table(ws, headers: list[str], rows: list[list[Any]]) -> None:
    ws.append(headers)
    for r in rows:
        ws.append(r)

    ws.freeze_panes = "A2"
    ws.auto_filter.ref = ws.dimensions
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal="center")
    _auto_fit(ws)


def build_applications_workbook(
    *, scope: str, timezone_display: str, funnel: dict[str, Any], applications: list[dict[str, Any]]
) -> bytes:
    wb = Workbook()
    wb.remove(wb.active)

    _write_table(
        wb.create_sheet("Meta"),
        ["key", "value"],
        [
            ["scope", scope],
            ["applications", len(applications)],
            ["generatedAt", to_display_tz(datetime.now(timezone.utc), timezone_display)],
        ]
        + [[f"status:{it['status']}", it["count"]] for it in funnel["items"]],
    )
    _write_table(
        wb.create_sheet("Applications"),
        APPLICATION_COLUMNS,
        [[a.get(k) for k in APPLICATION_COLUMNS] for a in applications],
    )

    with BytesIO() as bio:
        wb.save(bio)
        return bio.getvalue()
