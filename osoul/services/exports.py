# osoul/services/exports.py
import csv
import io
from typing import List

from openpyxl import Workbook
from openpyxl.styles import Font

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _headers(rows: List[dict]) -> List[str]:
    headers: List[str] = []
    for row in rows:
        for key in row:
            if key not in headers:
                headers.append(key)
    return headers


def to_csv(rows: List[dict]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=_headers(rows), extrasaction="ignore")
    writer.writeheader()
    writer.writerows(rows)
    return buf.getvalue()


def to_xlsx(rows: List[dict], sheet_title: str = "Report") -> bytes:
    wb = Workbook()
    ws = wb.active
    # Excel caps sheet titles at 31 chars
    ws.title = sheet_title[:31]

    headers = _headers(rows)
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append([row.get(h) for h in headers])

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def filename(report_type: str, fmt: str, stamp: str) -> str:
    return f"osoul-{report_type}-{stamp}.{fmt}"
