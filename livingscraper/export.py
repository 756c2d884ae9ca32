# livingscraper/export.py
"""CSV and XLSX rendering of finished job rows in the fixed column order."""
import csv
import io
import json
import pandas as pd
from .schemas import LISTING_FIELDS

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
SHEET_NAME = "data"


def _cell(value):
    if value is None:
        return ""
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    return value


def to_csv(rows) -> bytes:
    """UTF-8 CSV with a BOM so Excel picks up the Thai text; header always present."""
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=LISTING_FIELDS, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({k: _cell(row.get(k)) for k in LISTING_FIELDS})
    return ("\ufeff" + buf.getvalue()).encode("utf-8")


def to_xlsx(rows) -> bytes:
    df = pd.DataFrame([{k: _cell(row.get(k)) for k in LISTING_FIELDS} for row in rows], columns=LISTING_FIELDS)
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=SHEET_NAME, index=False)
    return buf.getvalue()


def export_filename(job_id, ext):
    return f"livinginsider_{job_id[:8]}.{ext}"
