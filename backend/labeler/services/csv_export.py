"""CSV export of a user's labeled chunks."""
import csv
import io
from typing import Any, Dict, Iterable, List

EXPORT_FILENAME = "my_chunks.csv"

CSV_HEADERS: List[str] = [
    "id",
    "whiteboard_id",
    "user_id",
    "x_min",
    "y_min",
    "x_max",
    "y_max",
    "transcription",
    "confidence",
    "created_at",
    "image_url",
]


def flatten_export_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Lift the joined ``whiteboards.image_url`` into a top-level ``image_url``."""
    flat = {key: row.get(key) for key in CSV_HEADERS if key != "image_url"}
    joined = row.get("whiteboards") or {}
    if isinstance(joined, list):
        joined = joined[0] if joined else {}
    flat["image_url"] = joined.get("image_url") if isinstance(joined, dict) else None
    if flat["image_url"] is None:
        flat["image_url"] = row.get("image_url")
    return flat


def chunks_to_csv(rows: Iterable[Dict[str, Any]]) -> str:
    """Render export rows as CSV.

    The header row is bare; every data value is double-quoted with embedded
    quotes doubled, and missing values become empty strings.
    """
    lines = [",".join(CSV_HEADERS)]
    for row in rows:
        flat = flatten_export_row(row)
        line = io.StringIO()
        csv.writer(line, quoting=csv.QUOTE_ALL, lineterminator="").writerow(
            ["" if flat[key] is None else flat[key] for key in CSV_HEADERS]
        )
        lines.append(line.getvalue())
    return "\n".join(lines)
