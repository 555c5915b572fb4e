"""
Writing pipeline runs to JSON and CSV.
"""

import csv
import io
import json
import logging
from pathlib import Path
from typing import List, Sequence, Union

from .models import ContactRecord, PipelineRun

logger = logging.getLogger(__name__)


def csv_columns(contacts: Sequence[ContactRecord]) -> List[str]:
    """Union of record keys in first-seen order."""
    columns: List[str] = []
    for contact in contacts:
        for key in contact:
            if key not in columns:
                columns.append(key)
    return columns


def contacts_to_csv(contacts: Sequence[ContactRecord]) -> str:
    """
    Convert contact records to CSV text.

    Nested values (lists, dicts) are written as JSON; None becomes an empty cell.
    """
    buffer = io.StringIO()
    columns = csv_columns(contacts)
    writer = csv.DictWriter(buffer, fieldnames=columns, lineterminator="\n")
    writer.writeheader()
    for contact in contacts:
        row = {}
        for key in columns:
            value = contact.get(key)
            if value is None:
                value = ""
            elif isinstance(value, (list, dict)):
                value = json.dumps(value, ensure_ascii=False)
            row[key] = value
        writer.writerow(row)
    return buffer.getvalue()


def save_run(run: PipelineRun, output_path: Union[str, Path], output_format: str = "json") -> Path:
    """
    Save a run to disk.

    Args:
        run: Finished pipeline run
        output_path: Destination file
        output_format: "json" (summary plus contacts) or "csv" (contacts only)

    Returns:
        Path of the written file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if output_format == "json":
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(run.to_dict(), f, indent=2, ensure_ascii=False)
    elif output_format == "csv":
        with open(output_path, "w", encoding="utf-8", newline="") as f:
            f.write(contacts_to_csv(run.contacts))
    else:
        raise ValueError(f"Unsupported output format: {output_format}")

    logger.info(f"Saved {run.total_contacts} contacts to {output_path}")
    return output_path
