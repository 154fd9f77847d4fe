"""CSV measurement report export."""
from __future__ import annotations
import csv
import logging
import os
import re
from datetime import datetime
from typing import List, Optional

from ..core.entities import AnalysisResult
from ..core.exceptions import ExportError

logger = logging.getLogger(__name__)

REPORT_HEADERS = ["ID", "Label", "Confidence", "AreaPx", "WidthMm", "HeightMm"]
MISSING_VALUE = "N/A"


def build_report_rows(result: AnalysisResult, item_name: str = "") -> List[list]:
    """One row per item in result order, ids numbered from 1."""
    rows = []
    for index, item in enumerate(result.items, start=1):
        rows.append([
            index,
            item.label or item_name,
            f"{item.confidence:.4f}",
            f"{item.area_px:.2f}",
            item.width_mm if item.width_mm is not None else MISSING_VALUE,
            item.height_mm if item.height_mm is not None else MISSING_VALUE,
        ])
    return rows


def report_filename(item_name: str, timestamp: Optional[datetime] = None) -> str:
    """e.g. ``Diamond_Studs_analysis_20240101-120000.csv``."""
    timestamp = timestamp or datetime.now()
    safe_name = re.sub(r'\s+', '_', item_name.strip()) or "items"
    safe_name = re.sub(r'[^\w.-]', '', safe_name)
    return f"{safe_name}_analysis_{timestamp:%Y%m%d-%H%M%S}.csv"


def export_csv(result: AnalysisResult, item_name: str, directory: str,
               timestamp: Optional[datetime] = None) -> str:
    """Write the measurement report and return its path.

    Raises:
        ExportError: if the result is empty or the file cannot be written
    """
    if result is None:
        raise ExportError("Nothing to export: no analysis result")

    path = os.path.join(directory, report_filename(item_name, timestamp))
    try:
        os.makedirs(directory, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(REPORT_HEADERS)
            writer.writerows(build_report_rows(result, item_name))
    except OSError as e:
        logger.error(f"Failed to write report {path}: {e}")
        raise ExportError(f"Failed to write report {path}: {e}") from e

    logger.info(f"Exported {len(result.items)} items to {path}")
    return path
