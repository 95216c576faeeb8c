"""
Summary export: JSON for interchange, CSV for the per-day timeline.
"""

import io
import json
import logging
from typing import Dict, List

import pandas as pd

logger = logging.getLogger(__name__)

CSV_COLUMNS = ["Date", "Total Activities", "Completions", "Average Score", "Video Time"]


def summary_to_json(summary: Dict, indent: int = 2) -> str:
    return json.dumps(summary, indent=indent, ensure_ascii=False)


def summary_from_json(payload: str) -> Dict:
    return json.loads(payload)


def timeline_to_csv(timeline: List[Dict]) -> str:
    """One row per active day; days without scores leave Average Score empty."""
    rows = [
        {
            "Date": day["date"],
            "Total Activities": day["total_activities"],
            "Completions": day["completions"],
            "Average Score": day["average_score"],
            "Video Time": day["video_time_formatted"],
        }
        for day in timeline
    ]
    df = pd.DataFrame(rows, columns=CSV_COLUMNS)
    df["Average Score"] = df["Average Score"].astype("Int64")
    buffer = io.StringIO()
    df.to_csv(buffer, index=False)
    return buffer.getvalue()


EXPORTERS = {
    "json": lambda summary: summary_to_json(summary),
    "csv": lambda summary: timeline_to_csv(summary.get("timeline", [])),
}


def export_summary(summary: Dict, fmt: str = "json") -> str:
    exporter = EXPORTERS.get(fmt.lower())
    if exporter is None:
        raise ValueError(f"Unsupported export format '{fmt}', expected one of {sorted(EXPORTERS)}")
    output = exporter(summary)
    logger.info(f"Exported summary as {fmt} ({len(output)} chars)")
    return output
