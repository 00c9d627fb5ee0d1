"""Field parsing and type conversion for unloaded WLM system table rows."""

import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

# stl_wlm_query columns carried into the local mirror
WLM_QUERY_FIELDS = (
    "userid", "xid", "task", "query", "service_class", "slot_count",
    "service_class_start_time", "queue_start_time", "queue_end_time",
    "total_queue_time", "exec_start_time", "exec_end_time",
    "total_exec_time", "service_class_end_time", "final_state",
)

# Fields that contain timestamps (UTC, no zone)
TIMESTAMP_FIELDS = {
    "service_class_start_time", "queue_start_time", "queue_end_time",
    "exec_start_time", "exec_end_time", "service_class_end_time",
}

# Fields that should be integers
INTEGER_FIELDS = {
    "userid", "xid", "task", "query", "service_class", "slot_count",
    "total_queue_time", "total_exec_time",
}

# stv_wlm_service_class_config columns carried into the local mirror
SERVICE_CLASS_CONFIG_FIELDS = (
    "service_class", "name", "num_query_tasks", "query_working_mem", "max_execution_time",
)


def parse_timestamp(value) -> datetime | None:
    """Parse a timestamp string to naive UTC.

    Timestamps without an offset are already UTC, as the platform writes
    them. Timestamps with an offset are converted.

    Args:
        value: Timestamp string (or datetime) from an unload

    Returns:
        Naive UTC datetime, or None if parsing fails
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        value = str(value).strip()
        if not value:
            return None
        try:
            # Handles 'YYYY-MM-DD HH:MM:SS[.ffffff][+HH:MM]' and the 'T' variant
            dt = datetime.fromisoformat(value)
        except ValueError:
            return None

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_int(value) -> int | None:
    """Safely parse an integer value.

    Args:
        value: Value to parse (string, int, or None)

    Returns:
        Integer value or None if parsing fails
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value == "":
            return None
    try:
        return int(value)
    except (ValueError, TypeError):
        return None


def parse_text(value) -> str | None:
    """Strip the blank padding of CHAR columns; empty becomes None."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _normalize_keys(row: dict) -> dict:
    """Lower-case and strip column names (unload headers vary)."""
    return {str(k).strip().lower(): v for k, v in row.items()}


def parse_wlm_query_record(row: dict) -> dict:
    """Parse and normalize an stl_wlm_query row.

    Args:
        row: Raw row keyed by column name

    Returns:
        Normalized record with types matching the WlmQuery model
    """
    row = _normalize_keys(row)
    record = {}
    for field in WLM_QUERY_FIELDS:
        value = row.get(field)
        if field in TIMESTAMP_FIELDS:
            record[field] = parse_timestamp(value)
        elif field in INTEGER_FIELDS:
            record[field] = parse_int(value)
        else:
            record[field] = parse_text(value)
    return record


def parse_service_class_config_record(row: dict) -> dict:
    """Parse and normalize an stv_wlm_service_class_config row.

    Args:
        row: Raw row keyed by column name

    Returns:
        Normalized record with types matching the WlmServiceClassConfig model
    """
    row = _normalize_keys(row)
    return {
        "service_class": parse_int(row.get("service_class")),
        "name": parse_text(row.get("name")),
        "num_query_tasks": parse_int(row.get("num_query_tasks")),
        "query_working_mem": parse_int(row.get("query_working_mem")),
        "max_execution_time": parse_int(row.get("max_execution_time")),
    }


def read_records(path) -> Iterator[dict]:
    """Read raw rows from a CSV, JSON array or JSON-lines export.

    Args:
        path: File path; the format is chosen by extension
            (.csv, .json or .jsonl)

    Yields:
        Row dictionaries keyed by column name

    Raises:
        ValueError: If the extension is not supported
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".csv":
        with open(path, newline="") as f:
            yield from csv.DictReader(f)
    elif suffix == ".json":
        with open(path) as f:
            yield from json.load(f)
    elif suffix == ".jsonl":
        with open(path) as f:
            for line in f:
                if line.strip():
                    yield json.loads(line)
    else:
        raise ValueError(f"Unsupported file type: {path.suffix}. Expected .csv, .json or .jsonl")
