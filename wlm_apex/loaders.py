"""Import unloaded WLM system tables into the local mirror database."""

from typing import Iterable

from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from .logging import get_logger
from .models import WlmQuery, WlmServiceClassConfig
from .parsers import parse_service_class_config_record, parse_wlm_query_record

logger = get_logger(__name__)


def _is_valid_query_record(record: dict) -> bool:
    """Check the fields the report depends on are present and ordered."""
    for field in ("userid", "query", "service_class", "slot_count", "service_class_start_time"):
        if record.get(field) is None:
            return False
    end = record.get("service_class_end_time")
    # Queries still queued or running have no end time yet
    return end is None or record["service_class_start_time"] <= end


def load_wlm_queries(
    session: Session,
    rows: Iterable[dict],
    batch_size: int = 1000,
    dry_run: bool = False,
) -> dict:
    """Load stl_wlm_query rows using bulk insert.

    Uses INSERT OR IGNORE, so rows already present (same query, service
    class and start time) are skipped.

    Args:
        session: SQLAlchemy session
        rows: Raw rows, e.g. from parsers.read_records()
        batch_size: Number of records to insert per batch
        dry_run: If True, parse but don't insert

    Returns:
        Dictionary with load statistics
    """
    stats = {"fetched": 0, "inserted": 0, "errors": 0}
    batch = []

    for row in rows:
        stats["fetched"] += 1
        record = parse_wlm_query_record(row)

        if not _is_valid_query_record(record):
            stats["errors"] += 1
            continue

        batch.append(record)

        if len(batch) >= batch_size:
            if not dry_run:
                stats["inserted"] += _insert_batch(session, batch)
            batch = []

    # Insert remaining records
    if batch and not dry_run:
        stats["inserted"] += _insert_batch(session, batch)

    if stats["errors"]:
        logger.warning(f"Skipped {stats['errors']:,} malformed stl_wlm_query rows")
    logger.info(f"stl_wlm_query: fetched {stats['fetched']:,}, inserted {stats['inserted']:,}")
    return stats


def _insert_batch(session: Session, records: list[dict]) -> int:
    """Insert a batch of records, ignoring duplicates.

    Duplicates are detected by the unique constraint on
    (query, service_class, service_class_start_time).

    Returns:
        Number of records actually inserted
    """
    if not records:
        return 0

    stmt = sqlite_insert(WlmQuery.__table__).values(records)
    stmt = stmt.on_conflict_do_nothing(
        index_elements=["query", "service_class", "service_class_start_time"]
    )

    result = session.execute(stmt)
    session.commit()

    return result.rowcount


def load_service_class_configs(
    session: Session,
    rows: Iterable[dict],
    dry_run: bool = False,
) -> dict:
    """Load stv_wlm_service_class_config rows.

    The table holds only the current configuration, so an incoming row
    replaces any stored row for the same service class.

    Args:
        session: SQLAlchemy session
        rows: Raw rows, e.g. from parsers.read_records()
        dry_run: If True, parse but don't write

    Returns:
        Dictionary with load statistics
    """
    stats = {"fetched": 0, "inserted": 0, "errors": 0}
    records = []

    for row in rows:
        stats["fetched"] += 1
        record = parse_service_class_config_record(row)
        if record["service_class"] is None or record["num_query_tasks"] is None:
            stats["errors"] += 1
            continue
        records.append(record)

    if records and not dry_run:
        stmt = sqlite_insert(WlmServiceClassConfig.__table__).values(records)
        stmt = stmt.on_conflict_do_update(
            index_elements=["service_class"],
            set_={
                "name": stmt.excluded.name,
                "num_query_tasks": stmt.excluded.num_query_tasks,
                "query_working_mem": stmt.excluded.query_working_mem,
                "max_execution_time": stmt.excluded.max_execution_time,
            },
        )
        session.execute(stmt)
        session.commit()
        stats["inserted"] = len(records)

    if stats["errors"]:
        logger.warning(f"Skipped {stats['errors']:,} malformed stv_wlm_service_class_config rows")
    return stats
