"""Query interface for the WLM source tables.

This module reads the two inputs of the hourly apex report from the
database and hands them to the pipeline in wlm_apex.apex:
- Current service class configuration (stv_wlm_service_class_config)
- Query executions overlapping the lookback window (stl_wlm_query)

Filtering on service class, user and window is pushed down into SQL so
only the rows the pipeline needs are transferred.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import NoSuchTableError, OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from .apex import QueryExecution, ReportRow, ServiceClassConfig, compute_hourly_apex
from .config import ApexConfig, DEFAULT_MIN_SERVICE_CLASS, DEFAULT_MIN_USER_ID
from .exceptions import SourceUnavailableError
from .logging import get_logger
from .models import WlmQuery, WlmServiceClassConfig
from .series import to_naive_utc, utc_now, window_bounds

logger = get_logger(__name__)

# Errors that mean a source table is missing or unreadable
SOURCE_ERRORS = (OperationalError, ProgrammingError, NoSuchTableError)


class WlmQueries:
    """High-level query interface for WLM history.

    Example:
        >>> from wlm_apex import get_session, WlmQueries
        >>> session = get_session()
        >>> rows = WlmQueries(session).hourly_apex(ApexConfig(window_seconds=86400))
    """

    def __init__(self, session: Session):
        """Initialize query interface.

        Args:
            session: SQLAlchemy session for database access
        """
        self.session = session

    def _execute(self, table: str, stmt):
        """Run a statement, translating driver errors to SourceUnavailableError."""
        try:
            return self.session.execute(stmt).all()
        except SOURCE_ERRORS as e:
            self.session.rollback()
            raise SourceUnavailableError(table, str(getattr(e, "orig", None) or e)) from e

    def _window_filter(self, window_start: datetime, window_end: datetime) -> List:
        """Build filters for executions overlapping [window_start, window_end]."""
        return [
            WlmQuery.service_class_start_time <= to_naive_utc(window_end),
            WlmQuery.service_class_end_time > to_naive_utc(window_start),
        ]

    def service_class_configs(
        self,
        min_service_class: int = DEFAULT_MIN_SERVICE_CLASS,
    ) -> List[ServiceClassConfig]:
        """Get the current configuration of the user service classes.

        Args:
            min_service_class: Service classes at or below this are skipped

        Returns:
            ServiceClassConfig list ordered by service class

        Raises:
            SourceUnavailableError: If the config table cannot be read
        """
        stmt = (
            select(WlmServiceClassConfig.service_class, WlmServiceClassConfig.num_query_tasks)
            .where(WlmServiceClassConfig.service_class > min_service_class)
            .order_by(WlmServiceClassConfig.service_class)
        )
        results = self._execute(WlmServiceClassConfig.__tablename__, stmt)

        return [
            ServiceClassConfig(service_class=row[0], num_query_tasks=row[1])
            for row in results
        ]

    def query_executions(
        self,
        window_start: datetime,
        window_end: datetime,
        min_service_class: int = DEFAULT_MIN_SERVICE_CLASS,
        min_user_id: int = DEFAULT_MIN_USER_ID,
    ) -> List[QueryExecution]:
        """Get query executions whose service class interval overlaps a window.

        Args:
            window_start: Start of the window (naive UTC or aware)
            window_end: End of the window (naive UTC or aware)
            min_service_class: Service classes at or below this are skipped
            min_user_id: Users at or below this are skipped

        Returns:
            QueryExecution list ordered by service class and start time

        Raises:
            SourceUnavailableError: If the query log cannot be read
        """
        stmt = (
            select(
                WlmQuery.service_class,
                WlmQuery.userid,
                WlmQuery.slot_count,
                WlmQuery.service_class_start_time,
                WlmQuery.service_class_end_time,
            )
            .where(
                WlmQuery.service_class > min_service_class,
                WlmQuery.userid > min_user_id,
                *self._window_filter(window_start, window_end),
            )
            .order_by(WlmQuery.service_class, WlmQuery.service_class_start_time)
        )
        results = self._execute(WlmQuery.__tablename__, stmt)

        return [
            QueryExecution(
                service_class=row[0],
                user_id=row[1],
                slot_count=row[2],
                start_time=row[3],
                end_time=row[4],
            )
            for row in results
        ]

    def hourly_apex(self, config: Optional[ApexConfig] = None, now: Optional[datetime] = None) -> List[ReportRow]:
        """Compute the hourly slot high-water-mark report from the database.

        Args:
            config: Report tunables. Defaults to ApexConfig().
            now: End of the lookback window. Defaults to the current UTC time.

        Returns:
            ReportRow list ordered by service class, day and hour

        Raises:
            SourceUnavailableError: If either source table cannot be read
        """
        config = config or ApexConfig()
        now = utc_now() if now is None else to_naive_utc(now)
        window_start, window_end = window_bounds(now, config.window_seconds)

        configs = self.service_class_configs(config.min_service_class)
        executions = self.query_executions(
            window_start,
            window_end,
            min_service_class=config.min_service_class,
            min_user_id=config.min_user_id,
        )
        logger.info(
            f"Loaded {len(configs)} service classes and {len(executions):,} executions "
            f"between {window_start} and {window_end}"
        )

        return compute_hourly_apex(executions, configs, config, now=now)

    def service_class_summary(
        self,
        window_start: datetime,
        window_end: datetime,
        min_service_class: int = DEFAULT_MIN_SERVICE_CLASS,
        min_user_id: int = DEFAULT_MIN_USER_ID,
    ) -> List[Dict[str, Any]]:
        """Summarize WLM activity per service class within a window.

        Args:
            window_start: Start of the window
            window_end: End of the window
            min_service_class: Service classes at or below this are skipped
            min_user_id: Users at or below this are skipped

        Returns:
            List of dicts with keys: 'service_class', 'num_query_tasks',
            'query_count', 'total_slots', 'max_slot_count', 'first_start',
            'last_end'. num_query_tasks is None for classes without a
            config row.
        """
        stmt = (
            select(
                WlmQuery.service_class,
                WlmServiceClassConfig.num_query_tasks,
                func.count(WlmQuery.query).label("query_count"),
                func.sum(WlmQuery.slot_count).label("total_slots"),
                func.max(WlmQuery.slot_count).label("max_slot_count"),
                func.min(WlmQuery.service_class_start_time).label("first_start"),
                func.max(WlmQuery.service_class_end_time).label("last_end"),
            )
            .outerjoin(
                WlmServiceClassConfig,
                WlmServiceClassConfig.service_class == WlmQuery.service_class,
            )
            .where(
                WlmQuery.service_class > min_service_class,
                WlmQuery.userid > min_user_id,
                *self._window_filter(window_start, window_end),
            )
            .group_by(WlmQuery.service_class, WlmServiceClassConfig.num_query_tasks)
            .order_by(WlmQuery.service_class)
        )
        results = self._execute(WlmQuery.__tablename__, stmt)

        return [
            {
                "service_class": row[0],
                "num_query_tasks": row[1],
                "query_count": row[2],
                "total_slots": row[3] or 0,
                "max_slot_count": row[4] or 0,
                "first_start": row[5],
                "last_end": row[6],
            }
            for row in results
        ]
