"""Tests for the WlmQueries interface."""

from datetime import date, datetime, timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from wlm_apex.config import ApexConfig
from wlm_apex.exceptions import SourceUnavailableError
from wlm_apex.queries import WlmQueries


@pytest.fixture
def missing_source_session(empty_engine):
    """Session on a database where the WLM tables do not exist."""
    Session = sessionmaker(bind=empty_engine)
    session = Session()
    yield session
    session.close()


class TestServiceClassConfigs:
    """Tests for service_class_configs method."""

    def test_skips_system_classes(self, in_memory_session, sample_wlm_data):
        configs = WlmQueries(in_memory_session).service_class_configs()

        assert [(c.service_class, c.num_query_tasks) for c in configs] == [(5, 5), (6, 10)]

    def test_custom_threshold(self, in_memory_session, sample_wlm_data):
        configs = WlmQueries(in_memory_session).service_class_configs(min_service_class=0)

        assert [c.service_class for c in configs] == [1, 5, 6]

    def test_missing_table(self, missing_source_session):
        with pytest.raises(SourceUnavailableError) as exc_info:
            WlmQueries(missing_source_session).service_class_configs()

        assert exc_info.value.table == "stv_wlm_service_class_config"
        assert "no such table" in str(exc_info.value)


class TestQueryExecutions:
    """Tests for query_executions method."""

    def test_window_and_filters(self, in_memory_session, sample_wlm_data, base_time):
        executions = WlmQueries(in_memory_session).query_executions(
            base_time - timedelta(hours=1), base_time + timedelta(hours=1)
        )

        # System user, system class and the old query are filtered out
        assert [(e.service_class, e.slot_count) for e in executions] == [(5, 2), (5, 3), (6, 1), (9, 7)]
        assert all(e.user_id > 1 for e in executions)

    def test_window_end_is_inclusive_of_starts(self, in_memory_session, sample_wlm_data, base_time):
        executions = WlmQueries(in_memory_session).query_executions(
            base_time - timedelta(hours=4), base_time - timedelta(seconds=10)
        )

        assert sorted(e.slot_count for e in executions) == [1, 2]

    def test_nothing_in_window(self, in_memory_session, sample_wlm_data, base_time):
        executions = WlmQueries(in_memory_session).query_executions(
            base_time + timedelta(days=1), base_time + timedelta(days=2)
        )

        assert executions == []

    def test_missing_table(self, missing_source_session, base_time):
        with pytest.raises(SourceUnavailableError) as exc_info:
            WlmQueries(missing_source_session).query_executions(base_time, base_time)

        assert exc_info.value.table == "stl_wlm_query"


class TestHourlyApex:
    """Tests for hourly_apex method."""

    def test_report(self, in_memory_session, sample_wlm_data, base_time):
        rows = WlmQueries(in_memory_session).hourly_apex(
            ApexConfig(window_seconds=3600), now=base_time + timedelta(minutes=30)
        )

        assert [(r.service_class, r.hour, r.max_service_class_slots, r.max_wlm_concurrency) for r in rows] == [
            (5, "9:00 - 9:59", 2, 5),
            (5, "10:00 - 10:59", 5, 5),
            (6, "9:00 - 9:59", 1, 10),
            (6, "10:00 - 10:59", 1, 10),
        ]
        assert all(r.day == date(2025, 1, 15) for r in rows)
        assert rows[1].peak_time == base_time

    def test_empty_window(self, in_memory_session, sample_wlm_data, base_time):
        rows = WlmQueries(in_memory_session).hourly_apex(
            ApexConfig(window_seconds=3600), now=base_time + timedelta(days=10)
        )

        assert rows == []

    def test_missing_source_aborts(self, missing_source_session, base_time):
        with pytest.raises(SourceUnavailableError):
            WlmQueries(missing_source_session).hourly_apex(ApexConfig(window_seconds=60), now=base_time)


class TestServiceClassSummary:
    """Tests for service_class_summary method."""

    def test_summary(self, in_memory_session, sample_wlm_data, base_time):
        data = WlmQueries(in_memory_session).service_class_summary(
            base_time - timedelta(hours=1), base_time + timedelta(hours=1)
        )

        by_class = {row["service_class"]: row for row in data}
        assert list(by_class) == [5, 6, 9]
        assert by_class[5]["num_query_tasks"] == 5
        assert by_class[5]["query_count"] == 2
        assert by_class[5]["total_slots"] == 5
        assert by_class[5]["max_slot_count"] == 3
        assert by_class[5]["first_start"] == base_time - timedelta(seconds=10)
        assert by_class[5]["last_end"] == base_time + timedelta(seconds=20)
        # No config row for class 9
        assert by_class[9]["num_query_tasks"] is None

    def test_empty(self, in_memory_session, base_time):
        assert WlmQueries(in_memory_session).service_class_summary(base_time, base_time) == []
