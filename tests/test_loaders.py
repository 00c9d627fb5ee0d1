"""Tests for importing unloaded WLM tables."""

from datetime import datetime

from wlm_apex.loaders import load_service_class_configs, load_wlm_queries
from wlm_apex.models import WlmQuery, WlmServiceClassConfig


def make_row(query, start="2025-01-15 10:00:00", end="2025-01-15 10:05:00", **overrides):
    row = {
        "userid": "100",
        "query": str(query),
        "service_class": "6",
        "slot_count": "1",
        "service_class_start_time": start,
        "service_class_end_time": end,
    }
    row.update(overrides)
    return row


class TestLoadWlmQueries:
    """Tests for load_wlm_queries function."""

    def test_inserts_in_batches(self, in_memory_session):
        rows = [make_row(q) for q in range(1, 6)]

        stats = load_wlm_queries(in_memory_session, rows, batch_size=2)

        assert stats == {"fetched": 5, "inserted": 5, "errors": 0}
        assert in_memory_session.query(WlmQuery).count() == 5

    def test_duplicates_are_skipped(self, in_memory_session):
        load_wlm_queries(in_memory_session, [make_row(1), make_row(2)])

        stats = load_wlm_queries(in_memory_session, [make_row(2), make_row(3)])

        assert stats["inserted"] == 1
        assert in_memory_session.query(WlmQuery).count() == 3

    def test_malformed_rows_are_counted(self, in_memory_session):
        rows = [
            make_row(1),
            make_row(2, start=""),
            make_row(3, service_class="abc"),
            make_row(4, start="2025-01-15 11:00:00"),  # ends before it starts
            make_row(5, end=""),  # still running
        ]

        stats = load_wlm_queries(in_memory_session, rows)

        assert stats == {"fetched": 5, "inserted": 2, "errors": 3}
        running = in_memory_session.query(WlmQuery).filter_by(query=5).one()
        assert running.service_class_end_time is None

    def test_dry_run(self, in_memory_session):
        stats = load_wlm_queries(in_memory_session, [make_row(1)], dry_run=True)

        assert stats["fetched"] == 1
        assert stats["inserted"] == 0
        assert in_memory_session.query(WlmQuery).count() == 0

    def test_timestamps_round_trip(self, in_memory_session):
        load_wlm_queries(in_memory_session, [make_row(1, start="2025-01-15 10:00:00.250000")])

        record = in_memory_session.query(WlmQuery).one()
        assert record.service_class_start_time == datetime(2025, 1, 15, 10, 0, 0, 250000)


class TestLoadServiceClassConfigs:
    """Tests for load_service_class_configs function."""

    def test_insert(self, in_memory_session):
        rows = [
            {"service_class": "5", "name": "Queue 1", "num_query_tasks": "5"},
            {"service_class": "6", "name": "Queue 2", "num_query_tasks": "10"},
        ]

        stats = load_service_class_configs(in_memory_session, rows)

        assert stats == {"fetched": 2, "inserted": 2, "errors": 0}
        assert in_memory_session.query(WlmServiceClassConfig).count() == 2

    def test_current_config_replaces_previous(self, in_memory_session):
        load_service_class_configs(in_memory_session, [{"service_class": "5", "num_query_tasks": "5"}])
        load_service_class_configs(in_memory_session, [{"service_class": "5", "num_query_tasks": "8"}])

        in_memory_session.expire_all()
        config = in_memory_session.query(WlmServiceClassConfig).one()
        assert config.num_query_tasks == 8

    def test_malformed_rows_are_counted(self, in_memory_session):
        rows = [{"service_class": "5"}, {"num_query_tasks": "3"}]

        stats = load_service_class_configs(in_memory_session, rows)

        assert stats == {"fetched": 2, "inserted": 0, "errors": 2}

    def test_dry_run(self, in_memory_session):
        stats = load_service_class_configs(
            in_memory_session, [{"service_class": "5", "num_query_tasks": "5"}], dry_run=True
        )

        assert stats["inserted"] == 0
        assert in_memory_session.query(WlmServiceClassConfig).count() == 0
