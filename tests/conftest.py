"""Shared fixtures for wlm-apex tests."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from wlm_apex.apex import QueryExecution, ServiceClassConfig
from wlm_apex.models import Base, WlmQuery, WlmServiceClassConfig


@pytest.fixture
def in_memory_engine():
    """Create an in-memory SQLite database engine with the WLM tables."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def in_memory_session(in_memory_engine):
    """Create a session bound to the in-memory database."""
    Session = sessionmaker(bind=in_memory_engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def empty_engine():
    """In-memory engine without any tables, standing in for a missing source."""
    engine = create_engine("sqlite:///:memory:")
    yield engine
    engine.dispose()


@pytest.fixture
def base_time():
    """Top of an hour used as the anchor of most scenarios."""
    return datetime(2025, 1, 15, 10, 0, 0)


@pytest.fixture
def make_execution():
    """Factory for QueryExecution records on service class 5 by user 100."""
    def _make(start, seconds, slot_count=1, service_class=5, user_id=100):
        return QueryExecution(
            service_class=service_class,
            user_id=user_id,
            slot_count=slot_count,
            start_time=start,
            end_time=start + timedelta(seconds=seconds),
        )
    return _make


@pytest.fixture
def default_configs():
    """User service classes 5-7 plus a reserved system class."""
    return [
        ServiceClassConfig(service_class=3, num_query_tasks=1),
        ServiceClassConfig(service_class=5, num_query_tasks=5),
        ServiceClassConfig(service_class=6, num_query_tasks=10),
        ServiceClassConfig(service_class=7, num_query_tasks=15),
    ]


@pytest.fixture
def sample_wlm_data(in_memory_session, base_time):
    """Populate the WLM tables with a small, known workload.

    Service class 5 peaks at 5 slots during 10:00:00-10:00:10; class 6 runs
    one single-slot query for the whole morning. System users, system
    classes and a class with no config row are mixed in and must be ignored.
    """
    configs = [
        WlmServiceClassConfig(service_class=1, name="System", num_query_tasks=1),
        WlmServiceClassConfig(service_class=5, name="Queue 1", num_query_tasks=5),
        WlmServiceClassConfig(service_class=6, name="Queue 2", num_query_tasks=10),
    ]
    queries = [
        # class 5: 3 + 2 slots overlapping during [10:00:00, 10:00:10)
        WlmQuery(userid=100, query=1001, service_class=5, slot_count=3,
                 service_class_start_time=base_time,
                 service_class_end_time=base_time + timedelta(seconds=20)),
        WlmQuery(userid=101, query=1002, service_class=5, slot_count=2,
                 service_class_start_time=base_time - timedelta(seconds=10),
                 service_class_end_time=base_time + timedelta(seconds=10)),
        # class 6: all morning
        WlmQuery(userid=102, query=1003, service_class=6, slot_count=1,
                 service_class_start_time=base_time - timedelta(hours=3),
                 service_class_end_time=base_time + timedelta(hours=3)),
        # rdsdb on class 5 - ignored
        WlmQuery(userid=1, query=1004, service_class=5, slot_count=50,
                 service_class_start_time=base_time,
                 service_class_end_time=base_time + timedelta(minutes=5)),
        # system service class - ignored
        WlmQuery(userid=100, query=1005, service_class=4, slot_count=50,
                 service_class_start_time=base_time,
                 service_class_end_time=base_time + timedelta(minutes=5)),
        # class with no config row - ignored by the report
        WlmQuery(userid=100, query=1006, service_class=9, slot_count=7,
                 service_class_start_time=base_time,
                 service_class_end_time=base_time + timedelta(minutes=5)),
        # finished long before the window
        WlmQuery(userid=100, query=1007, service_class=5, slot_count=4,
                 service_class_start_time=base_time - timedelta(days=30),
                 service_class_end_time=base_time - timedelta(days=30) + timedelta(minutes=1)),
    ]
    in_memory_session.add_all(configs + queries)
    in_memory_session.commit()
    return {"configs": configs, "queries": queries}
