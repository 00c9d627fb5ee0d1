"""SQLAlchemy ORM models for the WLM system tables.

Table and column names match the platform's own system tables so the same
queries run against the cluster directly or against a local SQLite mirror
loaded from unloaded CSV exports. Queries select explicit columns rather
than whole entities because the platform tables have no surrogate key.
"""

from sqlalchemy import BigInteger, Column, DateTime, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class WlmQuery(Base):
    """One query execution as recorded by WLM (stl_wlm_query).

    Timestamps are UTC without time zone, as the platform stores them.
    """

    __tablename__ = "stl_wlm_query"

    # Surrogate key for the local mirror only
    id = Column(Integer, primary_key=True, autoincrement=True)

    userid = Column(Integer, nullable=False, index=True)
    xid = Column(BigInteger)
    task = Column(Integer)
    query = Column(Integer, nullable=False, index=True)
    service_class = Column(Integer, nullable=False, index=True)
    slot_count = Column(Integer, nullable=False, default=1)

    # Time in the service class, queued and executing
    service_class_start_time = Column(DateTime, nullable=False)
    queue_start_time = Column(DateTime)
    queue_end_time = Column(DateTime)
    total_queue_time = Column(BigInteger)  # microseconds
    exec_start_time = Column(DateTime)
    exec_end_time = Column(DateTime)
    total_exec_time = Column(BigInteger)  # microseconds
    service_class_end_time = Column(DateTime)

    final_state = Column(Text)

    __table_args__ = (
        # A query can pass through several service classes (e.g. after hopping)
        UniqueConstraint("query", "service_class", "service_class_start_time", name="uq_wlm_query"),
        Index("ix_wlm_query_class_window", "service_class", "service_class_start_time", "service_class_end_time"),
    )

    def __repr__(self):
        return (
            f"<WlmQuery(query='{self.query}', service_class='{self.service_class}', "
            f"slot_count='{self.slot_count}')>"
        )

    def to_dict(self):
        """Convert the record to a dictionary."""
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}


class WlmServiceClassConfig(Base):
    """Current configuration of a WLM service class (stv_wlm_service_class_config).

    Only the current row per class exists; historical settings are not kept.
    """

    __tablename__ = "stv_wlm_service_class_config"

    service_class = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(Text)

    # Configured concurrency (slots) of the queue
    num_query_tasks = Column(Integer, nullable=False)

    query_working_mem = Column(Integer)  # MB per slot
    max_execution_time = Column(BigInteger)  # milliseconds, 0 = unlimited

    def __repr__(self):
        return (
            f"<WlmServiceClassConfig(service_class='{self.service_class}', "
            f"num_query_tasks='{self.num_query_tasks}')>"
        )
