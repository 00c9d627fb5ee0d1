"""WLM Apex - hourly high-water-mark of WLM query slot usage."""

from .apex import (
    HourlyMax,
    OccupancySample,
    QueryExecution,
    ReportRow,
    ServiceClassConfig,
    assemble_report,
    compute_hourly_apex,
    hourly_maxima,
    sample_occupancy,
)
from .config import ApexConfig
from .database import get_db_url, get_engine, get_session, init_db
from .exceptions import SourceUnavailableError, WlmApexError
from .models import WlmQuery, WlmServiceClassConfig
from .queries import WlmQueries
from .series import generate_dt_series

__all__ = [
    "ApexConfig",
    "HourlyMax",
    "OccupancySample",
    "QueryExecution",
    "ReportRow",
    "ServiceClassConfig",
    "SourceUnavailableError",
    "WlmApexError",
    "WlmQueries",
    "WlmQuery",
    "WlmServiceClassConfig",
    "assemble_report",
    "compute_hourly_apex",
    "generate_dt_series",
    "get_db_url",
    "get_engine",
    "get_session",
    "hourly_maxima",
    "init_db",
    "sample_occupancy",
]
