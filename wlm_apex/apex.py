"""Hourly high-water-mark of WLM slot occupancy.

The report is built as a linear pipeline over plain records:

1. generate_dt_series() lays a dense time axis over the lookback window
2. sample_occupancy() counts the executions and slots active at every
   instant, per service class
3. hourly_maxima() reduces the samples to the peak slot count per
   (service class, UTC day, hour)
4. assemble_report() joins the samples back to the peaks to recover the
   configured concurrency and the instant that reached each peak

Both reduction stages are built on reduce_peaks(), which keeps only the
samples at each bucket's running maximum. compute_hourly_apex() streams
the sampler straight into it, so the samples are read once and never
held in full.
"""

import heapq
from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .config import ApexConfig, DEFAULT_MIN_SERVICE_CLASS, DEFAULT_MIN_USER_ID
from .logging import get_logger
from .series import generate_dt_series, to_naive_utc, utc_now

logger = get_logger(__name__)

# (service_class, day, hour)
BucketKey = Tuple[int, date, int]


@dataclass(frozen=True)
class ServiceClassConfig:
    """Current concurrency setting of a service class."""

    service_class: int
    num_query_tasks: int


@dataclass(frozen=True)
class QueryExecution:
    """A query's stay in a service class, active over [start_time, end_time)."""

    service_class: int
    user_id: int
    slot_count: int
    start_time: Optional[datetime]
    end_time: Optional[datetime]


@dataclass(frozen=True)
class OccupancySample:
    """Slots in use by one service class at one instant."""

    instant: datetime
    service_class: int
    max_wlm_concurrency: int
    service_class_queries: int
    service_class_slots: int

    @property
    def bucket(self) -> BucketKey:
        return (self.service_class, self.instant.date(), self.instant.hour)


@dataclass(frozen=True)
class HourlyMax:
    """Peak slot count of a service class within one UTC hour."""

    service_class: int
    day: date
    hour: int
    max_service_class_slots: int

    @property
    def bucket(self) -> BucketKey:
        return (self.service_class, self.day, self.hour)


@dataclass(frozen=True)
class ReportRow:
    """One line of the hourly apex report.

    ``peak_time`` is the instant that reached the peak and
    ``service_class_queries`` the number of executions active then.
    """

    service_class: int
    max_wlm_concurrency: int
    day: date
    hour: str
    max_service_class_slots: int
    peak_time: datetime
    service_class_queries: int

    def to_dict(self) -> Dict:
        """Convert the row to a dictionary for the exporters."""
        return asdict(self)


def hour_label(hour: int) -> str:
    """Label a one-hour bucket, e.g. 9 -> '9:00 - 9:59'."""
    return f"{hour}:00 - {hour}:59"


def _eligible_executions(
    executions: Iterable[QueryExecution],
    service_classes: Iterable[int],
    min_user_id: int,
) -> Dict[int, List[Tuple[datetime, datetime, int]]]:
    """Group usable executions by service class, ordered by start time."""
    service_classes = set(service_classes)
    by_class: Dict[int, List[Tuple[datetime, datetime, int]]] = defaultdict(list)

    for execution in executions:
        if execution.user_id <= min_user_id:
            continue
        if execution.service_class not in service_classes:
            continue
        if execution.start_time is None or execution.end_time is None:
            continue
        start = to_naive_utc(execution.start_time)
        end = to_naive_utc(execution.end_time)
        # Empty intervals can never contain an instant
        if start >= end:
            continue
        by_class[execution.service_class].append((start, end, execution.slot_count))

    for rows in by_class.values():
        rows.sort(key=lambda row: row[0])
    return by_class


def sample_occupancy(
    instants: Iterable[datetime],
    executions: Iterable[QueryExecution],
    configs: Iterable[ServiceClassConfig],
    min_service_class: int = DEFAULT_MIN_SERVICE_CLASS,
    min_user_id: int = DEFAULT_MIN_USER_ID,
) -> Iterator[OccupancySample]:
    """Sample the slots in use per service class at every instant.

    An execution counts at an instant when
    ``start_time <= instant < end_time``. Only service classes above
    ``min_service_class`` that have a config row are sampled, and only
    executions by users above ``min_user_id`` count. Instants where a class
    has no active execution produce no sample.

    Each class is swept once over the instants in ascending order, keeping
    the active executions in a heap keyed on end time.

    Args:
        instants: Sampling instants, in any order
        executions: Query executions to sample
        configs: Current service class configuration
        min_service_class: Exclusive lower bound on service class
        min_user_id: Exclusive lower bound on user id

    Yields:
        OccupancySample ordered by service class, then instant
    """
    concurrency = {
        c.service_class: c.num_query_tasks
        for c in configs
        if c.service_class > min_service_class
    }
    instants = sorted(to_naive_utc(i) for i in instants)
    by_class = _eligible_executions(executions, concurrency, min_user_id)

    for service_class in sorted(by_class):
        pending = by_class[service_class]
        num_query_tasks = concurrency[service_class]
        active: List[Tuple[datetime, int]] = []
        slots = 0
        next_index = 0

        for instant in instants:
            while next_index < len(pending) and pending[next_index][0] <= instant:
                _, end, slot_count = pending[next_index]
                heapq.heappush(active, (end, slot_count))
                slots += slot_count
                next_index += 1

            # end_time is exclusive
            while active and active[0][0] <= instant:
                _, slot_count = heapq.heappop(active)
                slots -= slot_count

            if active:
                yield OccupancySample(
                    instant=instant,
                    service_class=service_class,
                    max_wlm_concurrency=num_query_tasks,
                    service_class_queries=len(active),
                    service_class_slots=slots,
                )


def reduce_peaks(
    samples: Iterable[OccupancySample],
    keep_ties: bool = False,
) -> Dict[BucketKey, Tuple[int, List[OccupancySample]]]:
    """Track the peak slot count per bucket in a single pass.

    Only the samples that reach the running maximum of their bucket are
    held, so the input can be a generator of any length.

    Args:
        samples: Occupancy samples, in any order
        keep_ties: Hold every sample that reached the peak, not just the
            earliest

    Returns:
        Dict mapping (service_class, day, hour) to the peak slot count and
        the samples that reached it
    """
    peaks: Dict[BucketKey, Tuple[int, List[OccupancySample]]] = {}
    for sample in samples:
        key = sample.bucket
        slots = sample.service_class_slots
        current = peaks.get(key)

        if current is None or slots > current[0]:
            peaks[key] = (slots, [sample])
        elif slots == current[0]:
            winners = current[1]
            if keep_ties:
                winners.append(sample)
            elif sample.instant < winners[0].instant:
                winners[0] = sample

    return peaks


def _maxima_from_peaks(
    peaks: Dict[BucketKey, Tuple[int, List[OccupancySample]]],
) -> List[HourlyMax]:
    return [
        HourlyMax(service_class=sc, day=day, hour=hour, max_service_class_slots=slots)
        for (sc, day, hour), (slots, _) in sorted(peaks.items(), key=lambda item: item[0])
    ]


def _report_rows(
    peaks: Dict[BucketKey, Tuple[int, List[OccupancySample]]],
) -> List[ReportRow]:
    rows = []
    for (_, day, hour), (_, winners) in sorted(peaks.items(), key=lambda item: item[0]):
        for sample in sorted(winners, key=lambda s: s.instant):
            rows.append(ReportRow(
                service_class=sample.service_class,
                max_wlm_concurrency=sample.max_wlm_concurrency,
                day=day,
                hour=hour_label(hour),
                max_service_class_slots=sample.service_class_slots,
                peak_time=sample.instant,
                service_class_queries=sample.service_class_queries,
            ))
    return rows


def hourly_maxima(samples: Iterable[OccupancySample]) -> List[HourlyMax]:
    """Reduce samples to the peak slot count per class, UTC day and hour.

    Returns:
        HourlyMax list ordered by service class, day and hour
    """
    return _maxima_from_peaks(reduce_peaks(samples))


def assemble_report(
    samples: Iterable[OccupancySample],
    maxima: Iterable[HourlyMax],
    keep_ties: bool = False,
) -> List[ReportRow]:
    """Join samples back to their hourly peaks.

    A sample matches when it falls in the peak's bucket and its slot count
    equals the peak. By default only the earliest matching instant of each
    bucket is reported; with ``keep_ties`` every matching instant is.
    Samples are read once and only the matches are held.

    Args:
        samples: Occupancy samples the maxima were computed from
        maxima: Hourly peaks
        keep_ties: Report every instant that reached the peak

    Returns:
        ReportRow list ordered by service class, day, hour and peak time
    """
    targets = {m.bucket: m.max_service_class_slots for m in maxima}
    matched = reduce_peaks(
        (s for s in samples if targets.get(s.bucket) == s.service_class_slots),
        keep_ties=keep_ties,
    )
    return _report_rows(matched)


def compute_hourly_apex(
    executions: Iterable[QueryExecution],
    configs: Iterable[ServiceClassConfig],
    config: Optional[ApexConfig] = None,
    now: Optional[datetime] = None,
) -> List[ReportRow]:
    """Compute the hourly slot high-water-mark report.

    Samples stream straight into the peak reduction and are never held
    in full.

    Args:
        executions: Query executions (the WLM query log)
        configs: Current service class configuration
        config: Report tunables. Defaults to ApexConfig().
        now: End of the lookback window. Defaults to the current UTC time.

    Returns:
        ReportRow list ordered by service class, day and hour; empty when
        nothing was active in the window
    """
    config = config or ApexConfig()
    now = utc_now() if now is None else to_naive_utc(now)

    instants = generate_dt_series(now, config.window_seconds, config.granularity_seconds)
    samples = sample_occupancy(
        instants,
        executions,
        configs,
        min_service_class=config.min_service_class,
        min_user_id=config.min_user_id,
    )
    peaks = reduce_peaks(samples, keep_ties=config.keep_ties)

    rows = _report_rows(peaks)
    logger.info(f"Hourly apex: {len(peaks):,} active hours, {len(rows):,} report rows")
    return rows
