"""Platform SQL for computing the hourly apex on the cluster itself.

The same report as wlm_apex.apex, expressed as a single query for
operators who prefer to run it in a SQL client. The platform has no
generate_series for use with system tables, so the time axis is built
from ROW_NUMBER() over a system table with enough rows.

Constants are taken from ApexConfig so both paths share one set of
tunables.
"""

from .config import ApexConfig
from .series import series_length

# Any table with at least series_length() rows works as the row source
DEFAULT_SERIES_SOURCE = "stl_scan"

APEX_SQL_TEMPLATE = """\
WITH
generate_dt_series AS
(
  SELECT SYSDATE - (n * INTERVAL '{granularity} second') AS dt
  FROM (SELECT ROW_NUMBER() OVER () - 1 AS n FROM {series_source} LIMIT {series_rows})
),

apex AS
(
  SELECT iq.dt,
         iq.service_class,
         iq.num_query_tasks,
         COUNT(iq.slot_count) AS service_class_queries,
         SUM(iq.slot_count) AS service_class_slots
  FROM (SELECT gds.dt,
               wq.service_class,
               wscc.num_query_tasks,
               wq.slot_count
        FROM stl_wlm_query wq
          JOIN stv_wlm_service_class_config wscc
            ON (wscc.service_class = wq.service_class
           AND wscc.service_class > {min_service_class})
          JOIN generate_dt_series gds
            ON (wq.service_class_start_time <= gds.dt
           AND wq.service_class_end_time > gds.dt)
        WHERE wq.userid > {min_user_id}
        AND   wq.service_class > {min_service_class}) iq
  GROUP BY iq.dt,
           iq.service_class,
           iq.num_query_tasks
),

maxes AS
(
  SELECT apex.service_class,
         TRUNC(apex.dt) AS d,
         DATE_PART(h,apex.dt) AS dt_h,
         MAX(service_class_slots) AS max_service_class_slots
  FROM apex
  GROUP BY apex.service_class,
           TRUNC(apex.dt),
           DATE_PART(h,apex.dt)
)

SELECT apex.service_class,
       apex.num_query_tasks AS max_wlm_concurrency,
       maxes.d AS day,
       maxes.dt_h || ':00 - ' || maxes.dt_h || ':59' AS hour,
       MAX(apex.service_class_slots) AS max_service_class_slots
FROM apex
  JOIN maxes
    ON (apex.service_class = maxes.service_class
   AND TRUNC(apex.dt) = maxes.d
   AND DATE_PART(h,apex.dt) = maxes.dt_h
   AND apex.service_class_slots = maxes.max_service_class_slots)
GROUP BY apex.service_class,
         apex.num_query_tasks,
         maxes.d,
         maxes.dt_h
ORDER BY apex.service_class,
         maxes.d,
         maxes.dt_h;
"""


def render_redshift_sql(config: ApexConfig | None = None, series_source: str = DEFAULT_SERIES_SOURCE) -> str:
    """Render the hourly apex query for the given tunables.

    Args:
        config: Report tunables. Defaults to ApexConfig().
        series_source: Table used to generate the time axis; needs at least
            as many rows as the series has instants

    Returns:
        SQL text ready to run on the cluster

    Raises:
        ValueError: If series_source is not a plain (optionally
            schema-qualified) table name
    """
    config = config or ApexConfig()

    if not series_source.replace("_", "").replace(".", "").isalnum():
        raise ValueError(f"Invalid table name: {series_source}")

    return APEX_SQL_TEMPLATE.format(
        granularity=int(config.granularity_seconds),
        series_source=series_source,
        series_rows=series_length(config.window_seconds, config.granularity_seconds),
        min_service_class=int(config.min_service_class),
        min_user_id=int(config.min_user_id),
    )
