"""Tunables for the hourly apex report."""

import os
from dataclasses import dataclass, fields, replace

# Seven days at one-second resolution
DEFAULT_WINDOW_SECONDS = 604800
DEFAULT_GRANULARITY_SECONDS = 1

# Service classes 1-4 are reserved for the platform itself
DEFAULT_MIN_SERVICE_CLASS = 4

# userid 1 is rdsdb, the internal superuser
DEFAULT_MIN_USER_ID = 1

ENV_PREFIX = "WLM_APEX_"


@dataclass(frozen=True)
class ApexConfig:
    """Parameters for a single report run.

    Attributes:
        window_seconds: Lookback window size in seconds
        granularity_seconds: Distance between sampled instants in seconds
        min_service_class: Service classes at or below this are ignored
        min_user_id: User ids at or below this are ignored
        keep_ties: Emit one row per instant that reached the hourly maximum
            instead of a single representative row per hour
    """

    window_seconds: int = DEFAULT_WINDOW_SECONDS
    granularity_seconds: int = DEFAULT_GRANULARITY_SECONDS
    min_service_class: int = DEFAULT_MIN_SERVICE_CLASS
    min_user_id: int = DEFAULT_MIN_USER_ID
    keep_ties: bool = False

    def __post_init__(self):
        if self.window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {self.window_seconds}")
        if self.granularity_seconds <= 0:
            raise ValueError(f"granularity_seconds must be positive, got {self.granularity_seconds}")

    @classmethod
    def from_env(cls, environ=None) -> "ApexConfig":
        """Build a config from WLM_APEX_* environment overrides.

        Recognised variables: WLM_APEX_WINDOW_SECONDS,
        WLM_APEX_GRANULARITY_SECONDS, WLM_APEX_MIN_SERVICE_CLASS and
        WLM_APEX_MIN_USER_ID. Unset variables keep their defaults.

        Raises:
            ValueError: If a variable is not an integer
        """
        environ = os.environ if environ is None else environ
        overrides = {}
        for field in fields(cls):
            if field.name == "keep_ties":
                continue
            env_var = f"{ENV_PREFIX}{field.name.upper()}"
            if env_var in environ:
                try:
                    overrides[field.name] = int(environ[env_var])
                except ValueError:
                    raise ValueError(f"{env_var} must be an integer, got {environ[env_var]!r}") from None
        return cls(**overrides)

    def with_overrides(self, **kwargs) -> "ApexConfig":
        """Return a copy with the non-None keyword values applied."""
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})
