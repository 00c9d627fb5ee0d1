"""Exceptions raised by wlm-apex."""


class WlmApexError(Exception):
    """Base class for wlm-apex errors."""


class SourceUnavailableError(WlmApexError):
    """A WLM source table is missing or cannot be read.

    The whole report is aborted; the message carries the driver error
    verbatim so the operator sees what the database said.
    """

    def __init__(self, table: str, reason: str):
        self.table = table
        self.reason = reason
        super().__init__(f"Cannot read {table}: {reason}")
