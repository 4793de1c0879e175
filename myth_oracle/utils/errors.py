# utils/errors.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class OracleError(Exception):
    """Base class for everything the oracle raises internally."""


class MalformedAccount(OracleError):
    """Account data is shorter than its layout or otherwise unreadable."""

    def __init__(self, schema: str, message: str, length: Optional[int] = None):
        super().__init__(f"{schema}: {message}")
        self.schema = schema
        self.length = length


class SourceUnavailable(OracleError):
    """A remote query failed or timed out."""

    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    INVALID = "invalid"

    def __init__(self, source: str, kind: str, detail: str = ""):
        super().__init__(f"{source} unavailable ({kind}){': ' + detail if detail else ''}")
        self.source = source
        self.kind = kind
        self.detail = detail


class PersistenceFailure(OracleError):
    """History could not be read from or written to disk."""


@dataclass(frozen=True)
class ReconciliationAnomaly:
    """
    Derived data outside expected bounds. Reported on the snapshot, never raised.
    kind is one of: negative_circulating, counter_regression, precision,
    malformed_accounts.
    """
    kind: str
    message: str
    field: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"
