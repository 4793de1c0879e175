# memory/burn_history.py
"""
Bounded, append-only burn history with windowed lookups and coalesced
persistence to a JSON array on disk.
"""
from __future__ import annotations

import bisect
import logging
import time
from collections import deque
from dataclasses import asdict, dataclass
from typing import Deque, Dict, List, Optional, Tuple

from myth_oracle.core.models import BurnRate
from myth_oracle.inputs.onchain.account_decoder import FeeConfigRecord
from myth_oracle.utils.errors import PersistenceFailure
from myth_oracle.utils.file_utils import safe_read_json, safe_write_json
from myth_oracle.utils.logger import log_event

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS

PERIODS_MS: Dict[str, int] = {
    "1h": HOUR_MS,
    "6h": 6 * HOUR_MS,
    "24h": DAY_MS,
    "7d": 7 * DAY_MS,
}
DEFAULT_PERIOD = "24h"
DEFAULT_LIMIT = 500

# Windows whose marks are tracked for burn-rate metrics.
RATE_WINDOWS = ("24h", "7d")

ENTRY_FIELDS = (
    "timestamp",
    "totalBurned",
    "gasBurned",
    "computeBurned",
    "inferenceBurned",
    "bridgeBurned",
    "subnetBurned",
)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class BurnHistoryEntry:
    timestamp: int  # unix ms
    total_burned: int = 0
    gas_burned: int = 0
    compute_burned: int = 0
    inference_burned: int = 0
    bridge_burned: int = 0
    subnet_burned: int = 0

    @classmethod
    def from_fee_config(cls, timestamp: int, fee_config: Optional[FeeConfigRecord]) -> "BurnHistoryEntry":
        if fee_config is None:
            return cls(timestamp)
        return cls(
            timestamp=timestamp,
            total_burned=fee_config.total_burned,
            gas_burned=fee_config.gas_burned,
            compute_burned=fee_config.compute_burned,
            inference_burned=fee_config.inference_burned,
            bridge_burned=fee_config.bridge_burned,
            subnet_burned=fee_config.subnet_burned,
        )

    def to_json(self) -> dict:
        return dict(zip(ENTRY_FIELDS, asdict(self).values()))

    @classmethod
    def from_json(cls, raw: dict) -> "BurnHistoryEntry":
        return cls(int(raw["timestamp"]), *(int(raw.get(name) or 0) for name in ENTRY_FIELDS[1:]))


class BurnHistoryStore:
    def __init__(self, path: Optional[str] = None, max_entries: int = 8640, save_every: int = 60):
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.path = path
        self.max_entries = max_entries
        self.save_every = max(1, save_every)
        self._entries: Deque[BurnHistoryEntry] = deque(maxlen=max_entries)
        self._marks: Dict[str, BurnHistoryEntry] = {}
        self._unsaved = 0

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> Tuple[BurnHistoryEntry, ...]:
        return tuple(self._entries)

    @property
    def latest(self) -> Optional[BurnHistoryEntry]:
        return self._entries[-1] if self._entries else None

    # === Writes ===

    def append(self, entry: BurnHistoryEntry, now: Optional[int] = None) -> None:
        """Add to the tail; the deque evicts from the head past max_entries."""
        self._entries.append(entry)
        self._unsaved += 1
        self._refresh_marks(entry.timestamp if now is None else now)

    def maybe_save(self) -> bool:
        """Persist once every `save_every` appends. Returns True if a write happened and succeeded."""
        if self._unsaved < self.save_every:
            return False
        return self.save()

    def save(self) -> bool:
        if not self.path:
            return False
        try:
            safe_write_json(self.path, [e.to_json() for e in self._entries])
        except PersistenceFailure as e:
            # in-memory history stays authoritative; the next save point retries
            logging.warning(f"[BurnHistory] Could not save burn history: {e}")
            return False
        self._unsaved = 0
        return True

    def load(self, now: Optional[int] = None) -> int:
        """Replace in-memory history with the persisted one. Returns the number of entries loaded."""
        if not self.path:
            return 0
        try:
            raw = safe_read_json(self.path, default=[])
        except PersistenceFailure as e:
            logging.warning(f"[BurnHistory] Could not load burn history: {e}")
            return 0
        if not isinstance(raw, list):
            logging.warning(f"[BurnHistory] Ignoring {self.path}: expected a JSON array")
            return 0

        loaded: List[BurnHistoryEntry] = []
        for item in raw:
            try:
                loaded.append(BurnHistoryEntry.from_json(item))
            except (AttributeError, KeyError, TypeError, ValueError):
                logging.debug(f"[BurnHistory] Skipping bad history entry: {item!r}")
        loaded.sort(key=lambda e: e.timestamp)

        self._entries = deque(loaded[-self.max_entries:], maxlen=self.max_entries)
        self._marks = {}
        self._refresh_marks(now_ms() if now is None else now)
        log_event(f"Loaded {len(self._entries)} burn history entries")
        return len(self._entries)

    # === Reads ===

    def snapshot_at(self, window_ms: int, now: Optional[int] = None) -> Optional[BurnHistoryEntry]:
        """
        Earliest entry with timestamp >= now - window. When every entry is older
        than the cutoff, the oldest entry is returned. None only when empty.
        """
        if not self._entries:
            return None
        now = now_ms() if now is None else now
        cutoff = now - window_ms
        timestamps = [e.timestamp for e in self._entries]
        idx = bisect.bisect_left(timestamps, cutoff)
        if idx < len(timestamps):
            return self._entries[idx]
        return self._entries[0]

    def mark(self, period: str) -> Optional[BurnHistoryEntry]:
        return self._marks.get(period)

    def burn_rate(self, period: str, current_total: int, now: Optional[int] = None) -> Optional[BurnRate]:
        """Burned amount since the period's mark, in raw units."""
        now = now_ms() if now is None else now
        base = self._marks.get(period) or self.snapshot_at(PERIODS_MS[period], now)
        if base is None:
            return None
        return BurnRate(
            window_s=PERIODS_MS[period] / 1000,
            burned=current_total - base.total_burned,
            elapsed_s=max(0, now - base.timestamp) / 1000,
        )

    def query(self, period: Optional[str] = DEFAULT_PERIOD, limit: Optional[int] = DEFAULT_LIMIT,
              now: Optional[int] = None) -> Tuple[str, List[BurnHistoryEntry]]:
        """Entries at or after the period cutoff, the most recent `limit` of them."""
        if period not in PERIODS_MS:
            period = DEFAULT_PERIOD
        limit = DEFAULT_LIMIT if limit is None else limit
        limit = max(0, min(int(limit), self.max_entries))
        now = now_ms() if now is None else now
        cutoff = now - PERIODS_MS[period]

        matched = [e for e in self._entries if e.timestamp >= cutoff]
        if limit == 0:
            return period, []
        return period, matched[-limit:]

    def _refresh_marks(self, now: int) -> None:
        for period in RATE_WINDOWS:
            cutoff = now - PERIODS_MS[period]
            entry = self._first_since(cutoff)
            if entry is not None:
                self._marks[period] = entry

    def _first_since(self, cutoff: int) -> Optional[BurnHistoryEntry]:
        for e in self._entries:
            if e.timestamp >= cutoff:
                return e
        return None

