# core/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple

from myth_oracle.core.config import TOTAL_SUPPLY
from myth_oracle.inputs.onchain.account_decoder import FeeConfigRecord, ValidatorRecord
from myth_oracle.utils.errors import ReconciliationAnomaly

SYNCED = "synced"
DRIFT_DETECTED = "drift_detected"

# How a ledger supply figure was obtained
MEASURED = "measured"
INFERRED = "inferred"
CACHED = "cached"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PumpFunInfo:
    bonding_curve_complete: Optional[bool] = None
    reply_count: Optional[int] = None
    website: Optional[str] = None


@dataclass(frozen=True)
class PriceQuote:
    """Merged market data. None always means unknown, never zero."""
    usd: Optional[float] = None
    sol: Optional[float] = None
    market_cap: Optional[float] = None
    volume_24h: Optional[float] = None
    price_change_24h: Optional[float] = None
    fdv: Optional[float] = None
    liquidity: Optional[float] = None
    source: Optional[str] = None
    last_update: Optional[datetime] = None
    pumpfun: PumpFunInfo = field(default_factory=PumpFunInfo)


@dataclass(frozen=True)
class LedgerSupply:
    amount: Decimal
    source: str = MEASURED

    @property
    def measured(self) -> bool:
        return self.source == MEASURED


@dataclass(frozen=True)
class BridgeState:
    status: str = SYNCED
    drift_amount: Decimal = Decimal(0)
    last_check: Optional[datetime] = None


@dataclass(frozen=True)
class BurnRate:
    """Burned delta (raw units) between a history mark and now."""
    window_s: float
    burned: int
    elapsed_s: float


@dataclass(frozen=True)
class ValidatorAccount:
    address: str
    record: ValidatorRecord


@dataclass(frozen=True)
class SupplySnapshot:
    total_supply: Decimal
    l1: LedgerSupply
    l2: LedgerSupply
    bridge_locked: Decimal
    foundation_reserve: Decimal
    burned: Decimal
    burned_raw: int
    circulating_supply: Decimal
    bridge: BridgeState
    fee_config: Optional[FeeConfigRecord]
    price: PriceQuote
    updated_at: datetime
    validators: Tuple[ValidatorAccount, ...] = ()
    burn_rate_24h: Optional[BurnRate] = None
    burn_rate_7d: Optional[BurnRate] = None
    warnings: Tuple[str, ...] = ()
    anomalies: Tuple[ReconciliationAnomaly, ...] = ()

    @classmethod
    def initial(cls, now: Optional[datetime] = None) -> "SupplySnapshot":
        """State published before the first cycle completes."""
        now = now or utcnow()
        return cls(
            total_supply=TOTAL_SUPPLY,
            l1=LedgerSupply(TOTAL_SUPPLY, INFERRED),
            l2=LedgerSupply(Decimal(0), INFERRED),
            bridge_locked=Decimal(0),
            foundation_reserve=Decimal(0),
            burned=Decimal(0),
            burned_raw=0,
            circulating_supply=TOTAL_SUPPLY,
            bridge=BridgeState(last_check=now),
            fee_config=None,
            price=PriceQuote(),
            updated_at=now,
        )

    @property
    def l1_circulating(self) -> Decimal:
        return self.l1.amount - self.bridge_locked

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        return ((now or utcnow()) - self.updated_at).total_seconds()

    def is_stale(self, poll_interval_s: float, multiple: float = 3, now: Optional[datetime] = None) -> bool:
        return self.age_seconds(now) >= poll_interval_s * multiple


@dataclass(frozen=True)
class CycleOutcome:
    snapshot: SupplySnapshot
    warnings: Tuple[str, ...] = ()
    anomalies: Tuple[ReconciliationAnomaly, ...] = ()
    duration_s: float = 0.0
