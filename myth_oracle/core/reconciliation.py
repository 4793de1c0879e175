# core/reconciliation.py
"""
One poll cycle: fan out every chain and price query, wait for all of them to
settle, then derive and publish a new SupplySnapshot.

The engine is the only writer of the published snapshot and of the burn
history. Readers get whatever `current` pointed at when they looked; a cycle
swaps in the next snapshot in one assignment.
"""
from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from myth_oracle.core.config import TOKEN_DECIMALS, TOTAL_SUPPLY, OracleConfig
from myth_oracle.core.models import (
    CACHED,
    DRIFT_DETECTED,
    INFERRED,
    MEASURED,
    SYNCED,
    BridgeState,
    CycleOutcome,
    LedgerSupply,
    SupplySnapshot,
    ValidatorAccount,
    utcnow,
)
from myth_oracle.inputs.onchain.account_decoder import (
    VALIDATOR_SIZE,
    FeeConfigRecord,
    decode_fee_config,
    decode_validator,
)
from myth_oracle.inputs.onchain.chain_source import ChainDataSource, SourceResult, TokenAmount
from myth_oracle.inputs.price.price_aggregator import PriceAggregator
from myth_oracle.memory.burn_history import BurnHistoryEntry, BurnHistoryStore
from myth_oracle.utils.errors import ReconciliationAnomaly
from myth_oracle.utils.pda import bridge_vault_address, fee_config_address

# Parity drift above one whole token is reported.
DRIFT_TOLERANCE = Decimal(1)


def scale(raw: int, decimals: int = TOKEN_DECIMALS) -> Decimal:
    return Decimal(raw) / (Decimal(10) ** decimals)


def circulating_supply(total: Decimal, foundation: Decimal, bridge_locked: Decimal, burned: Decimal) -> Decimal:
    """Not clamped: a negative result means the inputs disagree."""
    return total - foundation - bridge_locked - burned


def parity(l1_supply: Decimal, l2_supply: Decimal, total: Decimal = TOTAL_SUPPLY,
           tolerance: Decimal = DRIFT_TOLERANCE) -> Tuple[str, Decimal]:
    drift = abs(l1_supply + l2_supply - total)
    return (DRIFT_DETECTED if drift > tolerance else SYNCED), drift


def resolve_l1_supply(measured: Optional[Decimal], l2_supply: Decimal,
                      total: Decimal = TOTAL_SUPPLY) -> LedgerSupply:
    """Use the mint supply when it is sane, otherwise infer it from the L2 side."""
    if measured is not None and Decimal(0) < measured <= total + DRIFT_TOLERANCE:
        return LedgerSupply(measured, MEASURED)
    return LedgerSupply(total - l2_supply, INFERRED)


class ReconciliationEngine:
    def __init__(
        self,
        config: OracleConfig,
        l1: ChainDataSource,
        l2: ChainDataSource,
        prices: PriceAggregator,
        history: BurnHistoryStore,
        *,
        clock: Callable[[], datetime] = utcnow,
        total_supply: Decimal = TOTAL_SUPPLY,
    ):
        self.config = config
        self.l1 = l1
        self.l2 = l2
        self.prices = prices
        self.history = history
        self.clock = clock
        self.total_supply = total_supply

        self.vault_address = bridge_vault_address(config.l1_bridge_program, config.l1_mint)
        self.fee_config_address = fee_config_address(config.token_program)

        self._snapshot = SupplySnapshot.initial(clock())
        self._l2_lamports: Optional[int] = None
        self._bridge_amount: Optional[TokenAmount] = None
        self._foundation_lamports: Optional[int] = None
        self._last_validator_fetch: Optional[datetime] = None
        self.cycles = 0

    @property
    def current(self) -> SupplySnapshot:
        return self._snapshot

    def history_entries(self, period: Optional[str] = None, limit: Optional[int] = None):
        return self.history.query(period, limit, now=int(self.clock().timestamp() * 1000))

    # === Fan-out ===

    def _validators_due(self, now: datetime) -> bool:
        if self._last_validator_fetch is None:
            return True
        return (now - self._last_validator_fetch).total_seconds() >= self.config.validator_poll_s

    def _queries(self, now: datetime) -> Dict[str, Any]:
        previous = self._snapshot
        queries = {
            "l1_supply": self.l1.token_supply(self.config.l1_mint),
            "l2_supply": self.l2.native_supply(fallback=self._l2_lamports),
            "bridge_locked": self.l1.token_balance(
                self.vault_address, fallback=self._bridge_amount, missing_ok=True),
            "fee_config": self.l2.decoded_account(
                self.fee_config_address, decode_fee_config, fallback=previous.fee_config),
            "foundation": self.l2.balance(self.config.foundation_wallet, fallback=self._foundation_lamports),
            "price": self.prices.update(previous=previous.price),
        }
        if self._validators_due(now):
            queries["validators"] = self.l2.program_accounts(
                self.config.token_program, VALIDATOR_SIZE, decode_validator)
        return queries

    async def _gather(self, queries: Dict[str, Any]) -> Dict[str, Any]:
        names = list(queries)
        settled = await asyncio.gather(*queries.values(), return_exceptions=True)
        return dict(zip(names, settled))

    # === Cycle ===

    async def run_cycle(self) -> CycleOutcome:
        started = time.monotonic()
        now = self.clock()
        results = await self._gather(self._queries(now))

        warnings: List[str] = []
        anomalies: List[ReconciliationAnomaly] = []

        def settled(name: str) -> Optional[SourceResult]:
            res = results.get(name)
            if isinstance(res, BaseException):
                warnings.append(f"{name}: {res}")
                return None
            if res is not None and not res.ok:
                warnings.append(str(res.error))
            return res

        previous = self._snapshot

        # L2 native supply
        l2_res = settled("l2_supply")
        if l2_res is not None and l2_res.ok:
            self._l2_lamports = l2_res.value
            l2 = LedgerSupply(scale(l2_res.value), MEASURED)
        elif self._l2_lamports is not None:
            l2 = LedgerSupply(scale(self._l2_lamports), CACHED)
        else:
            l2 = LedgerSupply(Decimal(0), INFERRED)

        # L1 mint supply, or inferred from L2
        l1_res = settled("l1_supply")
        measured_l1 = None
        if l1_res is not None and l1_res.ok:
            measured_l1 = scale(l1_res.value.amount, l1_res.value.decimals)
        l1 = resolve_l1_supply(measured_l1, l2.amount, self.total_supply)
        if measured_l1 is not None and not l1.measured:
            warnings.append(f"l1_supply: implausible mint supply {measured_l1}, inferred from L2")

        bridge_res = settled("bridge_locked")
        if bridge_res is not None and bridge_res.ok:
            self._bridge_amount = bridge_res.value
        bridge_locked = scale(self._bridge_amount.amount, self._bridge_amount.decimals) if self._bridge_amount else Decimal(0)

        foundation_res = settled("foundation")
        if foundation_res is not None and foundation_res.ok:
            self._foundation_lamports = foundation_res.value
        foundation = scale(self._foundation_lamports) if self._foundation_lamports is not None else Decimal(0)

        fee_config = self._reconcile_fee_config(settled("fee_config"), previous.fee_config, anomalies)

        price = results.get("price")
        if isinstance(price, BaseException):
            warnings.append(f"price: {price}")
            price = previous.price
        warnings.extend(str(e) for e in self.prices.last_errors)

        validators = self._reconcile_validators(results, now, previous, warnings, anomalies)

        burned_raw = fee_config.total_burned if fee_config else 0
        burned = scale(burned_raw)
        circulating = circulating_supply(self.total_supply, foundation, bridge_locked, burned)
        if circulating < 0:
            anomalies.append(ReconciliationAnomaly(
                "negative_circulating",
                f"circulating supply {circulating} < 0 (foundation={foundation}, locked={bridge_locked}, burned={burned})",
                "circulating_supply",
            ))

        status, drift = parity(l1.amount, l2.amount, self.total_supply)

        rate_24h, rate_7d = self._record_history(now, fee_config, burned_raw)

        snapshot = SupplySnapshot(
            total_supply=self.total_supply,
            l1=l1,
            l2=l2,
            bridge_locked=bridge_locked,
            foundation_reserve=foundation,
            burned=burned,
            burned_raw=burned_raw,
            circulating_supply=circulating,
            bridge=BridgeState(status=status, drift_amount=drift, last_check=now),
            fee_config=fee_config,
            price=price,
            updated_at=now,
            validators=validators,
            burn_rate_24h=rate_24h,
            burn_rate_7d=rate_7d,
            warnings=tuple(warnings),
            anomalies=tuple(anomalies),
        )
        self._snapshot = snapshot
        self.cycles += 1

        outcome = CycleOutcome(snapshot, tuple(warnings), tuple(anomalies), time.monotonic() - started)
        self._log_cycle(outcome)
        return outcome

    # === Merge helpers ===

    def _reconcile_fee_config(self, res: Optional[SourceResult], previous: Optional[FeeConfigRecord],
                              anomalies: List[ReconciliationAnomaly]) -> Optional[FeeConfigRecord]:
        if res is None or not res.ok:
            return previous

        fee_config: FeeConfigRecord = res.value
        if previous is not None:
            for name, (before, after) in fee_config.regressions(previous).items():
                anomalies.append(ReconciliationAnomaly(
                    "counter_regression", f"{name} decreased from {before} to {after}", name))
        for name, value in fee_config.unsafe_counters().items():
            anomalies.append(ReconciliationAnomaly(
                "precision", f"{name}={value} exceeds 2^53-1 and is not float-safe", name))
        return fee_config

    def _reconcile_validators(self, results: Dict[str, Any], now: datetime, previous: SupplySnapshot,
                              warnings: List[str], anomalies: List[ReconciliationAnomaly]):
        if "validators" not in results:
            return previous.validators

        self._last_validator_fetch = now
        res = results["validators"]
        if isinstance(res, BaseException):
            warnings.append(f"validators: {res}")
            return previous.validators
        if not res.ok:
            warnings.append(str(res.error))
            return previous.validators

        scan = res.value
        if scan.skipped:
            anomalies.append(ReconciliationAnomaly(
                "malformed_accounts", f"skipped {len(scan.skipped)} malformed validator account(s)", "validators"))
        return tuple(ValidatorAccount(address, record) for address, record in scan.records)

    def _record_history(self, now: datetime, fee_config: Optional[FeeConfigRecord], burned_raw: int):
        if fee_config is None:
            return None, None
        ts = int(now.timestamp() * 1000)
        self.history.append(BurnHistoryEntry.from_fee_config(ts, fee_config), now=ts)
        self.history.maybe_save()
        return (
            self.history.burn_rate("24h", burned_raw, now=ts),
            self.history.burn_rate("7d", burned_raw, now=ts),
        )

    def _log_cycle(self, outcome: CycleOutcome) -> None:
        s = outcome.snapshot
        if outcome.warnings or outcome.anomalies:
            issues = list(outcome.warnings) + [str(a) for a in outcome.anomalies]
            logging.warning(f"[supply-oracle] Update with warnings ({outcome.duration_s:.2f}s): {', '.join(issues)}")
            return
        logging.info(
            f"[supply-oracle] Total: {s.total_supply} | Burned: {s.burned} | Circ: {s.circulating_supply} | "
            f"L1: {s.l1.amount} ({s.bridge_locked} locked) | L2: {s.l2.amount} | Bridge: {s.bridge.status} | "
            f"{outcome.duration_s:.2f}s"
        )
