# core/views.py
"""JSON projections of the published snapshot. Pure functions, no state."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from myth_oracle.core.config import (
    TOKEN_DECIMALS,
    TOKEN_NAME,
    TOKEN_SYMBOL,
    TOTAL_SUPPLY_RAW,
    OracleConfig,
)
from myth_oracle.core.models import BurnRate, PriceQuote, SupplySnapshot
from myth_oracle.memory.burn_history import BurnHistoryEntry

SCALE = Decimal(10) ** TOKEN_DECIMALS


def _f(value: Optional[Decimal]) -> Optional[float]:
    return None if value is None else float(value)


def to_tokens(raw: Optional[int]) -> float:
    return float(Decimal(raw or 0) / SCALE)


def plain_number(value: Decimal) -> str:
    """Whole amounts without a trailing ".0", the way a JSON number prints."""
    if value == value.to_integral_value():
        return str(int(value))
    return str(float(value))


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat().replace("+00:00", "Z") if ts else None


def _ms_iso(ms: int) -> str:
    return _iso(datetime.fromtimestamp(ms / 1000, tz=timezone.utc))


def _rate(rate: Optional[BurnRate]) -> float:
    return to_tokens(rate.burned) if rate else 0.0


def price_view(price: PriceQuote) -> Dict[str, Any]:
    return {
        "usd": price.usd,
        "sol": price.sol,
        "marketCap": price.market_cap,
        "volume24h": price.volume_24h,
        "priceChange24h": price.price_change_24h,
        "fdv": price.fdv,
        "liquidity": price.liquidity,
        "source": price.source,
        "lastUpdate": _iso(price.last_update),
        "pumpfun": {
            "bondingCurveComplete": price.pumpfun.bonding_curve_complete,
            "replyCount": price.pumpfun.reply_count,
            "website": price.pumpfun.website,
        },
    }


def full_view(s: SupplySnapshot, config: OracleConfig) -> Dict[str, Any]:
    """Everything except the raw fee config."""
    return {
        "totalSupply": _f(s.total_supply),
        "circulatingSupply": _f(s.circulating_supply),
        "burned": _f(s.burned),
        "l1": {
            "supply": _f(s.l1.amount),
            "supplySource": s.l1.source,
            "locked": _f(s.bridge_locked),
            "circulating": _f(s.l1_circulating),
            "mint": config.l1_mint,
        },
        "l2": {"supply": _f(s.l2.amount), "supplySource": s.l2.source, "mint": config.l2_mint},
        "bridge": {
            "l1Program": config.l1_bridge_program,
            "status": s.bridge.status,
            "lastCheck": _iso(s.bridge.last_check),
            "driftAmount": _f(s.bridge.drift_amount),
        },
        "foundationBalance": _f(s.foundation_reserve),
        "price": price_view(s.price),
        "meta": {
            "name": TOKEN_NAME,
            "symbol": TOKEN_SYMBOL,
            "decimals": TOKEN_DECIMALS,
            "chain": "Solana L1 + Mythic L2",
            "totalSupplyRaw": str(TOTAL_SUPPLY_RAW),
        },
        "warnings": list(s.warnings),
        "anomalies": [str(a) for a in s.anomalies],
        "lastUpdated": _iso(s.updated_at),
    }


def breakdown_view(s: SupplySnapshot) -> Dict[str, Any]:
    return {
        "total": _f(s.total_supply),
        "burned": _f(s.burned),
        "circulating": _f(s.circulating_supply),
        "l1": {"circulating": _f(s.l1_circulating), "locked": _f(s.bridge_locked)},
        "l2": {"circulating": _f(s.l2.amount)},
        "bridgeStatus": s.bridge.status,
        "price": s.price.usd,
    }


def v1_supply_view(s: SupplySnapshot) -> Dict[str, Any]:
    return {
        "totalSupply": _f(s.total_supply),
        "circulatingSupply": _f(s.circulating_supply),
        "burned": _f(s.burned),
        "l1Supply": _f(s.l1_circulating),
        "l2Supply": _f(s.l2.amount),
        "bridgeLocked": _f(s.bridge_locked),
        "symbol": TOKEN_SYMBOL,
        "decimals": TOKEN_DECIMALS,
        "price": s.price.usd,
        "marketCap": s.price.market_cap,
        "volume24h": s.price.volume_24h,
        "lastUpdated": _iso(s.updated_at),
    }


def supply_view(s: SupplySnapshot) -> Dict[str, Any]:
    return {
        "totalSupply": _f(s.total_supply),
        "burned": _f(s.burned),
        "circulating": _f(s.circulating_supply),
        "burnRate24h": _rate(s.burn_rate_24h),
        "burnRateWeek": _rate(s.burn_rate_7d),
        "decimals": TOKEN_DECIMALS,
        "lastUpdated": _iso(s.updated_at),
    }


def stats_view(s: SupplySnapshot, config: OracleConfig) -> Dict[str, Any]:
    fc = s.fee_config

    def split(name):
        return getattr(fc, name).to_dict() if fc else None

    def burned(name):
        return to_tokens(getattr(fc, name) if fc else 0)

    return {
        "feeBreakdown": {
            "gas": {"burned": burned("gas_burned"), "split": split("gas_split")},
            "compute": {"burned": burned("compute_burned"), "split": split("compute_split")},
            "inference": {"burned": burned("inference_burned"), "split": split("inference_split")},
            "bridge": {"burned": burned("bridge_burned"), "split": split("bridge_split")},
            "subnet": {"burned": burned("subnet_burned")},
        },
        "totalBurned": burned("total_burned"),
        "totalFoundationBurned": burned("total_foundation_burned"),
        "validatorRewards": burned("total_distributed"),
        "foundationTreasury": {
            "collected": burned("total_foundation_collected"),
            "balance": _f(s.foundation_reserve),
            "wallet": config.foundation_wallet,
        },
        "currentEpoch": fc.current_epoch if fc else 0,
        "isPaused": fc.is_paused if fc else False,
        "lastUpdated": _iso(s.updated_at),
    }


def history_view(period: str, entries: Iterable[BurnHistoryEntry]) -> Dict[str, Any]:
    history = [
        {
            "timestamp": _ms_iso(e.timestamp),
            "totalBurned": to_tokens(e.total_burned),
            "gasBurned": to_tokens(e.gas_burned),
            "computeBurned": to_tokens(e.compute_burned),
            "inferenceBurned": to_tokens(e.inference_burned),
            "bridgeBurned": to_tokens(e.bridge_burned),
            "subnetBurned": to_tokens(e.subnet_burned),
        }
        for e in entries
    ]
    return {"period": period, "entries": len(history), "history": history}


def validators_view(s: SupplySnapshot) -> Dict[str, Any]:
    validators = [
        {
            "address": v.address,
            "validator": v.record.validator,
            "stakeAmount": to_tokens(v.record.stake_amount),
            "aiCapable": v.record.ai_capable,
            "rewardMultiplier": v.record.reward_multiplier,
            "pendingRewards": to_tokens(v.record.pending_rewards),
            "totalClaimed": to_tokens(v.record.total_claimed),
            "registeredAt": _ms_iso(v.record.registered_at * 1000),
            "isActive": v.record.is_active,
        }
        for v in s.validators
    ]
    active = [v for v in s.validators if v.record.is_active]
    return {
        "count": len(validators),
        "active": len(active),
        "totalStake": to_tokens(sum(v.record.stake_amount for v in active)),
        "totalPendingRewards": to_tokens(sum(v.record.pending_rewards for v in active)),
        "totalClaimedRewards": to_tokens(sum(v.record.total_claimed for v in s.validators)),
        "validators": validators,
        "lastUpdated": _iso(s.updated_at),
    }


def health_view(s: SupplySnapshot, config: OracleConfig, now: Optional[datetime] = None) -> Dict[str, Any]:
    age_s = s.age_seconds(now)
    stale = s.is_stale(config.poll_interval_s, config.stale_multiple, now)
    return {
        "status": "stale" if stale else "ok",
        "lastUpdated": _iso(s.updated_at),
        "ageMs": int(age_s * 1000),
        "bridgeStatus": s.bridge.status,
        "priceSource": s.price.source,
        "feeConfigLoaded": s.fee_config is not None,
        "pollIntervalMs": int(config.poll_interval_s * 1000),
    }
