# inputs/price/providers.py
"""
The three price providers. Each returns a PriceQuote tagged with its source,
None when the provider has nothing for the mint, and raises on transport
errors (the aggregator contains those).
"""
import logging
from decimal import Decimal
from typing import Any, Optional

from myth_oracle.core.config import TOTAL_SUPPLY
from myth_oracle.core.models import PriceQuote, PumpFunInfo
from myth_oracle.utils.http_client import SafeSession

DEXSCREENER_URL = "https://api.dexscreener.com/latest/dex/tokens/"
JUPITER_URL = "https://api.jup.ag/price/v2"
PUMPFUN_URL = "https://frontend-api.pump.fun/coins/"


def _num(value: Any) -> Optional[float]:
    """Float or None; missing and unparseable values are unknown, not zero."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _positive(value: Any) -> Optional[float]:
    n = _num(value)
    return n if n is not None and n > 0 else None


def _liquidity_usd(pair: dict) -> float:
    return _num((pair.get("liquidity") or {}).get("usd")) or 0.0


# === Provider A: DexScreener (deepest pair wins) ===
async def fetch_dexscreener(session: SafeSession, mint: str) -> Optional[PriceQuote]:
    data = await session.get_json(f"{DEXSCREENER_URL}{mint}")
    pairs = (data or {}).get("pairs") or []
    if not pairs:
        return None

    pair = max(pairs, key=_liquidity_usd)
    return PriceQuote(
        usd=_positive(pair.get("priceUsd")),
        sol=_positive(pair.get("priceNative")),
        market_cap=_positive(pair.get("marketCap")),
        volume_24h=_num((pair.get("volume") or {}).get("h24")),
        price_change_24h=_num((pair.get("priceChange") or {}).get("h24")),
        fdv=_positive(pair.get("fdv")),
        liquidity=_positive((pair.get("liquidity") or {}).get("usd")),
        source="dexscreener",
    )


# === Provider B: Jupiter price API (price only) ===
async def fetch_jupiter(session: SafeSession, mint: str) -> Optional[PriceQuote]:
    data = await session.get_json(JUPITER_URL, params={"ids": mint})
    token = ((data or {}).get("data") or {}).get(mint)
    if not token:
        return None
    return PriceQuote(usd=_positive(token.get("price")), source="jupiter")


# === Provider C: pump.fun launch platform ===
async def fetch_pumpfun(session: SafeSession, mint: str) -> Optional[PriceQuote]:
    data = await session.get_json(f"{PUMPFUN_URL}{mint}")
    if not data:
        return None

    market_cap = _positive(data.get("usd_market_cap"))
    usd = float(Decimal(str(market_cap)) / TOTAL_SUPPLY) if market_cap else None
    complete = data.get("complete")
    replies = data.get("reply_count")
    logging.debug(f"[PumpFun] mc={market_cap} complete={complete}")
    return PriceQuote(
        usd=usd,
        market_cap=market_cap,
        source="pumpfun",
        pumpfun=PumpFunInfo(
            bonding_curve_complete=complete if isinstance(complete, bool) else None,
            reply_count=int(replies) if isinstance(replies, (int, float)) and not isinstance(replies, bool) else None,
            website=data.get("website") or None,
        ),
    )
