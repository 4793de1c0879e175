# inputs/price/price_aggregator.py
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from myth_oracle.core.config import TOTAL_SUPPLY
from myth_oracle.core.models import PriceQuote, utcnow
from myth_oracle.inputs.price.providers import fetch_dexscreener, fetch_jupiter, fetch_pumpfun
from myth_oracle.utils.errors import SourceUnavailable
from myth_oracle.utils.http_client import SafeSession

Provider = Callable[[SafeSession, str], Awaitable[Optional[PriceQuote]]]

# Priority order matters: primary, secondary, launch platform.
DEFAULT_PROVIDERS: Tuple[Tuple[str, Provider], ...] = (
    ("dexscreener", fetch_dexscreener),
    ("jupiter", fetch_jupiter),
    ("pumpfun", fetch_pumpfun),
)


def first_known(*values):
    for v in values:
        if v is not None:
            return v
    return None


def merge_quotes(
    primary: Optional[PriceQuote],
    secondary: Optional[PriceQuote],
    platform: Optional[PriceQuote],
    *,
    total_supply: Decimal = TOTAL_SUPPLY,
    now: Optional[datetime] = None,
    previous: Optional[PriceQuote] = None,
) -> Optional[PriceQuote]:
    """
    Field-by-field cascade over the three provider quotes.
    Returns None when no provider produced a usable price.

    When only the platform has a price, the market fields it does not report
    (sol, volume, change, liquidity) are carried over from `previous`.
    """
    primary = primary or PriceQuote()
    secondary = secondary or PriceQuote()
    platform = platform or PriceQuote()

    usd = first_known(primary.usd, secondary.usd, platform.usd)
    if usd is None:
        return None

    if primary.usd is not None:
        source = primary.source
    elif secondary.usd is not None:
        source = secondary.source
    else:
        source = platform.source

    carry = PriceQuote()
    if previous is not None and primary.usd is None and secondary.usd is None:
        carry = previous

    fdv = first_known(primary.fdv, secondary.fdv)
    if fdv is None:
        fdv = float(Decimal(str(usd)) * total_supply)

    return PriceQuote(
        usd=usd,
        sol=first_known(primary.sol, secondary.sol, carry.sol),
        market_cap=first_known(primary.market_cap, secondary.market_cap, platform.market_cap),
        volume_24h=first_known(primary.volume_24h, secondary.volume_24h, carry.volume_24h),
        price_change_24h=first_known(primary.price_change_24h, secondary.price_change_24h, carry.price_change_24h),
        fdv=fdv,
        liquidity=first_known(primary.liquidity, secondary.liquidity, carry.liquidity),
        source=source,
        last_update=now or utcnow(),
        pumpfun=platform.pumpfun,
    )


class PriceAggregator:
    """
    Polls every provider concurrently and keeps the last merged quote.
    A cycle where nobody returns a price leaves the previous quote untouched.
    """

    def __init__(
        self,
        mint: str,
        *,
        session: Optional[SafeSession] = None,
        providers: Tuple[Tuple[str, Provider], ...] = DEFAULT_PROVIDERS,
        timeout: float = 10.0,
        total_supply: Decimal = TOTAL_SUPPLY,
    ):
        if len(providers) != 3:
            raise ValueError("PriceAggregator expects exactly three providers")
        self.mint = mint
        self.session = session or SafeSession()
        self.providers = providers
        self.timeout = timeout
        self.total_supply = total_supply
        self.quote = PriceQuote()
        self.last_errors: List[SourceUnavailable] = []

    async def close(self):
        await self.session.close()

    async def _query(self, name: str, provider: Provider) -> Optional[PriceQuote]:
        try:
            return await asyncio.wait_for(provider(self.session, self.mint), self.timeout)
        except asyncio.TimeoutError:
            error = SourceUnavailable(f"price.{name}", SourceUnavailable.TIMEOUT, "timeout")
        except SourceUnavailable as e:
            error = SourceUnavailable(f"price.{name}", e.kind, e.detail)
        except Exception as e:
            error = SourceUnavailable(f"price.{name}", SourceUnavailable.TRANSPORT, str(e) or type(e).__name__)
        self.last_errors.append(error)
        logging.debug(f"[PriceAggregator] {error}")
        return None

    async def fetch_all(self) -> Dict[str, Optional[PriceQuote]]:
        self.last_errors = []
        results = await asyncio.gather(*(self._query(name, fn) for name, fn in self.providers))
        return {name: quote for (name, _), quote in zip(self.providers, results)}

    async def update(self, previous: Optional[PriceQuote] = None) -> PriceQuote:
        """Run one price round; returns the new quote or the retained previous one."""
        if previous is not None:
            self.quote = previous
        fetched = await self.fetch_all()
        names = [name for name, _ in self.providers]
        merged = merge_quotes(
            fetched[names[0]], fetched[names[1]], fetched[names[2]],
            total_supply=self.total_supply,
            previous=self.quote,
        )
        if merged is None:
            logging.debug("[PriceAggregator] No price from any provider, keeping previous quote")
            return self.quote

        self.quote = merged
        logging.info(f"[PriceAggregator] Price: ${merged.usd:.8f} ({merged.source})")
        return merged
