# inputs/onchain/chain_source.py
"""
Timeout-bounded queries against one ledger's RPC node.

Every public method returns a SourceResult instead of raising: on failure the
result carries the caller's last-known-good value as `value` and the
SourceUnavailable describing what went wrong.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, List, Optional, Tuple, TypeVar

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.pubkey import Pubkey

from myth_oracle.utils.errors import MalformedAccount, SourceUnavailable

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_TIMEOUT_S = 8.0
DEFAULT_SCAN_TIMEOUT_S = 10.0


@dataclass(frozen=True)
class SourceResult(Generic[T]):
    value: Optional[T]
    error: Optional[SourceUnavailable] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class TokenAmount:
    """Raw on-chain amount plus the decimals needed to scale it."""
    amount: int
    decimals: int


@dataclass(frozen=True)
class ScanResult(Generic[R]):
    records: Tuple[Tuple[str, R], ...] = ()
    skipped: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)


class ChainDataSource:
    def __init__(
        self,
        name: str,
        rpc_url: Optional[str] = None,
        *,
        client: Optional[Any] = None,
        timeout: float = DEFAULT_TIMEOUT_S,
        scan_timeout: float = DEFAULT_SCAN_TIMEOUT_S,
    ):
        if client is None and rpc_url is None:
            raise ValueError("ChainDataSource needs an rpc_url or a client")
        self.name = name
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.scan_timeout = scan_timeout
        self._client = client if client is not None else AsyncClient(rpc_url, commitment=Confirmed)

    async def close(self):
        close = getattr(self._client, "close", None)
        if close is None:
            return
        try:
            await close()
        except Exception as e:
            logging.warning(f"[ChainSource] {self.name}: failed to close client: {e}")

    async def _guarded(
        self,
        query: str,
        call: Callable[[], Awaitable[T]],
        fallback: Optional[T],
        timeout: Optional[float] = None,
    ) -> SourceResult[T]:
        source = f"{self.name}.{query}"
        try:
            value = await asyncio.wait_for(call(), timeout or self.timeout)
        except asyncio.TimeoutError:
            error = SourceUnavailable(source, SourceUnavailable.TIMEOUT, "timeout")
        except SourceUnavailable as e:
            error = e
        except MalformedAccount as e:
            error = SourceUnavailable(source, SourceUnavailable.INVALID, str(e))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            error = SourceUnavailable(source, SourceUnavailable.INVALID, f"unexpected response: {e}")
        except Exception as e:
            error = SourceUnavailable(source, SourceUnavailable.TRANSPORT, str(e) or type(e).__name__)
        else:
            return SourceResult(value)

        logging.debug(f"[ChainSource] {error}")
        return SourceResult(fallback, error)

    # === Queries ===

    async def native_supply(self, fallback: Optional[int] = None) -> SourceResult[int]:
        """Aggregate native-token supply in lamports."""
        async def call():
            resp = await self._client.get_supply()
            return int(resp.value.total)
        return await self._guarded("native_supply", call, fallback)

    async def token_supply(self, mint: str, fallback: Optional[TokenAmount] = None) -> SourceResult[TokenAmount]:
        async def call():
            resp = await self._client.get_token_supply(Pubkey.from_string(mint))
            return TokenAmount(int(resp.value.amount), int(resp.value.decimals))
        return await self._guarded("token_supply", call, fallback)

    async def balance(self, address: str, fallback: Optional[int] = None) -> SourceResult[int]:
        """Native balance of an address in lamports."""
        async def call():
            resp = await self._client.get_balance(Pubkey.from_string(address))
            return int(resp.value)
        return await self._guarded("balance", call, fallback)

    async def token_balance(self, token_account: str, fallback: Optional[TokenAmount] = None, *,
                            missing_ok: bool = False) -> SourceResult[TokenAmount]:
        """
        SPL token account balance. With `missing_ok`, an account that does not
        exist yet reads as a successful zero.
        """
        async def call():
            address = Pubkey.from_string(token_account)
            try:
                resp = await self._client.get_token_account_balance(address)
            except Exception:
                if not missing_ok:
                    raise
                info = await self._client.get_account_info(address)
                if info.value is not None:
                    raise
                return TokenAmount(0, 0)
            return TokenAmount(int(resp.value.amount), int(resp.value.decimals))
        return await self._guarded("token_balance", call, fallback)

    async def decoded_account(self, address: str, decode: Callable[[bytes], Optional[R]],
                              fallback: Optional[R] = None) -> SourceResult[Optional[R]]:
        """
        Fetch and decode one account. A missing, uninitialized or malformed
        account is reported as a failure carrying `fallback`.
        """
        async def call():
            resp = await self._client.get_account_info(Pubkey.from_string(address))
            if resp.value is None:
                raise SourceUnavailable(f"{self.name}.decoded_account", SourceUnavailable.INVALID, f"{address} not found")
            record = decode(bytes(resp.value.data))
            if record is None:
                raise SourceUnavailable(f"{self.name}.decoded_account", SourceUnavailable.INVALID, f"{address} not initialized")
            return record

        return await self._guarded("decoded_account", call, fallback)

    async def program_accounts(
        self,
        program_id: str,
        data_size: int,
        decode: Callable[[bytes], R],
        fallback: Optional[ScanResult[R]] = None,
    ) -> SourceResult[ScanResult[R]]:
        """
        Scan program accounts of exactly `data_size` bytes. Each entry is decoded
        independently; a malformed entry is skipped and listed in `skipped`.
        """
        async def call():
            resp = await self._client.get_program_accounts(
                Pubkey.from_string(program_id),
                encoding="base64",
                filters=[data_size],
            )
            records: List[Tuple[str, R]] = []
            skipped: List[Tuple[str, str]] = []
            for keyed in resp.value:
                address = str(keyed.pubkey)
                try:
                    records.append((address, decode(bytes(keyed.account.data))))
                except MalformedAccount as e:
                    skipped.append((address, str(e)))
            if skipped:
                logging.warning(f"[ChainSource] {self.name}: skipped {len(skipped)} malformed account(s) under {program_id}")
            return ScanResult(tuple(records), tuple(skipped))
        return await self._guarded("program_accounts", call, fallback, timeout=self.scan_timeout)
