"""Shared test fixtures: byte builders for on-chain accounts and a fake RPC client."""

import asyncio
import struct
from types import SimpleNamespace

import pytest

from myth_oracle.core.config import OracleConfig

FEE_CONFIG_FMT = "<?32s32s32s32s" + "HHH" * 4 + "QQQQ" + "?B" + "QQQQQQ"
VALIDATOR_FMT = "<32sQ?HQQq?B"

# Well-known, valid base58 addresses
SYSTEM_PROGRAM = "11111111111111111111111111111111"
TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
WSOL_MINT = "So11111111111111111111111111111111111111112"
ATA_PROGRAM = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"

FEE_CONFIG_DEFAULTS = dict(
    is_initialized=True,
    admin=bytes(32),
    foundation_wallet=bytes(32),
    burn_address=bytes(32),
    myth_mint=bytes(32),
    gas_split=(0, 0, 0),
    compute_split=(0, 0, 0),
    inference_split=(0, 0, 0),
    bridge_split=(0, 0, 0),
    current_epoch=0,
    total_burned=0,
    total_distributed=0,
    total_foundation_collected=0,
    is_paused=False,
    bump=0,
    gas_burned=0,
    compute_burned=0,
    inference_burned=0,
    bridge_burned=0,
    subnet_burned=0,
    total_foundation_burned=0,
)


def build_fee_config(**overrides) -> bytes:
    v = {**FEE_CONFIG_DEFAULTS, **overrides}
    return struct.pack(
        FEE_CONFIG_FMT,
        v["is_initialized"], v["admin"], v["foundation_wallet"], v["burn_address"], v["myth_mint"],
        *v["gas_split"], *v["compute_split"], *v["inference_split"], *v["bridge_split"],
        v["current_epoch"], v["total_burned"], v["total_distributed"], v["total_foundation_collected"],
        v["is_paused"], v["bump"],
        v["gas_burned"], v["compute_burned"], v["inference_burned"], v["bridge_burned"],
        v["subnet_burned"], v["total_foundation_burned"],
    )


def build_validator(validator=bytes(32), stake_amount=0, ai_capable=False, reward_multiplier=0,
                    pending_rewards=0, total_claimed=0, registered_at=0, is_active=True, bump=0) -> bytes:
    return struct.pack(
        VALIDATOR_FMT, validator, stake_amount, ai_capable, reward_multiplier,
        pending_rewards, total_claimed, registered_at, is_active, bump,
    )


class FakeRpcClient:
    """
    Stands in for solana's AsyncClient. Each attribute set on `responses` is
    either a value (wrapped as resp.value), an Exception to raise, or the
    string "hang" to simulate a request that never answers.
    """

    def __init__(self, **responses):
        self.responses = responses
        self.calls = []
        self.closed = False

    async def _answer(self, method, *args, **kwargs):
        self.calls.append((method, args, kwargs))
        value = self.responses.get(method)
        if value == "hang":
            await asyncio.sleep(3600)
        if isinstance(value, Exception):
            raise value
        if callable(value):
            value = value(*args, **kwargs)
        return SimpleNamespace(value=value)

    async def get_supply(self, *args, **kwargs):
        return await self._answer("get_supply", *args, **kwargs)

    async def get_token_supply(self, *args, **kwargs):
        return await self._answer("get_token_supply", *args, **kwargs)

    async def get_balance(self, *args, **kwargs):
        return await self._answer("get_balance", *args, **kwargs)

    async def get_token_account_balance(self, *args, **kwargs):
        return await self._answer("get_token_account_balance", *args, **kwargs)

    async def get_account_info(self, *args, **kwargs):
        return await self._answer("get_account_info", *args, **kwargs)

    async def get_program_accounts(self, *args, **kwargs):
        return await self._answer("get_program_accounts", *args, **kwargs)

    async def close(self):
        self.closed = True


def native_supply(lamports):
    return SimpleNamespace(total=lamports)


def token_amount(amount, decimals=9):
    return SimpleNamespace(amount=str(amount), decimals=decimals)


def account(data):
    return SimpleNamespace(data=data)


def keyed_account(pubkey, data):
    return SimpleNamespace(pubkey=pubkey, account=SimpleNamespace(data=data))


@pytest.fixture
def config() -> OracleConfig:
    return OracleConfig.from_dict({
        "l1_mint": WSOL_MINT,
        "l1_bridge_program": ATA_PROGRAM,
        "token_program": TOKEN_PROGRAM,
        "foundation_wallet": SYSTEM_PROGRAM,
        "history_file": "",
        "validator_poll_s": 60.0,
        "poll_interval_s": 10.0,
    })
