# inputs/onchain/account_decoder.py
"""
Decoders for the two fixed-layout accounts of the myth-token program.

Both layouts are Borsh-packed (little-endian, no padding). They are declared
as construct Structs so the parser owns the cursor and bounds-checks every
read, the same way spl.token._layouts.MINT_LAYOUT is parsed.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

import construct as cs
from solders.pubkey import Pubkey

from myth_oracle.utils.errors import MalformedAccount

FEE_CONFIG_SIZE = 235
VALIDATOR_SIZE = 69

# Largest integer a JSON/float consumer can hold exactly.
MAX_SAFE_INT = 2 ** 53 - 1


class PubkeyAdapter(cs.Adapter):
    def _decode(self, obj, context, path):
        return str(Pubkey(bytes(obj)))

    def _encode(self, obj, context, path):
        return bytes(Pubkey.from_string(obj))


PUBKEY = PubkeyAdapter(cs.Bytes(32))

FEE_SPLIT_LAYOUT = cs.Struct(
    "validator_bps" / cs.Int16ul,
    "foundation_bps" / cs.Int16ul,
    "burn_bps" / cs.Int16ul,
)

FEE_CONFIG_LAYOUT = cs.Struct(
    "is_initialized" / cs.Flag,
    "admin" / PUBKEY,
    "foundation_wallet" / PUBKEY,
    "burn_address" / PUBKEY,
    "myth_mint" / PUBKEY,
    "gas_split" / FEE_SPLIT_LAYOUT,
    "compute_split" / FEE_SPLIT_LAYOUT,
    "inference_split" / FEE_SPLIT_LAYOUT,
    "bridge_split" / FEE_SPLIT_LAYOUT,
    "current_epoch" / cs.Int64ul,
    "total_burned" / cs.Int64ul,
    "total_distributed" / cs.Int64ul,
    "total_foundation_collected" / cs.Int64ul,
    "is_paused" / cs.Flag,
    "bump" / cs.Int8ul,
    "gas_burned" / cs.Int64ul,
    "compute_burned" / cs.Int64ul,
    "inference_burned" / cs.Int64ul,
    "bridge_burned" / cs.Int64ul,
    "subnet_burned" / cs.Int64ul,
    "total_foundation_burned" / cs.Int64ul,
)

VALIDATOR_LAYOUT = cs.Struct(
    "validator" / PUBKEY,
    "stake_amount" / cs.Int64ul,
    "ai_capable" / cs.Flag,
    "reward_multiplier" / cs.Int16ul,
    "pending_rewards" / cs.Int64ul,
    "total_claimed" / cs.Int64ul,
    "registered_at" / cs.Int64sl,
    "is_active" / cs.Flag,
    "bump" / cs.Int8ul,
)

# Cumulative counters that must never decrease between observations.
CUMULATIVE_COUNTERS = (
    "total_burned",
    "total_distributed",
    "total_foundation_collected",
    "gas_burned",
    "compute_burned",
    "inference_burned",
    "bridge_burned",
    "subnet_burned",
    "total_foundation_burned",
)

COUNTER_FIELDS = ("current_epoch",) + CUMULATIVE_COUNTERS


@dataclass(frozen=True)
class FeeSplit:
    validator_bps: int
    foundation_bps: int
    burn_bps: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "validatorBps": self.validator_bps,
            "foundationBps": self.foundation_bps,
            "burnBps": self.burn_bps,
        }


@dataclass(frozen=True)
class FeeConfigRecord:
    admin: str
    foundation_wallet: str
    burn_address: str
    myth_mint: str
    gas_split: FeeSplit
    compute_split: FeeSplit
    inference_split: FeeSplit
    bridge_split: FeeSplit
    current_epoch: int
    total_burned: int
    total_distributed: int
    total_foundation_collected: int
    is_paused: bool
    bump: int
    gas_burned: int
    compute_burned: int
    inference_burned: int
    bridge_burned: int
    subnet_burned: int
    total_foundation_burned: int
    is_initialized: bool = True

    def unsafe_counters(self) -> Dict[str, int]:
        """Counters too wide for a float-based consumer to hold exactly."""
        return {
            name: getattr(self, name)
            for name in COUNTER_FIELDS
            if getattr(self, name) > MAX_SAFE_INT
        }

    def regressions(self, previous: "FeeConfigRecord") -> Dict[str, tuple]:
        """Cumulative counters that went down since `previous`: name -> (before, after)."""
        out = {}
        for name in CUMULATIVE_COUNTERS:
            before, after = getattr(previous, name), getattr(self, name)
            if after < before:
                out[name] = (before, after)
        return out


@dataclass(frozen=True)
class ValidatorRecord:
    validator: str
    stake_amount: int
    ai_capable: bool
    reward_multiplier: int
    pending_rewards: int
    total_claimed: int
    registered_at: int
    is_active: bool
    bump: int


def _parse(layout: cs.Struct, data: bytes, size: int, schema: str):
    if data is None:
        raise MalformedAccount(schema, "no account data")
    data = bytes(data)
    if len(data) < size:
        raise MalformedAccount(schema, f"expected at least {size} bytes, got {len(data)}", len(data))
    try:
        return layout.parse(data)
    except cs.ConstructError as e:
        raise MalformedAccount(schema, f"unreadable layout: {e}", len(data)) from e


def _split(parsed) -> FeeSplit:
    return FeeSplit(parsed.validator_bps, parsed.foundation_bps, parsed.burn_bps)


def decode_fee_config(data: bytes) -> Optional[FeeConfigRecord]:
    """
    Decode a FeeConfig account.
    Returns None for an allocated but uninitialized account.
    Raises MalformedAccount for short or unreadable data.
    """
    if data is not None and len(data) >= FEE_CONFIG_SIZE and data[0] == 0:
        return None

    p = _parse(FEE_CONFIG_LAYOUT, data, FEE_CONFIG_SIZE, "fee_config")
    return FeeConfigRecord(
        admin=p.admin,
        foundation_wallet=p.foundation_wallet,
        burn_address=p.burn_address,
        myth_mint=p.myth_mint,
        gas_split=_split(p.gas_split),
        compute_split=_split(p.compute_split),
        inference_split=_split(p.inference_split),
        bridge_split=_split(p.bridge_split),
        current_epoch=p.current_epoch,
        total_burned=p.total_burned,
        total_distributed=p.total_distributed,
        total_foundation_collected=p.total_foundation_collected,
        is_paused=p.is_paused,
        bump=p.bump,
        gas_burned=p.gas_burned,
        compute_burned=p.compute_burned,
        inference_burned=p.inference_burned,
        bridge_burned=p.bridge_burned,
        subnet_burned=p.subnet_burned,
        total_foundation_burned=p.total_foundation_burned,
    )


def decode_validator(data: bytes) -> ValidatorRecord:
    p = _parse(VALIDATOR_LAYOUT, data, VALIDATOR_SIZE, "validator")
    return ValidatorRecord(
        validator=p.validator,
        stake_amount=p.stake_amount,
        ai_capable=p.ai_capable,
        reward_multiplier=p.reward_multiplier,
        pending_rewards=p.pending_rewards,
        total_claimed=p.total_claimed,
        registered_at=p.registered_at,
        is_active=p.is_active,
        bump=p.bump,
    )
