import struct

import pytest
from solders.pubkey import Pubkey

from conftest import TOKEN_PROGRAM, build_fee_config, build_validator
from myth_oracle.inputs.onchain.account_decoder import (
    FEE_CONFIG_SIZE,
    MAX_SAFE_INT,
    VALIDATOR_SIZE,
    FeeSplit,
    decode_fee_config,
    decode_validator,
)
from myth_oracle.utils.errors import MalformedAccount

TOTAL_BURNED_OFFSET = 1 + 4 * 32 + 4 * 6 + 8


def test_layout_sizes_match_builders():
    assert len(build_fee_config()) == FEE_CONFIG_SIZE == 235
    assert len(build_validator()) == VALIDATOR_SIZE == 69


@pytest.mark.parametrize("length", range(FEE_CONFIG_SIZE))
def test_short_fee_config_is_malformed(length):
    with pytest.raises(MalformedAccount):
        decode_fee_config(b"\x01" * length)


@pytest.mark.parametrize("length", range(VALIDATOR_SIZE))
def test_short_validator_is_malformed(length):
    with pytest.raises(MalformedAccount):
        decode_validator(b"\x01" * length)


def test_none_data_is_malformed():
    with pytest.raises(MalformedAccount):
        decode_fee_config(None)
    with pytest.raises(MalformedAccount):
        decode_validator(None)


def test_total_burned_at_fixed_offset():
    buf = bytearray(FEE_CONFIG_SIZE)
    buf[0] = 1
    struct.pack_into("<Q", buf, TOTAL_BURNED_OFFSET, 5_000_000_000)

    record = decode_fee_config(bytes(buf))

    assert record.total_burned == 5_000_000_000
    for name in ("current_epoch", "total_distributed", "total_foundation_collected", "gas_burned",
                 "compute_burned", "inference_burned", "bridge_burned", "subnet_burned",
                 "total_foundation_burned"):
        assert getattr(record, name) == 0
    assert record.admin == "11111111111111111111111111111111"


def test_uninitialized_fee_config_is_no_record():
    assert decode_fee_config(build_fee_config(is_initialized=False)) is None


def test_short_uninitialized_buffer_is_still_malformed():
    with pytest.raises(MalformedAccount):
        decode_fee_config(bytes(FEE_CONFIG_SIZE - 1))


def test_fee_config_round_trips_every_field():
    admin = bytes(Pubkey.from_string(TOKEN_PROGRAM))
    data = build_fee_config(
        admin=admin,
        gas_split=(5000, 3000, 2000),
        compute_split=(4000, 4000, 2000),
        inference_split=(1, 2, 3),
        bridge_split=(0, 0, 10_000),
        current_epoch=42,
        total_burned=7,
        total_distributed=8,
        total_foundation_collected=9,
        is_paused=True,
        bump=254,
        gas_burned=10,
        compute_burned=11,
        inference_burned=12,
        bridge_burned=13,
        subnet_burned=14,
        total_foundation_burned=15,
    )

    r = decode_fee_config(data)

    assert r.admin == TOKEN_PROGRAM
    assert r.gas_split == FeeSplit(5000, 3000, 2000)
    assert r.compute_split == FeeSplit(4000, 4000, 2000)
    assert r.inference_split == FeeSplit(1, 2, 3)
    assert r.bridge_split.burn_bps == 10_000
    assert (r.current_epoch, r.total_burned, r.total_distributed, r.total_foundation_collected) == (42, 7, 8, 9)
    assert r.is_paused is True
    assert r.bump == 254
    assert (r.gas_burned, r.compute_burned, r.inference_burned, r.bridge_burned, r.subnet_burned) == (10, 11, 12, 13, 14)
    assert r.total_foundation_burned == 15


def test_trailing_bytes_are_ignored():
    data = build_fee_config(total_burned=3) + b"\xff" * 16
    assert decode_fee_config(data).total_burned == 3


def test_decoding_is_deterministic():
    data = build_fee_config(total_burned=123, gas_split=(1, 2, 3))
    assert decode_fee_config(data) == decode_fee_config(data)


def test_wide_counters_stay_exact_and_are_flagged():
    big = 2 ** 64 - 1
    r = decode_fee_config(build_fee_config(total_burned=big, gas_burned=MAX_SAFE_INT))

    assert r.total_burned == big
    assert r.unsafe_counters() == {"total_burned": big}


def test_regressions_lists_decreased_counters():
    before = decode_fee_config(build_fee_config(total_burned=100, gas_burned=50, current_epoch=9))
    after = decode_fee_config(build_fee_config(total_burned=90, gas_burned=60, current_epoch=1))

    assert after.regressions(before) == {"total_burned": (100, 90)}
    assert before.regressions(before) == {}


def test_validator_fields():
    owner = bytes(Pubkey.from_string(TOKEN_PROGRAM))
    data = build_validator(
        validator=owner, stake_amount=1_500_000_000, ai_capable=True, reward_multiplier=150,
        pending_rewards=20, total_claimed=30, registered_at=-5, is_active=False, bump=7,
    )

    v = decode_validator(data)

    assert v.validator == TOKEN_PROGRAM
    assert v.stake_amount == 1_500_000_000
    assert v.ai_capable is True
    assert v.reward_multiplier == 150
    assert v.pending_rewards == 20
    assert v.total_claimed == 30
    assert v.registered_at == -5
    assert v.is_active is False
    assert v.bump == 7
