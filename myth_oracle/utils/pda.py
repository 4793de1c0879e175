# utils/pda.py
from functools import lru_cache

from solders.pubkey import Pubkey

VAULT_SEED = b"vault"
FEE_CONFIG_SEED = b"fee_config"


@lru_cache(maxsize=32)
def bridge_vault_address(bridge_program: str, mint: str) -> str:
    """Token vault PDA of the L1 bridge program for a given mint."""
    vault, _bump = Pubkey.find_program_address(
        [VAULT_SEED, bytes(Pubkey.from_string(mint))],
        Pubkey.from_string(bridge_program),
    )
    return str(vault)


@lru_cache(maxsize=32)
def fee_config_address(token_program: str) -> str:
    config_pda, _bump = Pubkey.find_program_address(
        [FEE_CONFIG_SEED],
        Pubkey.from_string(token_program),
    )
    return str(config_pda)
