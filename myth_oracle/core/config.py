import json
import logging
import os
from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

# === Token constants ===
TOKEN_NAME = "Mythic"
TOKEN_SYMBOL = "MYTH"
TOKEN_DECIMALS = 9
TOTAL_SUPPLY = Decimal(1_000_000_000)
TOTAL_SUPPLY_RAW = int(TOTAL_SUPPLY) * 10 ** TOKEN_DECIMALS

# === Default Configuration ===
DEFAULT_CONFIG: Dict[str, Any] = {
    # === Service ===
    "port": 4002,
    "log_dir": "",
    "log_level": "INFO",

    # === RPC ===
    "l1_rpc_url": "http://MYTHIC_RPC_IP:8899",
    "l2_rpc_url": "http://127.0.0.1:8899",
    "rpc_timeout_s": 8.0,
    "scan_timeout_s": 10.0,
    "price_timeout_s": 10.0,

    # === Polling ===
    "poll_interval_s": 10.0,
    "validator_poll_s": 60.0,
    "stale_multiple": 3,

    # === Addresses ===
    "l1_mint": "5UP2iL9DefXC3yovX9b4XG2EiCnyxuVo3S2F6ik5pump",
    "l2_mint": "native",
    "l1_bridge_program": "oEQfREm4FQkaVeRoxJHkJLB1feHprrntY6eJuW2zbqQ",
    "token_program": "7Hmyi9v4itEt49xo1fpTgHk1ytb8MZft7RBATBgb1pnf",
    "foundation_wallet": "AnVqSYE3ArJX9ZCbiReFcNa2JdLyri3GGGt34j63hT9e",

    # === Burn history ===
    "history_file": os.path.join("data", "burn_history.json"),
    "max_history_entries": 8640,  # ~24h at 10s intervals
    "history_save_every": 60,
}

# env var -> (config key, scale applied to the raw value)
ENV_OVERRIDES = {
    "PORT": ("port", None),
    "L1_RPC_URL": ("l1_rpc_url", None),
    "L2_RPC_URL": ("l2_rpc_url", None),
    "POLL_INTERVAL_MS": ("poll_interval_s", 0.001),
    "VALIDATOR_POLL_MS": ("validator_poll_s", 0.001),
    "L1_MYTH_MINT": ("l1_mint", None),
    "L2_MYTH_MINT": ("l2_mint", None),
    "L1_BRIDGE_PROGRAM": ("l1_bridge_program", None),
    "MYTH_TOKEN_PROGRAM": ("token_program", None),
    "FOUNDATION_WALLET": ("foundation_wallet", None),
    "HISTORY_FILE": ("history_file", None),
    "MAX_HISTORY_ENTRIES": ("max_history_entries", None),
    "LOG_DIR": ("log_dir", None),
    "LOG_LEVEL": ("log_level", None),
}


@dataclass(frozen=True)
class OracleConfig:
    port: int
    log_dir: str
    log_level: str
    l1_rpc_url: str
    l2_rpc_url: str
    rpc_timeout_s: float
    scan_timeout_s: float
    price_timeout_s: float
    poll_interval_s: float
    validator_poll_s: float
    stale_multiple: int
    l1_mint: str
    l2_mint: str
    l1_bridge_program: str
    token_program: str
    foundation_wallet: str
    history_file: str
    max_history_entries: int
    history_save_every: int

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "OracleConfig":
        values = {}
        for f in fields(cls):
            default = DEFAULT_CONFIG[f.name]
            value = raw.get(f.name, default)
            try:
                values[f.name] = type(default)(value)
            except (TypeError, ValueError):
                logging.warning(f"[Config] Invalid value for {f.name}: {value!r}, using {default!r}")
                values[f.name] = default
        return cls(**values)


def merge_with_defaults(user_config: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(DEFAULT_CONFIG)
    merged.update({k: v for k, v in user_config.items() if k in DEFAULT_CONFIG})
    return merged


def _apply_env(config: Dict[str, Any], environ: Mapping[str, str]) -> None:
    for env_name, (key, scale) in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or raw == "":
            continue
        if scale is None:
            config[key] = raw
            continue
        try:
            config[key] = float(raw) * scale
        except ValueError:
            logging.warning(f"[Config] Ignoring non-numeric {env_name}={raw!r}")


def load_config(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> OracleConfig:
    """Defaults, then the optional JSON file, then environment variables."""
    environ = os.environ if environ is None else environ
    path = path or environ.get("ORACLE_CONFIG")

    user_config: Dict[str, Any] = {}
    if path and os.path.exists(path):
        try:
            with open(path, "r") as f:
                user_config = json.load(f)
        except (OSError, ValueError) as e:
            logging.warning(f"[Config] Could not read {path}: {e}")

    config = merge_with_defaults(user_config)
    _apply_env(config, environ)
    return OracleConfig.from_dict(config)
