import json

from myth_oracle.core.config import DEFAULT_CONFIG, load_config


def test_defaults_without_file_or_env():
    cfg = load_config(environ={})
    assert cfg.port == 4002
    assert cfg.poll_interval_s == 10.0
    assert cfg.max_history_entries == 8640
    assert cfg.l2_mint == "native"


def test_file_then_env_precedence(tmp_path):
    path = tmp_path / "oracle.json"
    path.write_text(json.dumps({"port": 5000, "l1_rpc_url": "http://file:8899", "unknown_key": 1}))

    cfg = load_config(str(path), environ={"L1_RPC_URL": "http://env:8899", "POLL_INTERVAL_MS": "2500"})

    assert cfg.port == 5000
    assert cfg.l1_rpc_url == "http://env:8899"
    assert cfg.poll_interval_s == 2.5


def test_bad_values_fall_back_to_defaults():
    cfg = load_config(environ={"PORT": "not-a-port", "POLL_INTERVAL_MS": "soon"})
    assert cfg.port == DEFAULT_CONFIG["port"]
    assert cfg.poll_interval_s == DEFAULT_CONFIG["poll_interval_s"]


def test_unreadable_file_is_ignored(tmp_path):
    path = tmp_path / "oracle.json"
    path.write_text("{")
    assert load_config(str(path), environ={}).port == 4002
