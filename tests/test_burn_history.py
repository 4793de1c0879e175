import json

import pytest

from conftest import build_fee_config
from myth_oracle.inputs.onchain.account_decoder import decode_fee_config
from myth_oracle.memory.burn_history import DAY_MS, HOUR_MS, BurnHistoryEntry, BurnHistoryStore

NOW = 1_800_000_000_000


def entry(ts, burned=0, **kw):
    return BurnHistoryEntry(timestamp=ts, total_burned=burned, **kw)


def test_append_evicts_oldest_past_bound():
    store = BurnHistoryStore(max_entries=10)
    for i in range(15):
        store.append(entry(NOW + i, burned=i))

    assert len(store) == 10
    assert [e.total_burned for e in store.entries()] == list(range(5, 15))


def test_max_entries_must_be_positive():
    with pytest.raises(ValueError):
        BurnHistoryStore(max_entries=0)


def test_24h_burn_rate():
    store = BurnHistoryStore()
    store.append(entry(NOW - DAY_MS, burned=80_000), now=NOW - DAY_MS)
    store.append(entry(NOW, burned=100_000), now=NOW)

    rate = store.burn_rate("24h", 100_000, now=NOW)

    assert rate.burned == 20_000
    assert rate.elapsed_s == 86_400


def test_snapshot_at_picks_earliest_inside_window():
    store = BurnHistoryStore()
    for hours_ago, burned in ((30, 1), (20, 2), (10, 3)):
        store.append(entry(NOW - hours_ago * HOUR_MS, burned=burned))

    assert store.snapshot_at(DAY_MS, now=NOW).total_burned == 2
    assert store.snapshot_at(HOUR_MS, now=NOW).total_burned == 1  # nothing inside: oldest
    assert BurnHistoryStore().snapshot_at(DAY_MS, now=NOW) is None


def test_warm_up_rate_uses_oldest_entry():
    store = BurnHistoryStore()
    store.append(entry(NOW - HOUR_MS, burned=10))
    store.append(entry(NOW, burned=40))

    rate = store.burn_rate("7d", 40, now=NOW)

    assert rate.burned == 30
    assert rate.elapsed_s == 3600
    assert store.burn_rate("24h", 0, now=NOW).burned == -10


def test_rate_on_empty_store_is_none():
    assert BurnHistoryStore().burn_rate("24h", 5, now=NOW) is None


def test_query_filters_by_period_and_limit():
    store = BurnHistoryStore()
    for minutes_ago in (120, 50, 40, 30, 20, 10):
        store.append(entry(NOW - minutes_ago * 60_000, burned=minutes_ago))

    period, entries = store.query("1h", limit=3, now=NOW)
    assert period == "1h"
    assert [e.total_burned for e in entries] == [30, 20, 10]

    period, entries = store.query("bogus", limit=None, now=NOW)
    assert period == "24h"
    assert len(entries) == 6

    assert store.query("6h", limit=0, now=NOW)[1] == []


def test_query_limit_is_capped_at_store_bound():
    store = BurnHistoryStore(max_entries=3)
    for i in range(3):
        store.append(entry(NOW - i, burned=i))
    assert len(store.query("24h", limit=10_000, now=NOW)[1]) == 3


def test_entry_from_fee_config():
    fc = decode_fee_config(build_fee_config(total_burned=9, gas_burned=1, compute_burned=2,
                                            inference_burned=3, bridge_burned=4, subnet_burned=5))
    e = BurnHistoryEntry.from_fee_config(NOW, fc)
    assert e == BurnHistoryEntry(NOW, 9, 1, 2, 3, 4, 5)
    assert BurnHistoryEntry.from_fee_config(NOW, None) == BurnHistoryEntry(NOW)


def test_persisted_file_format(tmp_path):
    path = tmp_path / "data" / "burn_history.json"
    store = BurnHistoryStore(str(path))
    store.append(BurnHistoryEntry(NOW, 6, 1, 1, 1, 1, 2))

    assert store.save()
    assert json.loads(path.read_text()) == [{
        "timestamp": NOW, "totalBurned": 6, "gasBurned": 1, "computeBurned": 1,
        "inferenceBurned": 1, "bridgeBurned": 1, "subnetBurned": 2,
    }]


def test_saves_are_coalesced(tmp_path):
    path = tmp_path / "history.json"
    store = BurnHistoryStore(str(path), save_every=3)

    store.append(entry(NOW))
    store.append(entry(NOW + 1))
    assert not store.maybe_save()
    assert not path.exists()

    store.append(entry(NOW + 2))
    assert store.maybe_save()
    assert len(json.loads(path.read_text())) == 3
    assert not store.maybe_save()


def test_load_truncates_and_restores_marks(tmp_path):
    path = tmp_path / "history.json"
    raw = [{"timestamp": NOW - DAY_MS + i * HOUR_MS, "totalBurned": i} for i in range(10)]
    path.write_text(json.dumps(raw))

    store = BurnHistoryStore(str(path), max_entries=4)
    assert store.load(now=NOW) == 4

    assert [e.total_burned for e in store.entries()] == [6, 7, 8, 9]
    assert store.mark("24h").total_burned == 6
    assert store.entries()[0].gas_burned == 0


def test_load_skips_bad_entries(tmp_path):
    path = tmp_path / "history.json"
    path.write_text(json.dumps([{"timestamp": NOW, "totalBurned": 1}, "junk", {"totalBurned": 2}]))
    store = BurnHistoryStore(str(path))
    assert store.load(now=NOW) == 1


def test_corrupt_file_leaves_store_empty(tmp_path):
    path = tmp_path / "history.json"
    path.write_text("{not json")
    store = BurnHistoryStore(str(path))
    assert store.load(now=NOW) == 0
    assert len(store) == 0


def test_missing_file_loads_nothing(tmp_path):
    assert BurnHistoryStore(str(tmp_path / "absent.json")).load(now=NOW) == 0


def test_failed_save_keeps_memory_and_retries(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    store = BurnHistoryStore(str(blocker / "history.json"), save_every=1)
    store.append(entry(NOW, burned=1))

    assert not store.maybe_save()
    assert len(store) == 1

    store.path = str(tmp_path / "history.json")
    assert store.maybe_save()
