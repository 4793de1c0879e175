import asyncio
import logging
import signal

from myth_oracle.core.config import TOKEN_SYMBOL, TOTAL_SUPPLY, OracleConfig, load_config
from myth_oracle.core.reconciliation import ReconciliationEngine
from myth_oracle.inputs.onchain.chain_source import ChainDataSource
from myth_oracle.inputs.price.price_aggregator import PriceAggregator
from myth_oracle.maintenance.api_server import SupplyApi
from myth_oracle.memory.burn_history import BurnHistoryStore
from myth_oracle.runtime.scheduler import PollScheduler
from myth_oracle.utils.logger import log_event, setup_logging


def build_engine(config: OracleConfig) -> ReconciliationEngine:
    l1 = ChainDataSource("l1", config.l1_rpc_url, timeout=config.rpc_timeout_s, scan_timeout=config.scan_timeout_s)
    l2 = ChainDataSource("l2", config.l2_rpc_url, timeout=config.rpc_timeout_s, scan_timeout=config.scan_timeout_s)
    prices = PriceAggregator(config.l1_mint, timeout=config.price_timeout_s)
    history = BurnHistoryStore(
        config.history_file,
        max_entries=config.max_history_entries,
        save_every=config.history_save_every,
    )
    return ReconciliationEngine(config, l1, l2, prices, history)


async def run(config: OracleConfig):
    engine = build_engine(config)
    engine.history.load()

    api = SupplyApi(engine, config)
    scheduler = PollScheduler(engine.run_cycle, config.poll_interval_s)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.stop)
        except NotImplementedError:
            pass

    log_event(f"Mythic Supply Oracle v2 on port {config.port}")
    log_event(f"Total supply: {int(TOTAL_SUPPLY):,} {TOKEN_SYMBOL}")
    log_event(f"L1 RPC: {config.l1_rpc_url}")
    log_event(f"L2 RPC: {config.l2_rpc_url}")
    log_event(f"{TOKEN_SYMBOL} Token Program: {config.token_program}")

    await api.start()
    try:
        await scheduler.run_forever()
    finally:
        # flush whatever the coalesced saves have not written yet
        engine.history.save()
        await api.stop()
        await engine.prices.close()
        await engine.l1.close()
        await engine.l2.close()
        log_event("Stopped")


def main():
    config = load_config()
    setup_logging(config.log_dir or None, config.log_level)
    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        logging.info("[supply-oracle] Interrupted")


if __name__ == "__main__":
    main()
