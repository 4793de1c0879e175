# maintenance/api_server.py
"""Read-only HTTP surface over the published snapshot."""
import logging

from aiohttp import web

from myth_oracle.core import views
from myth_oracle.core.config import TOKEN_SYMBOL, TOTAL_SUPPLY, OracleConfig
from myth_oracle.core.reconciliation import ReconciliationEngine
from myth_oracle.utils.logger import log_event


class SupplyApi:
    def __init__(self, engine: ReconciliationEngine, config: OracleConfig):
        self.engine = engine
        self.config = config
        self.runner = None
        self.app = web.Application()
        self.app.add_routes([
            web.get("/", self.handle_full),
            web.get("/supply", self.handle_total),
            web.get("/circulating", self.handle_circulating),
            web.get("/price", self.handle_price),
            web.get("/breakdown", self.handle_breakdown),
            web.get("/api/v1/supply", self.handle_v1_supply),
            web.get("/api/supply", self.handle_supply),
            web.get("/api/supply/stats", self.handle_stats),
            web.get("/api/supply/history", self.handle_history),
            web.get("/api/supply/validators", self.handle_validators),
            web.get("/health", self.handle_health),
        ])

    async def start(self, host: str = "0.0.0.0"):
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, host, self.config.port)
        await site.start()
        log_event(f"API listening on port {self.config.port}")

    async def stop(self):
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None

    # === Handlers ===

    async def handle_full(self, request):
        return web.json_response(views.full_view(self.engine.current, self.config))

    async def handle_total(self, request):
        return web.Response(text=str(int(TOTAL_SUPPLY)))

    async def handle_circulating(self, request):
        return web.Response(text=views.plain_number(self.engine.current.circulating_supply))

    async def handle_price(self, request):
        price = views.price_view(self.engine.current.price)
        return web.json_response({
            "symbol": TOKEN_SYMBOL,
            "mint": self.config.l1_mint,
            "price": price["usd"],
            "priceSOL": price["sol"],
            **{k: price[k] for k in ("marketCap", "fdv", "volume24h", "priceChange24h",
                                     "liquidity", "source", "lastUpdate", "pumpfun")},
        })

    async def handle_breakdown(self, request):
        return web.json_response(views.breakdown_view(self.engine.current))

    async def handle_v1_supply(self, request):
        return web.json_response(views.v1_supply_view(self.engine.current))

    async def handle_supply(self, request):
        return web.json_response(views.supply_view(self.engine.current))

    async def handle_stats(self, request):
        return web.json_response(views.stats_view(self.engine.current, self.config))

    async def handle_history(self, request):
        period = request.query.get("period")
        try:
            limit = int(request.query["limit"]) if "limit" in request.query else None
        except ValueError:
            logging.debug(f"[API] Bad history limit: {request.query.get('limit')!r}")
            limit = None
        period, entries = self.engine.history_entries(period, limit)
        return web.json_response(views.history_view(period, entries))

    async def handle_validators(self, request):
        return web.json_response(views.validators_view(self.engine.current))

    async def handle_health(self, request):
        body = views.health_view(self.engine.current, self.config)
        return web.json_response(body, status=200 if body["status"] == "ok" else 503)
