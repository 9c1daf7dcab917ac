from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse

from lighter_oi_dashboard import __version__
from lighter_oi_dashboard.core.config import Settings
from lighter_oi_dashboard.sources.rest import LighterRESTClient, UpstreamError
from lighter_oi_dashboard.sources.websocket import LighterStreamIngestor
from lighter_oi_dashboard.state.store import MarketOiStore
from lighter_oi_dashboard.web.templates import UPSTREAM_ERROR_HTML, render_dashboard

UPSTREAM_ERROR_BODY = {"error": "Failed to fetch upstream data"}
LLP_SOURCE = "LLP"


def build_ingestor(settings: Settings, store: MarketOiStore) -> LighterStreamIngestor:
    return LighterStreamIngestor(
        url=settings.websocket_url,
        store=store,
        ping_interval_seconds=settings.ping_interval_seconds,
        reconnect_seconds=settings.reconnect_seconds,
        subscribe_max_market_index=settings.subscribe_max_market_index,
    )


def create_app(
    settings: Settings | None = None,
    *,
    store: MarketOiStore | None = None,
    ingestor: LighterStreamIngestor | None = None,
    rest_client: LighterRESTClient | None = None,
) -> FastAPI:
    settings = settings or Settings()
    store = store or MarketOiStore(
        sample_capacity=settings.sample_capacity,
        sample_max_chars=settings.sample_max_chars,
    )
    ingestor = ingestor or build_ingestor(settings, store)
    rest_client = rest_client or LighterRESTClient(
        base_url=settings.rest_base_url,
        timeout_seconds=settings.rest_timeout_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        ingestor.start()
        try:
            yield
        finally:
            await ingestor.stop()
            await rest_client.close()

    app = FastAPI(title="Lighter OI dashboard", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.ingestor = ingestor
    app.state.rest_client = rest_client

    @app.get("/api/llp-total")
    async def llp_total(request: Request) -> JSONResponse:
        try:
            summary = await request.app.state.rest_client.fetch_position_summary(settings.account_index)
        except UpstreamError:
            return JSONResponse(status_code=502, content=UPSTREAM_ERROR_BODY)
        return JSONResponse(
            content={
                **summary.to_payload(),
                "source": LLP_SOURCE,
                "account_index": settings.account_index,
            }
        )

    @app.get("/api/exchange-oi")
    def exchange_oi(request: Request) -> dict:
        return request.app.state.store.snapshot()

    @app.get("/api/ws-debug")
    def ws_debug(request: Request) -> dict:
        current_store: MarketOiStore = request.app.state.store
        return {
            "ws_connected": request.app.state.ingestor.connected,
            "markets_tracked": current_store.size(),
            "last_updated_ms": current_store.last_update_ms,
            "sample_messages": [sample.to_payload() for sample in current_store.samples()],
        }

    @app.get("/", response_class=HTMLResponse)
    async def dashboard(request: Request) -> HTMLResponse:
        try:
            summary = await request.app.state.rest_client.fetch_position_summary(settings.account_index)
        except UpstreamError:
            return HTMLResponse(status_code=502, content=UPSTREAM_ERROR_HTML)
        return HTMLResponse(
            content=render_dashboard(
                summary,
                account_index=settings.account_index,
                source_host=settings.upstream_host,
                refresh_interval_seconds=settings.refresh_interval_seconds,
            )
        )

    return app
