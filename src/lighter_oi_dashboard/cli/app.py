from __future__ import annotations

import asyncio
import contextlib

import typer
import uvicorn
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from lighter_oi_dashboard.aggregation.positions import PositionSummary
from lighter_oi_dashboard.core.config import Settings
from lighter_oi_dashboard.core.logging import configure_logging
from lighter_oi_dashboard.sources.rest import LighterRESTClient, UpstreamError
from lighter_oi_dashboard.state.store import MarketOiStore
from lighter_oi_dashboard.web.app import build_ingestor, create_app
from lighter_oi_dashboard.web.templates import format_usd

app = typer.Typer(help="Lighter LLP position and exchange open interest dashboard")
console = Console()


def _summary_table(summary: PositionSummary, *, account_index: int) -> Table:
    table = Table(title=f"LLP account {account_index}")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Total position value", f"${format_usd(summary.total)}")
    table.add_row("Open interest", f"${format_usd(summary.open_interest)}")
    table.add_row("Positions counted", str(summary.count))
    return table


def _store_table(store: MarketOiStore, *, connected: bool, last_message_ms: int | None = None) -> Table:
    table = Table(title="Exchange open interest")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Stream connected", "yes" if connected else "no")
    table.add_row("Markets tracked", str(store.size()))
    table.add_row("Total open interest", format_usd(store.total_open_interest()))
    table.add_row("Last update (ms)", str(store.last_update_ms))
    table.add_row("Last message (ms)", "never" if last_message_ms is None else str(last_message_ms))
    return table


async def _fetch_summary(settings: Settings) -> PositionSummary:
    client = LighterRESTClient(base_url=settings.rest_base_url, timeout_seconds=settings.rest_timeout_seconds)
    try:
        return await client.fetch_position_summary(settings.account_index)
    finally:
        await client.close()


@app.command("serve")
def serve(
    host: str | None = typer.Option(default=None, help="Bind address (defaults to LLP_HOST)"),
    port: int | None = typer.Option(default=None, min=1, max=65535, help="Listen port (defaults to PORT / LLP_PORT)"),
) -> None:
    settings = Settings()
    configure_logging(settings.log_level)
    bind_host = host or settings.host
    bind_port = port or settings.port

    console.print(f"Server listening on [bold]http://localhost:{bind_port}[/bold]")
    uvicorn.run(create_app(settings), host=bind_host, port=bind_port, log_level=settings.log_level.lower())


@app.command("llp-total")
def llp_total() -> None:
    settings = Settings()
    configure_logging(settings.log_level)
    try:
        summary = asyncio.run(_fetch_summary(settings))
    except UpstreamError as exc:
        console.print(f"[red]Failed to fetch upstream data:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    console.print(_summary_table(summary, account_index=settings.account_index))


@app.command("stream-probe")
def stream_probe(
    seconds: float = typer.Option(default=20.0, min=1.0, help="How long to listen to the market stats feed"),
) -> None:
    settings = Settings()
    configure_logging(settings.log_level)
    store = MarketOiStore(sample_capacity=settings.sample_capacity, sample_max_chars=settings.sample_max_chars)
    ingestor = build_ingestor(settings, store)

    async def _probe() -> bool:
        task = ingestor.start()
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(asyncio.shield(task), timeout=seconds)
        connected = ingestor.connected
        await ingestor.stop()
        return connected

    connected = asyncio.run(_probe())
    console.print(_store_table(store, connected=connected, last_message_ms=ingestor.last_message_ms))
    for sample in store.samples():
        console.print(f"[dim]{sample.ts}[/dim] {escape(sample.sample)}")


if __name__ == "__main__":
    app()
