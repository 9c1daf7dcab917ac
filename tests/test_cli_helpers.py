import asyncio
import json

from rich.console import Console
from typer.testing import CliRunner

from lighter_oi_dashboard.aggregation.positions import PositionSummary
from lighter_oi_dashboard.cli import app as cli_app
from lighter_oi_dashboard.sources.rest import UpstreamError
from lighter_oi_dashboard.sources.websocket import LighterStreamIngestor
from lighter_oi_dashboard.state.store import MarketOiStore


def _render(renderable) -> str:
    console = Console(record=True, width=120)
    console.print(renderable)
    return console.export_text()


def test_summary_table_formats_usd_values() -> None:
    table = cli_app._summary_table(
        PositionSummary(total=-1234.5, count=3, open_interest=4321.25),
        account_index=7,
    )
    text = _render(table)

    assert "LLP account 7" in text
    assert "$-1,234.50" in text
    assert "$4,321.25" in text


def test_store_table_reports_stream_state() -> None:
    store = MarketOiStore(clock=lambda: 99)
    store.upsert("1", 10.0)

    text = _render(cli_app._store_table(store, connected=True))

    assert "yes" in text
    assert "10.00" in text
    assert "99" in text


def test_llp_total_command_exits_non_zero_on_upstream_failure(monkeypatch) -> None:
    async def failing_fetch(settings):
        raise UpstreamError("GET /api/v1/account failed: ConnectTimeout")

    monkeypatch.setattr(cli_app, "_fetch_summary", failing_fetch)

    result = CliRunner().invoke(cli_app.app, ["llp-total"])

    assert result.exit_code == 1
    assert "Failed to fetch upstream data" in result.output


def test_llp_total_command_prints_summary(monkeypatch) -> None:
    async def fetch(settings):
        return PositionSummary(total=50.5, count=2, open_interest=150.5)

    monkeypatch.setattr(cli_app, "_fetch_summary", fetch)

    result = CliRunner().invoke(cli_app.app, ["llp-total"])

    assert result.exit_code == 0
    assert "$50.50" in result.output
    assert "$150.50" in result.output


class _IdleSocket:
    def __init__(self, frames: list[str]) -> None:
        self.frames = frames

    async def __aenter__(self) -> "_IdleSocket":
        return self

    async def __aexit__(self, *exc_info: object) -> bool:
        return False

    async def send(self, message: str) -> None:
        return None

    async def ping(self) -> None:
        return None

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self.frames:
            yield frame
        await asyncio.sleep(3600)


def test_store_table_reports_last_message_time() -> None:
    store = MarketOiStore()

    assert "never" in _render(cli_app._store_table(store, connected=False))
    assert "1700000000123" in _render(cli_app._store_table(store, connected=True, last_message_ms=1_700_000_000_123))


def test_stream_probe_command_prints_store_snapshot(monkeypatch) -> None:
    frame = json.dumps({"type": "market_stats", "market_id": 5, "oi": "250"})

    def build(settings, store):
        return LighterStreamIngestor(
            url=settings.websocket_url,
            store=store,
            connect=lambda url: _IdleSocket([frame]),
        )

    monkeypatch.setattr(cli_app, "build_ingestor", build)

    result = CliRunner().invoke(cli_app.app, ["stream-probe", "--seconds", "1"])

    assert result.exit_code == 0
    assert "yes" in result.output
    assert "250.00" in result.output
    assert "never" not in result.output
    assert '"market_id":5' in result.output
