from __future__ import annotations

import asyncio
import contextlib
import enum
import functools
import json
import logging
from collections.abc import Callable, Sequence
from typing import Any

import websockets

from lighter_oi_dashboard.core.time_utils import coerce_float, now_ms
from lighter_oi_dashboard.state.store import MarketOiStore

MARKET_STATS_CHANNEL = "market_stats"
OPEN_INTEREST_KEYS = ("open_interest", "openInterest", "oi")
MARKET_ID_KEYS = ("market_id", "marketIndex", "market")

logger = logging.getLogger(__name__)

MarketOiPair = tuple[str, float]
ShapeMatcher = Callable[[Any], list[MarketOiPair] | None]


def _first_present(payload: dict[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return None


def _market_key(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def extract_open_interest(payload: Any) -> float | None:
    if not isinstance(payload, dict):
        return None
    return coerce_float(_first_present(payload, OPEN_INTEREST_KEYS))


def extract_pair(payload: Any) -> MarketOiPair | None:
    if not isinstance(payload, dict):
        return None
    open_interest = extract_open_interest(payload)
    market_id = _first_present(payload, MARKET_ID_KEYS)
    if open_interest is None or market_id is None:
        return None
    return _market_key(market_id), open_interest


def _pairs_from_items(items: list[Any]) -> list[MarketOiPair]:
    pairs: list[MarketOiPair] = []
    for item in items:
        pair = extract_pair(item)
        if pair is not None:
            pairs.append(pair)
    return pairs


# Each matcher returns None when the message is not its shape, otherwise the
# (possibly empty) list of pairs it found. The first shape that applies wins.


def match_stats_list(message: Any) -> list[MarketOiPair] | None:
    if not isinstance(message, list):
        return None
    return _pairs_from_items(message)


def match_stats_by_market(message: Any) -> list[MarketOiPair] | None:
    if not isinstance(message, dict):
        return None
    stats = message.get("stats")
    if isinstance(stats, list):
        stats = {str(index): value for index, value in enumerate(stats)}
    if not isinstance(stats, dict):
        return None

    pairs: list[MarketOiPair] = []
    for market_id, market_stats in stats.items():
        open_interest = extract_open_interest(market_stats)
        if open_interest is not None:
            pairs.append((str(market_id), open_interest))
    return pairs


def match_market_stats_list(message: Any) -> list[MarketOiPair] | None:
    if not isinstance(message, dict):
        return None
    market_stats = message.get("market_stats")
    if not isinstance(market_stats, list):
        return None
    return _pairs_from_items(market_stats)


def match_market_stats_type(message: Any) -> list[MarketOiPair] | None:
    if not isinstance(message, dict):
        return None
    message_type = message.get("type")
    if not isinstance(message_type, str) or MARKET_STATS_CHANNEL not in message_type:
        return None
    pair = extract_pair(message)
    return [pair] if pair is not None else []


def match_market_stats_channel(message: Any) -> list[MarketOiPair] | None:
    if not isinstance(message, dict):
        return None
    channel = message.get("channel")
    if not isinstance(channel, str) or not channel.startswith(MARKET_STATS_CHANNEL):
        return None
    payload = _first_present(message, ("data", "body"))
    pair = extract_pair(message if payload is None else payload)
    return [pair] if pair is not None else []


DEFAULT_SHAPE_MATCHERS: tuple[ShapeMatcher, ...] = (
    match_stats_list,
    match_stats_by_market,
    match_market_stats_list,
    match_market_stats_type,
    match_market_stats_channel,
)


def extract_market_open_interest(
    message: Any,
    matchers: Sequence[ShapeMatcher] = DEFAULT_SHAPE_MATCHERS,
) -> list[MarketOiPair]:
    for matcher in matchers:
        pairs = matcher(message)
        if pairs is not None:
            return pairs
    return []


class MarketStatsPayloadProcessor:
    """Parses raw feed frames and folds any open interest they carry into the store."""

    def __init__(
        self,
        store: MarketOiStore,
        matchers: Sequence[ShapeMatcher] = DEFAULT_SHAPE_MATCHERS,
    ) -> None:
        self._store = store
        self._matchers = tuple(matchers)

    def process_raw(self, raw: str | bytes, arrival_time_ms: int | None = None) -> int:
        try:
            raw_text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
            message = json.loads(raw_text)
        except (ValueError, RecursionError):
            logger.debug("Dropping non-JSON market stats payload")
            return 0
        return self.process_message(message, arrival_time_ms)

    def process_message(self, message: Any, arrival_time_ms: int | None = None) -> int:
        self._store.record_sample(message, arrival_time_ms)

        upserted = 0
        for market_id, open_interest in extract_market_open_interest(message, self._matchers):
            if self._store.upsert(market_id, open_interest):
                upserted += 1
        return upserted


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def subscription_messages(max_market_index: int) -> list[dict[str, str]]:
    messages = [{"type": "subscribe", "channel": MARKET_STATS_CHANNEL}]
    messages.extend(
        {"type": "subscribe", "channel": f"{MARKET_STATS_CHANNEL}/{index}"} for index in range(max_market_index + 1)
    )
    return messages


class LighterStreamIngestor:
    """Keeps a market_stats subscription alive and feeds it into a MarketOiStore.

    Disconnected -> Connecting -> Connected, and back to Disconnected on any
    close or transport error, after which it reconnects after a fixed delay
    until stopped. The heartbeat task belongs to a single connection and is
    cancelled when that connection ends.
    """

    def __init__(
        self,
        *,
        url: str,
        store: MarketOiStore,
        processor: MarketStatsPayloadProcessor | None = None,
        ping_interval_seconds: float = 15.0,
        reconnect_seconds: float = 2.0,
        subscribe_max_market_index: int = 100,
        connect: Callable[[str], Any] | None = None,
    ) -> None:
        self._url = url
        self._store = store
        self._processor = processor or MarketStatsPayloadProcessor(store)
        self._ping_interval_seconds = ping_interval_seconds
        self._reconnect_seconds = reconnect_seconds
        self._subscriptions = subscription_messages(subscribe_max_market_index)
        self._connect = connect or functools.partial(
            websockets.connect,
            ping_interval=None,
            close_timeout=5,
            max_size=2**22,
        )
        self._state = ConnectionState.DISCONNECTED
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self.connection_attempts = 0
        self.last_message_ms: int | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def start(self) -> asyncio.Task[None]:
        if self._task is None or self._task.done():
            self._stop_event.clear()
            self._task = asyncio.create_task(self.run(), name="lighter-market-stats")
        return self._task

    async def stop(self) -> None:
        self._stop_event.set()
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def run(self) -> None:
        while not self._stop_event.is_set():
            self._set_state(ConnectionState.CONNECTING)
            self.connection_attempts += 1
            try:
                await self._run_once()
            except websockets.ConnectionClosed as exc:
                logger.warning("Market stats stream closed", extra={"url": self._url, "reason": str(exc)})
            except OSError as exc:
                logger.warning("Market stats stream unreachable", extra={"url": self._url, "reason": str(exc)})
            except Exception:
                logger.exception("Market stats stream failed", extra={"url": self._url})
            finally:
                self._set_state(ConnectionState.DISCONNECTED)

            if self._stop_event.is_set():
                break
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._reconnect_seconds)

    async def _run_once(self) -> None:
        async with self._connect(self._url) as websocket:
            self._set_state(ConnectionState.CONNECTED)
            await self._subscribe(websocket)

            heartbeat = asyncio.create_task(self._heartbeat(websocket), name="lighter-market-stats-ping")
            try:
                async for raw in websocket:
                    self.last_message_ms = now_ms()
                    self._processor.process_raw(raw, self.last_message_ms)
                    if self._stop_event.is_set():
                        break
            finally:
                heartbeat.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await heartbeat

    async def _subscribe(self, websocket: Any) -> None:
        for message in self._subscriptions:
            try:
                await websocket.send(json.dumps(message))
            except Exception as exc:  # noqa: BLE001
                logger.debug("Subscribe send failed", extra={"channel": message["channel"], "reason": str(exc)})

    async def _heartbeat(self, websocket: Any) -> None:
        while True:
            await asyncio.sleep(self._ping_interval_seconds)
            try:
                await websocket.ping()
            except Exception as exc:  # noqa: BLE001
                logger.debug("Heartbeat ping failed", extra={"reason": str(exc)})

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.info("Market stats stream %s", state.value, extra={"url": self._url})
        self._state = state
