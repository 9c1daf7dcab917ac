from __future__ import annotations

import json
import math
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from lighter_oi_dashboard.core.time_utils import now_ms

DEFAULT_SAMPLE_CAPACITY = 6
DEFAULT_SAMPLE_MAX_CHARS = 500


@dataclass(frozen=True, slots=True)
class IngestionSample:
    ts: int
    sample: str

    def to_payload(self) -> dict[str, Any]:
        return {"ts": self.ts, "sample": self.sample}


class MarketOiStore:
    """Latest open interest per market, plus a short tail of raw feed samples.

    Owned by the process and shared between the stream ingestor (the only
    writer) and the HTTP handlers. Entries are never evicted.
    """

    def __init__(
        self,
        *,
        sample_capacity: int = DEFAULT_SAMPLE_CAPACITY,
        sample_max_chars: int = DEFAULT_SAMPLE_MAX_CHARS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._open_interest: dict[str, float] = {}
        self._samples: deque[IngestionSample] = deque(maxlen=max(1, sample_capacity))
        self._sample_max_chars = sample_max_chars
        self._clock = clock
        self._last_update_ms = 0

    def __len__(self) -> int:
        return len(self._open_interest)

    def size(self) -> int:
        return len(self._open_interest)

    @property
    def last_update_ms(self) -> int:
        return self._last_update_ms

    def upsert(self, market_id: Any, open_interest: float) -> bool:
        if not isinstance(open_interest, (int, float)) or not math.isfinite(open_interest):
            return False
        self._open_interest[str(market_id)] = float(open_interest)
        self._last_update_ms = max(self._last_update_ms, self._clock())
        return True

    def get(self, market_id: Any) -> float | None:
        return self._open_interest.get(str(market_id))

    def total_open_interest(self) -> float:
        return sum(abs(value) for value in self._open_interest.values() if math.isfinite(value))

    def record_sample(self, message: Any, ts: int | None = None) -> IngestionSample:
        serialized = json.dumps(message, separators=(",", ":"), ensure_ascii=False)
        sample = IngestionSample(
            ts=self._clock() if ts is None else ts,
            sample=serialized[: self._sample_max_chars],
        )
        self._samples.append(sample)
        return sample

    def samples(self) -> list[IngestionSample]:
        return list(self._samples)

    def snapshot(self) -> dict[str, Any]:
        return {
            "total_open_interest": self.total_open_interest(),
            "markets": self.size(),
            "last_updated_ms": self._last_update_ms,
        }
