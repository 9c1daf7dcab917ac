from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from lighter_oi_dashboard.core.time_utils import coerce_float


@dataclass(frozen=True, slots=True)
class PositionSummary:
    total: float = 0.0
    count: int = 0
    open_interest: float = 0.0

    def to_payload(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "count": self.count,
            "open_interest": self.open_interest,
        }


def _position_value(position: Any) -> float | None:
    if not isinstance(position, dict):
        return 0.0
    raw_value = position.get("position_value")
    if isinstance(raw_value, str) or (isinstance(raw_value, (int, float)) and not isinstance(raw_value, bool)):
        return coerce_float(raw_value)
    # positions without a usable value still count, at zero
    return 0.0


def summarize_positions(payload: Any) -> PositionSummary:
    """Summarise the first account of an ``/api/v1/account`` response.

    Missing or malformed input degrades to a zero summary; positions whose value
    does not coerce to a finite number are skipped entirely.
    """
    if not isinstance(payload, dict):
        return PositionSummary()
    accounts = payload.get("accounts")
    if not isinstance(accounts, list) or not accounts:
        return PositionSummary()

    account = accounts[0]
    positions = account.get("positions") if isinstance(account, dict) else None
    if not isinstance(positions, list):
        positions = []

    total = 0.0
    count = 0
    open_interest = 0.0
    for position in positions:
        value = _position_value(position)
        if value is None:
            continue
        total += value
        open_interest += abs(value)
        count += 1

    return PositionSummary(total=total, count=count, open_interest=open_interest)
