from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any


def now_ms() -> int:
    return int(datetime.now(tz=UTC).timestamp() * 1000)


def coerce_float(value: Any) -> float | None:
    """Coerce a JSON scalar the way the exchange encodes numbers.

    Real numbers and numeric strings become floats, a blank string counts as
    zero. Anything else, and any NaN or infinite result, becomes ``None``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            parsed = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        normalized = value.strip()
        if normalized == "":
            return 0.0
        try:
            parsed = float(normalized)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(parsed):
        return None
    return parsed
