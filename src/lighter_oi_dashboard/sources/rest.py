from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from lighter_oi_dashboard.aggregation.positions import PositionSummary, summarize_positions

logger = logging.getLogger(__name__)


class UpstreamError(RuntimeError):
    """The account endpoint could not be reached or returned an unusable body."""


class LighterRESTClient:
    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 15.0,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            transport=transport,
        )
        self._timeout_seconds = timeout_seconds

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        # single attempt; callers surface failures instead of retrying.
        # httpx timeouts are per phase, the outer deadline bounds the whole request.
        try:
            async with asyncio.timeout(self._timeout_seconds):
                response = await self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except TimeoutError as exc:
            logger.warning(
                "Lighter REST request timed out",
                extra={"path": path, "timeout_seconds": self._timeout_seconds},
            )
            raise UpstreamError(f"GET {path} exceeded {self._timeout_seconds}s") from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "Lighter REST request failed",
                extra={"path": path, "reason": exc.__class__.__name__},
            )
            raise UpstreamError(f"GET {path} failed: {exc.__class__.__name__}") from exc
        except ValueError as exc:
            logger.warning("Lighter REST response was not JSON", extra={"path": path})
            raise UpstreamError(f"GET {path} returned a non-JSON body") from exc

    async def fetch_account(self, account_index: int) -> Any:
        return await self._get(
            "/api/v1/account",
            {
                "by": "index",
                "value": account_index,
            },
        )

    async def fetch_position_summary(self, account_index: int) -> PositionSummary:
        payload = await self.fetch_account(account_index)
        return summarize_positions(payload)
