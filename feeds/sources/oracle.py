"""Reference price read from an on-chain price feed.

Feeds implement the aggregator interface (``latestRoundData()`` and
``decimals()``), read with plain ``eth_call`` requests over the same JSON-RPC
endpoint as the ledger. The weighted strategy consumes the ratio between the
latest answer and the reference price the project's base price was set at.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Any, Awaitable, Callable

import httpx

from feeds.common import rpc_call
from valuation.errors import SourceUnavailable

LATEST_ROUND_DATA_SELECTOR = "0xfeaf968c"
DECIMALS_SELECTOR = "0x313ce567"
_WORD_CHARS = 64
_INT256_SIGN = 1 << 255

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeedPrice:
    price: float
    decimals: int
    round_id: int
    updated_at: datetime


def _words(raw: Any, field: str) -> list[int]:
    """Split an ABI-encoded return value into 32-byte unsigned words."""

    if not isinstance(raw, str) or not raw.startswith("0x"):
        raise SourceUnavailable(field, f"unexpected eth_call result {raw!r}")
    body = raw[2:]
    if not body or len(body) % _WORD_CHARS:
        raise SourceUnavailable(field, f"result of {len(body)} hex chars is not word aligned")
    try:
        return [int(body[i : i + _WORD_CHARS], 16) for i in range(0, len(body), _WORD_CHARS)]
    except ValueError as exc:
        raise SourceUnavailable(field, "result is not hex encoded") from exc


def _signed(word: int) -> int:
    return word - (1 << 256) if word & _INT256_SIGN else word


class PriceFeedClient:
    """Reads one aggregator contract."""

    def __init__(
        self,
        rpc_url: str,
        feed_address: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.feed_address = feed_address
        self._transport = transport

    async def _eth_call(self, selector: str) -> Any:
        params = [{"to": self.feed_address, "data": selector}, "latest"]
        async with httpx.AsyncClient(transport=self._transport) as client:
            return await rpc_call(self.rpc_url, "eth_call", params, client=client)

    async def latest_price(self) -> FeedPrice:
        round_raw, decimals_raw = await asyncio.gather(
            self._eth_call(LATEST_ROUND_DATA_SELECTOR), self._eth_call(DECIMALS_SELECTOR)
        )
        words = _words(round_raw, "latestRoundData")
        if len(words) != 5:
            raise SourceUnavailable("latestRoundData", f"expected 5 words, got {len(words)}")
        (decimals,) = _words(decimals_raw, "decimals")
        round_id, answer, _started_at, updated_at, _answered_in_round = words
        answer = _signed(answer)
        if answer <= 0:
            raise SourceUnavailable("latestRoundData", f"non-positive answer {answer}")
        return FeedPrice(
            price=answer / 10**decimals,
            decimals=decimals,
            round_id=round_id,
            updated_at=datetime.fromtimestamp(updated_at, UTC),
        )


def oracle_ratio_source(
    feed: PriceFeedClient, reference_price: float
) -> Callable[[Any], Awaitable[float]]:
    """Ratio of the feed's latest answer to ``reference_price``, for any project."""

    if reference_price <= 0:
        raise ValueError(f"reference_price must be positive, got {reference_price}")

    async def source(_project: Any) -> float:
        latest = await feed.latest_price()
        ratio = latest.price / reference_price
        logger.debug(
            "Oracle %s answered %.6f (ratio %.4f)", feed.feed_address, latest.price, ratio
        )
        return ratio

    return source


__all__ = ["FeedPrice", "PriceFeedClient", "oracle_ratio_source"]
