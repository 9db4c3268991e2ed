"""
Explorer pagination strategies.

Block-range (Etherscan): start from a block estimated from the time
window and advance `startblock` past the last block returned.

Page/offset (Blockscout): increment `page` with a fixed `offset`. The
provider ignores block ranges, so the time window is applied after
fetching.

Both strategies return raw explorer rows filtered to the window.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from wallet_analytics.models import TimeWindow


logger = logging.getLogger(__name__)


Row = dict[str, Any]
PageFetcher = Callable[[dict[str, Any]], Awaitable[list[Row]]]

LATEST_BLOCK = 99_999_999


def _row_timestamp(row: Row) -> int:
    try:
        return int(row.get("timeStamp") or 0)
    except (TypeError, ValueError):
        return 0


def filter_rows_to_window(rows: list[Row], window: TimeWindow) -> list[Row]:
    if not window.is_bounded:
        return rows
    return [row for row in rows if window.contains(_row_timestamp(row))]


def estimate_start_block(
    current_block: int,
    window: TimeWindow,
    block_time_seconds: float,
    now: int,
) -> int:
    """Block height roughly `now - window.start` seconds ago (0 if unbounded)."""
    if window.start is None:
        return 0
    elapsed = max(0, now - window.start)
    blocks_back = int(elapsed / block_time_seconds)
    return max(0, current_block - blocks_back)


class BlockRangePaginator:
    """Forward paging by block number."""

    def __init__(
        self,
        fetch_page: PageFetcher,
        page_size: int,
        label: str = "block-range",
    ) -> None:
        self._fetch_page = fetch_page
        self.page_size = page_size
        self.label = label

    async def fetch(
        self,
        action: str,
        address: str,
        start_block: int,
        window: TimeWindow,
        max_records: int,
    ) -> list[Row]:
        rows: list[Row] = []
        next_block = start_block

        while True:
            page = await self._fetch_page({
                "action": action,
                "address": address,
                "startblock": str(next_block),
                "endblock": str(LATEST_BLOCK),
                "page": "1",
                "offset": str(self.page_size),
                "sort": "asc",
            })
            if not page:
                break

            rows.extend(page)
            logger.debug(
                f"[{self.label}] {action}: +{len(page)} rows from block {next_block} "
                f"(total {len(rows)})"
            )

            if len(rows) >= max_records:
                logger.warning(f"[{self.label}] {action}: reached cap of {max_records} rows")
                break
            if len(page) < self.page_size:
                break

            next_block = int(page[-1].get("blockNumber") or next_block) + 1

        return filter_rows_to_window(rows, window)


class PageOffsetPaginator:
    """Page counter with fixed offset and an optional provider-side row limit."""

    def __init__(
        self,
        fetch_page: PageFetcher,
        page_size: int,
        provider_limit: Optional[int] = None,
        label: str = "page-offset",
    ) -> None:
        self._fetch_page = fetch_page
        self.page_size = page_size
        self.provider_limit = provider_limit
        self.label = label

    async def fetch(
        self,
        action: str,
        address: str,
        window: TimeWindow,
        max_records: int,
    ) -> list[Row]:
        rows: list[Row] = []
        page_number = 1

        while True:
            if self.provider_limit is not None and page_number * self.page_size > self.provider_limit:
                logger.info(
                    f"[{self.label}] {action}: provider limit of {self.provider_limit} rows reached"
                )
                break

            page = await self._fetch_page({
                "action": action,
                "address": address,
                "page": str(page_number),
                "offset": str(self.page_size),
                "sort": "asc",
            })
            if not page:
                break

            rows.extend(page)

            if len(rows) >= max_records:
                logger.warning(f"[{self.label}] {action}: reached cap of {max_records} rows")
                break
            if len(page) < self.page_size:
                break

            page_number += 1

        return filter_rows_to_window(rows, window)
