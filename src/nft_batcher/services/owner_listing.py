from __future__ import annotations

from typing import Awaitable, Callable, List, Optional

from ..batching import NOT_FOUND
from ..core.types import MarketListing
from .base import BatchedLookupService, ClientFetch
from .normalize import parse_listings

OwnerListingOverride = Callable[[str, str, Optional[str]], Awaitable[List[MarketListing]]]


class OwnerListingService(BatchedLookupService):
    """批次查詢各 principal 在市場上的掛單；狀態篩選條件屬於群組 key。"""

    kind = "owner_listing"

    def _fetcher(self, market_canister_id: str, status: Optional[str]) -> ClientFetch:
        return ClientFetch(self._client.owner_listings, (market_canister_id,), (("status", status),))

    async def get(
        self,
        market_canister_id: str,
        principal: str,
        status: Optional[str] = None,
        override: Optional[OwnerListingOverride] = None,
    ) -> List[MarketListing]:
        if override is not None:
            return await override(market_canister_id, principal, status)
        records = await self.batcher(market_canister_id, status).request(principal)
        if records is NOT_FOUND:
            return []
        return parse_listings(records)
