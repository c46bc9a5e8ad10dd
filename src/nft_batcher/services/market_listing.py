from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Iterable, Optional

from ..batching import NOT_FOUND, ContentAddressedMatcher, ResultMatcher
from ..core.types import MarketListing
from ..core.utils import to_token_id
from .base import BatchedLookupService, ClientFetch
from .normalize import extract_listing_token_ids, parse_listing

ListingOverride = Callable[[str, str, int], Awaitable[Optional[MarketListing]]]


class MarketListingService(BatchedLookupService):
    """批次查詢 ICRC-8 市場掛單。

    市場回傳的每筆掛單可能涵蓋多個 token，因此以掛單內容反查 token id。
    """

    kind = "market_listing"

    def _fetcher(self, market_canister_id: str, token_canister_id: str) -> ClientFetch:
        return ClientFetch(self._client.market_listings, (market_canister_id, token_canister_id))

    def _matcher(self) -> ResultMatcher:
        return ContentAddressedMatcher(extract_keys=extract_listing_token_ids, normalize_key=to_token_id)

    async def get(
        self,
        market_canister_id: str,
        token_canister_id: str,
        token_id: int,
        override: Optional[ListingOverride] = None,
    ) -> Optional[MarketListing]:
        if override is not None:
            return await override(market_canister_id, token_canister_id, token_id)
        record = await self.batcher(market_canister_id, token_canister_id).request(token_id)
        if record is NOT_FOUND or record is None:
            return None
        return parse_listing(record)

    async def get_many(
        self,
        market_canister_id: str,
        token_canister_id: str,
        token_ids: Iterable[int],
    ) -> Dict[int, Optional[MarketListing]]:
        ids = list(dict.fromkeys(token_ids))
        results = await asyncio.gather(
            *(self.get(market_canister_id, token_canister_id, token_id) for token_id in ids)
        )
        return dict(zip(ids, results))
