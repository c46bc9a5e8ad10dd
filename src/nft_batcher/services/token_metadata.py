from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Iterable, Optional

from ..batching import NOT_FOUND
from ..core.types import TokenMetadata
from .base import BatchedLookupService, ClientFetch
from .normalize import parse_metadata

MetadataOverride = Callable[[str, int], Awaitable[Optional[TokenMetadata]]]


class TokenMetadataService(BatchedLookupService):
    """批次查詢 ICRC-7 token metadata。"""

    kind = "token_metadata"

    def _fetcher(self, canister_id: str) -> ClientFetch:
        return ClientFetch(self._client.token_metadata, (canister_id,))

    async def get(
        self,
        canister_id: str,
        token_id: int,
        override: Optional[MetadataOverride] = None,
    ) -> Optional[TokenMetadata]:
        """取得單一 token 的 metadata；提供 ``override`` 時直接呼叫，不經批次。"""

        if override is not None:
            return await override(canister_id, token_id)
        raw = await self.batcher(canister_id).request(token_id)
        if raw is NOT_FOUND:
            return None
        return parse_metadata(token_id, raw)

    async def get_many(self, canister_id: str, token_ids: Iterable[int]) -> Dict[int, Optional[TokenMetadata]]:
        ids = list(dict.fromkeys(token_ids))
        results = await asyncio.gather(*(self.get(canister_id, token_id) for token_id in ids))
        return dict(zip(ids, results))
