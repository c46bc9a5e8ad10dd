from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Iterable, Optional

from ..batching import NOT_FOUND, PositionalMatcher, ResultMatcher
from ..core.types import Account
from .base import BatchedLookupService, ClientFetch
from .normalize import parse_owner

OwnerOverride = Callable[[str, int], Awaitable[Optional[Account]]]


class TokenOwnerService(BatchedLookupService):
    """批次查詢 ICRC-7 token 擁有者。"""

    kind = "token_owner"

    def _fetcher(self, canister_id: str) -> ClientFetch:
        return ClientFetch(self._client.owner_of, (canister_id,))

    def _matcher(self) -> ResultMatcher:
        return PositionalMatcher(transform=parse_owner)

    async def get(
        self,
        canister_id: str,
        token_id: int,
        override: Optional[OwnerOverride] = None,
    ) -> Optional[Account]:
        if override is not None:
            return await override(canister_id, token_id)
        account = await self.batcher(canister_id).request(token_id)
        return None if account is NOT_FOUND else account

    async def get_many(self, canister_id: str, token_ids: Iterable[int]) -> Dict[int, Optional[Account]]:
        ids = list(dict.fromkeys(token_ids))
        results = await asyncio.gather(*(self.get(canister_id, token_id) for token_id in ids))
        return dict(zip(ids, results))
