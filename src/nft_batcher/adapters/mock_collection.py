from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from ..core.errors import AdapterError

MOCK_OWNERS = (
    "aaaaa-aa",
    "2vxsx-fae",
)


class MockCollectionClient:
    """提供測試與 CLI ``--mock`` 使用的固定資料回應，並記錄每次呼叫。"""

    def __init__(
        self,
        total_supply: int = 100,
        listings: Optional[Mapping[int, Sequence[int]]] = None,
        fail_methods: Iterable[str] = (),
    ) -> None:
        self._total_supply = total_supply
        self._listings: Dict[int, List[int]] = {
            intent_id: list(token_ids)
            for intent_id, token_ids in (listings if listings is not None else {1: [3, 7], 2: [9]}).items()
        }
        self._fail_methods: Set[str] = set(fail_methods)
        self.calls: List[Tuple[str, List[Any]]] = []

    def _record(self, method: str, keys: Sequence[Any]) -> None:
        self.calls.append((method, list(keys)))
        if method in self._fail_methods:
            raise AdapterError(f"模擬查詢失敗：{method}")

    def _exists(self, token_id: int) -> bool:
        return 1 <= token_id <= self._total_supply

    async def token_metadata(self, canister_id: str, token_ids: Sequence[int]) -> List[Any]:
        self._record("token_metadata", token_ids)
        return [
            [
                [
                    ["icrc7:name", {"Text": f"Mock #{token_id}"}],
                    ["icrc7:collection", {"Text": canister_id}],
                ]
            ]
            if self._exists(token_id)
            else []
            for token_id in token_ids
        ]

    async def owner_of(self, canister_id: str, token_ids: Sequence[int]) -> List[Any]:
        self._record("owner_of", token_ids)
        return [
            [{"owner": MOCK_OWNERS[token_id % len(MOCK_OWNERS)], "subaccount": []}]
            if self._exists(token_id)
            else []
            for token_id in token_ids
        ]

    def _listing_record(self, intent_id: int, token_canister_id: str, token_ids: List[int]) -> Dict[str, Any]:
        owner = MOCK_OWNERS[intent_id % len(MOCK_OWNERS)]
        return {
            "intent_id": intent_id,
            "status": {"open": None},
            "owner": {"owner": owner, "subaccount": []},
            "original_config": [
                [
                    {
                        "intent_tokens": [
                            {
                                "kind": {
                                    "intent": [
                                        [
                                            {
                                                "canister": token_canister_id,
                                                "token_pointer": [],
                                                "meta": [],
                                                "inventory": [{"tokenIds": token_ids}],
                                            }
                                        ]
                                    ]
                                },
                                "counterparty": [],
                                "lock_to_date": [],
                            }
                        ]
                    }
                ]
            ],
        }

    async def market_listings(
        self,
        market_canister_id: str,
        token_canister_id: str,
        token_ids: Sequence[int],
    ) -> List[Dict[str, Any]]:
        self._record("market_listings", token_ids)
        requested = set(token_ids)
        return [
            self._listing_record(intent_id, token_canister_id, listed)
            for intent_id, listed in self._listings.items()
            if requested.intersection(listed)
        ]

    async def owner_listings(
        self,
        market_canister_id: str,
        principals: Sequence[str],
        status: Optional[str] = None,
    ) -> List[List[Dict[str, Any]]]:
        self._record("owner_listings", principals)
        records = [
            self._listing_record(intent_id, market_canister_id, listed)
            for intent_id, listed in self._listings.items()
        ]
        if status and status != "open":
            records = []
        return [
            [record for record in records if record["owner"]["owner"] == principal]
            for principal in principals
        ]
