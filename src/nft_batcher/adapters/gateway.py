from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.errors import AdapterError


class GatewayServerError(AdapterError):
    """閘道 5xx 或連線錯誤，可重試。"""


class CollectionGatewayClient:
    """透過 JSON 查詢閘道呼叫 ICRC-7 / ICRC-8 canister 的 query 方法。

    這不是 IC 節點的 HTTP 介面（CBOR 封包的 ``/api/v2/canister/{id}/query``），
    而是部署在其前方、負責 Candid 編解碼的自架閘道，位址由
    ``GATEWAY_BASE_URL`` 指定，沒有預設值。閘道需提供：

    - ``POST /api/v1/canisters/{canister_id}/query/{method}``
    - body ``{"args": [...]}``：依 Candid 參數順序排列，``opt`` 以 ``[]`` / ``[x]``
      表示，variant 以單一 key 的物件表示，nat 以 JSON 整數表示。
    - 回應 ``{"data": ...}``：方法回傳值，使用相同的 JSON 表示法。
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"User-Agent": "nft-batcher/0.1.0", "accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        """關閉底層 HTTP 連線。"""

        await self._client.aclose()

    async def __aenter__(self) -> "CollectionGatewayClient":
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.aclose()

    @retry(
        retry=retry_if_exception_type(GatewayServerError),
        wait=wait_exponential(multiplier=0.5, max=4),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    async def _query(self, canister_id: str, method: str, args: Sequence[Any]) -> Any:
        path = f"/api/v1/canisters/{canister_id}/query/{method}"
        try:
            response = await self._client.post(path, json={"args": list(args)})
        except httpx.TransportError as error:
            raise GatewayServerError(f"閘道連線失敗：{error}") from error
        if response.status_code >= 500:
            raise GatewayServerError(f"閘道伺服器錯誤：{response.status_code}")
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as error:
            raise AdapterError(f"閘道回應錯誤：{error} — body: {response.text}") from error
        try:
            payload = response.json()
        except ValueError as error:
            raise AdapterError("閘道回應非 JSON 格式") from error
        if not isinstance(payload, dict) or "data" not in payload:
            raise AdapterError(f"閘道回應缺少 data 欄位：{method}")
        return payload["data"]

    async def token_metadata(self, canister_id: str, token_ids: Sequence[int]) -> List[Any]:
        """取得多個 token 的 metadata，結果與輸入順序對齊。"""

        return await self._query(canister_id, "icrc7_token_metadata", [list(token_ids)])

    async def owner_of(self, canister_id: str, token_ids: Sequence[int]) -> List[Any]:
        """取得多個 token 的擁有者，結果與輸入順序對齊。"""

        return await self._query(canister_id, "icrc7_owner_of", [list(token_ids)])

    async def market_listings(
        self,
        market_canister_id: str,
        token_canister_id: str,
        token_ids: Sequence[int],
        statuses: Sequence[str] = ("open",),
    ) -> List[Dict[str, Any]]:
        """查詢涵蓋指定 token 的掛單；每筆掛單可能涵蓋多個 token。"""

        filters: List[Dict[str, Any]] = [
            {
                "listed_tokens": [
                    {
                        "canister": token_canister_id,
                        "token_pointer": [],
                        "meta": [],
                        "inventory": [{"tokenIds": list(token_ids)}],
                    }
                ]
            }
        ]
        if statuses:
            filters.append({"statuses": [{status: None} for status in statuses]})
        return await self._query(market_canister_id, "icrc8_market_info", [[filters], [], []])

    async def owner_listings(
        self,
        market_canister_id: str,
        principals: Sequence[str],
        status: Optional[str] = None,
    ) -> List[List[Dict[str, Any]]]:
        """查詢多個 principal 參與的掛單，並依輸入順序分組回傳。"""

        filters: List[Dict[str, Any]] = [{"participant_principals": list(principals)}]
        if status:
            filters.append({"statuses": [{status: None}]})
        records = await self._query(market_canister_id, "icrc8_market_info", [[filters], [], []])
        grouped: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for record in records or []:
            owner = (record.get("owner") or {}).get("owner") if isinstance(record, dict) else None
            if owner:
                grouped[str(owner)].append(record)
        return [grouped.get(principal, []) for principal in principals]
