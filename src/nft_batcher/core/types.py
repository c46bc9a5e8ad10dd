from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Account(BaseModel):
    """ICRC Account：principal 與可選的 32 bytes subaccount。"""

    owner: str
    subaccount: Optional[bytes] = None


class TokenMetadata(BaseModel):
    """單一 NFT 的 ICRC-7 metadata。"""

    token_id: int
    entries: Dict[str, Any] = Field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.entries.get(key, default)


class MarketListing(BaseModel):
    """ICRC-8 市場上涵蓋一或多個 token 的掛單。"""

    intent_id: Optional[int] = None
    status: Optional[str] = None
    token_ids: List[int] = Field(default_factory=list)
    raw: Dict[str, Any] = Field(default_factory=dict)

    def covers(self, token_id: int) -> bool:
        return token_id in self.token_ids
