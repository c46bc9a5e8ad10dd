from __future__ import annotations

from typing import Any, Iterator, List, Optional, Sequence

from ..core.errors import NormalizationError
from ..core.types import Account, MarketListing, TokenMetadata
from ..core.utils import to_token_id


def unwrap_opt(value: Any) -> Any:
    """Candid ``opt`` 以 ``[]`` / ``[x]`` 表示；``None`` 亦視為空值。"""

    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        if len(value) == 1:
            return value[0]
        raise NormalizationError(f"opt 值長度不正確：{len(value)}")
    return value


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _to_bytes(value: Any) -> Optional[bytes]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return bytes.fromhex(value)
        except ValueError as error:
            raise NormalizationError(f"subaccount 格式無法解析：{value}") from error
    if isinstance(value, (list, tuple)):
        try:
            return bytes(int(item) for item in value)
        except (TypeError, ValueError) as error:
            raise NormalizationError("subaccount 內容必須為 0-255 的整數") from error
    raise NormalizationError(f"subaccount 型別不支援：{type(value).__name__}")


def parse_owner(raw: Any) -> Optional[Account]:
    """``icrc7_owner_of`` 單筆結果（opt Account）轉為 Account。"""

    record = unwrap_opt(raw)
    if not isinstance(record, dict) or not record.get("owner"):
        return None
    owner = record["owner"]
    subaccount = record.get("subaccount")
    if isinstance(subaccount, (list, tuple)) and subaccount and isinstance(subaccount[0], (list, tuple, bytes, str)):
        subaccount = subaccount[0]
    elif isinstance(subaccount, (list, tuple)) and not subaccount:
        subaccount = None
    return Account(owner=str(owner), subaccount=_to_bytes(subaccount))


def _token_id(value: Any) -> int:
    try:
        return to_token_id(value)
    except ValueError as error:
        raise NormalizationError(f"token id 格式不正確：{value!r}") from error


def parse_metadata(token_id: int, raw: Any) -> Optional[TokenMetadata]:
    """``icrc7_token_metadata`` 單筆結果（opt key/value 配對清單）轉為 TokenMetadata。"""

    pairs = unwrap_opt(raw)
    if not pairs:
        return None
    if isinstance(pairs, dict):
        return TokenMetadata(token_id=token_id, entries=dict(pairs))
    if not isinstance(pairs, (list, tuple)):
        raise NormalizationError(f"metadata 格式不正確：{pairs!r}")
    entries = {}
    for pair in pairs:
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise NormalizationError(f"metadata 欄位格式不正確：{pair!r}")
        key, value = pair
        entries[str(key)] = value
    return TokenMetadata(token_id=token_id, entries=entries)


def extract_listing_token_ids(record: Any) -> Iterator[int]:
    """走訪 IntentStatus.original_config 取出掛單涵蓋的所有 token id。"""

    if not isinstance(record, dict):
        return
    for opt_feature in record.get("original_config") or []:
        feature = _first(opt_feature)
        if not isinstance(feature, dict):
            continue
        for escrow in feature.get("intent_tokens") or []:
            kind = escrow.get("kind") if isinstance(escrow, dict) else None
            if not isinstance(kind, dict):
                continue
            for opt_token_spec in kind.get("intent") or []:
                token_spec = _first(opt_token_spec)
                if not isinstance(token_spec, dict):
                    continue
                inventory = _first(token_spec.get("inventory"))
                if not isinstance(inventory, dict):
                    continue
                for token_id in inventory.get("tokenIds") or []:
                    yield _token_id(token_id)


def _status_name(status: Any) -> Optional[str]:
    if isinstance(status, dict) and status:
        return next(iter(status))
    if isinstance(status, str):
        return status
    return None


def parse_listing(record: Any) -> MarketListing:
    if not isinstance(record, dict):
        raise NormalizationError(f"掛單紀錄格式不正確：{record!r}")
    intent_id = record.get("intent_id")
    return MarketListing(
        intent_id=_token_id(intent_id) if intent_id is not None else None,
        status=_status_name(record.get("status")),
        token_ids=list(extract_listing_token_ids(record)),
        raw=record,
    )


def parse_listings(records: Optional[Sequence[Any]]) -> List[MarketListing]:
    return [parse_listing(record) for record in records or []]
