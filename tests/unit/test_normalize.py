from __future__ import annotations

import pytest

from nft_batcher.core.errors import NormalizationError
from nft_batcher.core.types import Account
from nft_batcher.services.normalize import (
    extract_listing_token_ids,
    parse_listing,
    parse_metadata,
    parse_owner,
    unwrap_opt,
)


def _listing(intent_id: int, token_ids: list) -> dict:
    return {
        "intent_id": intent_id,
        "status": {"open": None},
        "original_config": [
            [{"namespace": "market"}],
            [],
            [
                {
                    "intent_tokens": [
                        {"kind": {"settlement": [[{"inventory": [{"tokenIds": [999]}]}]]}},
                        {"kind": {"intent": [[{"inventory": [{"tokenIds": token_ids}]}], []]}},
                    ]
                }
            ],
        ],
    }


def test_unwrap_opt() -> None:
    assert unwrap_opt(None) is None
    assert unwrap_opt([]) is None
    assert unwrap_opt(["x"]) == "x"
    assert unwrap_opt("x") == "x"
    with pytest.raises(NormalizationError):
        unwrap_opt(["x", "y"])


def test_parse_owner_from_opt_account() -> None:
    account = parse_owner([{"owner": "aaaaa-aa", "subaccount": [[0, 1, 255]]}])
    assert account == Account(owner="aaaaa-aa", subaccount=bytes([0, 1, 255]))


def test_parse_owner_accepts_hex_and_empty_subaccount() -> None:
    assert parse_owner({"owner": "aaaaa-aa", "subaccount": "00ff"}).subaccount == b"\x00\xff"
    assert parse_owner([{"owner": "aaaaa-aa", "subaccount": []}]).subaccount is None


def test_parse_owner_missing_returns_none() -> None:
    assert parse_owner([]) is None
    assert parse_owner(None) is None
    assert parse_owner([{"subaccount": []}]) is None


def test_parse_metadata_unwraps_opt_pairs() -> None:
    metadata = parse_metadata(5, [[["icrc7:name", {"Text": "Five"}], ["icrc7:symbol", {"Text": "F"}]]])
    assert metadata.token_id == 5
    assert metadata.get("icrc7:name") == {"Text": "Five"}
    assert metadata.get("icrc7:symbol") == {"Text": "F"}
    assert list(metadata.entries) == ["icrc7:name", "icrc7:symbol"]


def test_parse_metadata_single_pair_and_empty_opt() -> None:
    metadata = parse_metadata(5, [[["icrc7:name", {"Text": "Five"}]]])
    assert metadata.entries == {"icrc7:name": {"Text": "Five"}}
    assert parse_metadata(5, []) is None
    assert parse_metadata(5, None) is None
    assert parse_metadata(5, [[]]) is None


def test_parse_metadata_rejects_malformed_pairs() -> None:
    with pytest.raises(NormalizationError):
        parse_metadata(5, [[["only-key"]]])
    with pytest.raises(NormalizationError):
        parse_metadata(5, [["icrc7:name", {"Text": "Five"}], ["icrc7:symbol", {"Text": "F"}]])


def test_malformed_token_id_raises_normalization_error() -> None:
    with pytest.raises(NormalizationError):
        list(extract_listing_token_ids(_listing(1, [3, "abc"])))
    with pytest.raises(NormalizationError):
        parse_listing({"intent_id": "x", "status": {"open": None}, "original_config": []})


def test_extract_listing_token_ids_only_reads_intent_inventory() -> None:
    assert list(extract_listing_token_ids(_listing(1, [3, "7"]))) == [3, 7]
    assert list(extract_listing_token_ids("not-a-record")) == []


def test_parse_listing() -> None:
    listing = parse_listing(_listing(42, [9]))
    assert listing.intent_id == 42
    assert listing.status == "open"
    assert listing.token_ids == [9]
    assert listing.covers(9)
