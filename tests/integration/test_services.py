from __future__ import annotations

import asyncio
import logging

import pytest

from nft_batcher.adapters import MockCollectionClient
from nft_batcher.batching import BatchCoalescer
from nft_batcher.core.errors import AdapterError, NormalizationError
from nft_batcher.core.types import Account
from nft_batcher.services import (
    MarketListingService,
    OwnerListingService,
    TokenMetadataService,
    TokenOwnerService,
)


def run_async(coro):
    return asyncio.run(coro)


def test_owner_lookups_share_batches_per_canister() -> None:
    client = MockCollectionClient(total_supply=40)

    async def scenario() -> dict:
        async with BatchCoalescer() as coalescer:
            service = TokenOwnerService(client, coalescer)
            return await service.get_many("collection", range(1, 31))

    owners = run_async(scenario())

    assert [method for method, _ in client.calls] == ["owner_of", "owner_of"]
    assert client.calls[0][1] == list(range(1, 26))
    assert owners[1] == Account(owner="2vxsx-fae")
    assert owners[2] == Account(owner="aaaaa-aa")


def test_missing_tokens_resolve_to_none() -> None:
    client = MockCollectionClient(total_supply=2)

    async def scenario() -> tuple:
        async with BatchCoalescer() as coalescer:
            owners = TokenOwnerService(client, coalescer)
            metadata = TokenMetadataService(client, coalescer)
            return await asyncio.gather(
                owners.get("collection", 3),
                metadata.get("collection", 3),
                metadata.get("collection", 1),
            )

    owner, missing_metadata, metadata = run_async(scenario())

    assert owner is None
    assert missing_metadata is None
    assert metadata.get("icrc7:name") == {"Text": "Mock #1"}
    assert sorted(method for method, _ in client.calls) == ["owner_of", "token_metadata"]


def test_market_listing_resolves_by_covered_tokens() -> None:
    client = MockCollectionClient(listings={1: [3, 7], 2: [9]})

    async def scenario() -> dict:
        async with BatchCoalescer() as coalescer:
            service = MarketListingService(client, coalescer)
            return await service.get_many("market", "collection", [3, 7, 9, 5])

    listings = run_async(scenario())

    assert listings[3].intent_id == 1
    assert listings[7].intent_id == 1
    assert listings[9].intent_id == 2
    assert listings[5] is None
    assert client.calls == [("market_listings", [3, 7, 9, 5])]


def test_owner_listings_are_batched_by_status() -> None:
    client = MockCollectionClient(listings={1: [3], 2: [9], 3: [11]})

    async def scenario() -> tuple:
        async with BatchCoalescer() as coalescer:
            service = OwnerListingService(client, coalescer)
            return await asyncio.gather(
                service.get("market", "2vxsx-fae", status="open"),
                service.get("market", "aaaaa-aa", status="open"),
                service.get("market", "aaaaa-aa", status="settled"),
            )

    first, second, settled = run_async(scenario())

    assert [listing.intent_id for listing in first] == [1, 3]
    assert [listing.intent_id for listing in second] == [2]
    assert settled == []
    assert len(client.calls) == 2


def test_adapter_failure_reaches_every_caller() -> None:
    client = MockCollectionClient(fail_methods=["owner_of"])

    async def scenario() -> list:
        async with BatchCoalescer() as coalescer:
            service = TokenOwnerService(client, coalescer)
            return await asyncio.gather(
                *(service.get("collection", token_id) for token_id in (1, 2, 3)),
                return_exceptions=True,
            )

    results = run_async(scenario())

    assert all(isinstance(result, AdapterError) for result in results)
    assert len(client.calls) == 1


def test_services_do_not_share_groups_across_lookup_kinds() -> None:
    client = MockCollectionClient()

    async def scenario() -> None:
        async with BatchCoalescer() as coalescer:
            TokenOwnerService(client, coalescer).batcher("collection")
            TokenMetadataService(client, coalescer).batcher("collection")
            assert coalescer.is_configured(("token_owner", "collection"))
            assert coalescer.is_configured(("token_metadata", "collection"))

    run_async(scenario())


@pytest.mark.parametrize("token_ids", [[1], [1, 1, 2]])
def test_get_many_deduplicates_token_ids(token_ids: list) -> None:
    client = MockCollectionClient()

    async def scenario() -> dict:
        async with BatchCoalescer() as coalescer:
            return await TokenMetadataService(client, coalescer).get_many("collection", token_ids)

    results = run_async(scenario())

    assert list(results) == list(dict.fromkeys(token_ids))
    assert client.calls == [("token_metadata", list(dict.fromkeys(token_ids)))]


def test_services_with_different_clients_report_fetcher_mismatch(caplog: pytest.LogCaptureFixture) -> None:
    first_client = MockCollectionClient()
    second_client = MockCollectionClient()

    async def scenario() -> None:
        async with BatchCoalescer() as coalescer:
            await TokenOwnerService(first_client, coalescer).get("collection", 1)
            await TokenOwnerService(second_client, coalescer).get("collection", 2)

    with caplog.at_level(logging.WARNING):
        run_async(scenario())

    assert first_client.calls == [("owner_of", [1]), ("owner_of", [2])]
    assert second_client.calls == []
    assert "batch_fetcher_mismatch" in caplog.text


def test_services_sharing_a_client_share_the_binding(caplog: pytest.LogCaptureFixture) -> None:
    client = MockCollectionClient()

    async def scenario() -> tuple:
        async with BatchCoalescer() as coalescer:
            return await asyncio.gather(
                TokenOwnerService(client, coalescer).get("collection", 1),
                TokenOwnerService(client, coalescer).get("collection", 2),
            )

    with caplog.at_level(logging.WARNING):
        first, second = run_async(scenario())

    assert client.calls == [("owner_of", [1, 2])]
    assert first.owner == "2vxsx-fae"
    assert second.owner == "aaaaa-aa"
    assert "batch_fetcher_mismatch" not in caplog.text


def test_release_drops_group_binding() -> None:
    client = MockCollectionClient()

    async def scenario() -> None:
        async with BatchCoalescer() as coalescer:
            service = TokenMetadataService(client, coalescer)
            await service.get("collection", 1)
            assert service.release("collection")
            assert not coalescer.is_configured(("token_metadata", "collection"))

    run_async(scenario())


def test_override_bypasses_batching() -> None:
    client = MockCollectionClient()
    seen: list = []

    async def override(canister_id: str, token_id: int) -> Account:
        seen.append((canister_id, token_id))
        return Account(owner="custom-owner")

    async def scenario() -> Account:
        async with BatchCoalescer() as coalescer:
            return await TokenOwnerService(client, coalescer).get("collection", 1, override=override)

    assert run_async(scenario()) == Account(owner="custom-owner")
    assert seen == [("collection", 1)]
    assert client.calls == []


def test_metadata_is_parsed_from_opt_wrapped_pairs() -> None:
    client = MockCollectionClient()

    async def scenario():
        async with BatchCoalescer() as coalescer:
            return await TokenMetadataService(client, coalescer).get("collection", 4)

    metadata = run_async(scenario())

    assert metadata.entries == {
        "icrc7:name": {"Text": "Mock #4"},
        "icrc7:collection": {"Text": "collection"},
    }


def test_malformed_listing_token_id_fails_with_normalization_error() -> None:
    client = MockCollectionClient(listings={1: [3, "abc"]})

    async def scenario() -> None:
        async with BatchCoalescer() as coalescer:
            await MarketListingService(client, coalescer).get("market", "collection", 3)

    with pytest.raises(NormalizationError):
        run_async(scenario())
