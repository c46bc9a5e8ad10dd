from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

import typer

from ..adapters import CollectionGatewayClient, MockCollectionClient
from ..batching import BatchCoalescer
from ..config.settings import AppSettings, get_settings
from ..config.validators import validate_gateway
from ..core.errors import BatcherError
from ..core.logging import configure_logging
from ..services import MarketListingService, TokenMetadataService, TokenOwnerService

app = typer.Typer(help="NFT batched lookup CLI")

MOCK_OPTION = typer.Option(True, "--mock/--live", help="是否使用模擬 canister 回應資料")


def _build_client(settings: AppSettings, use_mock: bool) -> Any:
    if use_mock:
        return MockCollectionClient()
    return CollectionGatewayClient(
        base_url=validate_gateway(settings),
        api_key=settings.gateway_api_key,
        timeout=settings.gateway_timeout_seconds,
    )


def _run(use_mock: bool, lookup: Callable[[Any, BatchCoalescer], Awaitable[Dict[int, Any]]]) -> Dict[int, Any]:
    settings = get_settings()
    configure_logging(settings.log_level)

    async def scenario() -> Dict[int, Any]:
        client = _build_client(settings, use_mock)
        try:
            async with BatchCoalescer.from_settings(settings) as coalescer:
                return await lookup(client, coalescer)
        finally:
            if isinstance(client, CollectionGatewayClient):
                await client.aclose()

    try:
        return asyncio.run(scenario())
    except BatcherError as error:
        typer.echo(f"[ERROR] {error}", err=True)
        raise typer.Exit(code=1)


@app.command("metadata")
def command_metadata(
    canister_id: str = typer.Argument(..., help="NFT canister id"),
    token_ids: List[int] = typer.Argument(..., help="token id 清單"),
    use_mock: bool = MOCK_OPTION,
) -> None:
    """批次查詢 token metadata。"""

    results = _run(use_mock, lambda client, coalescer: TokenMetadataService(client, coalescer).get_many(canister_id, token_ids))
    for token_id, metadata in results.items():
        typer.echo(f"{token_id}: {metadata.entries if metadata else 'not found'}")


@app.command("owners")
def command_owners(
    canister_id: str = typer.Argument(..., help="NFT canister id"),
    token_ids: List[int] = typer.Argument(..., help="token id 清單"),
    use_mock: bool = MOCK_OPTION,
) -> None:
    """批次查詢 token 擁有者。"""

    results = _run(use_mock, lambda client, coalescer: TokenOwnerService(client, coalescer).get_many(canister_id, token_ids))
    for token_id, account in results.items():
        typer.echo(f"{token_id}: {_format_account(account)}")


@app.command("listings")
def command_listings(
    market_canister_id: str = typer.Argument(..., help="ICRC-8 market canister id"),
    token_canister_id: str = typer.Argument(..., help="NFT canister id"),
    token_ids: List[int] = typer.Argument(..., help="token id 清單"),
    use_mock: bool = MOCK_OPTION,
) -> None:
    """批次查詢 token 的市場掛單。"""

    results = _run(
        use_mock,
        lambda client, coalescer: MarketListingService(client, coalescer).get_many(
            market_canister_id, token_canister_id, token_ids
        ),
    )
    for token_id, listing in results.items():
        if listing is None:
            typer.echo(f"{token_id}: not listed")
        else:
            typer.echo(f"{token_id}: intent={listing.intent_id} status={listing.status} tokens={listing.token_ids}")


def _format_account(account: Optional[Any]) -> str:
    if account is None:
        return "not found"
    if account.subaccount:
        return f"{account.owner} ({account.subaccount.hex()})"
    return account.owner
