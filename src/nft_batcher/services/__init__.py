"""Batched lookup services exports."""

from .market_listing import MarketListingService
from .owner_listing import OwnerListingService
from .token_metadata import TokenMetadataService
from .token_owner import TokenOwnerService

__all__ = [
    "MarketListingService",
    "OwnerListingService",
    "TokenMetadataService",
    "TokenOwnerService",
]
