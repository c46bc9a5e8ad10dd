"""Debounced batch-request coalescing for NFT canister lookups."""

__version__ = "0.1.0"
