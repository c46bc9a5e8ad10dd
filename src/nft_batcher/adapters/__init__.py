"""Adapters package exports."""

from .gateway import CollectionGatewayClient, GatewayServerError
from .mock_collection import MockCollectionClient

__all__ = ["CollectionGatewayClient", "GatewayServerError", "MockCollectionClient"]
