"""Inventory model: assets, their connection configs and credentials."""

from infra_scan.inventory.models import (
    Asset,
    AssetCategory,
    AssetState,
    ConnectionConfig,
    Discovery,
    Inventory,
    InventoryError,
    InventoryMetadata,
    InventorySpec,
    Platform,
)

__all__ = [
    "Asset",
    "AssetCategory",
    "AssetState",
    "ConnectionConfig",
    "Discovery",
    "Inventory",
    "InventoryError",
    "InventoryMetadata",
    "InventorySpec",
    "Platform",
]
