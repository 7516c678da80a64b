"""
State management for RAMM pools
"""

from .pool import AdminCredential, AssetSlot, NewAssetCredential, Pool, PoolStatus, create_pool
from .checks import check_all

__all__ = [
    "AdminCredential",
    "AssetSlot",
    "NewAssetCredential",
    "Pool",
    "PoolStatus",
    "create_pool",
    "check_all",
]
