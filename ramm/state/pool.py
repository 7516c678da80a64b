"""
Pool state for a RAMM pool.

Balances, fees and minimum trade amounts are held in the asset's own units;
working-precision views are derived from them with the asset's ``factor``.
Claim tokens are held in LP units.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..core.errors import UnknownAssetError
from ..core.fees import FeeParams
from ..core.fixed_point import FACTOR_LPT, PREC, scale_factor
from ..core.oracle import DEFAULT_MAX_STALENESS_SECONDS


MAX_ASSETS = 255
MIN_DECIMALS = 4


class PoolStatus(Enum):
    """Lifecycle phase, derived from the pool's contents."""
    EMPTY = "EMPTY"
    OPEN = "OPEN"
    INITIALIZED = "INITIALIZED"


def _new_credential_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class AdminCredential:
    id: str = field(default_factory=_new_credential_id)


@dataclass(frozen=True)
class NewAssetCredential:
    id: str = field(default_factory=_new_credential_id)


@dataclass
class AssetSlot:
    """
    One asset held by the pool.

    Attributes:
        asset_id: Asset type tag
        oracle_address: Address of the price feed registered for the asset
        decimals: Decimal places of the asset (``MIN_DECIMALS..PREC``)
        balance: Amount held by the pool, in asset units
        claim_tokens_issued: Outstanding claim tokens, in LP units
        min_trade_amount: Smallest accepted trade, in asset units
        deposits_enabled: Whether deposits of this asset are accepted
        collected_fees: Protocol fees awaiting collection, in asset units
        previous_price: Last accepted oracle price (scaled), 0 before the first reading
        previous_price_timestamp: Timestamp of ``previous_price``
        volatility_index: Largest recent relative price move (scaled)
        volatility_timestamp: When ``volatility_index`` was recorded
    """
    asset_id: str
    oracle_address: str
    decimals: int
    balance: int = 0
    claim_tokens_issued: int = 0
    min_trade_amount: int = 0
    deposits_enabled: bool = False
    collected_fees: int = 0
    previous_price: int = 0
    previous_price_timestamp: int = 0
    volatility_index: int = 0
    volatility_timestamp: int = 0

    def __post_init__(self):
        if not isinstance(self.asset_id, str) or not self.asset_id:
            raise ValueError("asset_id must be a non-empty string")
        if not isinstance(self.oracle_address, str) or not self.oracle_address:
            raise ValueError("oracle_address must be a non-empty string")
        if not isinstance(self.decimals, int) or isinstance(self.decimals, bool):
            raise TypeError("decimals must be an int")
        if not (MIN_DECIMALS <= self.decimals <= PREC):
            raise ValueError(f"decimals must be in [{MIN_DECIMALS}, {PREC}]: {self.decimals}")
        for name in ("balance", "claim_tokens_issued", "min_trade_amount", "collected_fees"):
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")

    @property
    def factor(self) -> int:
        return scale_factor(self.decimals)

    @property
    def scalar_balance(self) -> int:
        return self.balance * self.factor

    @property
    def scalar_claims(self) -> int:
        return self.claim_tokens_issued * FACTOR_LPT


@dataclass
class Pool:
    """
    A multi-asset RAMM pool.

    ``new_asset_credential_id`` is set until the pool is initialized; once it is
    dropped no further assets can be registered.
    """
    admin_credential_id: str
    new_asset_credential_id: Optional[str]
    fee_collector: str
    fee_params: FeeParams = field(default_factory=FeeParams)
    max_staleness_seconds: int = DEFAULT_MAX_STALENESS_SECONDS
    asset_count: int = 0
    assets: List[AssetSlot] = field(default_factory=list)
    asset_indices: Dict[str, int] = field(default_factory=dict)

    @property
    def status(self) -> PoolStatus:
        if self.new_asset_credential_id is None:
            return PoolStatus.INITIALIZED
        if not self.assets:
            return PoolStatus.EMPTY
        return PoolStatus.OPEN

    @property
    def initialized(self) -> bool:
        return self.status is PoolStatus.INITIALIZED

    def index_of(self, asset_id: str) -> int:
        try:
            return self.asset_indices[asset_id]
        except KeyError:
            raise UnknownAssetError(f"asset {asset_id!r} is not registered in the pool") from None

    def slot(self, asset_id: str) -> AssetSlot:
        return self.assets[self.index_of(asset_id)]

    # Working-precision views, ordered by asset index.

    def scalar_balances(self) -> List[int]:
        return [a.scalar_balance for a in self.assets]

    def claim_supplies(self) -> List[int]:
        return [a.claim_tokens_issued for a in self.assets]


def create_pool(
    fee_collector: str,
    fee_params: Optional[FeeParams] = None,
    max_staleness_seconds: int = DEFAULT_MAX_STALENESS_SECONDS,
) -> Tuple[Pool, AdminCredential, NewAssetCredential]:
    """Create an empty pool and the two credentials that control it."""
    if not isinstance(fee_collector, str) or not fee_collector:
        raise ValueError("fee_collector must be a non-empty string")
    if not isinstance(max_staleness_seconds, int) or max_staleness_seconds <= 0:
        raise ValueError(f"max_staleness_seconds must be a positive int: {max_staleness_seconds}")
    admin = AdminCredential()
    new_asset = NewAssetCredential()
    pool = Pool(
        admin_credential_id=admin.id,
        new_asset_credential_id=new_asset.id,
        fee_collector=fee_collector,
        fee_params=fee_params if fee_params is not None else FeeParams(),
        max_staleness_seconds=max_staleness_seconds,
    )
    return pool, admin, new_asset
