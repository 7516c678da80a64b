"""
Deployment configuration for a RAMM pool.

Fail-closed YAML loader:
- checks required fields and their types
- checks ``asset_count`` against the listed assets
- checks per-asset decimals and uniqueness

Example::

    asset_count: 2
    fee_collection_address: "0xfee"
    max_staleness_seconds: 60        # optional
    fees:                            # optional, overrides the defaults
      base_fee_bps: 10
    assets:
      - asset_type: "ETH"
        aggregator_address: "0xeth-feed"
        minimum_trade_amount: 1000
        decimal_places: 8
      - ...
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Tuple

import yaml

from ..core.fees import FeeParams
from ..core.fixed_point import ONE, PREC
from ..core.oracle import DEFAULT_MAX_STALENESS_SECONDS
from ..state.pool import MIN_DECIMALS, AdminCredential, create_pool
from .engine import Clock, PoolEngine


MIN_POOL_ASSETS = 2
BPS = 10_000

# YAML key -> (FeeParams field, converter)
_FEE_KEYS: dict[str, tuple[str, Callable[[int], int]]] = {
    "base_fee_bps": ("base_fee", lambda v: ONE * v // BPS),
    "protocol_fee_bps": ("protocol_fee", lambda v: ONE * v // BPS),
    "withdrawal_fee_bps": ("withdrawal_fee", lambda v: ONE * v // BPS),
    "max_volatility_fee_bps": ("max_volatility_fee", lambda v: ONE * v // BPS),
    "delta_bps": ("delta", lambda v: ONE * v // BPS),
    "base_leverage": ("base_leverage", lambda v: ONE * v),
    "volatility_tau_seconds": ("volatility_tau", lambda v: v),
}


class ConfigError(ValueError):
    """Deployment configuration is malformed."""


@dataclass(frozen=True)
class AssetConfig:
    asset_type: str
    aggregator_address: str
    minimum_trade_amount: int
    decimal_places: int


@dataclass(frozen=True)
class DeploymentConfig:
    asset_count: int
    fee_collection_address: str
    assets: Tuple[AssetConfig, ...]
    fee_params: FeeParams = FeeParams()
    max_staleness_seconds: int = DEFAULT_MAX_STALENESS_SECONDS


def _require_mapping(obj: Any, *, name: str) -> dict[str, Any]:
    if not isinstance(obj, dict):
        raise ConfigError(f"{name} must be a mapping")
    return obj


def _require_str(obj: Any, *, name: str) -> str:
    if not isinstance(obj, str) or not obj.strip():
        raise ConfigError(f"{name} must be a non-empty string")
    return obj.strip()


def _require_int(obj: Any, *, name: str, minimum: int = 0) -> int:
    if not isinstance(obj, int) or isinstance(obj, bool):
        raise ConfigError(f"{name} must be an integer")
    if obj < minimum:
        raise ConfigError(f"{name} must be >= {minimum}: {obj}")
    return obj


def _parse_asset(obj: Any, idx: int) -> AssetConfig:
    entry = _require_mapping(obj, name=f"assets[{idx}]")
    decimals = _require_int(entry.get("decimal_places"), name=f"assets[{idx}].decimal_places", minimum=MIN_DECIMALS)
    if decimals > PREC:
        raise ConfigError(f"assets[{idx}].decimal_places must be <= {PREC}: {decimals}")
    return AssetConfig(
        asset_type=_require_str(entry.get("asset_type"), name=f"assets[{idx}].asset_type"),
        aggregator_address=_require_str(entry.get("aggregator_address"), name=f"assets[{idx}].aggregator_address"),
        minimum_trade_amount=_require_int(entry.get("minimum_trade_amount"), name=f"assets[{idx}].minimum_trade_amount"),
        decimal_places=decimals,
    )


def _parse_fees(obj: Any) -> FeeParams:
    if obj is None:
        return FeeParams()
    fees = _require_mapping(obj, name="fees")
    overrides = {}
    for key, value in fees.items():
        if key not in _FEE_KEYS:
            raise ConfigError(f"unknown fee setting: {key}")
        field_name, convert = _FEE_KEYS[key]
        overrides[field_name] = convert(_require_int(value, name=f"fees.{key}"))
    try:
        return FeeParams(**overrides)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid fees: {exc}") from exc


def parse_config(obj: Any) -> DeploymentConfig:
    """Validate an already-decoded config mapping."""
    root = _require_mapping(obj, name="config")

    asset_count = _require_int(root.get("asset_count"), name="asset_count", minimum=MIN_POOL_ASSETS)
    assets_raw = root.get("assets")
    if not isinstance(assets_raw, list):
        raise ConfigError("assets must be a list")
    if len(assets_raw) != asset_count:
        raise ConfigError(f"asset_count is {asset_count} but {len(assets_raw)} assets are listed")

    assets = tuple(_parse_asset(a, idx) for idx, a in enumerate(assets_raw))
    seen: set[str] = set()
    for a in assets:
        if a.asset_type in seen:
            raise ConfigError(f"duplicate asset_type: {a.asset_type}")
        seen.add(a.asset_type)

    staleness = root.get("max_staleness_seconds", DEFAULT_MAX_STALENESS_SECONDS)
    return DeploymentConfig(
        asset_count=asset_count,
        fee_collection_address=_require_str(root.get("fee_collection_address"), name="fee_collection_address"),
        assets=assets,
        fee_params=_parse_fees(root.get("fees")),
        max_staleness_seconds=_require_int(staleness, name="max_staleness_seconds", minimum=1),
    )


def load_config(path: Path | str) -> DeploymentConfig:
    raw = Path(path).read_text(encoding="utf-8")
    try:
        obj = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path}: invalid YAML: {exc}") from exc
    return parse_config(obj)


def deploy_pool(config: DeploymentConfig, clock: Optional[Clock] = None) -> Tuple[PoolEngine, AdminCredential]:
    """Create a pool, register every configured asset and initialize it.

    The new-asset credential is consumed by initialization; only the admin
    credential is returned.
    """
    pool, admin, new_asset = create_pool(
        config.fee_collection_address,
        fee_params=config.fee_params,
        max_staleness_seconds=config.max_staleness_seconds,
    )
    engine = PoolEngine(pool, clock=clock)
    for asset in config.assets:
        engine.add_asset(
            admin,
            new_asset,
            asset_id=asset.asset_type,
            oracle_address=asset.aggregator_address,
            decimals=asset.decimal_places,
            min_trade_amount=asset.minimum_trade_amount,
        )
    engine.initialize(admin, new_asset)
    return engine, admin
