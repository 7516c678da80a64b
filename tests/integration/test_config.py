from __future__ import annotations

from pathlib import Path

import pytest

from ramm.core.fees import FeeParams
from ramm.core.fixed_point import ONE
from ramm.integration.config import ConfigError, deploy_pool, load_config, parse_config
from ramm.state.pool import PoolStatus
from tests.pool_fixtures import FixedClock


REPO_ROOT = Path(__file__).resolve().parents[2]


def _asset(asset_type: str, decimals: int = 8, minimum: int = 0) -> dict:
    return {
        "asset_type": asset_type,
        "aggregator_address": f"feed-{asset_type}",
        "minimum_trade_amount": minimum,
        "decimal_places": decimals,
    }


def _config(**overrides) -> dict:
    cfg = {
        "asset_count": 2,
        "fee_collection_address": "treasury",
        "assets": [_asset("ETH"), _asset("USDC", decimals=6, minimum=10**6)],
    }
    cfg.update(overrides)
    return cfg


def test_parse_valid() -> None:
    cfg = parse_config(_config())
    assert cfg.asset_count == 2
    assert cfg.fee_collection_address == "treasury"
    assert [a.asset_type for a in cfg.assets] == ["ETH", "USDC"]
    assert cfg.assets[1].minimum_trade_amount == 10**6
    assert cfg.fee_params == FeeParams()
    assert cfg.max_staleness_seconds == 60


def test_fee_overrides_in_bps() -> None:
    cfg = parse_config(_config(fees={"base_fee_bps": 30, "base_leverage": 50, "volatility_tau_seconds": 600}))
    assert cfg.fee_params.base_fee == 3 * ONE // 1000
    assert cfg.fee_params.base_leverage == 50 * ONE
    assert cfg.fee_params.volatility_tau == 600
    assert cfg.fee_params.protocol_fee == FeeParams().protocol_fee


@pytest.mark.parametrize(
    "overrides,match",
    [
        ({"asset_count": 3}, "asset_count"),
        ({"asset_count": 1, "assets": [_asset("ETH")]}, "asset_count"),
        ({"assets": [_asset("ETH"), _asset("ETH")]}, "duplicate"),
        ({"assets": [_asset("ETH", decimals=3), _asset("USDC")]}, "decimal_places"),
        ({"assets": [_asset("ETH", decimals=13), _asset("USDC")]}, "decimal_places"),
        ({"assets": [_asset("ETH", minimum=-1), _asset("USDC")]}, "minimum_trade_amount"),
        ({"fee_collection_address": ""}, "fee_collection_address"),
        ({"fees": {"gas_bps": 1}}, "unknown fee"),
        ({"fees": {"delta_bps": 10_000}}, "invalid fees"),
        ({"max_staleness_seconds": 0}, "max_staleness_seconds"),
        ({"assets": "ETH,USDC"}, "assets"),
    ],
)
def test_parse_rejects(overrides: dict, match: str) -> None:
    with pytest.raises(ConfigError, match=match):
        parse_config(_config(**overrides))


def test_rejects_non_mapping() -> None:
    with pytest.raises(ConfigError):
        parse_config([1, 2])


def test_load_config(tmp_path: Path) -> None:
    path = tmp_path / "pool.yaml"
    path.write_text(
        "asset_count: 2\n"
        "fee_collection_address: treasury\n"
        "assets:\n"
        "  - {asset_type: ETH, aggregator_address: feed-ETH, minimum_trade_amount: 0, decimal_places: 8}\n"
        "  - {asset_type: USDC, aggregator_address: feed-USDC, minimum_trade_amount: 0, decimal_places: 6}\n",
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert [a.decimal_places for a in cfg.assets] == [8, 6]


def test_load_config_bad_yaml(tmp_path: Path) -> None:
    path = tmp_path / "broken.yaml"
    path.write_text("assets: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid YAML"):
        load_config(path)


def test_shipped_example_parses() -> None:
    cfg = load_config(REPO_ROOT / "deployment_cfgs" / "example.yaml")
    assert cfg.asset_count == 3
    assert [a.asset_type for a in cfg.assets] == ["ETH", "USDC", "USDT"]


def test_deploy_pool() -> None:
    engine, admin = deploy_pool(parse_config(_config()), clock=FixedClock())
    pool = engine.pool
    assert pool.status is PoolStatus.INITIALIZED
    assert pool.fee_collector == "treasury"
    assert pool.admin_credential_id == admin.id
    assert [s.asset_id for s in pool.assets] == ["ETH", "USDC"]
    assert pool.slot("USDC").min_trade_amount == 10**6
    assert all(s.deposits_enabled for s in pool.assets)
