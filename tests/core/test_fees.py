"""Tests for fee parameters and fee amounts."""

from __future__ import annotations

import pytest

from ramm.core.fees import (
    BASE_FEE,
    BASE_LEVERAGE,
    FeeParams,
    protocol_fee_amount,
    withdrawal_fee_amount,
)
from ramm.core.fixed_point import ONE


def test_defaults() -> None:
    p = FeeParams()
    assert p.base_fee == ONE // 1000
    assert p.protocol_fee == 3 * ONE // 10
    assert p.base_leverage == 100 * ONE
    assert p.delta == ONE // 4
    assert p.withdrawal_fee == 4 * ONE // 1000
    assert p.max_volatility_fee == ONE // 100
    assert p.volatility_tau == 300


def test_rejects_bool() -> None:
    with pytest.raises(TypeError):
        FeeParams(base_fee=True)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"base_fee": -1},
        {"base_fee": ONE + 1},
        {"delta": 0},
        {"delta": ONE},
        {"base_leverage": ONE - 1},
        {"volatility_tau": 0},
    ],
)
def test_rejects_out_of_range(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        FeeParams(**kwargs)


def test_protocol_fee_is_share_of_trading_fee_plus_volatility() -> None:
    p = FeeParams()
    assert protocol_fee_amount(1000 * ONE, BASE_FEE, 0, p) == 3 * ONE // 10
    assert protocol_fee_amount(1000 * ONE, BASE_FEE, ONE // 100, p) == 3 * ONE // 10 + 10 * ONE


def test_withdrawal_fee() -> None:
    assert withdrawal_fee_amount(250 * ONE, FeeParams()) == ONE


def test_negative_amounts_rejected() -> None:
    with pytest.raises(ValueError):
        protocol_fee_amount(-1, BASE_FEE, 0, FeeParams())
    with pytest.raises(ValueError):
        withdrawal_fee_amount(-1, FeeParams())


def test_leverage_constant() -> None:
    assert BASE_LEVERAGE == 100 * ONE
