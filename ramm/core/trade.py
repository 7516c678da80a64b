"""
Trade sizing for the RAMM pool.

Two entry points, both pure and in working precision:

- ``trade_i``: sell an exact amount ``ai`` of asset i, compute ``ao`` of asset o.
- ``trade_o``: buy an exact amount ``ao`` of asset o, compute the ``ai`` required.

The price curve is a leveraged weighted-balance curve anchored at the oracle
prices. With ``f`` the total fee rate, ``lev`` the leverage and ``w`` the value
weights:

    bi = lev * b_i,  bo = lev * b_o
    ao = bo * (1 - (bi / (bi + (1 - f) * ai)) ** (w_i / w_o))
    ai = bi / (1 - f) * ((bo / (bo - ao)) ** (w_o / w_i) - 1)

For an asset with an empty balance the oracle ratio is used directly. When both
assets have outstanding claim tokens, fee and leverage are scaled by the
imbalance ratios and the out-asset must not already be under-supplied.

Failures that leave the pool untouched (the trader gets their funds back) are
reported as ``TradeOutcome`` values; malformed calls raise.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique
from typing import Sequence

from .errors import InputError, NoLiquidityError
from .fees import FeeParams, protocol_fee_amount
from .fixed_point import ONE, div, mul, power
from .invariant import (
    check_imbalance_ratios,
    imbalance_ratio,
    scaled_fee_and_leverage,
    weights,
)


@unique
class TradeOutcome(Enum):
    SUCCESS = "success"
    FAILED_POOL_IMBALANCE = "failed_pool_imbalance"
    FAILED_INSUFFICIENT_OUT_BALANCE = "failed_insufficient_out_balance"
    FAILED_LOW_OUT_IMBALANCE_RATIO = "failed_low_out_imbalance_ratio"
    FAILED_SLIPPAGE = "failed_slippage"


@dataclass(frozen=True)
class TradeOutput:
    """
    Result of a trade computation.

    Attributes:
        outcome: Terminal outcome
        amount: ``ao`` for ``trade_i``, ``ai`` for ``trade_o`` (0 on failure)
        protocol_fee: Protocol's cut, in units of the in-asset (scaled)
        trading_fee: Trading fee rate applied (after imbalance scaling)
        volatility_fee: Volatility surcharge rate applied
    """

    outcome: TradeOutcome
    amount: int = 0
    protocol_fee: int = 0
    trading_fee: int = 0
    volatility_fee: int = 0

    @property
    def executed(self) -> bool:
        return self.outcome is TradeOutcome.SUCCESS


def _failed(outcome: TradeOutcome) -> TradeOutput:
    return TradeOutput(outcome=outcome)


def _validate(
    i: int,
    o: int,
    amount: int,
    balances: Sequence[int],
    claim_supplies: Sequence[int],
    prices: Sequence[int],
    volatility_fee: int,
) -> None:
    n = len(balances)
    if len(claim_supplies) != n or len(prices) != n:
        raise InputError("balances, claim supplies and prices must have the same length")
    for name, idx in (("i", i), ("o", o)):
        if not isinstance(idx, int) or isinstance(idx, bool) or not (0 <= idx < n):
            raise InputError(f"{name} must be an asset index in [0, {n}): {idx}")
    if i == o:
        raise InputError("cannot trade an asset for itself")
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise InputError(f"trade amount must be a positive int: {amount}")
    if volatility_fee < 0:
        raise InputError(f"volatility_fee must be non-negative: {volatility_fee}")
    if any(p <= 0 for p in prices):
        raise InputError("prices must be positive")
    if claim_supplies[i] == 0:
        raise NoLiquidityError(f"no claim tokens in circulation for asset {i}")
    if balances[o] == 0:
        raise NoLiquidityError(f"no balance of asset {o} in the pool")


def _fee_and_leverage(
    i: int,
    o: int,
    balances: Sequence[int],
    claim_supplies: Sequence[int],
    prices: Sequence[int],
    params: FeeParams,
) -> tuple[int, int] | None:
    """Trading fee and leverage for a trade between two funded assets.

    Returns None when the out-asset is already under-supplied.
    """
    if claim_supplies[o] == 0:
        return params.base_fee, params.base_leverage
    r_o = imbalance_ratio(o, balances, claim_supplies, prices)
    if r_o < ONE - params.delta:
        return None
    scaled = scaled_fee_and_leverage(
        balances, claim_supplies, prices, i, o, params.base_fee, params.base_leverage
    )
    return scaled.trading_fee, scaled.leverage


def _drains_out_asset(ao: int, balance_o: int, claim_supply_o: int) -> bool:
    # Emptying an asset is only allowed when nobody holds claims on it.
    if ao > balance_o:
        return True
    return ao == balance_o and claim_supply_o != 0


def trade_i(
    i: int,
    o: int,
    ai: int,
    balances: Sequence[int],
    claim_supplies: Sequence[int],
    prices: Sequence[int],
    params: FeeParams = FeeParams(),
    volatility_fee: int = 0,
) -> TradeOutput:
    """
    Sell exactly ``ai`` of asset i for asset o.

    Args:
        i: Index of the asset going into the pool
        o: Index of the asset leaving the pool
        ai: Amount in (scaled)
        balances: Pool balances (scaled)
        claim_supplies: Claim tokens issued per asset (LP units)
        prices: Oracle prices (scaled)
        params: Fee parameters
        volatility_fee: Summed volatility surcharge of the assets touched

    Returns:
        TradeOutput with ``amount = ao`` on success

    Raises:
        InputError: Malformed indices/amounts
        NoLiquidityError: No claims on asset i, or nothing of asset o to give
        MathError: Fixed-point overflow or an out-of-domain power
    """
    _validate(i, o, ai, balances, claim_supplies, prices, volatility_fee)

    if balances[i] == 0:
        trading_fee = params.base_fee
        fee = trading_fee + volatility_fee
        if fee >= ONE:
            return _failed(TradeOutcome.FAILED_POOL_IMBALANCE)
        ao = div(mul(mul(ONE - fee, ai), prices[i]), prices[o])
    else:
        fl = _fee_and_leverage(i, o, balances, claim_supplies, prices, params)
        if fl is None:
            return _failed(TradeOutcome.FAILED_LOW_OUT_IMBALANCE_RATIO)
        trading_fee, leverage = fl
        fee = trading_fee + volatility_fee
        if fee >= ONE:
            return _failed(TradeOutcome.FAILED_POOL_IMBALANCE)

        w = weights(balances, prices)
        bi = mul(balances[i], leverage)
        bo = mul(balances[o], leverage)
        ai_net = mul(ONE - fee, ai)
        base = div(bi, bi + ai_net)
        factor = power(base, div(w[i], w[o]))
        ao = mul(bo, ONE - factor) if factor < ONE else 0

    pr_fee = protocol_fee_amount(ai, trading_fee, volatility_fee, params)

    if _drains_out_asset(ao, balances[o], claim_supplies[o]):
        return _failed(TradeOutcome.FAILED_INSUFFICIENT_OUT_BALANCE)
    if not check_imbalance_ratios(balances, claim_supplies, prices, i, o, ai, ao, pr_fee, params.delta):
        return _failed(TradeOutcome.FAILED_POOL_IMBALANCE)

    return TradeOutput(
        outcome=TradeOutcome.SUCCESS,
        amount=ao,
        protocol_fee=pr_fee,
        trading_fee=trading_fee,
        volatility_fee=volatility_fee,
    )


def trade_o(
    i: int,
    o: int,
    ao: int,
    balances: Sequence[int],
    claim_supplies: Sequence[int],
    prices: Sequence[int],
    params: FeeParams = FeeParams(),
    volatility_fee: int = 0,
) -> TradeOutput:
    """
    Buy exactly ``ao`` of asset o with asset i.

    Same arguments and failure modes as ``trade_i``; on success
    ``amount = ai``, the amount of asset i the trader must pay.
    """
    _validate(i, o, ao, balances, claim_supplies, prices, volatility_fee)

    if _drains_out_asset(ao, balances[o], claim_supplies[o]):
        return _failed(TradeOutcome.FAILED_INSUFFICIENT_OUT_BALANCE)

    if balances[i] == 0:
        trading_fee = params.base_fee
        fee = trading_fee + volatility_fee
        if fee >= ONE:
            return _failed(TradeOutcome.FAILED_POOL_IMBALANCE)
        ai = div(div(mul(ao, prices[o]), prices[i]), ONE - fee)
    else:
        fl = _fee_and_leverage(i, o, balances, claim_supplies, prices, params)
        if fl is None:
            return _failed(TradeOutcome.FAILED_LOW_OUT_IMBALANCE_RATIO)
        trading_fee, leverage = fl
        fee = trading_fee + volatility_fee
        if fee >= ONE:
            return _failed(TradeOutcome.FAILED_POOL_IMBALANCE)

        w = weights(balances, prices)
        bi = mul(balances[i], leverage)
        bo = mul(balances[o], leverage)
        if bo <= ao:
            return _failed(TradeOutcome.FAILED_INSUFFICIENT_OUT_BALANCE)
        growth = power(div(bo, bo - ao), div(w[o], w[i]))
        ai = div(mul(bi, growth - ONE), ONE - fee)

    pr_fee = protocol_fee_amount(ai, trading_fee, volatility_fee, params)

    if not check_imbalance_ratios(balances, claim_supplies, prices, i, o, ai, ao, pr_fee, params.delta):
        return _failed(TradeOutcome.FAILED_POOL_IMBALANCE)

    return TradeOutput(
        outcome=TradeOutcome.SUCCESS,
        amount=ai,
        protocol_fee=pr_fee,
        trading_fee=trading_fee,
        volatility_fee=volatility_fee,
    )
