"""
Weighted-balance invariant of the RAMM pool.

Notation (all scaled by ``10**PREC``):
    b_j   balance of asset j
    p_j   oracle price of asset j
    lp_j  claim tokens issued for asset j (held in LP units, rescaled by FACTOR_LPT)

    B   = sum_j p_j * b_j          total pool value
    L   = sum_j p_j * lp_j         total claim-token value
    w_j = p_j * b_j / B            weight of asset j
    r_j = (b_j * L) / (B * lp_j)   imbalance ratio of asset j

``r_j == 1`` when asset j's share of the pool's value equals its share of the
claims on the pool; ``r_j < 1`` means under-supplied, ``r_j > 1`` over-supplied.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .errors import DivisionByZeroError, InputError
from .fixed_point import FACTOR_LPT, ONE, div, mul, pow_int


def _require_same_length(**seqs: Sequence[int]) -> int:
    lengths = {len(s) for s in seqs.values()}
    if len(lengths) != 1:
        names = ", ".join(seqs)
        raise InputError(f"length mismatch between {names}")
    return lengths.pop()


def _require_index(name: str, index: int, n: int) -> None:
    if not isinstance(index, int) or isinstance(index, bool) or not (0 <= index < n):
        raise InputError(f"{name} must be an asset index in [0, {n}): {index}")


def weights(balances: Sequence[int], prices: Sequence[int]) -> List[int]:
    """Value weights of every asset. All zero for an empty pool."""
    n = _require_same_length(balances=balances, prices=prices)
    values = [mul(prices[j], balances[j]) for j in range(n)]
    total = sum(values)
    if total == 0:
        return [0] * n
    return [div(v, total) for v in values]


def compute_b_and_l(
    balances: Sequence[int],
    claim_supplies: Sequence[int],
    prices: Sequence[int],
) -> Tuple[int, int]:
    """Return ``(B, L)``; claim supplies are given in LP units."""
    n = _require_same_length(balances=balances, claim_supplies=claim_supplies, prices=prices)
    B = 0
    L = 0
    for j in range(n):
        B += mul(prices[j], balances[j])
        L += mul(prices[j], claim_supplies[j] * FACTOR_LPT)
    return B, L


def imbalance_ratios(
    balances: Sequence[int],
    claim_supplies: Sequence[int],
    prices: Sequence[int],
) -> List[int]:
    """Imbalance ratio of every asset; 0 for assets without claim tokens."""
    B, L = compute_b_and_l(balances, claim_supplies, prices)
    ratios = []
    for j in range(len(balances)):
        lp = claim_supplies[j] * FACTOR_LPT
        if lp == 0 or B == 0:
            ratios.append(0)
        else:
            # b_j / lp_j and L / B stay near ONE; b_j * L need not fit under the ceiling
            ratios.append(mul(div(balances[j], lp), div(L, B)))
    return ratios


def imbalance_ratio(
    j: int,
    balances: Sequence[int],
    claim_supplies: Sequence[int],
    prices: Sequence[int],
) -> int:
    _require_index("j", j, len(balances))
    return imbalance_ratios(balances, claim_supplies, prices)[j]


def check_imbalance_ratios(
    balances: Sequence[int],
    claim_supplies: Sequence[int],
    prices: Sequence[int],
    i: int,
    o: int,
    ai: int,
    ao: int,
    pr_fee: int,
    delta: int,
) -> bool:
    """
    True if a trade (``ai`` of i in, ``ao`` of o out, ``pr_fee`` of i to the
    protocol) keeps both assets within bounds.

    A trade is refused when it
      - leaves r_o below ``1 - delta`` and lower than before, or
      - leaves r_i above ``1 + delta`` and higher than before.
    Trades that move an already out-of-bounds ratio back toward 1 are allowed.
    """
    after = list(balances)
    after[i] = after[i] + ai - pr_fee
    if after[o] < ao:
        return False
    after[o] = after[o] - ao

    before_r = imbalance_ratios(balances, claim_supplies, prices)
    after_r = imbalance_ratios(after, claim_supplies, prices)

    if after_r[o] < ONE - delta and after_r[o] < before_r[o]:
        return False
    if after_r[i] > ONE + delta and after_r[i] > before_r[i]:
        return False
    return True


@dataclass(frozen=True)
class ScaledFeeAndLeverage:
    trading_fee: int
    leverage: int


def scaled_fee_and_leverage(
    balances: Sequence[int],
    claim_supplies: Sequence[int],
    prices: Sequence[int],
    i: int,
    o: int,
    base_fee: int,
    base_leverage: int,
) -> ScaledFeeAndLeverage:
    """
    Adjust fee and leverage for a trade i -> o by the current imbalance ratios:

        fee      = base_fee * r_i^3 / r_o^3
        leverage = base_leverage * r_o^3 / r_i^3

    Trading into an over-supplied asset costs more and moves the price faster.
    Both ratios must be positive (callers only get here when both assets have
    claim tokens outstanding and non-zero balances).
    """
    ratios = imbalance_ratios(balances, claim_supplies, prices)
    ri3 = pow_int(ratios[i], 3)
    ro3 = pow_int(ratios[o], 3)
    if ri3 == 0 or ro3 == 0:
        raise DivisionByZeroError("imbalance ratios too small to scale fee and leverage")
    return ScaledFeeAndLeverage(
        trading_fee=div(mul(base_fee, ri3), ro3),
        leverage=div(mul(base_leverage, ro3), ri3),
    )
