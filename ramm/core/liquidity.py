"""
Single-asset deposits and withdrawals.

Claim tokens for asset j are accounted in LP units (``LP_PREC`` decimals) and
valued at ``p_j`` each inside ``L``. A holder of ``lpt`` claim tokens of asset o
is owed the value ``lpt * B / L``, expressed in units of o.

Deposits issue claims so that this value equals the value brought in.
Withdrawals pay that value preferably in asset o; what asset o cannot cover
without its imbalance ratio falling below ``1 - delta`` is paid in the other
assets, the most over-supplied first, each subject to the same bound and to the
withdrawal fee. Value that cannot be paid at all is handed back as unburned
claim tokens.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

from .errors import InputError, NoLiquidityError
from .fees import FeeParams, withdrawal_fee_amount
from .fixed_point import FACTOR_LPT, ONE, div, mul
from .invariant import compute_b_and_l, imbalance_ratios


def _check_args(j: int, amount: int, balances: Sequence[int], claim_supplies: Sequence[int], prices: Sequence[int]) -> int:
    n = len(balances)
    if len(claim_supplies) != n or len(prices) != n:
        raise InputError("balances, claim supplies and prices must have the same length")
    if not isinstance(j, int) or isinstance(j, bool) or not (0 <= j < n):
        raise InputError(f"asset index must be in [0, {n}): {j}")
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise InputError(f"amount must be a positive int: {amount}")
    return n


# -- Deposit -----------------------------------------------------------------

def liq_dep(
    i: int,
    ai: int,
    balances: Sequence[int],
    claim_supplies: Sequence[int],
    prices: Sequence[int],
) -> int:
    """
    Claim tokens (LP units) issued for depositing ``ai`` (scaled) of asset i.

    - Asset i has no claims or no balance: ``ai * L / B``; an empty pool issues
      1:1 so the first deposit sets ``L == B``.
    - Otherwise ``ai / b_i * r_i * lp_i``, which equals ``ai * L / B``.

    A result of 0 means the deposit is too small to be represented.
    """
    _check_args(i, ai, balances, claim_supplies, prices)
    B, L = compute_b_and_l(balances, claim_supplies, prices)

    if claim_supplies[i] == 0 or balances[i] == 0:
        if B == 0 or L == 0:
            issued = ai
        else:
            issued = mul(ai, div(L, B))
    else:
        r_i = imbalance_ratios(balances, claim_supplies, prices)[i]
        lp_i = claim_supplies[i] * FACTOR_LPT
        issued = mul(mul(ai, div(lp_i, balances[i])), r_i)

    return issued // FACTOR_LPT


# -- Withdrawal --------------------------------------------------------------

@dataclass
class WithdrawalOutput:
    """
    Result of a withdrawal computation (all amounts scaled).

    Attributes:
        value: Value owed for the claims presented, in units of asset o
        amounts: Gross amount taken from each asset's balance
        fees: Withdrawal fee withheld from each asset's payout
        burned: Claim tokens (LP units) consumed
        unburned: Claim tokens (LP units) handed back
        remaining: Value (units of asset o) that could not be paid
    """

    value: int
    amounts: List[int] = field(default_factory=list)
    fees: List[int] = field(default_factory=list)
    burned: int = 0
    unburned: int = 0
    remaining: int = 0

    @property
    def payouts(self) -> List[int]:
        return [a - f for a, f in zip(self.amounts, self.fees)]


def _target_bound(
    o: int,
    lpt: int,
    balances: Sequence[int],
    claim_supplies: Sequence[int],
    prices: Sequence[int],
    delta: int,
) -> int:
    """Most of asset o that can leave with ``lpt`` claims without breaching ``r_o >= 1 - delta``."""
    bo = balances[o]
    lo = claim_supplies[o] * FACTOR_LPT
    lpt_s = lpt * FACTOR_LPT
    if lpt_s >= lo:
        return bo
    r_o = imbalance_ratios(balances, claim_supplies, prices)[o]
    if r_o <= ONE - delta:
        return mul(bo, div(lpt_s, lo))
    B, L = compute_b_and_l(balances, claim_supplies, prices)
    floor = mul(ONE - delta, mul(lo - lpt_s, div(B, L)))
    return max(bo - floor, 0)


def _other_bound(
    k: int,
    balances: Sequence[int],
    claim_supplies: Sequence[int],
    prices: Sequence[int],
    delta: int,
) -> int:
    B, L = compute_b_and_l(balances, claim_supplies, prices)
    if L == 0:
        return balances[k]
    lk = claim_supplies[k] * FACTOR_LPT
    floor = mul(ONE - delta, mul(lk, div(B, L)))
    return max(balances[k] - floor, 0)


def _next_asset(ratios: Sequence[int], balances: Sequence[int], visited: set[int]) -> int | None:
    best = None
    for j, r in enumerate(ratios):
        if j in visited or balances[j] == 0:
            continue
        if best is None or r > ratios[best]:
            best = j
    return best


def liq_wthdrw(
    o: int,
    lpt: int,
    balances: Sequence[int],
    claim_supplies: Sequence[int],
    prices: Sequence[int],
    params: FeeParams = FeeParams(),
) -> WithdrawalOutput:
    """
    Redeem ``lpt`` claim tokens (LP units) of asset o.

    Raises:
        InputError: ``lpt`` exceeds the claims issued for o, or is worth nothing
        NoLiquidityError: The pool holds no value
    """
    n = _check_args(o, lpt, balances, claim_supplies, prices)
    if lpt > claim_supplies[o]:
        raise InputError(f"cannot redeem {lpt} claim tokens, only {claim_supplies[o]} issued for asset {o}")

    B, L = compute_b_and_l(balances, claim_supplies, prices)
    if B == 0:
        raise NoLiquidityError("pool holds no value")
    value = mul(lpt * FACTOR_LPT, div(B, L))
    if value == 0:
        raise InputError(f"{lpt} claim tokens are worth nothing")

    amounts = [0] * n
    fees = [0] * n
    after = list(balances)
    claims_after = list(claim_supplies)

    paid_o = min(value, _target_bound(o, lpt, balances, claim_supplies, prices, params.delta))
    amounts[o] = paid_o
    after[o] -= paid_o
    claims_after[o] -= lpt
    remaining = value - paid_o

    visited = {o}
    while remaining > 0:
        k = _next_asset(imbalance_ratios(after, claims_after, prices), after, visited)
        if k is None:
            break
        visited.add(k)
        wanted = div(mul(remaining, prices[o]), prices[k])
        paid = min(wanted, _other_bound(k, after, claims_after, prices, params.delta))
        if paid == 0:
            continue
        amounts[k] += paid
        fees[k] += withdrawal_fee_amount(paid, params)
        after[k] -= paid
        if paid == wanted:
            remaining = 0
        else:
            remaining = max(remaining - div(mul(paid, prices[k]), prices[o]), 0)

    unburned = (lpt * remaining) // value if remaining else 0
    return WithdrawalOutput(
        value=value,
        amounts=amounts,
        fees=fees,
        burned=lpt - unburned,
        unburned=unburned,
        remaining=remaining,
    )
