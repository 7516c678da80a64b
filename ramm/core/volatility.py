"""Volatility surcharge for oracle-priced trades.

Each asset remembers its last accepted price and a volatility index (the
largest relative price move seen recently) with the time it was recorded.

On every new reading:
  - change  = |new_price - previous_price| / previous_price
  - decayed = index * (tau - elapsed) / tau, 0 once ``tau`` seconds have passed
  - index'  = max(decayed, change)
  - fee     = min(index', max_fee)

Key properties:
  - First observation (no previous price) never charges a fee
  - A fresh large move is charged in full, then fades linearly over ``tau``
  - Fee is monotone in the price move and capped at ``max_fee``

Callers add up the fees of every asset a trade touches.
"""

from __future__ import annotations

from dataclasses import dataclass

from .fixed_point import div


@dataclass(frozen=True)
class VolatilityUpdate:
    """Fee for the current reading plus the asset's next volatility memory."""

    fee: int
    index: int
    index_timestamp: int


def relative_change(previous_price: int, new_price: int) -> int:
    """``|new - previous| / previous`` as a scaled fraction; 0 without a previous price."""
    if previous_price == 0:
        return 0
    diff = new_price - previous_price if new_price >= previous_price else previous_price - new_price
    return div(diff, previous_price)


def decayed_index(index: int, index_timestamp: int, now: int, tau: int) -> int:
    """Linear decay of a stored index over ``tau`` seconds."""
    if tau <= 0:
        raise ValueError(f"tau must be positive: {tau}")
    elapsed = now - index_timestamp
    if elapsed <= 0:
        return index
    if elapsed >= tau:
        return 0
    return (index * (tau - elapsed)) // tau


def compute_volatility_fee(
    previous_price: int,
    previous_price_timestamp: int,
    new_price: int,
    new_price_timestamp: int,
    volatility_index: int,
    volatility_timestamp: int,
    *,
    tau: int,
    max_fee: int,
) -> VolatilityUpdate:
    """Compute the surcharge for one asset's fresh reading.

    A reading that is not newer than the stored one carries no new information:
    the stored index is reused (decayed) and nothing is recorded.
    """
    decayed = decayed_index(volatility_index, volatility_timestamp, new_price_timestamp, tau)

    if new_price_timestamp <= previous_price_timestamp and previous_price != 0:
        change = 0
    else:
        change = relative_change(previous_price, new_price)

    if change > decayed:
        index, index_timestamp = change, new_price_timestamp
    else:
        index, index_timestamp = volatility_index, volatility_timestamp

    fee = min(max(change, decayed), max_fee)
    return VolatilityUpdate(fee=fee, index=index, index_timestamp=index_timestamp)
