"""
Fee parameters and fee arithmetic (deterministic, integer-only).

All rates are fixed-point fractions of ``ONE``. The protocol fee is a share of
the trading fee; the volatility surcharge goes to the protocol in full.
"""

from __future__ import annotations

from dataclasses import dataclass

from .fixed_point import ONE, mul, mul3


BASE_FEE = 10 * ONE // 10_000  # 0.1%
PROTOCOL_FEE = 30 * ONE // 100  # 30% of the trading fee
BASE_LEVERAGE = 100 * ONE
DELTA = 25 * ONE // 100
BASE_WITHDRAWAL_FEE = 40 * ONE // 10_000  # 0.4%
MAX_VOLATILITY_FEE = 100 * ONE // 10_000  # 1%
VOLATILITY_TAU_SECONDS = 300


@dataclass(frozen=True)
class FeeParams:
    base_fee: int = BASE_FEE
    protocol_fee: int = PROTOCOL_FEE
    base_leverage: int = BASE_LEVERAGE
    delta: int = DELTA
    withdrawal_fee: int = BASE_WITHDRAWAL_FEE
    max_volatility_fee: int = MAX_VOLATILITY_FEE
    volatility_tau: int = VOLATILITY_TAU_SECONDS

    def __post_init__(self) -> None:
        for name in (
            "base_fee",
            "protocol_fee",
            "base_leverage",
            "delta",
            "withdrawal_fee",
            "max_volatility_fee",
            "volatility_tau",
        ):
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")
        for name in ("base_fee", "protocol_fee", "withdrawal_fee", "max_volatility_fee"):
            v = getattr(self, name)
            if v > ONE:
                raise ValueError(f"{name} must be at most ONE ({ONE}): {v}")
        if not (0 < self.delta < ONE):
            raise ValueError(f"delta must be in (0, {ONE}): {self.delta}")
        if self.base_leverage < ONE:
            raise ValueError(f"base_leverage must be at least ONE: {self.base_leverage}")
        if self.volatility_tau <= 0:
            raise ValueError(f"volatility_tau must be positive: {self.volatility_tau}")


def protocol_fee_amount(amount: int, trading_fee: int, volatility_fee: int, params: FeeParams) -> int:
    """
    Protocol's cut of a trade, in units of the traded asset (scaled).

        protocol_fee * trading_fee * amount + volatility_fee * amount
    """
    if amount < 0:
        raise ValueError(f"amount must be non-negative: {amount}")
    return mul3(params.protocol_fee, trading_fee, amount) + mul(volatility_fee, amount)


def withdrawal_fee_amount(amount: int, params: FeeParams) -> int:
    """Fee withheld from a withdrawal payout (scaled)."""
    if amount < 0:
        raise ValueError(f"amount must be non-negative: {amount}")
    return mul(params.withdrawal_fee, amount)
