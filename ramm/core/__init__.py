"""
Pool kernels: fixed-point math, invariant, trade and liquidity sizing
"""

from .fixed_point import ONE, PREC, MAX_PREC, LP_PREC, mul, div, power
from .fees import FeeParams
from .invariant import weights, compute_b_and_l, imbalance_ratios
from .trade import TradeOutcome, TradeOutput, trade_i, trade_o
from .liquidity import WithdrawalOutput, liq_dep, liq_wthdrw
from .volatility import compute_volatility_fee
from .oracle import ManualPriceFeed, PriceFeed, PriceReading
