"""Fixed-point arithmetic for the RAMM pool.

Every amount, price, weight and rate is an unsigned integer scaled by
``10**PREC``. All operations check their operands and results against the
ceiling ``10**MAX_PREC`` and fail loudly instead of wrapping.

Rounding is explicit: products and quotients truncate (Python ``//`` on
non-negative ints). ``pow_fractional`` keeps magnitudes and signs apart so that
every division truncates toward zero, exactly as an unsigned implementation
would; results are therefore reproducible bit-for-bit.
"""

from __future__ import annotations

from .errors import (
    DivisionByZeroError,
    ExponentOutOfRangeError,
    FixedPointOverflowError,
    OutOfDomainError,
)

# Working precision, overflow ceiling and claim-token precision.
PREC: int = 12
MAX_PREC: int = 25
LP_PREC: int = 9

ONE: int = 10**PREC
FACTOR_LPT: int = 10 ** (PREC - LP_PREC)

# Number of binomial-series terms used by ``pow_fractional``.
POW_SERIES_TERMS: int = 30

# Convergence band for ``pow_fractional``, as fractions of ``one``.
POW_BASE_MIN_NUM, POW_BASE_MIN_DEN = 67, 100
POW_BASE_MAX_NUM, POW_BASE_MAX_DEN = 150, 100


def _require_uint(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must be non-negative: {value}")


# -- Basic operations --------------------------------------------------------

def mul(x: int, y: int, prec: int = PREC, max_prec: int = MAX_PREC) -> int:
    """``x * y / 10**prec``, truncated."""
    ceiling = 10**max_prec
    if x > ceiling or y > ceiling:
        raise FixedPointOverflowError(f"mul operand exceeds 10^{max_prec}")
    result = (x * y) // 10**prec
    if result > ceiling:
        raise FixedPointOverflowError(f"mul result exceeds 10^{max_prec}")
    return result


def div(x: int, y: int, prec: int = PREC, max_prec: int = MAX_PREC) -> int:
    """``x * 10**prec / y``, truncated."""
    ceiling = 10**max_prec
    if y == 0:
        raise DivisionByZeroError("fixed-point division by zero")
    if x > ceiling:
        raise FixedPointOverflowError(f"div dividend exceeds 10^{max_prec}")
    result = (x * 10**prec) // y
    if result > ceiling:
        raise FixedPointOverflowError(f"div result exceeds 10^{max_prec}")
    return result


def mul3(x: int, y: int, z: int, prec: int = PREC, max_prec: int = MAX_PREC) -> int:
    """``x * y * z`` in fixed point, left to right."""
    return mul(mul(x, y, prec, max_prec), z, prec, max_prec)


# -- Powers ------------------------------------------------------------------

def pow_int(x: int, n: int, one: int = ONE, prec: int = PREC, max_prec: int = MAX_PREC) -> int:
    """``x**n`` for a scaled base and a plain integer exponent (by squaring)."""
    _require_uint("n", n)
    result = one
    base = x
    while n > 0:
        if n & 1:
            result = mul(result, base, prec, max_prec)
        n >>= 1
        if n:
            base = mul(base, base, prec, max_prec)
    return result


def pow_fractional(
    x: int,
    a: int,
    one: int = ONE,
    prec: int = PREC,
    max_prec: int = MAX_PREC,
) -> int:
    """``x**a`` for ``a`` in ``[0, one)`` via the binomial series of ``(1 + y)**a``.

    ``y = x - one``. The series is truncated after ``POW_SERIES_TERMS`` terms and
    only converges fast enough for ``x`` in ``[0.67, 1.50]`` of ``one``.

    Term recurrence: ``t_n = t_{n-1} * (a - (n - 1)) / n * y``.
    """
    if a >= one:
        raise ExponentOutOfRangeError(f"fractional exponent must be < {one}: {a}")
    lo = (one * POW_BASE_MIN_NUM) // POW_BASE_MIN_DEN
    hi = (one * POW_BASE_MAX_NUM) // POW_BASE_MAX_DEN
    if not (lo <= x <= hi):
        raise OutOfDomainError(f"pow_fractional base {x} outside [{lo}, {hi}]")

    y_mag = x - one if x >= one else one - x
    y_neg = x < one

    positive = one
    negative = 0
    term = one
    term_neg = False
    for n in range(1, POW_SERIES_TERMS + 1):
        k = (n - 1) * one
        if a >= k:
            coeff, coeff_neg = a - k, False
        else:
            coeff, coeff_neg = k - a, True
        term = mul(term, coeff, prec, max_prec) // n
        term = mul(term, y_mag, prec, max_prec)
        term_neg = term_neg ^ coeff_neg ^ y_neg
        if term_neg:
            negative += term
        else:
            positive += term

    if negative > positive:
        raise OutOfDomainError("pow_fractional series went negative")
    return positive - negative


def power(x: int, a: int, one: int = ONE, prec: int = PREC, max_prec: int = MAX_PREC) -> int:
    """``x**a`` for scaled ``x`` and scaled non-negative ``a``.

    The integer part of ``a`` goes through ``pow_int``, the remainder through
    ``pow_fractional``. A zero remainder skips the series (and its domain check).
    """
    _require_uint("a", a)
    scale = 10**prec
    n, frac = divmod(a, scale)
    result = pow_int(x, n, one, prec, max_prec)
    if frac == 0:
        return result
    return mul(result, pow_fractional(x, frac, one, prec, max_prec), prec, max_prec)


# -- Unit conversion ---------------------------------------------------------

def scale_factor(decimals: int, prec: int = PREC) -> int:
    """Multiplier from ``decimals``-place units to working precision."""
    if not isinstance(decimals, int) or isinstance(decimals, bool):
        raise TypeError("decimals must be an int")
    if not (0 <= decimals <= prec):
        raise ValueError(f"decimals must be in [0, {prec}]: {decimals}")
    return 10 ** (prec - decimals)


def to_scaled(units: int, factor: int) -> int:
    return units * factor


def from_scaled_floor(value: int, factor: int) -> int:
    """Scaled value to units, rounding down (amounts paid by the pool)."""
    return value // factor


def from_scaled_ceil(value: int, factor: int) -> int:
    """Scaled value to units, rounding up (amounts charged by the pool)."""
    return -(-value // factor)
