"""Exception taxonomy for the RAMM pool.

Every failure aborts the whole operation: the engine stages a copy of the pool
and only commits it once all checks pass, so none of these carry partial state.
"""

from __future__ import annotations


class RammError(Exception):
    """Base class for all pool errors."""


# -- Input -------------------------------------------------------------------

class InputError(RammError):
    """Malformed or out-of-range caller input."""


class BelowMinimumTradeError(InputError):
    """Trade amount is below the asset's configured minimum."""

    def __init__(self, asset_id: str, amount: int, minimum: int) -> None:
        self.asset_id = asset_id
        self.amount = amount
        self.minimum = minimum
        super().__init__(f"amount {amount} of {asset_id} is below the minimum trade amount {minimum}")


# -- Authorization -----------------------------------------------------------

class AuthorizationError(RammError):
    """Base class for credential failures."""


class NotAuthorizedError(AuthorizationError):
    """The presented credential does not match the pool's stored id."""


# -- State -------------------------------------------------------------------

class StateError(RammError):
    """The pool is not in a state that allows the operation."""


class WrongPhaseError(StateError):
    """Operation not allowed in the pool's current lifecycle phase."""


class UnknownAssetError(StateError):
    """Asset id or index is not registered in the pool."""


class DuplicateAssetError(StateError):
    """Asset id is already registered."""


class AssetLimitExceededError(StateError):
    """The pool already holds the maximum number of assets."""


class InconsistentStateError(StateError):
    """Per-asset collections disagree on the asset count."""


class DepositsDisabledError(StateError):
    """Deposits are disabled for the asset."""


class NoLiquidityError(StateError):
    """There is nothing in the pool to trade against."""


# -- Oracle ------------------------------------------------------------------

class OracleError(RammError):
    """Base class for price feed failures."""


class FeedMismatchError(OracleError):
    """Supplied feed is not the one registered for the asset."""


class StalePriceError(OracleError):
    """Price reading is older than the staleness threshold."""


class InvalidPriceError(OracleError):
    """Price is zero, negative or above the arithmetic ceiling."""


# -- Arithmetic --------------------------------------------------------------

class MathError(RammError, ArithmeticError):
    """Base class for fixed-point arithmetic failures."""


class FixedPointOverflowError(MathError):
    """An operand or result exceeds ``10**max_prec``."""


class DivisionByZeroError(MathError):
    """Fixed-point division by zero."""


class OutOfDomainError(MathError):
    """Base of a fractional power is outside the series' convergence band."""


class ExponentOutOfRangeError(MathError):
    """Fractional exponent is not in ``[0, one)``."""


# -- Invariants --------------------------------------------------------------

class InvariantViolationError(RammError):
    """Raised when a staged post-state violates one or more pool invariants."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(f"invariant violations: {', '.join(violations)}")
