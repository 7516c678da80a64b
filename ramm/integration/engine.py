"""
Pool engine: the imperative shell around the RAMM kernels.

Every public operation follows the same shape:

1. Check phase and arguments against the live pool.
2. Read every asset's oracle (feed identity, price validity, freshness) before
   anything is computed.
3. Stage a deep copy of the pool, fold the readings into each asset's
   volatility memory, run the pure kernel on working-precision values.
4. Convert results back to asset units at the boundary: amounts paid out are
   floored, amounts charged are ceiled.
5. Run the post-state checks on the staged copy and only then swap it in.

Any raised error leaves the live pool untouched. Trades that fail with a
``TradeOutcome`` still commit the updated price memory and refund the offer.
"""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from ..core.errors import (
    BelowMinimumTradeError,
    DepositsDisabledError,
    FeedMismatchError,
    InputError,
    InvariantViolationError,
    WrongPhaseError,
)
from ..core.fixed_point import from_scaled_ceil, from_scaled_floor, to_scaled
from ..core.lifecycle import AdminAction, AdminEffect, AdminParams, step
from ..core.liquidity import liq_dep, liq_wthdrw
from ..core.oracle import PriceFeed, PriceReading, read_price
from ..core.trade import TradeOutcome, trade_i, trade_o
from ..core.volatility import compute_volatility_fee
from ..state.checks import check_all
from ..state.pool import AdminCredential, NewAssetCredential, Pool
from .events import EventKind, EventLog


logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def wall_clock() -> int:
    return int(time.time())


# ---------------------------------------------------------------------------
# Receipts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TradeReceipt:
    """
    Result of ``trade_in`` / ``trade_out`` (asset units).

    Attributes:
        outcome: Terminal outcome
        asset_in: Asset paid by the trader
        asset_out: Asset received by the trader
        amount_in: Amount taken from the trader (0 unless executed)
        amount_out: Amount paid to the trader (0 unless executed)
        protocol_fee: Part of ``amount_in`` set aside for the fee collector
        refund: Amount of ``asset_in`` handed back to the trader
    """
    outcome: TradeOutcome
    asset_in: str
    asset_out: str
    amount_in: int = 0
    amount_out: int = 0
    protocol_fee: int = 0
    refund: int = 0

    @property
    def executed(self) -> bool:
        return self.outcome is TradeOutcome.SUCCESS


@dataclass(frozen=True)
class DepositReceipt:
    asset: str
    amount: int
    claim_tokens: int


@dataclass(frozen=True)
class WithdrawalReceipt:
    """
    Result of ``withdraw`` (asset units).

    ``payouts`` are net of the withdrawal fee; ``remaining`` is value owed in
    units of the target asset that no asset could cover, matched by the
    ``claim_tokens_returned`` handed back.
    """
    target_asset: str
    claim_tokens_burned: int
    claim_tokens_returned: int
    payouts: Dict[str, int] = field(default_factory=dict)
    fees: Dict[str, int] = field(default_factory=dict)
    remaining: int = 0


_ADMIN_EVENTS: Dict[AdminAction, EventKind] = {
    AdminAction.ADD_ASSET: EventKind.ASSET_ADDED,
    AdminAction.INITIALIZE: EventKind.POOL_INITIALIZED,
    AdminAction.SET_FEE_COLLECTOR: EventKind.FEE_COLLECTOR_SET,
    AdminAction.SET_MIN_TRADE_AMOUNT: EventKind.MIN_TRADE_AMOUNT_SET,
    AdminAction.ENABLE_DEPOSITS: EventKind.DEPOSITS_ENABLED,
    AdminAction.DISABLE_DEPOSITS: EventKind.DEPOSITS_DISABLED,
    AdminAction.COLLECT_FEES: EventKind.FEES_COLLECTED,
}


def _require_positive(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise InputError(f"{name} must be a positive int: {value}")


class PoolEngine:
    """Single-writer front end for one pool."""

    def __init__(self, pool: Pool, clock: Optional[Clock] = None, events: Optional[EventLog] = None) -> None:
        self._pool = pool
        self._clock = clock if clock is not None else wall_clock
        self.events = events if events is not None else EventLog()

    @property
    def pool(self) -> Pool:
        return self._pool

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def _admin(self, params: AdminParams) -> AdminEffect:
        result = step(self._pool, params)
        self._pool = result.pool
        effect = result.effect
        logger.info("admin action %s committed (asset=%r)", params.action.value, effect.asset_id or None)
        self.events.emit(
            _ADMIN_EVENTS[params.action],
            self._clock(),
            asset_id=effect.asset_id,
            destination=effect.destination,
            swept=dict(effect.swept),
        )
        return effect

    def add_asset(
        self,
        admin: AdminCredential,
        new_asset: NewAssetCredential,
        asset_id: str,
        oracle_address: str,
        decimals: int,
        min_trade_amount: int = 0,
    ) -> int:
        """Register an asset; returns its index."""
        self._admin(AdminParams(
            action=AdminAction.ADD_ASSET,
            admin_credential_id=admin.id,
            new_asset_credential_id=new_asset.id,
            asset_id=asset_id,
            oracle_address=oracle_address,
            decimals=decimals,
            min_trade_amount=min_trade_amount,
        ))
        return self._pool.index_of(asset_id)

    def initialize(self, admin: AdminCredential, new_asset: NewAssetCredential) -> None:
        self._admin(AdminParams(
            action=AdminAction.INITIALIZE,
            admin_credential_id=admin.id,
            new_asset_credential_id=new_asset.id,
        ))

    def set_fee_collector(self, admin: AdminCredential, fee_collector: str) -> None:
        self._admin(AdminParams(
            action=AdminAction.SET_FEE_COLLECTOR,
            admin_credential_id=admin.id,
            fee_collector=fee_collector,
        ))

    def set_min_trade_amount(self, admin: AdminCredential, asset_id: str, amount: int) -> None:
        self._admin(AdminParams(
            action=AdminAction.SET_MIN_TRADE_AMOUNT,
            admin_credential_id=admin.id,
            asset_id=asset_id,
            min_trade_amount=amount,
        ))

    def enable_deposits(self, admin: AdminCredential, asset_id: str) -> None:
        self._admin(AdminParams(action=AdminAction.ENABLE_DEPOSITS, admin_credential_id=admin.id, asset_id=asset_id))

    def disable_deposits(self, admin: AdminCredential, asset_id: str) -> None:
        self._admin(AdminParams(action=AdminAction.DISABLE_DEPOSITS, admin_credential_id=admin.id, asset_id=asset_id))

    def collect_fees(self, admin: AdminCredential, asset_ids: Optional[Sequence[str]] = None) -> AdminEffect:
        """Sweep collected fees (all assets by default) to the fee collector."""
        return self._admin(AdminParams(
            action=AdminAction.COLLECT_FEES,
            admin_credential_id=admin.id,
            asset_ids=tuple(asset_ids) if asset_ids is not None else None,
        ))

    # ------------------------------------------------------------------
    # Shared plumbing
    # ------------------------------------------------------------------

    def _require_initialized(self, operation: str) -> None:
        if not self._pool.initialized:
            raise WrongPhaseError(f"{operation} requires an initialized pool")

    def _read_prices(self, feeds: Mapping[str, PriceFeed], now: int) -> List[PriceReading]:
        readings = []
        for slot in self._pool.assets:
            feed = feeds.get(slot.asset_id)
            if feed is None:
                raise FeedMismatchError(f"no price feed supplied for asset {slot.asset_id!r}")
            reading = read_price(feed, slot.oracle_address, now, self._pool.max_staleness_seconds)
            logger.debug("price %s = %d @ %d", slot.asset_id, reading.price, reading.timestamp)
            readings.append(reading)
        return readings

    def _stage(self, readings: Sequence[PriceReading]) -> tuple[Pool, List[int]]:
        """Copy the pool and record the readings; returns the copy and per-asset volatility fees."""
        staged = copy.deepcopy(self._pool)
        params = staged.fee_params
        fees = []
        for slot, reading in zip(staged.assets, readings):
            update = compute_volatility_fee(
                slot.previous_price,
                slot.previous_price_timestamp,
                reading.price,
                reading.timestamp,
                slot.volatility_index,
                slot.volatility_timestamp,
                tau=params.volatility_tau,
                max_fee=params.max_volatility_fee,
            )
            if reading.timestamp >= slot.previous_price_timestamp or slot.previous_price == 0:
                slot.previous_price = reading.price
                slot.previous_price_timestamp = reading.timestamp
            slot.volatility_index = update.index
            slot.volatility_timestamp = update.index_timestamp
            if update.fee:
                logger.debug("volatility fee %s = %d", slot.asset_id, update.fee)
            fees.append(update.fee)
        return staged, fees

    def _commit(self, staged: Pool) -> None:
        violations = check_all(staged)
        if violations:
            raise InvariantViolationError(violations)
        self._pool = staged

    # ------------------------------------------------------------------
    # Trading
    # ------------------------------------------------------------------

    def _trade_failed(self, staged: Pool, now: int, receipt: TradeReceipt) -> TradeReceipt:
        self._commit(staged)
        logger.warning(
            "trade %s -> %s failed: %s (refund %d)",
            receipt.asset_in, receipt.asset_out, receipt.outcome.value, receipt.refund,
        )
        self.events.emit(
            EventKind.TRADE_FAILED, now,
            asset_in=receipt.asset_in, asset_out=receipt.asset_out,
            outcome=receipt.outcome.value, refund=receipt.refund,
        )
        return receipt

    def _trade_executed(self, staged: Pool, now: int, receipt: TradeReceipt) -> TradeReceipt:
        slot_in = staged.slot(receipt.asset_in)
        slot_out = staged.slot(receipt.asset_out)
        slot_in.balance += receipt.amount_in - receipt.protocol_fee
        slot_in.collected_fees += receipt.protocol_fee
        slot_out.balance -= receipt.amount_out
        self._commit(staged)
        logger.info(
            "trade %d %s -> %d %s (protocol fee %d)",
            receipt.amount_in, receipt.asset_in, receipt.amount_out, receipt.asset_out, receipt.protocol_fee,
        )
        self.events.emit(
            EventKind.TRADE_EXECUTED, now,
            asset_in=receipt.asset_in, asset_out=receipt.asset_out,
            amount_in=receipt.amount_in, amount_out=receipt.amount_out,
            protocol_fee=receipt.protocol_fee,
        )
        return receipt

    def _trade_indices(self, asset_in: str, asset_out: str) -> tuple[int, int]:
        i = self._pool.index_of(asset_in)
        o = self._pool.index_of(asset_out)
        if i == o:
            raise InputError("cannot trade an asset for itself")
        return i, o

    def trade_in(
        self,
        asset_in: str,
        asset_out: str,
        amount_in: int,
        min_amount_out: int,
        feeds: Mapping[str, PriceFeed],
    ) -> TradeReceipt:
        """Sell exactly ``amount_in`` of ``asset_in``; fail unless at least ``min_amount_out`` comes back."""
        self._require_initialized("trade_in")
        i, o = self._trade_indices(asset_in, asset_out)
        _require_positive("amount_in", amount_in)
        if min_amount_out < 0:
            raise InputError(f"min_amount_out must be non-negative: {min_amount_out}")
        slot_in = self._pool.assets[i]
        slot_out = self._pool.assets[o]
        if amount_in < slot_in.min_trade_amount:
            raise BelowMinimumTradeError(asset_in, amount_in, slot_in.min_trade_amount)

        now = self._clock()
        readings = self._read_prices(feeds, now)
        staged, vol_fees = self._stage(readings)

        out = trade_i(
            i, o, to_scaled(amount_in, slot_in.factor),
            self._pool.scalar_balances(), self._pool.claim_supplies(), [r.price for r in readings],
            self._pool.fee_params, vol_fees[i] + vol_fees[o],
        )
        failed = TradeReceipt(outcome=out.outcome, asset_in=asset_in, asset_out=asset_out, refund=amount_in)
        if not out.executed:
            return self._trade_failed(staged, now, failed)

        amount_out = from_scaled_floor(out.amount, slot_out.factor)
        if amount_out == 0 or amount_out < min_amount_out:
            return self._trade_failed(staged, now, TradeReceipt(
                outcome=TradeOutcome.FAILED_SLIPPAGE, asset_in=asset_in, asset_out=asset_out, refund=amount_in,
            ))

        return self._trade_executed(staged, now, TradeReceipt(
            outcome=TradeOutcome.SUCCESS,
            asset_in=asset_in,
            asset_out=asset_out,
            amount_in=amount_in,
            amount_out=amount_out,
            protocol_fee=min(from_scaled_ceil(out.protocol_fee, slot_in.factor), amount_in),
        ))

    def trade_out(
        self,
        asset_in: str,
        asset_out: str,
        amount_out: int,
        max_amount_in: int,
        feeds: Mapping[str, PriceFeed],
    ) -> TradeReceipt:
        """Buy exactly ``amount_out`` of ``asset_out``, paying at most ``max_amount_in``.

        The trader offers ``max_amount_in``; whatever is not needed is refunded.
        """
        self._require_initialized("trade_out")
        i, o = self._trade_indices(asset_in, asset_out)
        _require_positive("amount_out", amount_out)
        _require_positive("max_amount_in", max_amount_in)
        slot_in = self._pool.assets[i]
        slot_out = self._pool.assets[o]
        if amount_out < slot_out.min_trade_amount:
            raise BelowMinimumTradeError(asset_out, amount_out, slot_out.min_trade_amount)

        now = self._clock()
        readings = self._read_prices(feeds, now)
        staged, vol_fees = self._stage(readings)

        out = trade_o(
            i, o, to_scaled(amount_out, slot_out.factor),
            self._pool.scalar_balances(), self._pool.claim_supplies(), [r.price for r in readings],
            self._pool.fee_params, vol_fees[i] + vol_fees[o],
        )
        failed = TradeReceipt(outcome=out.outcome, asset_in=asset_in, asset_out=asset_out, refund=max_amount_in)
        if not out.executed:
            return self._trade_failed(staged, now, failed)

        amount_in = from_scaled_ceil(out.amount, slot_in.factor)
        if amount_in == 0 or amount_in > max_amount_in:
            return self._trade_failed(staged, now, TradeReceipt(
                outcome=TradeOutcome.FAILED_SLIPPAGE, asset_in=asset_in, asset_out=asset_out, refund=max_amount_in,
            ))

        return self._trade_executed(staged, now, TradeReceipt(
            outcome=TradeOutcome.SUCCESS,
            asset_in=asset_in,
            asset_out=asset_out,
            amount_in=amount_in,
            amount_out=amount_out,
            protocol_fee=min(from_scaled_ceil(out.protocol_fee, slot_in.factor), amount_in),
            refund=max_amount_in - amount_in,
        ))

    # ------------------------------------------------------------------
    # Liquidity
    # ------------------------------------------------------------------

    def deposit(self, asset_id: str, amount: int, feeds: Mapping[str, PriceFeed]) -> DepositReceipt:
        """Deposit ``amount`` of one asset and receive claim tokens for it.

        A deposit too small to issue any claim tokens is rejected: a
        ``DEPOSIT_REJECTED`` event records the refund and ``InputError`` is
        raised with the pool unchanged.
        """
        self._require_initialized("deposit")
        i = self._pool.index_of(asset_id)
        _require_positive("amount", amount)
        slot = self._pool.assets[i]
        if not slot.deposits_enabled:
            raise DepositsDisabledError(f"deposits of {asset_id!r} are disabled")
        if amount < slot.min_trade_amount:
            raise BelowMinimumTradeError(asset_id, amount, slot.min_trade_amount)

        now = self._clock()
        readings = self._read_prices(feeds, now)
        staged, _ = self._stage(readings)

        claim_tokens = liq_dep(
            i, to_scaled(amount, slot.factor),
            self._pool.scalar_balances(), self._pool.claim_supplies(), [r.price for r in readings],
        )
        if claim_tokens == 0:
            logger.warning("deposit of %d %s rejected: issues no claim tokens", amount, asset_id)
            self.events.emit(EventKind.DEPOSIT_REJECTED, now, asset=asset_id, amount=amount, refund=amount)
            raise InputError(f"deposit of {amount} {asset_id} is too small to issue claim tokens")

        staged_slot = staged.assets[i]
        staged_slot.balance += amount
        staged_slot.claim_tokens_issued += claim_tokens
        self._commit(staged)

        logger.info("deposit %d %s -> %d claim tokens", amount, asset_id, claim_tokens)
        self.events.emit(EventKind.LIQUIDITY_DEPOSITED, now, asset=asset_id, amount=amount, claim_tokens=claim_tokens)
        return DepositReceipt(asset=asset_id, amount=amount, claim_tokens=claim_tokens)

    def withdraw(self, target_asset: str, claim_tokens: int, feeds: Mapping[str, PriceFeed]) -> WithdrawalReceipt:
        """Redeem claim tokens of ``target_asset``, paid in that asset first."""
        self._require_initialized("withdraw")
        o = self._pool.index_of(target_asset)
        _require_positive("claim_tokens", claim_tokens)

        now = self._clock()
        readings = self._read_prices(feeds, now)
        staged, _ = self._stage(readings)

        out = liq_wthdrw(
            o, claim_tokens,
            self._pool.scalar_balances(), self._pool.claim_supplies(), [r.price for r in readings],
            self._pool.fee_params,
        )

        payouts: Dict[str, int] = {}
        fees: Dict[str, int] = {}
        for slot, gross_scaled, fee_scaled in zip(staged.assets, out.amounts, out.fees):
            gross = from_scaled_floor(gross_scaled, slot.factor)
            if gross == 0:
                continue
            fee = min(from_scaled_ceil(fee_scaled, slot.factor), gross)
            slot.balance -= gross
            slot.collected_fees += fee
            payouts[slot.asset_id] = gross - fee
            if fee:
                fees[slot.asset_id] = fee
        staged.assets[o].claim_tokens_issued -= out.burned
        self._commit(staged)

        remaining = from_scaled_floor(out.remaining, staged.assets[o].factor)
        if out.remaining:
            logger.warning(
                "withdrawal of %d %s claims only partly paid; %d claim tokens returned",
                claim_tokens, target_asset, out.unburned,
            )
        logger.info("withdraw %d %s claims -> %s", out.burned, target_asset, payouts)
        self.events.emit(
            EventKind.LIQUIDITY_WITHDRAWN, now,
            target_asset=target_asset, burned=out.burned, returned=out.unburned,
            payouts=dict(payouts), fees=dict(fees),
        )
        return WithdrawalReceipt(
            target_asset=target_asset,
            claim_tokens_burned=out.burned,
            claim_tokens_returned=out.unburned,
            payouts=payouts,
            fees=fees,
            remaining=remaining,
        )
