"""Dispatch-table lifecycle for a RAMM pool.

``step(pool, params)`` is the single entry point for administrative actions. It:

1. Dispatches to the action's guard / update / effect functions.
2. Runs the guard on the pre-state (raises a typed error on refusal).
3. Applies the update to a staged copy of the pool.
4. Checks all invariants on the staged copy.
5. Returns a ``LifecycleResult`` holding the new pool and the action's effect.

The input pool is never mutated.

Phases: ``EMPTY -> OPEN`` (assets being added) ``-> INITIALIZED``. Adding
assets needs both credentials; every other action needs the admin credential.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum, unique
from typing import Callable, Optional, Tuple

from ..state.checks import check_all
from ..state.pool import MAX_ASSETS, MIN_DECIMALS, AssetSlot, Pool, PoolStatus
from .errors import (
    AssetLimitExceededError,
    DuplicateAssetError,
    InconsistentStateError,
    InputError,
    InvariantViolationError,
    NotAuthorizedError,
    WrongPhaseError,
)
from .fixed_point import PREC


@unique
class AdminAction(Enum):
    ADD_ASSET = "add_asset"
    INITIALIZE = "initialize"
    SET_FEE_COLLECTOR = "set_fee_collector"
    SET_MIN_TRADE_AMOUNT = "set_min_trade_amount"
    ENABLE_DEPOSITS = "enable_deposits"
    DISABLE_DEPOSITS = "disable_deposits"
    COLLECT_FEES = "collect_fees"


@dataclass(frozen=True)
class AdminParams:
    """Parameters of one administrative action; unused fields keep their defaults."""

    action: AdminAction
    admin_credential_id: str
    new_asset_credential_id: Optional[str] = None
    asset_id: str = ""
    oracle_address: str = ""
    decimals: int = 0
    min_trade_amount: int = 0
    fee_collector: str = ""
    asset_ids: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class AdminEffect:
    """What an action did, for the audit log and for fee transfers."""

    action: AdminAction
    asset_id: str = ""
    destination: str = ""
    swept: Tuple[Tuple[str, int], ...] = ()


@dataclass(frozen=True)
class LifecycleResult:
    pool: Pool
    effect: AdminEffect


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------

def _require_admin(pool: Pool, params: AdminParams) -> None:
    if params.admin_credential_id != pool.admin_credential_id:
        raise NotAuthorizedError("admin credential does not match this pool")


def _require_initialized(pool: Pool, params: AdminParams) -> None:
    if pool.status is not PoolStatus.INITIALIZED:
        raise WrongPhaseError(f"{params.action.value} requires an initialized pool")


def _require_new_asset_credential(pool: Pool, params: AdminParams) -> None:
    if pool.new_asset_credential_id is None:
        raise WrongPhaseError(f"{params.action.value} is not allowed once the pool is initialized")
    if params.new_asset_credential_id != pool.new_asset_credential_id:
        raise NotAuthorizedError("new-asset credential does not match this pool")


def guard_add_asset(pool: Pool, params: AdminParams) -> None:
    _require_admin(pool, params)
    _require_new_asset_credential(pool, params)
    if len(pool.assets) >= MAX_ASSETS:
        raise AssetLimitExceededError(f"pool already holds {MAX_ASSETS} assets")
    if params.asset_id in pool.asset_indices:
        raise DuplicateAssetError(f"asset {params.asset_id!r} is already registered")
    if not params.asset_id or not params.oracle_address:
        raise InputError("asset_id and oracle_address must be non-empty")
    if not (MIN_DECIMALS <= params.decimals <= PREC):
        raise InputError(f"decimals must be in [{MIN_DECIMALS}, {PREC}]: {params.decimals}")
    if params.min_trade_amount < 0:
        raise InputError(f"min_trade_amount must be non-negative: {params.min_trade_amount}")


def guard_initialize(pool: Pool, params: AdminParams) -> None:
    _require_admin(pool, params)
    _require_new_asset_credential(pool, params)
    if pool.status is not PoolStatus.OPEN:
        raise WrongPhaseError("cannot initialize a pool without assets")
    if not (pool.asset_count == len(pool.assets) == len(pool.asset_indices)):
        raise InconsistentStateError(
            f"asset_count={pool.asset_count}, assets={len(pool.assets)}, "
            f"indices={len(pool.asset_indices)}"
        )


def guard_set_fee_collector(pool: Pool, params: AdminParams) -> None:
    _require_admin(pool, params)
    _require_initialized(pool, params)
    if not params.fee_collector:
        raise InputError("fee_collector must be a non-empty address")


def guard_per_asset(pool: Pool, params: AdminParams) -> None:
    _require_admin(pool, params)
    _require_initialized(pool, params)
    pool.index_of(params.asset_id)


def guard_set_min_trade_amount(pool: Pool, params: AdminParams) -> None:
    guard_per_asset(pool, params)
    if params.min_trade_amount < 0:
        raise InputError(f"min_trade_amount must be non-negative: {params.min_trade_amount}")


def guard_collect_fees(pool: Pool, params: AdminParams) -> None:
    _require_admin(pool, params)
    _require_initialized(pool, params)
    asset_ids = params.asset_ids or ()
    if len(set(asset_ids)) != len(asset_ids):
        raise InputError(f"collect_fees lists an asset more than once: {asset_ids}")
    for asset_id in asset_ids:
        pool.index_of(asset_id)


# ---------------------------------------------------------------------------
# Updates (mutate the staged copy)
# ---------------------------------------------------------------------------

def apply_add_asset(pool: Pool, params: AdminParams) -> Pool:
    slot = AssetSlot(
        asset_id=params.asset_id,
        oracle_address=params.oracle_address,
        decimals=params.decimals,
        min_trade_amount=params.min_trade_amount,
    )
    pool.asset_indices[slot.asset_id] = len(pool.assets)
    pool.assets.append(slot)
    pool.asset_count += 1
    return pool


def apply_initialize(pool: Pool, params: AdminParams) -> Pool:
    for slot in pool.assets:
        slot.deposits_enabled = True
    pool.new_asset_credential_id = None
    return pool


def apply_set_fee_collector(pool: Pool, params: AdminParams) -> Pool:
    pool.fee_collector = params.fee_collector
    return pool


def apply_set_min_trade_amount(pool: Pool, params: AdminParams) -> Pool:
    pool.slot(params.asset_id).min_trade_amount = params.min_trade_amount
    return pool


def apply_enable_deposits(pool: Pool, params: AdminParams) -> Pool:
    pool.slot(params.asset_id).deposits_enabled = True
    return pool


def apply_disable_deposits(pool: Pool, params: AdminParams) -> Pool:
    pool.slot(params.asset_id).deposits_enabled = False
    return pool


def _fee_assets(pool: Pool, params: AdminParams) -> Tuple[str, ...]:
    if params.asset_ids is None:
        return tuple(slot.asset_id for slot in pool.assets)
    return params.asset_ids


def apply_collect_fees(pool: Pool, params: AdminParams) -> Pool:
    for asset_id in _fee_assets(pool, params):
        pool.slot(asset_id).collected_fees = 0
    return pool


# ---------------------------------------------------------------------------
# Effects (computed from the pre-state and the post-state)
# ---------------------------------------------------------------------------

def effect_simple(before: Pool, after: Pool, params: AdminParams) -> AdminEffect:
    return AdminEffect(action=params.action, asset_id=params.asset_id)


def effect_set_fee_collector(before: Pool, after: Pool, params: AdminParams) -> AdminEffect:
    return AdminEffect(action=params.action, destination=after.fee_collector)


def effect_collect_fees(before: Pool, after: Pool, params: AdminParams) -> AdminEffect:
    swept = tuple(
        (asset_id, before.slot(asset_id).collected_fees)
        for asset_id in _fee_assets(before, params)
    )
    return AdminEffect(action=params.action, destination=before.fee_collector, swept=swept)


GuardFn = Callable[[Pool, AdminParams], None]
UpdateFn = Callable[[Pool, AdminParams], Pool]
EffectFn = Callable[[Pool, Pool, AdminParams], AdminEffect]

_DISPATCH: dict[AdminAction, tuple[GuardFn, UpdateFn, EffectFn]] = {
    AdminAction.ADD_ASSET: (guard_add_asset, apply_add_asset, effect_simple),
    AdminAction.INITIALIZE: (guard_initialize, apply_initialize, effect_simple),
    AdminAction.SET_FEE_COLLECTOR: (guard_set_fee_collector, apply_set_fee_collector, effect_set_fee_collector),
    AdminAction.SET_MIN_TRADE_AMOUNT: (guard_set_min_trade_amount, apply_set_min_trade_amount, effect_simple),
    AdminAction.ENABLE_DEPOSITS: (guard_per_asset, apply_enable_deposits, effect_simple),
    AdminAction.DISABLE_DEPOSITS: (guard_per_asset, apply_disable_deposits, effect_simple),
    AdminAction.COLLECT_FEES: (guard_collect_fees, apply_collect_fees, effect_collect_fees),
}


def step(pool: Pool, params: AdminParams) -> LifecycleResult:
    """Execute one administrative action against ``pool``.

    Raises:
        AuthorizationError: Credential mismatch.
        StateError: Wrong phase, unknown/duplicate asset, asset limit, inconsistent counts.
        InputError: Malformed parameters.
        InvariantViolationError: Staged post-state violates one or more invariants.
    """
    entry = _DISPATCH.get(params.action)
    if entry is None:
        raise InputError(f"unknown admin action: {params.action}")
    guard_fn, update_fn, effect_fn = entry

    guard_fn(pool, params)
    staged = update_fn(copy.deepcopy(pool), params)

    violations = check_all(staged)
    if violations:
        raise InvariantViolationError(violations)

    return LifecycleResult(pool=staged, effect=effect_fn(pool, staged, params))
