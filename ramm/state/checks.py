"""Post-state invariant checks for a pool.

Each function returns True when the invariant holds; ``check_all()`` returns
the names of the violated ones (empty = all pass). The engine runs these on
every staged pool before committing it.
"""

from __future__ import annotations

from typing import Callable

from ..core.fixed_point import ONE
from ..core.invariant import weights
from .pool import MAX_ASSETS, Pool


def inv_counts_consistent(p: Pool) -> bool:
    return p.asset_count == len(p.assets) == len(p.asset_indices) and p.asset_count <= MAX_ASSETS


def inv_indices_dense(p: Pool) -> bool:
    return all(p.asset_indices.get(slot.asset_id) == idx for idx, slot in enumerate(p.assets))


def inv_closed_before_init(p: Pool) -> bool:
    if p.initialized:
        return True
    return not any(slot.deposits_enabled for slot in p.assets)


def inv_amounts_nonneg(p: Pool) -> bool:
    return all(
        slot.balance >= 0 and slot.claim_tokens_issued >= 0 and slot.collected_fees >= 0
        for slot in p.assets
    )


def inv_no_claims_before_init(p: Pool) -> bool:
    if p.initialized:
        return True
    return all(slot.balance == 0 and slot.claim_tokens_issued == 0 for slot in p.assets)


def inv_weights_sum_to_one(p: Pool) -> bool:
    # Only checkable once every asset has an accepted price.
    prices = [slot.previous_price for slot in p.assets]
    if not prices or any(pr == 0 for pr in prices):
        return True
    w = weights(p.scalar_balances(), prices)
    total = sum(w)
    if total == 0:
        return True
    return ONE - len(w) <= total <= ONE


# ---------------------------------------------------------------------------
# Registry + check_all
# ---------------------------------------------------------------------------

INVARIANT_REGISTRY: dict[str, Callable[[Pool], bool]] = {
    "inv_counts_consistent": inv_counts_consistent,
    "inv_indices_dense": inv_indices_dense,
    "inv_closed_before_init": inv_closed_before_init,
    "inv_amounts_nonneg": inv_amounts_nonneg,
    "inv_no_claims_before_init": inv_no_claims_before_init,
    "inv_weights_sum_to_one": inv_weights_sum_to_one,
}


def check_all(pool: Pool) -> list[str]:
    """Return list of violated invariant names (empty = all pass)."""
    return [
        inv_id
        for inv_id, check_fn in INVARIANT_REGISTRY.items()
        if not check_fn(pool)
    ]
