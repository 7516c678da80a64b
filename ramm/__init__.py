"""
RAMM: a rebalancing, oracle-priced multi-asset liquidity pool.
"""

from .core.errors import RammError
from .integration.config import deploy_pool, load_config
from .integration.engine import PoolEngine
from .state.pool import create_pool

__all__ = [
    "RammError",
    "PoolEngine",
    "create_pool",
    "deploy_pool",
    "load_config",
]
