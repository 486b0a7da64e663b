"""
Pools: identidad de blue/green y registry inmutable.
"""

from poolswitch.core.pools.models import Pool, PoolLabel, parse_label, other
from poolswitch.core.pools.registry import PoolRegistry, load_registry, declared_active_pool

__all__ = [
    "Pool",
    "PoolLabel",
    "parse_label",
    "other",
    "PoolRegistry",
    "load_registry",
    "declared_active_pool",
]
