"""
Grid level calculations for the paper grid strategies.

Pure helpers shared by the engines:
- dip level and target buy price of the single-side grid
- ladder construction and level lookup of the bidirectional grid
"""

import math
from decimal import Decimal
from typing import Optional, Sequence

from papergrid.state import GridLevel


def dip_level(initial_price: Decimal, price: Decimal, grid_interval: Decimal) -> int:
    """
    Number of whole grid intervals the price has dropped below the anchor.

    Zero or negative means the price is at or above the anchor.
    """
    return math.floor((initial_price - price) / grid_interval)


def target_buy_price(initial_price: Decimal, level: int, grid_interval: Decimal) -> Decimal:
    """Buy price of the given dip level."""
    return initial_price - level * grid_interval


def build_grid_levels(lower_bound: Decimal, upper_bound: Decimal, grid_interval: Decimal) -> list[GridLevel]:
    """
    Build ladder levels lower_bound + k * grid_interval for k = 0, 1, ...
    while the level does not exceed upper_bound.

    Levels are computed by multiplication so long ladders do not accumulate
    rounding drift.
    """
    levels: list[GridLevel] = []
    k = 0
    price = lower_bound
    while price <= upper_bound:
        levels.append(GridLevel(price=price))
        k += 1
        price = lower_bound + k * grid_interval
    return levels


def locate_level(levels: Sequence[GridLevel], price: Decimal) -> Optional[int]:
    """
    Find the ladder index the price currently sits on.

    Index i matches when price >= levels[i].price and either i is the last
    level or price < levels[i + 1].price. A price exactly on a level maps to
    that level.

    Returns:
        The level index, or None when the price is below the ladder
    """
    for i, level in enumerate(levels):
        is_last = i == len(levels) - 1
        if price >= level.price and (is_last or price < levels[i + 1].price):
            return i
    return None
