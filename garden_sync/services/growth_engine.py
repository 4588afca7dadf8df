# garden_sync/services/growth_engine.py
"""
Growth engine - pure calculations turning one day of metrics into game rewards.

No I/O and no state: everything here is a function of its arguments.
Revenue is handled as Decimal so `revenue * 10` never picks up binary floating point drift.

Growth points: sessions * 1 + revenue * 10
    100 sessions + $500     ->   5,100 points
    1000 sessions + $10,000 -> 101,000 points

Seeds: highest reached milestone per dimension, the two dimensions added
    sessions  100 / 500 / 1000       ->   50 /  200 /  500 seeds
    revenue   $1k / $5k / $10k       ->  500 / 2000 / 5000 seeds
"""
from decimal import Decimal, ROUND_FLOOR
from typing import Optional, Tuple, Union

from garden_sync.services.errors import InvalidAmount

SESSION_POINT_WEIGHT = 1
REVENUE_POINT_WEIGHT = 10

# (minimum, seeds), highest tier first
SESSION_SEED_TIERS: Tuple[Tuple[int, int], ...] = ((1000, 500), (500, 200), (100, 50))
REVENUE_SEED_TIERS: Tuple[Tuple[Decimal, int], ...] = (
    (Decimal("10000"), 5000),
    (Decimal("5000"), 2000),
    (Decimal("1000"), 500),
)

MAX_GROWTH_STAGE = 4
# points a plant needs while in a stage to advance to the next one
GROWTH_THRESHOLDS = {0: 100, 1: 200, 2: 400, 3: 800}

Number = Union[int, float, str, Decimal]


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() keeps the shortest repr (12.34), Decimal(12.34) would keep the binary expansion
        return Decimal(str(value))
    return Decimal(value)


def _check_non_negative(sessions: int, revenue: Decimal) -> None:
    if sessions < 0:
        raise InvalidAmount(sessions)
    if revenue < 0:
        raise InvalidAmount(revenue)


def compute_growth_points(sessions: int, revenue: Number) -> Decimal:
    revenue = to_decimal(revenue)
    _check_non_negative(sessions, revenue)
    return sessions * SESSION_POINT_WEIGHT + revenue * REVENUE_POINT_WEIGHT


def _tier_reward(value, tiers) -> int:
    for minimum, seeds in tiers:
        if value >= minimum:
            return seeds
    return 0


def compute_seeds_earned(sessions: int, revenue: Number) -> int:
    revenue = to_decimal(revenue)
    _check_non_negative(sessions, revenue)
    return _tier_reward(sessions, SESSION_SEED_TIERS) + _tier_reward(revenue, REVENUE_SEED_TIERS)


def whole_points(points: Decimal) -> int:
    """Growth is applied in whole points; fractional cents-derived points are dropped."""
    return int(points.to_integral_value(rounding=ROUND_FLOOR))


def stage_threshold(stage: int) -> Optional[int]:
    return GROWTH_THRESHOLDS.get(stage)


def advance_stage(stage: int, growth_points: int) -> int:
    """At most one stage per application, however many thresholds the points would cover."""
    threshold = stage_threshold(stage)
    if threshold is not None and growth_points >= threshold:
        return stage + 1
    return stage
