"""
Tier calculation for the loyalty program.

Pure functions: no DB access, no app context. A client's tier is derived from
lifetime earned points only, so redemptions never lower it.
"""
from typing import Dict, NamedTuple, Optional


TIER_ORDER = ('bronze', 'silver', 'gold', 'platinum')

TIER_LABELS = {
    'bronze': 'Bronze',
    'silver': 'Silver',
    'gold': 'Gold',
    'platinum': 'Platinum',
}

TRANSACTION_LABELS = {
    'earned_visit': 'Visit',
    'earned_purchase': 'Purchase',
    'earned_grooming': 'Grooming',
    'redeemed': 'Redemption',
    'adjusted': 'Manual adjustment',
    'expired': 'Expiration',
}


class NextTierInfo(NamedTuple):
    next_tier: str
    points_needed: int


def tier_for_earned(total_earned: int, thresholds: Dict[str, int]) -> str:
    """
    Map lifetime earned points to a tier.

    Thresholds are inclusive lower bounds checked from the highest tier down,
    so a misordered table still gives a deterministic answer.

    Args:
        total_earned: Lifetime earned points (>= 0)
        thresholds: {'bronze': 0, 'silver': S, 'gold': G, 'platinum': P}

    Returns:
        'bronze', 'silver', 'gold' or 'platinum'
    """
    if total_earned >= thresholds['platinum']:
        return 'platinum'
    if total_earned >= thresholds['gold']:
        return 'gold'
    if total_earned >= thresholds['silver']:
        return 'silver'
    return 'bronze'


def next_tier_info(total_earned: int, thresholds: Dict[str, int]) -> Optional[NextTierInfo]:
    """Points still needed for the next tier, or None when already platinum."""
    for tier in TIER_ORDER[1:]:
        if total_earned < thresholds[tier]:
            return NextTierInfo(next_tier=tier, points_needed=thresholds[tier] - total_earned)
    return None


def tier_label(tier: str) -> str:
    return TIER_LABELS.get(tier, tier.title())


def transaction_label(transaction_type: str) -> str:
    return TRANSACTION_LABELS.get(transaction_type, transaction_type)


def points_to_currency(points: int, redemption_rate: int) -> int:
    """Whole currency units `points` are worth at `redemption_rate` points per unit."""
    if redemption_rate <= 0:
        return 0
    return int(points // redemption_rate)
