"""
Plan presentation helpers (feature bullets, popular badge).
"""

from core.money import format_money, to_decimal

POPULAR_PLAN_NAME = 'Weekly Standard'


def plan_features(plan: dict) -> list:
    pickups = plan.get('pickups_per_month', 0)
    name = plan.get('name') or ''

    features = [
        f"{pickups} bags per month ($45 value each)",
        "Pickup & delivery included",
        "Professional wash & fold",
        "Eco-friendly detergents",
    ]

    if 'Weekly' in name:
        features.extend(["24-hour turnaround", "Priority support"])
        if 'Standard' in name:
            features.insert(1, "Save $10/month vs pay-per-bag")
    else:
        features.append("48-hour turnaround")

    features.extend([
        "Add sensitive skin detergent +$3",
        "Add scent booster +$3",
    ])
    return features


def is_popular(plan: dict) -> bool:
    return plan.get('name') == POPULAR_PLAN_NAME


def present_plans(plans: list, current_plan_id=None) -> list:
    """Active plans decorated for the plans page."""
    presented = []
    for plan in plans:
        if plan.get('is_active') is False:
            continue
        presented.append({
            **plan,
            'price_display': format_money(to_decimal(plan.get('price_per_month'))),
            'features': plan_features(plan),
            'is_popular': is_popular(plan),
            'is_current': current_plan_id is not None and str(plan.get('id')) == str(current_plan_id),
        })
    return presented
