# backend/lib/insights_core/scoring.py
"""
Heuristic scores and benchmarks per meter category.

Meter categories: 'household', 'SME', 'industry'. Anything else falls back
to the defaults below.
"""
from typing import Dict, List

DEFAULT_CATEGORY = "household"
DEFAULT_EFFICIENCY_SCORE = 87

# (upper bound of 7-day mean daily kWh, score); last entry has no bound
EFFICIENCY_BANDS = {
    "household": [(10, 95), (20, 87), (None, 75)],
    "SME": [(50, 90), (100, 80), (None, 70)],
    "industry": [(200, 85), (500, 75), (None, 65)],
}

# Percent of daily cost attributed to each device category
DEVICE_SHARES = {
    "household": [("HVAC", 30), ("Lighting", 25), ("Appliances", 25), ("Electronics", 20)],
    "SME": [("HVAC", 35), ("Lighting", 25), ("Appliances", 25), ("Electronics", 15)],
    "industry": [("HVAC", 45), ("Lighting", 15), ("Appliances", 30), ("Electronics", 10)],
}

# daily_usage_low / daily_usage_high in kWh, monthly_budget in KSh, peak_hours
# as hours of the day. industry uses the medium-duty figures.
BENCHMARKS = {
    "household": {
        "daily_usage_low": 5, "daily_usage_high": 25, "monthly_budget": 3000,
        "peak_hours": (18, 19, 20, 21),
    },
    "SME": {
        "daily_usage_low": 20, "daily_usage_high": 100, "monthly_budget": 15000,
        "peak_hours": (8, 9, 14, 15, 16),
    },
    "industry": {
        "daily_usage_low": 100, "daily_usage_high": 500, "monthly_budget": 75000,
        "peak_hours": (7, 8, 9, 15, 16),
    },
}


def efficiency_score(avg_daily_kwh: float, category: str = DEFAULT_CATEGORY) -> int:
    bands = EFFICIENCY_BANDS.get(category)
    if bands is None:
        return DEFAULT_EFFICIENCY_SCORE
    for upper, score in bands:
        if upper is None or avg_daily_kwh < upper:
            return score
    return DEFAULT_EFFICIENCY_SCORE


def device_breakdown(category: str, daily_cost: float) -> List[Dict]:
    shares = DEVICE_SHARES.get(category, DEVICE_SHARES[DEFAULT_CATEGORY])
    return [
        {"device": device, "percentage": pct, "cost": daily_cost * pct / 100}
        for device, pct in shares
    ]


def benchmark_for(category: str) -> Dict:
    return BENCHMARKS.get(category, BENCHMARKS[DEFAULT_CATEGORY])


def category_label(category: str) -> str:
    return category if category == "SME" else category.capitalize()
