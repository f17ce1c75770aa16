# backend/lib/insights_core/rules.py
"""
Insight rules engine.

Each rule looks at the current EnergyMetrics / UsageAnalytics and returns an
Insight or None. Rules are evaluated in order and every match is kept; a
rule never stops the ones after it. When nothing matches a single
informational insight is returned, so callers always get at least one.
"""
from typing import Callable, List, Optional

from .models import DECREASING, INCREASING, EnergyMetrics, Insight, UsageAnalytics
from .scoring import DEFAULT_CATEGORY, benchmark_for, category_label

Rule = Callable[[EnergyMetrics, UsageAnalytics, str], Optional[Insight]]

LOW_EFFICIENCY = 70
HIGH_EFFICIENCY = 90
DOMINANT_DEVICE_PCT = 40

DEFAULT_INSIGHT = Insight(
    type="default",
    title="Energy Usage Normal",
    description="Your energy usage patterns appear normal. Continue monitoring for future insights.",
    severity="info",
    impact="Low",
)


def peak_usage_rule(metrics, analytics, category):
    if not analytics.peak_hours:
        return None
    hour = analytics.peak_hours[0]["hour"]
    return Insight(
        type="peak",
        title="Peak Usage Detected",
        description=(
            f"Your highest energy usage occurs at {hour}:00. "
            "Consider shifting some activities to off-peak hours."
        ),
        severity="warning",
        impact="High",
    )


def peak_alignment_rule(metrics, analytics, category):
    """Top peak hour falls inside the typical peak window for the category."""
    if not analytics.peak_hours:
        return None
    hour = analytics.peak_hours[0]["hour"]
    if hour not in benchmark_for(category)["peak_hours"]:
        return None
    return Insight(
        type="peak",
        title="Peak Hour Usage Detected",
        description=(
            f"Your peak usage at {hour}:00 aligns with typical {category_label(category).lower()} "
            "peak hours. Consider load shifting to reduce costs."
        ),
        severity="warning",
        impact="Medium",
    )


def rising_cost_rule(metrics, analytics, category):
    if metrics.cost_trend != INCREASING:
        return None
    return Insight(
        type="cost",
        title="Rising Energy Costs",
        description=(
            "Your energy costs are trending upward. "
            "Check for devices that might be using more power than usual."
        ),
        severity="alert",
        impact="High",
    )


def falling_cost_rule(metrics, analytics, category):
    if metrics.cost_trend != DECREASING:
        return None
    return Insight(
        type="cost",
        title="Decreasing Energy Costs",
        description="Your energy costs are trending downward. Keep up the good work!",
        severity="success",
        impact="Low",
    )


def low_efficiency_rule(metrics, analytics, category):
    if metrics.efficiency_score >= LOW_EFFICIENCY:
        return None
    return Insight(
        type="efficiency",
        title="Low Efficiency Score",
        description=(
            "Your energy efficiency score is below average. "
            "Consider upgrading to energy-efficient appliances."
        ),
        severity="alert",
        impact="High",
    )


def excellent_efficiency_rule(metrics, analytics, category):
    if metrics.efficiency_score <= HIGH_EFFICIENCY:
        return None
    return Insight(
        type="efficiency",
        title="Excellent Efficiency",
        description="Your energy efficiency score is excellent. You're using energy wisely!",
        severity="success",
        impact="Low",
    )


def dominant_device_rule(metrics, analytics, category):
    if not analytics.device_breakdown:
        return None
    top = max(analytics.device_breakdown, key=lambda d: d["percentage"])
    if top["percentage"] <= DOMINANT_DEVICE_PCT:
        return None
    return Insight(
        type="device",
        title=f"High {top['device']} Usage",
        description=(
            f"{top['device']} accounts for {top['percentage']}% of your energy usage. "
            "Consider optimizing this category."
        ),
        severity="info",
        impact="Medium",
    )


def high_daily_usage_rule(metrics, analytics, category):
    limit = benchmark_for(category)["daily_usage_high"]
    if metrics.daily_total <= limit:
        return None
    return Insight(
        type="usage",
        title="High Daily Usage",
        description=(
            f"Your daily usage of {metrics.daily_total:.1f} kWh is above the typical "
            f"{category} ceiling of {limit} kWh."
        ),
        severity="alert",
        impact="High",
    )


def low_usage_rule(metrics, analytics, category):
    if not 0 < metrics.daily_total < benchmark_for(category)["daily_usage_low"]:
        return None
    label = category_label(category)
    return Insight(
        type="usage",
        title=f"Efficient {label} Usage",
        description=(
            f"Your daily usage of {metrics.daily_total:.1f} kWh is below typical "
            f"{label.lower()} usage. Great job!"
        ),
        severity="success",
        impact="Low",
    )


def budget_rule(metrics, analytics, category):
    budget = benchmark_for(category)["monthly_budget"]
    projection = metrics.daily_cost * 30
    if projection <= budget:
        return None
    return Insight(
        type="cost",
        title="Budget Exceeded",
        description=(
            f"At KSh {metrics.daily_cost:.2f}/day, your monthly cost will be "
            f"KSh {projection:.2f}, exceeding the typical {category} budget of KSh {budget:,}."
        ),
        severity="warning",
        impact="Medium",
    )


DEFAULT_RULES: List[Rule] = [
    peak_usage_rule,
    peak_alignment_rule,
    rising_cost_rule,
    falling_cost_rule,
    low_efficiency_rule,
    excellent_efficiency_rule,
    dominant_device_rule,
    high_daily_usage_rule,
    low_usage_rule,
    budget_rule,
]


class InsightEngine:
    def __init__(self, rules: Optional[List[Rule]] = None):
        self.rules = list(DEFAULT_RULES if rules is None else rules)

    def generate(self, metrics: EnergyMetrics, analytics: UsageAnalytics,
                 category: str = DEFAULT_CATEGORY) -> List[Insight]:
        insights = []
        for rule in self.rules:
            insight = rule(metrics, analytics, category)
            if insight is not None:
                insights.append(insight)
        return insights or [DEFAULT_INSIGHT]


def no_meter_insight() -> Insight:
    return Insight(
        type="no-meter",
        title="No Meter Connected",
        description="Connect your smart meter to get personalized energy insights and real-time data.",
        severity="warning",
        impact="Medium",
    )


def unavailable_insight(message: str) -> Insight:
    return Insight(
        type="error",
        title="Data Unavailable",
        description=message,
        severity="alert",
        impact="High",
    )
