# backend/lib/insights_core/dashboard.py
from datetime import datetime
from typing import List, Optional

from .models import EnergyMetrics, EnergyReading, Insight, UsageAnalytics
from .processor import EnergyAnalyzer
from .rules import InsightEngine, no_meter_insight, unavailable_insight
from .scoring import DEFAULT_CATEGORY


def derive_insights(readings: List[EnergyReading], category: str = DEFAULT_CATEGORY,
                    now: Optional[datetime] = None, error: Optional[str] = None,
                    engine: Optional[InsightEngine] = None) -> List[Insight]:
    """
    Insights for one meter's reading window.

    A failed data fetch (`error`) and a meter with no readings are reported
    as a single insight instead of running the rules.
    """
    if error:
        return [unavailable_insight(error)]
    if not readings:
        return [no_meter_insight()]
    analyzer = EnergyAnalyzer(readings, now=now)
    engine = engine or InsightEngine()
    return engine.generate(analyzer.summarize(category), analyzer.analytics(category), category)


def dashboard_snapshot(readings: List[EnergyReading], category: str = DEFAULT_CATEGORY,
                       now: Optional[datetime] = None, error: Optional[str] = None) -> dict:
    """
    Metrics, analytics and insights in one dict. When the readings could not
    be loaded (`error`) metrics and analytics are empty placeholders.
    """
    if error:
        return {
            "has_meter_connected": False,
            "metrics": EnergyMetrics().to_dict(),
            "analytics": UsageAnalytics().to_dict(),
            "insights": [unavailable_insight(error).to_dict()],
        }
    analyzer = EnergyAnalyzer(readings, now=now)
    return {
        "has_meter_connected": bool(readings),
        "metrics": analyzer.summarize(category).to_dict(),
        "analytics": analyzer.analytics(category).to_dict(),
        "insights": [i.to_dict() for i in derive_insights(readings, category, now=analyzer.now)],
    }
