# backend/lib/insights_core/models.py
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import List, Optional

INCREASING = "increasing"
DECREASING = "decreasing"
STABLE = "stable"

# severity -> dashboard color
SEVERITY_COLORS = {
    "alert": "red",
    "warning": "amber",
    "success": "green",
    "info": "blue",
}


@dataclass(frozen=True)
class EnergyReading:
    id: str
    user_id: str
    meter_number: str
    timestamp: datetime
    kwh_consumed: float
    total_cost: float
    cost_per_kwh: Optional[float] = None

    @property
    def rate(self) -> float:
        if self.cost_per_kwh is not None:
            return self.cost_per_kwh
        return self.total_cost / self.kwh_consumed if self.kwh_consumed > 0 else 0.0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "meter_number": self.meter_number,
            "timestamp": self.timestamp.isoformat(),
            "kwh_consumed": self.kwh_consumed,
            "total_cost": self.total_cost,
            "cost_per_kwh": self.rate,
        }


@dataclass(frozen=True)
class BillingRecord:
    id: str
    user_id: str
    amount: float
    transaction_date: datetime
    transaction_type: str = "purchase"


@dataclass(frozen=True)
class Insight:
    type: str
    title: str
    description: str
    severity: str
    impact: str

    @property
    def color(self) -> str:
        return SEVERITY_COLORS.get(self.severity, "blue")

    def to_dict(self) -> dict:
        data = asdict(self)
        data["color"] = self.color
        return data


@dataclass(frozen=True)
class EnergyMetrics:
    current_usage: float = 0.0
    daily_total: float = 0.0
    daily_cost: float = 0.0
    efficiency_score: int = 87
    weekly_average: float = 0.0
    monthly_total: float = 0.0
    peak_usage_time: str = "18:00"
    cost_trend: str = STABLE

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class UsageAnalytics:
    hourly_pattern: List[dict] = field(default_factory=list)
    weekly_trend: List[dict] = field(default_factory=list)
    device_breakdown: List[dict] = field(default_factory=list)
    peak_hours: List[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class TokenAnalytics:
    current_balance: float
    daily_consumption_avg: float
    estimated_days_remaining: int
    monthly_spending: float
    trend: str = STABLE
    last_purchase_date: Optional[datetime] = None
    data_source: str = "database"

    def to_dict(self) -> dict:
        data = asdict(self)
        data["last_purchase_date"] = (
            self.last_purchase_date.isoformat() if self.last_purchase_date else None
        )
        return data
