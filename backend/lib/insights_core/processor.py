# backend/lib/insights_core/processor.py
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from .models import EnergyMetrics, EnergyReading, UsageAnalytics
from .scoring import DEFAULT_CATEGORY, device_breakdown, efficiency_score
from .trends import trend_from_series

WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
DEFAULT_PEAK_HOUR = 18


class EnergyAnalyzer:
    def __init__(self, readings: List[EnergyReading], now: Optional[datetime] = None):
        # Most recent first
        self.readings = sorted(readings, key=lambda r: r.timestamp, reverse=True)
        self.now = now or datetime.now(timezone.utc)

    def _today(self) -> List[EnergyReading]:
        today = self.now.date()
        return [r for r in self.readings if r.timestamp.date() == today]

    def _last_week(self) -> List[EnergyReading]:
        cutoff = self.now - timedelta(days=7)
        return [r for r in self.readings if cutoff <= r.timestamp <= self.now]

    def daily_total(self) -> float:
        return sum(r.kwh_consumed for r in self._today())

    def daily_cost(self) -> float:
        return sum(r.total_cost for r in self._today())

    def weekly_average(self) -> float:
        """Mean of the last 7 days' totals; days without readings count as zero."""
        return sum(r.kwh_consumed for r in self._last_week()) / 7

    def weekly_cost_average(self) -> float:
        return sum(r.total_cost for r in self._last_week()) / 7

    def monthly_total(self) -> float:
        return sum(
            r.kwh_consumed for r in self.readings
            if r.timestamp.year == self.now.year and r.timestamp.month == self.now.month
        )

    def current_usage(self) -> float:
        return self.readings[0].kwh_consumed if self.readings else 0.0

    def peak_usage_time(self) -> str:
        by_hour = defaultdict(float)
        for r in self.readings:
            by_hour[r.timestamp.hour] += r.kwh_consumed
        peak_hour = DEFAULT_PEAK_HOUR
        max_usage = 0.0
        for hour in sorted(by_hour):
            if by_hour[hour] > max_usage:
                max_usage = by_hour[hour]
                peak_hour = hour
        return f"{peak_hour:02d}:00"

    def cost_trend(self, window: int = 1) -> str:
        return trend_from_series([r.total_cost for r in self.readings], window)

    def summarize(self, category: str = DEFAULT_CATEGORY) -> EnergyMetrics:
        if not self.readings:
            return EnergyMetrics()
        weekly_average = self.weekly_average()
        return EnergyMetrics(
            current_usage=self.current_usage(),
            daily_total=self.daily_total(),
            daily_cost=self.daily_cost(),
            efficiency_score=efficiency_score(weekly_average, category),
            weekly_average=weekly_average,
            monthly_total=self.monthly_total(),
            peak_usage_time=self.peak_usage_time(),
            cost_trend=self.cost_trend(),
        )

    def daily_usage(self) -> Dict[str, float]:
        """
        Returns a dict keyed by 'YYYY-MM-DD' -> total kWh.

        Readings are interval values (not cumulative meter registers).
        """
        daily = defaultdict(float)
        for r in self.readings:
            daily[r.timestamp.strftime("%Y-%m-%d")] += r.kwh_consumed
        return dict(daily)

    def monthly_usage(self) -> Dict[str, float]:
        """Aggregates daily_usage into monthly totals (YYYY-MM)."""
        monthly = defaultdict(float)
        for day_str, kwh in self.daily_usage().items():
            monthly[day_str[:7]] += kwh
        return dict(monthly)

    def detect_spikes(self, threshold_pct: float = 50.0) -> List[Tuple[str, float, float]]:
        """
        Days whose total rose by more than threshold_pct over the previous day.
        Returns list of tuples: (date_str, prev_total, curr_total)
        """
        items = sorted(self.daily_usage().items())
        spikes = []
        for (prev_date, prev_val), (curr_date, curr_val) in zip(items, items[1:]):
            if prev_val == 0:
                continue
            change_pct = (curr_val - prev_val) / prev_val * 100
            if change_pct > threshold_pct:
                spikes.append((curr_date, round(prev_val, 4), round(curr_val, 4)))
        return spikes

    def hourly_pattern(self) -> List[dict]:
        buckets = defaultdict(lambda: [0.0, 0.0, 0])
        for r in self.readings:
            bucket = buckets[r.timestamp.hour]
            bucket[0] += r.kwh_consumed
            bucket[1] += r.total_cost
            bucket[2] += 1
        return [
            {"hour": hour, "usage": usage / count, "cost": cost / count}
            for hour, (usage, cost, count) in sorted(buckets.items())
        ]

    def weekly_trend(self) -> List[dict]:
        buckets = defaultdict(lambda: [0.0, 0.0, 0])
        for r in self.readings:
            bucket = buckets[WEEKDAYS[r.timestamp.weekday()]]
            bucket[0] += r.kwh_consumed
            bucket[1] += r.total_cost
            bucket[2] += 1
        trend = []
        for day in WEEKDAYS:
            usage, cost, count = buckets.get(day, (0.0, 0.0, 0))
            count = max(1, count)
            mean_usage = usage / count
            trend.append({
                "day": day,
                "usage": mean_usage,
                "cost": cost / count,
                "efficiency": max(60.0, min(100.0, 100 - mean_usage * 2)),
            })
        return trend

    def peak_hours(self, limit: int = 3) -> List[dict]:
        ranked = sorted(self.hourly_pattern(), key=lambda h: h["usage"], reverse=True)
        return [{"hour": h["hour"], "usage": h["usage"]} for h in ranked[:limit]]

    def analytics(self, category: str = DEFAULT_CATEGORY) -> UsageAnalytics:
        return UsageAnalytics(
            hourly_pattern=self.hourly_pattern(),
            weekly_trend=self.weekly_trend(),
            device_breakdown=device_breakdown(category, self.daily_cost()),
            peak_hours=self.peak_hours(),
        )
