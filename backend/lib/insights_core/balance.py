# backend/lib/insights_core/balance.py
"""
Simulated prepaid-token balance.

There is no real token ledger behind these numbers: the balance is a
placeholder derived from a fixed ceiling minus a week of average spending.
"""
import math
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from .models import BillingRecord, EnergyReading, TokenAnalytics
from .processor import EnergyAnalyzer
from .trends import classify_trend, window_average

TOKEN_CEILING = 500.0
LOW_BALANCE = 100.0
LOW_DAYS = 3


def simulated_balance(avg_daily_cost: float, ceiling: float = TOKEN_CEILING) -> float:
    return max(0.0, ceiling - avg_daily_cost * 7)


def days_remaining(balance: float, avg_daily_cost: float) -> int:
    if avg_daily_cost <= 0:
        return 0
    return int(math.floor(balance / avg_daily_cost))


def consumption_trend(readings: List[EnergyReading], now: datetime) -> str:
    """Mean reading cost over the last 7 days against the 7 days before."""
    week_ago = now - timedelta(days=7)
    fortnight_ago = now - timedelta(days=14)
    recent = [r.total_cost for r in readings if week_ago <= r.timestamp <= now]
    prior = [r.total_cost for r in readings if fortnight_ago <= r.timestamp < week_ago]
    if not recent or not prior:
        return "stable"
    return classify_trend(window_average(recent), window_average(prior))


def token_analytics(readings: List[EnergyReading], billing: Optional[List[BillingRecord]] = None,
                    now: Optional[datetime] = None,
                    ceiling: float = TOKEN_CEILING) -> TokenAnalytics:
    now = now or datetime.now(timezone.utc)
    billing = billing or []

    purchases = sorted(
        (b for b in billing if b.transaction_type == "purchase"),
        key=lambda b: b.transaction_date,
        reverse=True,
    )
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    monthly_spending = sum(b.amount for b in purchases if b.transaction_date >= month_start)
    last_purchase = purchases[0].transaction_date if purchases else None

    if not readings:
        return TokenAnalytics(
            current_balance=0.0,
            daily_consumption_avg=0.0,
            estimated_days_remaining=0,
            monthly_spending=monthly_spending,
            last_purchase_date=last_purchase,
            data_source="no_meter",
        )

    analyzer = EnergyAnalyzer(readings, now=now)
    avg_cost = analyzer.weekly_cost_average()
    balance = simulated_balance(avg_cost, ceiling)
    return TokenAnalytics(
        current_balance=round(balance, 2),
        daily_consumption_avg=round(analyzer.weekly_average(), 4),
        estimated_days_remaining=days_remaining(balance, avg_cost),
        monthly_spending=monthly_spending,
        trend=consumption_trend(analyzer.readings, now),
        last_purchase_date=last_purchase,
    )


def token_alert(analytics: TokenAnalytics) -> Optional[dict]:
    """
    Notification for a low or empty balance, or None when the balance is fine.
    Meters with no data never alert.
    """
    if analytics.data_source == "no_meter":
        return None
    balance = analytics.current_balance
    days = analytics.estimated_days_remaining
    if balance <= 0:
        return {
            "type": "token_depleted",
            "title": "Tokens Depleted",
            "message": ("Your electricity tokens have been depleted. Please purchase new "
                        "tokens immediately to avoid power disconnection."),
            "severity": "critical",
            "token_balance": balance,
            "estimated_days": 0,
        }
    if balance <= LOW_BALANCE:
        return {
            "type": "token_low",
            "title": "Low Token Balance",
            "message": (f"Your token balance is running low (KSh {balance:.2f}). "
                        "Consider purchasing more tokens soon."),
            "severity": "high",
            "token_balance": balance,
            "estimated_days": days,
        }
    # days is 0 only when nothing is being spent
    if 0 < days <= LOW_DAYS:
        return {
            "type": "token_low",
            "title": "Token Balance Warning",
            "message": (f"Your current token balance will last approximately {days} days "
                        "based on your usage pattern."),
            "severity": "medium",
            "token_balance": balance,
            "estimated_days": days,
        }
    return None
