# tests/test_processor_estimator.py
from datetime import datetime, timedelta, timezone

import pytest

from backend.lib.insights_core.estimator import BillingEstimator, calculate_bill
from backend.lib.insights_core.models import EnergyReading
from backend.lib.insights_core.processor import EnergyAnalyzer

NOW = datetime(2025, 11, 5, 20, 0, tzinfo=timezone.utc)


def reading(ts, kwh, cost, meter="M1"):
    return EnergyReading(f"{meter}-{ts.isoformat()}", "u1", meter, ts, kwh, cost)


def make_readings():
    # Two earlier days plus today; listed oldest first on purpose
    return [
        reading(datetime(2025, 11, 3, 0, 0, tzinfo=timezone.utc), 1.0, 25.0),
        reading(datetime(2025, 11, 3, 1, 0, tzinfo=timezone.utc), 1.5, 37.5),
        reading(datetime(2025, 11, 4, 18, 0, tzinfo=timezone.utc), 5.0, 125.0),  # spike
        reading(datetime(2025, 11, 4, 19, 0, tzinfo=timezone.utc), 2.0, 50.0),
        reading(datetime(2025, 11, 5, 8, 0, tzinfo=timezone.utc), 4.0, 80.0),
        reading(datetime(2025, 11, 5, 18, 0, tzinfo=timezone.utc), 6.0, 120.0),
    ]


def test_empty_readings_give_zero_metrics():
    metrics = EnergyAnalyzer([], now=NOW).summarize()
    assert metrics.daily_total == 0
    assert metrics.daily_cost == 0
    assert metrics.weekly_average == 0
    assert metrics.monthly_total == 0
    assert metrics.current_usage == 0
    assert metrics.cost_trend == "stable"


def test_daily_totals_for_today():
    analyzer = EnergyAnalyzer(make_readings(), now=NOW)
    # 4 + 6 kWh, 80 + 120 KSh
    assert analyzer.daily_total() == 10.0
    assert analyzer.daily_cost() == 200.0


def test_summary():
    metrics = EnergyAnalyzer(make_readings(), now=NOW).summarize("household")
    assert metrics.current_usage == 6.0
    assert metrics.weekly_average == pytest.approx(19.5 / 7)
    assert metrics.monthly_total == 19.5
    # 18:00 carries 5 + 6 kWh
    assert metrics.peak_usage_time == "18:00"
    # latest cost 120 vs previous 80
    assert metrics.cost_trend == "increasing"
    assert metrics.efficiency_score == 95


def test_weekly_average_ignores_old_and_future_readings():
    readings = make_readings() + [
        reading(NOW - timedelta(days=9), 100.0, 2500.0),
        reading(NOW + timedelta(hours=1), 100.0, 2500.0),
    ]
    assert EnergyAnalyzer(readings, now=NOW).weekly_average() == pytest.approx(19.5 / 7)


def test_daily_and_spike_detection():
    analyzer = EnergyAnalyzer(make_readings(), now=NOW)
    daily = analyzer.daily_usage()
    assert daily["2025-11-03"] == 2.5
    assert daily["2025-11-04"] == 7.0
    spikes = analyzer.detect_spikes(threshold_pct=50.0)
    # 2.5 -> 7.0 is +180%, 7.0 -> 10.0 is +43%
    assert spikes == [("2025-11-04", 2.5, 7.0)]
    assert analyzer.monthly_usage() == {"2025-11": 19.5}


def test_hourly_pattern_and_peak_hours():
    analyzer = EnergyAnalyzer(make_readings(), now=NOW)
    pattern = {h["hour"]: h for h in analyzer.hourly_pattern()}
    assert pattern[18]["usage"] == 5.5
    assert pattern[18]["cost"] == 122.5
    peaks = analyzer.peak_hours()
    assert [p["hour"] for p in peaks] == [18, 8, 19]


def test_weekly_trend_covers_every_weekday():
    trend = EnergyAnalyzer(make_readings(), now=NOW).weekly_trend()
    assert [d["day"] for d in trend] == ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    by_day = {d["day"]: d for d in trend}
    # 2025-11-05 is a Wednesday: mean usage 5 kWh
    assert by_day["Wed"]["usage"] == 5.0
    assert by_day["Wed"]["efficiency"] == 90.0
    assert by_day["Sun"]["usage"] == 0
    assert by_day["Sun"]["efficiency"] == 100.0


def test_device_breakdown_follows_category():
    analytics = EnergyAnalyzer(make_readings(), now=NOW).analytics("industry")
    hvac = analytics.device_breakdown[0]
    assert hvac["device"] == "HVAC"
    assert hvac["percentage"] == 45
    assert hvac["cost"] == pytest.approx(90.0)


def test_estimator():
    estimator = BillingEstimator(tariff_rate_per_kwh=0.25)
    usage = {"2025-11-01": 2.5, "2025-11-02": 7.0}
    # total kwh = 9.5 * 0.25 = 2.375 -> rounds half-up to 2.38
    assert estimator.estimate_cost(usage) == 2.38


def test_tariff_bill_breakdown():
    bill = calculate_bill(1000, 10.00)
    assert bill.energy_charge == 10000.0
    assert bill.levies["fuel"] == 4000.0
    assert bill.subtotal_before_vat == 21000.0
    assert bill.vat_base == 16500.0
    assert bill.vat_amount == 2640.0
    assert bill.final_total == 23640.0
    assert bill.cost_per_kwh == 23.64


def test_solar_bill_has_no_levies():
    bill = calculate_bill(100, 12.0, exclude_levies=True)
    assert bill.final_total == 1200.0
    assert bill.vat_amount == 0
    assert set(bill.levies.values()) == {0.0}


def test_zero_kwh_bill():
    assert calculate_bill(0).cost_per_kwh == 0.0


def test_bill_rejects_non_finite_input():
    with pytest.raises(ValueError, match="finite"):
        calculate_bill(float("inf"))
    with pytest.raises(ValueError, match="finite"):
        calculate_bill(100, float("nan"))
    with pytest.raises(ValueError, match="finite"):
        BillingEstimator(float("inf"))
