# tests/test_io.py
import pathlib
from datetime import datetime, timedelta, timezone

import pytest

from backend.lib.insights_core.io import (
    billing_from_dict,
    parse_csv_string,
    parse_timestamp,
    reading_from_dict,
)


def test_parse_sample_csv():
    p = pathlib.Path(__file__).parent / "sample.csv"
    readings = parse_csv_string(p.read_text())
    assert len(readings) == 3
    assert readings[0].meter_number == "37192835410"
    assert readings[0].kwh_consumed == 0.34
    assert readings[0].total_cost == 8.5
    assert readings[0].timestamp == datetime(2025, 11, 1, tzinfo=timezone.utc)
    # rate is derived when the column is absent
    assert readings[2].rate == pytest.approx(25.0)


def test_missing_field_rejected():
    text = "meter_number,timestamp,kwh_consumed\nM1,2025-11-01T00:00:00Z,1.0\n"
    with pytest.raises(ValueError, match="total_cost"):
        parse_csv_string(text)


def test_negative_kwh_rejected():
    with pytest.raises(ValueError):
        reading_from_dict({
            "meter_number": "M1",
            "timestamp": "2025-11-01T00:00:00Z",
            "kwh_consumed": -1,
            "total_cost": 0,
        })


def test_bad_timestamp_rejected():
    with pytest.raises(ValueError, match="Invalid timestamp"):
        parse_timestamp("yesterday")


def test_timestamps_normalised_to_utc():
    naive = parse_timestamp("2025-11-01T10:00:00")
    nairobi = parse_timestamp("2025-11-01T13:00:00+03:00")
    assert naive.tzinfo == timezone.utc
    assert nairobi == naive
    assert nairobi.utcoffset() == timedelta(0)


def test_reading_date_alias_and_generated_id():
    reading = reading_from_dict({
        "meter_number": "M1",
        "reading_date": "2025-11-01T00:00:00Z",
        "kwh_consumed": "2",
        "total_cost": "50",
        "cost_per_kwh": "25",
    })
    assert reading.id == "M1-2025-11-01T00:00:00+00:00"
    assert reading.cost_per_kwh == 25.0


def test_billing_row():
    record = billing_from_dict({"amount": "200", "transaction_date": "2025-11-03T09:00:00Z"})
    assert record.amount == 200.0
    assert record.transaction_type == "purchase"


@pytest.mark.parametrize("kwh,cost", [("nan", "10"), ("2", "inf"), ("-inf", "0")])
def test_non_finite_numbers_rejected(kwh, cost):
    with pytest.raises(ValueError, match="finite"):
        reading_from_dict({
            "meter_number": "M1",
            "timestamp": "2025-11-01T00:00:00Z",
            "kwh_consumed": kwh,
            "total_cost": cost,
        })


def test_non_finite_billing_amount_rejected():
    with pytest.raises(ValueError, match="amount"):
        billing_from_dict({"amount": "nan", "transaction_date": "2025-11-03T09:00:00Z"})
