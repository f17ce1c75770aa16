# backend/lib/insights_core/io.py
import csv
import math
from datetime import datetime, timezone
from io import StringIO
from typing import List

from .models import BillingRecord, EnergyReading

REQUIRED_FIELDS = ("meter_number", "timestamp", "kwh_consumed", "total_cost")


def parse_timestamp(value) -> datetime:
    """
    Accepts a datetime or an ISO8601 string (a trailing Z is allowed) and
    returns an aware datetime in UTC. Naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        ts = value
    else:
        try:
            ts = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"Invalid timestamp: {value!r}")
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _finite(row: dict, name: str) -> float:
    """row[name] as a float; NaN and infinities are rejected."""
    try:
        value = float(row[name])
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number: {row}")
    if not math.isfinite(value):
        raise ValueError(f"{name} must be a finite number: {row}")
    return value


def reading_from_dict(row: dict) -> EnergyReading:
    """
    Build an EnergyReading from a JSON body, a CSV row or a stored item.
    `reading_date` is accepted as an alias of `timestamp`.
    """
    row = dict(row)
    if not row.get("timestamp") and row.get("reading_date"):
        row["timestamp"] = row["reading_date"]
    missing = [name for name in REQUIRED_FIELDS if row.get(name) in (None, "")]
    if missing:
        raise ValueError(f"Missing field(s) {', '.join(missing)} in row: {row}")

    kwh = _finite(row, "kwh_consumed")
    cost = _finite(row, "total_cost")
    if kwh < 0:
        raise ValueError("kwh_consumed must be >= 0")
    if cost < 0:
        raise ValueError("total_cost must be >= 0")

    timestamp = parse_timestamp(row["timestamp"])
    rate = _finite(row, "cost_per_kwh") if row.get("cost_per_kwh") not in (None, "") else None
    return EnergyReading(
        id=str(row.get("id") or f"{row['meter_number']}-{timestamp.isoformat()}"),
        user_id=str(row.get("user_id") or ""),
        meter_number=str(row["meter_number"]),
        timestamp=timestamp,
        kwh_consumed=kwh,
        total_cost=cost,
        cost_per_kwh=rate,
    )


def billing_from_dict(row: dict) -> BillingRecord:
    if row.get("amount") in (None, "") or not row.get("transaction_date"):
        raise ValueError(f"Missing amount or transaction_date in row: {row}")
    return BillingRecord(
        id=str(row.get("id") or ""),
        user_id=str(row.get("user_id") or ""),
        amount=_finite(row, "amount"),
        transaction_date=parse_timestamp(row["transaction_date"]),
        transaction_type=row.get("transaction_type") or "purchase",
    )


def parse_csv_string(csv_text: str) -> List[EnergyReading]:
    """
    Parse CSV text with header:
    id,user_id,meter_number,timestamp,kwh_consumed,total_cost[,cost_per_kwh]
    Only meter_number, timestamp, kwh_consumed and total_cost are required.
    """
    f = StringIO(csv_text.strip())
    reader = csv.DictReader(f)
    return [reading_from_dict(row) for row in reader]
