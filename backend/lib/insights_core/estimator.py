# backend/lib/insights_core/estimator.py
import math
from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict

# KSh per kWh, applied on top of the energy charge
LEVY_RATES = {
    "fuel": 4.00,
    "forex": 0.50,
    "inflation": 2.00,
    "epra": 3.00,
    "wra": 1.00,
    "rep": 0.50,
}
# VAT applies to the energy charge plus these levies only
VATABLE_LEVIES = ("fuel", "forex", "inflation")
VAT_RATE = 0.16


def round_money(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


class BillingEstimator:
    def __init__(self, tariff_rate_per_kwh: float = 25.0):
        """
        tariff_rate_per_kwh: flat rate in currency units per kWh (e.g., KSh/kWh)
        """
        self.rate = float(tariff_rate_per_kwh)
        if not math.isfinite(self.rate):
            raise ValueError("tariff_rate_per_kwh must be a finite number")

    def estimate_cost(self, usage_by_period: Dict[str, float]) -> float:
        """
        usage_by_period: dict like {'2025-11-01': 3.4, ...}
        returns total cost rounded half-up to 2 decimals
        """
        total_kwh = sum(float(v) for v in usage_by_period.values())
        return round_money(total_kwh * self.rate)


@dataclass(frozen=True)
class BillBreakdown:
    total_kwh: float
    energy_charge_rate: float
    energy_charge: float
    levies: Dict[str, float]
    subtotal_before_vat: float
    vat_base: float
    vat_rate: float
    vat_amount: float
    final_total: float
    cost_per_kwh: float

    def to_dict(self) -> dict:
        return asdict(self)


def calculate_bill(kwh: float, rate: float = 10.00, exclude_levies: bool = False) -> BillBreakdown:
    """
    Kenya Power style bill: energy charge, per-kWh levies, then 16% VAT on
    the energy charge plus the fuel, forex and inflation levies.

    exclude_levies is for solar providers, which bill the energy charge only.
    """
    if not (math.isfinite(kwh) and math.isfinite(rate)):
        raise ValueError("kwh and rate must be finite numbers")
    if kwh < 0:
        raise ValueError("kwh must be >= 0")
    energy_charge = kwh * rate

    if exclude_levies:
        levies = {name: 0.0 for name in LEVY_RATES}
        vat_base = 0.0
        vat_rate = 0.0
    else:
        levies = {name: kwh * levy_rate for name, levy_rate in LEVY_RATES.items()}
        vat_base = energy_charge + sum(levies[name] for name in VATABLE_LEVIES)
        vat_rate = VAT_RATE

    subtotal = energy_charge + sum(levies.values())
    vat_amount = vat_base * vat_rate
    total = subtotal + vat_amount

    return BillBreakdown(
        total_kwh=kwh,
        energy_charge_rate=rate,
        energy_charge=round_money(energy_charge),
        levies={name: round_money(value) for name, value in levies.items()},
        subtotal_before_vat=round_money(subtotal),
        vat_base=round_money(vat_base),
        vat_rate=vat_rate,
        vat_amount=round_money(vat_amount),
        final_total=round_money(total),
        cost_per_kwh=round_money(total / kwh) if kwh > 0 else 0.0,
    )
