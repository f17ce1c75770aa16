# backend/lib/insights_core/trends.py
from typing import Sequence

from .models import DECREASING, INCREASING, STABLE

TREND_THRESHOLD = 0.10


def classify_trend(recent: float, prior: float, threshold: float = TREND_THRESHOLD) -> str:
    """
    Label the movement of `recent` relative to `prior`.

    recent > prior * 1.1 -> increasing
    recent < prior * 0.9 -> decreasing
    anything else        -> stable
    """
    if recent > prior * (1 + threshold):
        return INCREASING
    if recent < prior * (1 - threshold):
        return DECREASING
    return STABLE


def window_average(values: Sequence[float], size: int = None) -> float:
    """Mean of the first `size` values. The denominator is never below 1."""
    window = list(values if size is None else values[:size])
    return sum(window) / max(1, len(window))


def trend_from_series(values: Sequence[float], window: int = 1) -> str:
    """
    `values` is most-recent-first. The first `window` values are compared
    against the next `window`. Too little history reads as stable.
    """
    window = max(1, window)
    if len(values) < window + 1:
        return STABLE
    recent = window_average(values[:window])
    prior = window_average(values[window:window * 2])
    return classify_trend(recent, prior)
