# decision/metric_summary.py

import math

import numpy as np

from decision.models import MetricDigest, MetricSeries, Trend

# Percent change between the earlier and later half of a window that counts
# as a trend. Policy knob, not a derived constant.
TREND_THRESHOLD_PERCENT = 10.0


def _finite_samples(series: MetricSeries):
    return [s for s in series.samples if s.value is not None and math.isfinite(s.value)]


def classify_trend(values, threshold=TREND_THRESHOLD_PERCENT) -> Trend:
    """
    Classify a chronologically ordered list of values.

    The earlier half is compared with the later half; when the earlier mean is
    zero the sign of the later mean decides, so this never divides by zero.
    """
    half = len(values) // 2
    first, second = values[:half], values[half:]
    if not first or not second:
        return Trend.STABLE

    first_mean = float(np.mean(first))
    second_mean = float(np.mean(second))

    if first_mean == 0 or not math.isfinite(first_mean):
        if second_mean > 0:
            return Trend.INCREASING
        if second_mean < 0:
            return Trend.DECREASING
        return Trend.STABLE

    change_pct = (second_mean - first_mean) / abs(first_mean) * 100
    if change_pct > threshold:
        return Trend.INCREASING
    if change_pct < -threshold:
        return Trend.DECREASING
    return Trend.STABLE


def summarize(series: MetricSeries) -> MetricDigest:
    """Reduce a raw series to current / average / trend. Empty series -> no data, stable."""
    samples = _finite_samples(series)
    if not samples:
        return MetricDigest(current=None, average=None, trend=Trend.STABLE)

    newest_first = sorted(samples, key=lambda s: s.timestamp, reverse=True)
    current = newest_first[0].value
    average = float(np.mean([s.value for s in samples]))

    chronological = [s.value for s in reversed(newest_first)]
    return MetricDigest(current=current, average=average, trend=classify_trend(chronological))


def summarize_all(snapshot):
    """Digest every dimension of a metrics snapshot (name -> MetricSeries)."""
    return {name: summarize(series) for name, series in snapshot.items()}


def has_metrics(snapshot) -> bool:
    if not snapshot:
        return False
    # Series holding only NaN or Inf samples carry no data
    return any(_finite_samples(series) for series in snapshot.values())
