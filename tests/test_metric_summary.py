import math

from conftest import make_series
from decision.metric_summary import classify_trend, has_metrics, summarize, summarize_all
from decision.models import MetricSample, MetricSeries, Trend


class TestClassifyTrend:
    def test_rising_values_increase(self):
        assert classify_trend([10, 10, 20, 20]) == Trend.INCREASING

    def test_falling_values_decrease(self):
        assert classify_trend([50, 50, 30, 30]) == Trend.DECREASING

    def test_small_change_is_stable(self):
        # +5% is inside the 10% band
        assert classify_trend([100, 100, 105, 105]) == Trend.STABLE

    def test_single_value_is_stable(self):
        assert classify_trend([42.0]) == Trend.STABLE

    def test_empty_is_stable(self):
        assert classify_trend([]) == Trend.STABLE

    def test_zero_first_half_uses_sign_of_second(self):
        assert classify_trend([0, 0, 5, 5]) == Trend.INCREASING
        assert classify_trend([0, 0, 0, 0]) == Trend.STABLE
        assert classify_trend([0, 0, -1, -1]) == Trend.DECREASING

    def test_odd_length_puts_middle_in_later_half(self):
        # halves: [10] and [10, 30] -> mean 20 vs 10
        assert classify_trend([10, 10, 30]) == Trend.INCREASING


class TestSummarize:
    def test_current_is_newest_sample(self):
        series = MetricSeries("cpu", (
            MetricSample(timestamp=300, value=70.0),
            MetricSample(timestamp=100, value=10.0),
            MetricSample(timestamp=200, value=40.0),
        ))
        digest = summarize(series)
        assert digest.current == 70.0
        assert math.isclose(digest.average, 40.0)
        assert digest.trend == Trend.INCREASING

    def test_empty_series_has_no_data(self):
        digest = summarize(MetricSeries("cpu"))
        assert digest.current is None
        assert digest.average is None
        assert digest.trend == Trend.STABLE

    def test_non_finite_values_are_ignored(self):
        series = make_series("cpu", [20.0, float("nan"), 20.0, float("inf")])
        digest = summarize(series)
        assert digest.current == 20.0
        assert digest.average == 20.0

    def test_only_non_finite_values_is_no_data(self):
        digest = summarize(make_series("cpu", [float("nan")]))
        assert digest.current is None

    def test_as_dict_uses_plain_trend_string(self):
        digest = summarize(make_series("cpu", [50.0, 50.0]))
        assert digest.as_dict() == {"current": 50.0, "average": 50.0, "trend": "stable"}


class TestSnapshotHelpers:
    def test_summarize_all_keeps_every_dimension(self):
        snapshot = {"cpu": make_series("cpu", [1.0, 2.0]), "memory": MetricSeries("memory")}
        digests = summarize_all(snapshot)
        assert set(digests) == {"cpu", "memory"}
        assert digests["memory"].current is None

    def test_has_metrics(self):
        assert not has_metrics({})
        assert not has_metrics({"cpu": MetricSeries("cpu")})
        assert has_metrics({"cpu": MetricSeries("cpu"), "memory": make_series("memory", [1.0])})

    def test_only_non_finite_samples_is_no_metrics(self):
        snapshot = {
            "cpu": make_series("cpu", [float("nan")] * 4),
            "memory": make_series("memory", [float("inf"), float("-inf")]),
        }
        assert not has_metrics(snapshot)
