# backend/telemetry.py

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

from decision.models import CycleHooks, CycleStatus


class PrometheusHooks(CycleHooks):
    """Exports cycle outcomes and recommender behaviour as Prometheus metrics."""

    def __init__(self, registry=None):
        self.registry = registry or CollectorRegistry()

        self.cycle_outcomes = Counter(
            "autoscaler_cycle_outcomes_total",
            "Decision cycles by terminal outcome",
            ["status", "reason"],
            registry=self.registry,
        )
        self.scaling_actions = Counter(
            "autoscaler_scaling_actions_total",
            "Count of scaling actions performed",
            ["direction", "status"],
            registry=self.registry,
        )
        self.recommender_response = Histogram(
            "autoscaler_recommender_response_seconds",
            "Response time of recommender calls",
            ["model", "status"],
            buckets=[0.1, 0.3, 0.5, 0.7, 1, 3, 5, 7, 10, 30, 60, 120],
            registry=self.registry,
        )
        self.recommender_confidence = Gauge(
            "autoscaler_recommender_confidence",
            "Confidence score of the last recommendation",
            ["model"],
            registry=self.registry,
        )
        self.current_instances = Gauge(
            "autoscaler_current_instances",
            "Current number of instances in the scale set",
            ["identity"],
            registry=self.registry,
        )

    def capacity_observed(self, identity, capacity):
        self.current_instances.labels(identity).set(capacity)

    def recommendation_completed(self, model, seconds, ok, confidence=None):
        self.recommender_response.labels(model, "success" if ok else "error").observe(seconds)
        if ok and confidence is not None:
            self.recommender_confidence.labels(model).set(confidence)

    def cycle_finished(self, outcome):
        self.cycle_outcomes.labels(outcome.status.value, outcome.reason or "").inc()

        if outcome.decision is None:
            return
        direction = outcome.decision.direction
        if outcome.status == CycleStatus.SUCCEEDED:
            self.scaling_actions.labels(direction, "dry_run" if outcome.decision.dry_run else "success").inc()
        elif outcome.status == CycleStatus.FAILED:
            self.scaling_actions.labels(direction, "failure").inc()
