# decision/scaling_policy.py

import datetime
import logging
import time
import traceback

from decision.errors import (
    RecommendError,
    RetriesExhaustedError,
    ScalingExecutionError,
    TransportError,
)
from decision.interfaces import ComputeBackend, MetricsSource, TemplateSource
from decision.metric_summary import has_metrics, summarize_all
from decision.models import (
    CycleHooks,
    CycleOutcome,
    CycleStatus,
    Recommendation,
    ScalingAction,
    ScalingDecision,
    ScalingState,
    SkipReason,
    Topology,
)
from decision.prompt_builder import build_prompt, read_template
from decision.retry import call_with_retries


def clamp_instances(value, min_instances, max_instances):
    """
    Round and force `value` into [min_instances, max_instances].

    Bounds are re-ordered first, so the result is always inside the range even
    if a caller passes them swapped.
    """
    lo, hi = sorted((int(min_instances), int(max_instances)))
    return max(lo, min(hi, int(round(value))))


class ScalingDecisionEngine:
    """
    Runs one decision cycle at a time against a single scale set.

    CooldownCheck -> MetricsCheck -> Recommending -> ConfidenceGate ->
    Clamping -> NoOpCheck -> Executing -> Recording. Every stage may end the
    cycle early with a skip; only execution (or capacity lookup) exhaustion
    produces a failure. Nothing raised inside a cycle escapes run_cycle().
    """

    def __init__(self, metrics_source: MetricsSource, recommender, backend: ComputeBackend, state=None,
                 clock=time.time, sleep=time.sleep, template_reader: TemplateSource = read_template,
                 hooks=None):
        self.metrics_source = metrics_source
        self.recommender = recommender
        self.backend = backend
        self.state = state or ScalingState()
        self.clock = clock
        self.sleep = sleep
        self.template_reader = template_reader
        self.hooks = hooks or CycleHooks()

    def run_cycle(self, config):
        return self._guarded(config, lambda: self._run(config))

    def scale_manually(self, config, capacity):
        """
        Apply an operator-chosen capacity without asking the recommender.

        The request skips the cooldown check but is otherwise handled like a
        recommendation: clamped to bounds, no-op detection, dry run, retries.
        It shares the in-progress guard with run_cycle, and a successful change
        starts the cooldown so the next automatic cycle does not undo it.

        Raises ValueError for a capacity that is not a positive integer.
        """
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
            raise ValueError(f"Invalid capacity {capacity!r}. Must be a positive integer.")
        return self._guarded(config, lambda: self._run_manual(config, capacity))

    def read_capacity(self, config):
        """Current capacity, retried like a scaling call. Raises RetriesExhaustedError."""
        capacity, _ = call_with_retries(
            lambda: int(self.backend.get_capacity(config.identity)),
            attempts=config.retry_count,
            base_delay=config.retry_base_delay,
            cap_delay=config.retry_cap_delay,
            sleep=self.sleep,
            label=f"Capacity lookup for {config.identity}",
        )
        self.hooks.capacity_observed(config.identity, capacity)
        return capacity

    def _guarded(self, config, step):
        if not self.state.lock.acquire(blocking=False):
            outcome = CycleOutcome.skipped(SkipReason.ALREADY_IN_PROGRESS)
            self._finish(config, outcome)
            return outcome

        try:
            outcome = step()
        except Exception as e:
            logging.error(f"Unexpected error in scaling cycle: {e}")
            logging.error(traceback.format_exc())
            outcome = CycleOutcome.failed("unexpected_error", str(e))
        finally:
            self.state.lock.release()

        self._finish(config, outcome)
        return outcome

    def _run_manual(self, config, capacity):
        try:
            current = self.read_capacity(config)
        except RetriesExhaustedError as e:
            return CycleOutcome.failed("capacity_unavailable", str(e), attempts=e.attempts)

        recommendation = Recommendation(recommended_instances=capacity, reasoning="Manual scaling request")
        target = clamp_instances(capacity, config.min_instances, config.max_instances)
        detail = {"current_capacity": current, "target": target, "manual": True}
        context = {"recommendation": recommendation}
        logging.info(f"Manual scaling request for {config.identity}: {capacity} instances (target {target})")

        if target == current:
            return self._no_change(config, recommendation, current, detail, context)
        return self._apply(config, recommendation, current, target, detail, context)

    def _no_change(self, config, recommendation, capacity, detail, context, attempts=0):
        no_change = ScalingDecision(
            action=ScalingAction.NO_CHANGE,
            recommendation=recommendation,
            target=capacity,
            previous_capacity=capacity,
            dry_run=config.dry_run,
        )
        return CycleOutcome.skipped(
            SkipReason.NO_CHANGE_NEEDED,
            decision=no_change,
            attempts=attempts,
            detail=detail,
            **context,
        )

    def _apply(self, config, recommendation, capacity, target, detail, context):
        decision = ScalingDecision(
            action=ScalingAction.SCALE_TO,
            recommendation=recommendation,
            target=target,
            previous_capacity=capacity,
            dry_run=config.dry_run,
        )
        context = {k: v for k, v in context.items() if k != "recommendation"}

        # Executing
        if config.dry_run:
            logging.info(f"[DRY RUN] Would scale {config.identity} from {capacity} to {target} instances")
            decision.attempts = 1
        else:
            logging.info(f"Scaling {config.identity} from {capacity} to {target} instances")
            try:
                _, decision.attempts = call_with_retries(
                    lambda: self.backend.set_capacity(config.identity, target),
                    attempts=config.retry_count,
                    base_delay=config.retry_base_delay,
                    cap_delay=config.retry_cap_delay,
                    sleep=self.sleep,
                    label=f"Scaling {config.identity} to {target}",
                )
            except RetriesExhaustedError as e:
                decision.attempts = e.attempts
                error = ScalingExecutionError(config.identity, target, e.attempts, e.last_error)
                # Cooldown stays untouched so the next cycle may retry
                return CycleOutcome.failed(
                    "scaling_execution_error",
                    str(error),
                    decision=decision,
                    recommendation=recommendation,
                    attempts=e.attempts,
                    detail=detail,
                    **context,
                )

        # Recording
        applied_at = self.clock()
        decision.applied_at = applied_at
        self.state.cooldown.last_scaling_timestamp = applied_at

        return CycleOutcome.succeeded(decision, detail=detail, **context)

    def _run(self, config):
        now = self.clock()

        # Cooldown
        remaining = self.state.cooldown.remaining(now, config.cooldown_seconds)
        if remaining > 0:
            return CycleOutcome.skipped(
                SkipReason.IN_COOLDOWN,
                detail={"cooldown_remaining_seconds": round(remaining, 1)},
            )

        # Metrics
        try:
            snapshot = self.metrics_source.fetch(
                config.metrics_lookback_seconds, config.metrics_interval_seconds
            )
        except TransportError as e:
            logging.warning(f"Metrics source unavailable: {e}")
            return CycleOutcome.skipped(SkipReason.NO_METRICS, detail={"metrics_error": str(e)})

        if not has_metrics(snapshot):
            return CycleOutcome.skipped(SkipReason.NO_METRICS)

        digests = summarize_all(snapshot)

        # Topology
        try:
            capacity = self.read_capacity(config)
        except RetriesExhaustedError as e:
            return CycleOutcome.failed("capacity_unavailable", str(e), attempts=e.attempts)

        topology = Topology(
            current_capacity=capacity,
            min_instances=config.min_instances,
            max_instances=config.max_instances,
            vm_size=self._vm_size(config),
            identity=config.identity,
        )

        # Recommending
        prompt = build_prompt(topology, digests, config.prompt_template_path, self.template_reader)
        detail = {"current_capacity": capacity}
        if prompt.warning:
            detail["prompt_warning"] = prompt.warning

        try:
            result = self.recommender.recommend(prompt.text, config.primary_model, config.fallback_model)
        except RecommendError as e:
            logging.warning(f"No usable recommendation: {e}")
            return CycleOutcome.skipped(
                SkipReason.NO_RECOMMENDATION,
                error=str(e),
                attempts=getattr(e, "attempts", 0),
                detail=detail,
            )

        recommendation = result.recommendation
        context = {
            "recommendation": recommendation,
            "model": result.model,
            "fallback_used": result.fallback_used,
        }

        # Confidence gate
        confidence = recommendation.effective_confidence
        if confidence < config.confidence_threshold:
            detail.update({
                "confidence": confidence,
                "confidence_threshold": config.confidence_threshold,
                "reasoning": recommendation.reasoning,
            })
            return CycleOutcome.skipped(
                SkipReason.LOW_CONFIDENCE, attempts=result.attempts, detail=detail, **context
            )

        # Clamping
        target = clamp_instances(
            recommendation.recommended_instances, config.min_instances, config.max_instances
        )
        detail["target"] = target
        if target != recommendation.recommended_instances:
            logging.info(
                f"Recommended {recommendation.recommended_instances} instances, "
                f"clamped to {target} (bounds {config.min_instances}-{config.max_instances})"
            )

        if target == capacity:
            return self._no_change(config, recommendation, capacity, detail, context, attempts=result.attempts)

        return self._apply(config, recommendation, capacity, target, detail, context)

    def _vm_size(self, config):
        if config.vm_size:
            return config.vm_size
        try:
            return self.backend.describe_vm_size(config.identity) or "unknown"
        except Exception as e:
            logging.warning(f"Could not determine VM size for {config.identity}: {e}")
            return "unknown"

    def _finish(self, config, outcome):
        timestamp = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        rec = outcome.recommendation
        decision = outcome.decision
        log_entry = (
            f"timestamp={timestamp} | "
            f"identity={config.identity} | "
            f"status={outcome.status.value} | "
            f"reason={outcome.reason} | "
            f"recommended={rec.recommended_instances if rec else None} | "
            f"confidence={rec.confidence if rec else None} | "
            f"target={decision.target if decision else outcome.detail.get('target')} | "
            f"model={outcome.model} | "
            f"fallback_used={outcome.fallback_used} | "
            f"attempts={outcome.attempts} | "
            f"dry_run={config.dry_run}"
        )

        if outcome.status == CycleStatus.FAILED:
            logging.error(f"{log_entry} | error={outcome.error}")
        else:
            logging.info(log_entry)

        if rec and rec.reasoning:
            logging.info(f"Reasoning: {rec.reasoning}")

        try:
            self.hooks.cycle_finished(outcome)
        except Exception as e:
            logging.error(f"Cycle hook failed: {e}")
