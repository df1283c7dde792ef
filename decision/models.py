# decision/models.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Trend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


@dataclass(frozen=True)
class MetricSample:
    timestamp: float  # epoch seconds
    value: float


@dataclass(frozen=True)
class MetricSeries:
    name: str
    samples: Tuple[MetricSample, ...] = ()

    def is_empty(self) -> bool:
        return len(self.samples) == 0


@dataclass(frozen=True)
class MetricDigest:
    current: Optional[float]
    average: Optional[float]
    trend: Trend = Trend.STABLE

    def as_dict(self) -> Dict[str, Any]:
        return {"current": self.current, "average": self.average, "trend": self.trend.value}


@dataclass(frozen=True)
class Topology:
    current_capacity: int
    min_instances: int
    max_instances: int
    vm_size: str
    identity: str


@dataclass(frozen=True)
class Recommendation:
    recommended_instances: int
    confidence: Optional[float] = None
    reasoning: Optional[str] = None

    @property
    def effective_confidence(self) -> float:
        # Absent confidence means the recommender did not hedge
        return 1.0 if self.confidence is None else self.confidence

    def as_dict(self) -> Dict[str, Any]:
        return {
            "recommended_instances": self.recommended_instances,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


class ScalingAction(str, Enum):
    NO_CHANGE = "no_change"
    SCALE_TO = "scale_to"


@dataclass
class ScalingDecision:
    action: ScalingAction
    recommendation: Recommendation
    target: Optional[int] = None
    previous_capacity: Optional[int] = None
    applied_at: Optional[float] = None
    dry_run: bool = False
    attempts: int = 0

    @property
    def direction(self) -> str:
        if self.target is None or self.previous_capacity is None or self.target == self.previous_capacity:
            return "none"
        return "up" if self.target > self.previous_capacity else "down"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "target": self.target,
            "previous_capacity": self.previous_capacity,
            "direction": self.direction,
            "applied_at": self.applied_at,
            "dry_run": self.dry_run,
            "attempts": self.attempts,
            "recommendation": self.recommendation.as_dict(),
        }


@dataclass
class CooldownState:
    last_scaling_timestamp: Optional[float] = None

    def remaining(self, now: float, cooldown_seconds: float) -> float:
        if self.last_scaling_timestamp is None:
            return 0.0
        return max(0.0, cooldown_seconds - (now - self.last_scaling_timestamp))


@dataclass
class ScalingState:
    """
    Cross-cycle state owned by one engine (one target resource).

    The lock is the in-progress guard: a cycle holds it from CooldownCheck
    until its terminal outcome is produced.
    """

    cooldown: CooldownState = field(default_factory=CooldownState)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def in_progress(self) -> bool:
        return self.lock.locked()


class SkipReason(str, Enum):
    IN_COOLDOWN = "in_cooldown"
    NO_METRICS = "no_metrics"
    NO_RECOMMENDATION = "no_recommendation"
    LOW_CONFIDENCE = "low_confidence"
    NO_CHANGE_NEEDED = "no_change_needed"
    ALREADY_IN_PROGRESS = "already_in_progress"


class CycleStatus(str, Enum):
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class CycleOutcome:
    status: CycleStatus
    reason: Optional[str] = None  # SkipReason value or failure kind
    decision: Optional[ScalingDecision] = None
    recommendation: Optional[Recommendation] = None
    error: Optional[str] = None
    attempts: int = 0
    model: Optional[str] = None
    fallback_used: bool = False
    detail: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def skipped(cls, reason: SkipReason, **kwargs) -> "CycleOutcome":
        return cls(status=CycleStatus.SKIPPED, reason=reason.value, **kwargs)

    @classmethod
    def succeeded(cls, decision: ScalingDecision, **kwargs) -> "CycleOutcome":
        return cls(
            status=CycleStatus.SUCCEEDED,
            decision=decision,
            recommendation=decision.recommendation,
            attempts=decision.attempts,
            **kwargs,
        )

    @classmethod
    def failed(cls, reason: str, error: str, **kwargs) -> "CycleOutcome":
        return cls(status=CycleStatus.FAILED, reason=reason, error=error, **kwargs)

    @property
    def is_failure(self) -> bool:
        return self.status == CycleStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "reason": self.reason,
            "decision": self.decision.as_dict() if self.decision else None,
            "recommendation": self.recommendation.as_dict() if self.recommendation else None,
            "error": self.error,
            "attempts": self.attempts,
            "model": self.model,
            "fallback_used": self.fallback_used,
            "detail": dict(self.detail),
        }


class CycleHooks:
    """
    Side-effect hooks for observability exporters.

    The engine only calls these; the default implementation does nothing.
    """

    def capacity_observed(self, identity: str, capacity: int) -> None:
        pass

    def recommendation_completed(self, model: str, seconds: float, ok: bool,
                                 confidence: Optional[float] = None) -> None:
        pass

    def cycle_finished(self, outcome: CycleOutcome) -> None:
        pass
