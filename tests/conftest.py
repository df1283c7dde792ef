"""
Shared fixtures and fakes for the autoscaler tests.

The fakes stand in for the three collaborators of the decision engine
(metrics source, recommender, compute backend) plus a controllable clock.
"""

import json
import os

# Keep test runs from writing logs/autoscaler.log
os.environ.setdefault("LOG_FILE", "")

import pytest

from backend.config import ScalingConfig
from decision.errors import TransportError
from decision.models import MetricSample, MetricSeries


def make_series(name, values, start=1_700_000_000, step=60):
    samples = tuple(MetricSample(timestamp=start + i * step, value=v) for i, v in enumerate(values))
    return MetricSeries(name=name, samples=samples)


def make_snapshot(cpu=(40.0, 42.0, 44.0, 46.0), memory=(50.0, 50.0, 51.0, 50.0)):
    return {
        "cpu": make_series("cpu", cpu),
        "memory": make_series("memory", memory),
        "networkIn": make_series("networkIn", ()),
        "networkOut": make_series("networkOut", ()),
    }


def recommendation_json(instances, confidence=0.9, reasoning="steady load"):
    return json.dumps({
        "recommended_instances": instances,
        "confidence": confidence,
        "reasoning": reasoning,
    })


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class SleepRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


class FakeMetricsSource:
    def __init__(self, snapshot=None, error=None):
        self.snapshot = make_snapshot() if snapshot is None else snapshot
        self.error = error
        self.calls = 0

    def fetch(self, lookback_seconds, interval_seconds):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.snapshot


class FakeRecommender:
    """
    Scripted Recommender.

    `responses` maps model name -> list of str or Exception, consumed in order.
    A model whose script is exhausted repeats its last entry.
    """

    def __init__(self, responses=None, on_complete=None):
        self.responses = {k: list(v) for k, v in (responses or {}).items()}
        self.calls = []
        self.on_complete = on_complete

    def complete(self, prompt, system_prompt, model, timeout):
        self.calls.append({"prompt": prompt, "system_prompt": system_prompt, "model": model, "timeout": timeout})
        if self.on_complete is not None:
            self.on_complete()

        script = self.responses.get(model)
        if not script:
            raise TransportError(f"model {model} not scripted")
        item = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(item, Exception):
            raise item
        return item

    def models_called(self):
        return [c["model"] for c in self.calls]


class FakeBackend:
    def __init__(self, capacity=3, fail_set=0, fail_get=0, vm_size="m5.large"):
        self.capacity = capacity
        self.fail_set = fail_set
        self.fail_get = fail_get
        self.vm_size = vm_size
        self.set_calls = []
        self.get_calls = 0

    def get_capacity(self, identity):
        self.get_calls += 1
        if self.fail_get:
            self.fail_get -= 1
            raise TransportError("describe failed")
        return self.capacity

    def set_capacity(self, identity, target):
        self.set_calls.append((identity, target))
        if self.fail_set:
            self.fail_set -= 1
            raise TransportError("set_desired_capacity throttled")
        self.capacity = target

    def describe_vm_size(self, identity):
        return self.vm_size


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def config():
    return ScalingConfig(
        identity="web-asg",
        min_instances=2,
        max_instances=10,
        cooldown_seconds=300,
        confidence_threshold=0.7,
        retry_count=3,
        retry_base_delay=3,
        retry_cap_delay=15,
        primary_model="llama3:8b",
        fallback_model="mistral:7b",
        dry_run=False,
        prompt_template_path=None,
        vm_size=None,
        metrics_lookback_seconds=3600,
        metrics_interval_seconds=60,
    )
