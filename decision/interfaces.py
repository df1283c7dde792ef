# decision/interfaces.py

from __future__ import annotations

from typing import Callable, Dict, Protocol

from decision.models import MetricSeries

# Reads a prompt template by path; raises OSError when it cannot.
TemplateSource = Callable[[str], str]


class MetricsSource(Protocol):
    def fetch(self, lookback_seconds: float, interval_seconds: float) -> Dict[str, MetricSeries]:
        """Return series per dimension; may be partial or empty. Raises TransportError only."""
        ...


class Recommender(Protocol):
    def complete(self, prompt: str, system_prompt: str, model: str, timeout: float) -> str:
        """Return raw, untrusted model text. Raises TransportError."""
        ...


class ComputeBackend(Protocol):
    def get_capacity(self, identity: str) -> int:
        ...

    def set_capacity(self, identity: str, target: int) -> None:
        ...

    def describe_vm_size(self, identity: str) -> str:
        ...
