# backend/wiring.py

from aws.asg_controller import AutoScalingGroupBackend
from backend.config import (
    OLLAMA_TIMEOUT_SECONDS,
    OLLAMA_URL,
    PROMETHEUS_URL,
    RECOMMENDER_RETRY_COUNT,
    RECOMMENDER_RETRY_DELAY_SECONDS,
)
from data.fetch_live_metrics import PrometheusMetricsSource
from decision.scaling_policy import ScalingDecisionEngine
from llm.fallback import FallbackRecommender
from llm.ollama_client import OllamaRecommender


def build_engine(state=None, hooks=None, ollama=None):
    """Assemble the engine with the production collaborators."""
    ollama = ollama or OllamaRecommender(OLLAMA_URL)
    recommender = FallbackRecommender(
        ollama,
        timeout=OLLAMA_TIMEOUT_SECONDS,
        retry_count=RECOMMENDER_RETRY_COUNT,
        retry_delay=RECOMMENDER_RETRY_DELAY_SECONDS,
        retry_cap_delay=RECOMMENDER_RETRY_DELAY_SECONDS * 5,
        hooks=hooks,
    )
    return ScalingDecisionEngine(
        metrics_source=PrometheusMetricsSource(PROMETHEUS_URL),
        recommender=recommender,
        backend=AutoScalingGroupBackend(),
        state=state,
        hooks=hooks,
    )


def check_models(ollama, models):
    """Return the configured models that the Ollama server does not have (None if unreachable)."""
    available = ollama.list_models()
    if available is None:
        return None
    return [m for m in models if m and m not in available]
