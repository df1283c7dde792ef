# backend/config.py

import os
from dataclasses import dataclass, replace
from typing import Optional

from aws.aws_config import ASG_NAME

FETCH_INTERVAL_SECONDS = int(os.getenv("FETCH_INTERVAL_SECONDS", "300"))  # 5 minutes between cycles
METRICS_LOOKBACK_SECONDS = int(os.getenv("METRICS_LOOKBACK_SECONDS", "3600"))  # 1 hour history
METRICS_INTERVAL_SECONDS = int(os.getenv("METRICS_INTERVAL_SECONDS", "60"))

# Guardrails
MIN_INSTANCES = int(os.getenv("MIN_INSTANCES", "2"))
MAX_INSTANCES = int(os.getenv("MAX_INSTANCES", "10"))
CONFIDENCE_THRESHOLD = float(os.getenv("SCALING_CONFIDENCE_THRESHOLD", "0.7"))

# Cooldown to avoid thrashing (15 minutes)
COOLDOWN_SECONDS = int(os.getenv("SCALING_COOLDOWN_SECONDS", "900"))

# Scaling execution retries: delay = min(base * attempt, cap)
SCALING_RETRY_COUNT = int(os.getenv("SCALING_RETRY_COUNT", "3"))
SCALING_RETRY_BASE_DELAY = float(os.getenv("SCALING_RETRY_BASE_DELAY", "3"))
SCALING_RETRY_CAP_DELAY = float(os.getenv("SCALING_RETRY_CAP_DELAY", "15"))

# Recommender
OLLAMA_URL = os.getenv("OLLAMA_URL", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3:8b")
OLLAMA_FALLBACK_MODEL = os.getenv("OLLAMA_FALLBACK_MODEL", "mistral:7b")
OLLAMA_TIMEOUT_SECONDS = float(os.getenv("OLLAMA_TIMEOUT_SECONDS", "120"))
RECOMMENDER_RETRY_COUNT = int(os.getenv("RECOMMENDER_RETRY_COUNT", "2"))
RECOMMENDER_RETRY_DELAY_SECONDS = float(os.getenv("RECOMMENDER_RETRY_DELAY_SECONDS", "2"))
PROMPT_TEMPLATE_PATH = os.getenv("OLLAMA_PROMPT_FILE") or None

PROMETHEUS_URL = os.getenv("PROMETHEUS_URL", "http://localhost:9090")
VM_SIZE = os.getenv("VM_SIZE") or None

# Dry-run mode (set to False for actual scaling)
DRY_RUN = os.getenv("DRY_RUN", "True").lower() == "true"

STATE_FILE = os.getenv("STATE_FILE", "state/cooldown.json")
LOG_FILE = os.getenv("LOG_FILE", "logs/autoscaler.log")

# Port the daemon serves Prometheus metrics on
METRICS_PORT = int(os.getenv("METRICS_PORT", "8001"))


@dataclass(frozen=True)
class ScalingConfig:
    identity: str
    min_instances: int = MIN_INSTANCES
    max_instances: int = MAX_INSTANCES
    cooldown_seconds: float = COOLDOWN_SECONDS
    confidence_threshold: float = CONFIDENCE_THRESHOLD
    retry_count: int = SCALING_RETRY_COUNT
    retry_base_delay: float = SCALING_RETRY_BASE_DELAY
    retry_cap_delay: float = SCALING_RETRY_CAP_DELAY
    primary_model: str = OLLAMA_MODEL
    fallback_model: str = OLLAMA_FALLBACK_MODEL
    dry_run: bool = DRY_RUN
    prompt_template_path: Optional[str] = PROMPT_TEMPLATE_PATH
    vm_size: Optional[str] = VM_SIZE
    metrics_lookback_seconds: float = METRICS_LOOKBACK_SECONDS
    metrics_interval_seconds: float = METRICS_INTERVAL_SECONDS


def validate_scaling_config(config: ScalingConfig) -> ScalingConfig:
    if not config.identity:
        raise ValueError("Target scale set is not configured (set ASG_NAME)")
    if config.min_instances < 1:
        raise ValueError(f"min_instances must be >= 1, got {config.min_instances}")
    if config.min_instances > config.max_instances:
        raise ValueError(
            f"min_instances ({config.min_instances}) must not exceed max_instances ({config.max_instances})"
        )
    if not 0.0 <= config.confidence_threshold <= 1.0:
        raise ValueError(f"confidence_threshold must be within [0, 1], got {config.confidence_threshold}")
    if config.retry_count < 1:
        raise ValueError(f"retry_count must be >= 1, got {config.retry_count}")
    for name in ("cooldown_seconds", "retry_base_delay", "retry_cap_delay"):
        if getattr(config, name) < 0:
            raise ValueError(f"{name} must not be negative")
    if config.metrics_lookback_seconds <= 0 or config.metrics_interval_seconds <= 0:
        raise ValueError("metrics lookback and interval must be positive")
    if not config.primary_model:
        raise ValueError("primary_model must be set")
    return config


def load_scaling_config(**overrides) -> ScalingConfig:
    """Build the cycle configuration from the environment defaults plus overrides."""
    overrides = {k: v for k, v in overrides.items() if v is not None}
    config = ScalingConfig(identity=overrides.pop("identity", ASG_NAME))
    return validate_scaling_config(replace(config, **overrides))
