# decision/prompt_builder.py

import json
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from decision.models import MetricDigest, Topology

DIMENSION_ORDER = ["cpu", "memory", "networkIn", "networkOut"]

DIMENSION_LABELS = {
    "cpu": "CPU",
    "memory": "Memory",
    "networkIn": "Network In",
    "networkOut": "Network Out",
}

DEFAULT_SYSTEM_PROMPT = (
    "You are an expert cloud engineer specializing in infrastructure scaling and optimization.\n"
    "Your task is to recommend the optimal number of instances for a scale set based on the "
    "metrics and current state provided.\n"
    "Aim to minimize costs while ensuring adequate performance. Scale up proactively before "
    "resources are exhausted, and scale down conservatively when usage decreases consistently.\n"
    "Respond ONLY with a valid JSON object containing:\n"
    '{"recommended_instances": <integer>, "confidence": <number between 0-1>, '
    '"reasoning": "<brief explanation of scaling decision>"}'
)

RESPONSE_INSTRUCTION = (
    "Respond with a single JSON object and nothing else. The object must have exactly three keys: "
    '"recommended_instances" (integer), "confidence" (float between 0 and 1) and '
    '"reasoning" (string).'
)


@dataclass(frozen=True)
class BuiltPrompt:
    text: str
    warning: Optional[str] = None


def read_template(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def ordered_dimensions(digests: Dict[str, MetricDigest]):
    known = [d for d in DIMENSION_ORDER if d in digests]
    extra = sorted(d for d in digests if d not in DIMENSION_ORDER)
    return known + extra


def _fmt(value) -> str:
    if value is None:
        return "unknown"
    return f"{value:.2f}"


def render_metrics_summary(digests: Dict[str, MetricDigest]) -> str:
    lines = []
    for name in ordered_dimensions(digests):
        d = digests[name]
        label = DIMENSION_LABELS.get(name, name)
        lines.append(
            f"- {label}: Current {_fmt(d.current)}, Average {_fmt(d.average)}, "
            f"Trend {d.trend.value.capitalize()}"
        )
    if not lines:
        lines.append("- No metrics available")
    return "\n".join(lines)


def render_metrics_data(digests: Dict[str, MetricDigest]) -> str:
    data = {name: digests[name].as_dict() for name in ordered_dimensions(digests)}
    return json.dumps(data, indent=2)


def render_default_prompt(topology: Topology, digests: Dict[str, MetricDigest]) -> str:
    return (
        "I need to decide how many instances to provision in our scale set.\n"
        "\n"
        "CURRENT STATE:\n"
        f"- Target resource: {topology.identity}\n"
        f"- VM size: {topology.vm_size}\n"
        f"- Current instance count: {topology.current_capacity}\n"
        f"- Min allowed instances: {topology.min_instances}\n"
        f"- Max allowed instances: {topology.max_instances}\n"
        "\n"
        "RECENT METRICS:\n"
        f"{render_metrics_summary(digests)}\n"
        "\n"
        "SCALING RULES:\n"
        "1. CPU > 75% sustained -> consider scaling up\n"
        "2. Memory > 80% sustained -> consider scaling up\n"
        "3. CPU < 30% and Memory < 40% sustained -> consider scaling down\n"
        "4. Network throughput spikes may indicate need for more instances\n"
        f"5. Must stay within min ({topology.min_instances}) and max ({topology.max_instances}) instances\n"
        "6. Scale up more aggressively than down\n"
        "\n"
        f"{RESPONSE_INSTRUCTION}\n"
    )


def render_template(template: str, topology: Topology, digests: Dict[str, MetricDigest]) -> str:
    """Literal {{placeholder}} substitution; unknown placeholders are left untouched."""
    values = {
        "identity": topology.identity,
        "vm_size": topology.vm_size,
        "current_capacity": str(topology.current_capacity),
        "min_instances": str(topology.min_instances),
        "max_instances": str(topology.max_instances),
        "metrics_summary": render_metrics_summary(digests),
        "metrics_data": render_metrics_data(digests),
    }
    text = template
    for key, value in values.items():
        text = text.replace("{{" + key + "}}", value)
    return text


def build_prompt(topology: Topology, digests: Dict[str, MetricDigest],
                 template_path: Optional[str] = None, reader=read_template) -> BuiltPrompt:
    """
    Render the recommendation request.

    A custom template that cannot be read is not an error: the built-in
    template is used and the reason comes back as `warning`.
    """
    if template_path:
        try:
            template = reader(template_path)
        except (OSError, UnicodeDecodeError) as e:
            warning = f"Could not read prompt template {template_path}: {e}. Using built-in template."
            logging.warning(warning)
            return BuiltPrompt(text=render_default_prompt(topology, digests), warning=warning)
        return BuiltPrompt(text=render_template(template, topology, digests))

    return BuiltPrompt(text=render_default_prompt(topology, digests))
