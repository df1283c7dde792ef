from __future__ import annotations

import argparse
import logging
import sys

from backend.config import LOG_FILE, OLLAMA_URL, STATE_FILE, load_scaling_config
from backend.logging_config import setup_logging
from backend.wiring import build_engine
from decision.cooldown_store import CooldownStore
from decision.models import ScalingState
from llm.ollama_client import MODEL_PROFILES, OllamaRecommender


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run a single scaling decision cycle")
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--dry-run", dest="dry_run", action="store_true", default=None,
                      help="Simulate scaling without making actual changes")
    mode.add_argument("--live", dest="dry_run", action="store_false",
                      help="Apply the scaling change")
    p.add_argument("--asg-name", type=str, default=None, help="Auto Scaling Group to manage")
    p.add_argument("--min-instances", type=int, default=None, help="Minimum number of instances allowed")
    p.add_argument("--max-instances", type=int, default=None, help="Maximum number of instances allowed")
    p.add_argument("--cooldown-minutes", type=float, default=None, help="Cooldown between scaling actions")
    p.add_argument("--confidence-threshold", type=float, default=None,
                   help="Minimum confidence (0-1) to accept recommendations")
    p.add_argument("--model", type=str, default=None, help="Primary Ollama model")
    p.add_argument("--fallback-model", type=str, default=None, help="Fallback Ollama model")
    p.add_argument("--prompt-file", type=str, default=None, help="Custom prompt template file")
    p.add_argument("--state-file", type=str, default=STATE_FILE, help="Where cooldown state is kept")
    p.add_argument("--list-models", action="store_true", help="List available and recommended models")
    return p.parse_args(argv)


def config_from_args(args):
    cooldown = args.cooldown_minutes * 60 if args.cooldown_minutes is not None else None
    return load_scaling_config(
        identity=args.asg_name,
        min_instances=args.min_instances,
        max_instances=args.max_instances,
        cooldown_seconds=cooldown,
        confidence_threshold=args.confidence_threshold,
        primary_model=args.model,
        fallback_model=args.fallback_model,
        prompt_template_path=args.prompt_file,
        dry_run=args.dry_run,
    )


def list_models(ollama) -> None:
    print("\nRecommended models for cloud infrastructure scaling:")
    for name, profile in MODEL_PROFILES.items():
        print(f"  - {name}: {profile['description']}")

    available = ollama.list_models()
    if available:
        print("\nModels currently available on your Ollama server:")
        for name in available:
            print(f"  - {name} {'(recommended)' if name in MODEL_PROFILES else ''}")
    else:
        print("\nUnable to fetch models from Ollama API. Please ensure Ollama is running.")


def main(argv=None, engine_factory=build_engine) -> int:
    args = parse_args(argv)
    setup_logging(LOG_FILE)

    if args.list_models:
        list_models(OllamaRecommender(OLLAMA_URL))
        return 0

    try:
        config = config_from_args(args)
    except ValueError as e:
        logging.error(f"Invalid configuration: {e}")
        return 2

    store = CooldownStore(args.state_file)
    state = ScalingState(cooldown=store.load())
    engine = engine_factory(state=state)

    outcome = engine.run_cycle(config)
    store.save(state.cooldown)

    print(f"Outcome: {outcome.status.value} ({outcome.reason})")
    return 1 if outcome.is_failure else 0


if __name__ == "__main__":
    sys.exit(main())
