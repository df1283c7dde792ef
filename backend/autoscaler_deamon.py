import logging
import signal
import sys
import time
import traceback

from prometheus_client import start_http_server

from backend.config import FETCH_INTERVAL_SECONDS, LOG_FILE, METRICS_PORT, OLLAMA_URL, load_scaling_config
from backend.logging_config import setup_logging
from backend.telemetry import PrometheusHooks
from backend.wiring import build_engine, check_models
from decision.models import ScalingAction
from llm.ollama_client import OllamaRecommender

# Flag for graceful shutdown
shutdown_requested = False


def signal_handler(sig, frame):
    """Handle shutdown signals gracefully."""
    global shutdown_requested
    logging.info("Shutdown signal received, finishing current cycle...")
    shutdown_requested = True


def print_outcome(outcome, dry_run):
    print(f"\n{'='*60}")
    print(f"Cycle completed at {time.strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"Status: {outcome.status.value}")
    print(f"Reason: {outcome.reason or 'N/A'}")
    if outcome.recommendation:
        rec = outcome.recommendation
        print(f"Recommended: {rec.recommended_instances} (confidence: {rec.effective_confidence:.2f})")
    if outcome.decision and outcome.decision.action == ScalingAction.SCALE_TO:
        print(f"Scaled: {outcome.decision.previous_capacity} -> {outcome.decision.target}")
    if outcome.model:
        print(f"Model: {outcome.model}{' (fallback)' if outcome.fallback_used else ''}")
    if dry_run:
        print("⚠️  DRY RUN MODE - No actual scaling performed")
    print(f"{'='*60}\n")


def autoscale_loop(engine, config, interval=FETCH_INTERVAL_SECONDS, sleep=time.sleep, max_cycles=None):
    """
    Main daemon loop.

    The engine (and with it the cooldown state) lives for the whole loop, so
    cooldown is enforced across cycles without any external storage.
    """
    cycle_count = 0

    while not shutdown_requested:
        cycle_count += 1
        logging.info(f"Starting autoscaling cycle #{cycle_count}")

        outcome = engine.run_cycle(config)
        print_outcome(outcome, config.dry_run)

        if outcome.is_failure:
            logging.warning(f"Cycle #{cycle_count} failed: {outcome.error}")
        else:
            logging.info(f"Cycle #{cycle_count} completed ({outcome.status.value})")

        if max_cycles is not None and cycle_count >= max_cycles:
            break

        # Sleep until next cycle (unless shutdown requested)
        if not shutdown_requested:
            logging.info(f"Sleeping for {interval} seconds...")
            sleep(interval)

    return cycle_count


def main():
    setup_logging(LOG_FILE)

    # Register signal handlers
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    config = load_scaling_config()
    ollama = OllamaRecommender(OLLAMA_URL)

    missing = check_models(ollama, [config.primary_model, config.fallback_model])
    if missing is None:
        logging.warning(f"Could not connect to Ollama at {OLLAMA_URL}. Is it running?")
    elif missing:
        logging.warning(f"Models not available on Ollama server: {missing}. Run: ollama pull <model>")

    logging.info("="*60)
    logging.info("Autoscaler daemon started")
    logging.info(f"Target: {config.identity} [{config.min_instances}-{config.max_instances}]")
    logging.info(f"Fetch interval: {FETCH_INTERVAL_SECONDS} seconds")
    logging.info(f"Dry run mode: {config.dry_run}")
    logging.info("="*60)

    print(f"\n🚀 Autoscaler daemon started")
    print(f"   Target: {config.identity}")
    print(f"   Interval: {FETCH_INTERVAL_SECONDS} seconds ({FETCH_INTERVAL_SECONDS/60:.1f} minutes)")
    print(f"   Dry run: {config.dry_run}")
    print(f"   Log file: {LOG_FILE}")
    print(f"\nPress Ctrl+C to stop\n")

    hooks = PrometheusHooks()
    start_http_server(METRICS_PORT, registry=hooks.registry)
    logging.info(f"Prometheus metrics served on port {METRICS_PORT}")

    autoscale_loop(build_engine(hooks=hooks, ollama=ollama), config)

    logging.info("Autoscaler daemon stopped")
    print("\n✅ Autoscaler daemon stopped gracefully")


if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        logging.error(traceback.format_exc())
        sys.exit(1)
