# llm/fallback.py

import logging
import time
from dataclasses import dataclass

from decision.errors import (
    BothModelsFailedError,
    RecommendationParseError,
    RetriesExhaustedError,
    TransportError,
)
from decision.interfaces import Recommender
from decision.models import CycleHooks, Recommendation
from decision.prompt_builder import DEFAULT_SYSTEM_PROMPT
from decision.recommendation_parser import parse_recommendation, truncate_for_log
from decision.retry import call_with_retries


@dataclass(frozen=True)
class RecommendationResult:
    recommendation: Recommendation
    model: str
    fallback_used: bool
    attempts: int


class FallbackRecommender:
    """
    Primary/fallback model substitution on top of transport-level retries.

    Each model gets `retry_count` transport attempts. A model whose transport
    attempts are exhausted, or whose answer does not parse, hands the identical
    prompt to the fallback model exactly once.
    """

    def __init__(self, recommender: Recommender, system_prompt=DEFAULT_SYSTEM_PROMPT, timeout=120.0,
                 retry_count=2, retry_delay=2.0, retry_cap_delay=10.0,
                 sleep=time.sleep, clock=time.monotonic, hooks=None):
        self.recommender = recommender
        self.system_prompt = system_prompt
        self.timeout = timeout
        self.retry_count = max(1, int(retry_count))
        self.retry_delay = retry_delay
        self.retry_cap_delay = retry_cap_delay
        self.sleep = sleep
        self.clock = clock
        self.hooks = hooks or CycleHooks()

    def _ask(self, prompt, model):
        """One model, with transport retries. Returns (Recommendation, attempts)."""
        started = self.clock()
        try:
            raw, attempts = call_with_retries(
                lambda: self.recommender.complete(prompt, self.system_prompt, model, self.timeout),
                attempts=self.retry_count,
                base_delay=self.retry_delay,
                cap_delay=self.retry_cap_delay,
                retry_on=(TransportError,),
                sleep=self.sleep,
                label=f"Recommender call ({model})",
            )
        except RetriesExhaustedError:
            self.hooks.recommendation_completed(model, self.clock() - started, ok=False)
            raise

        try:
            recommendation = parse_recommendation(raw)
        except RecommendationParseError as e:
            logging.warning(
                f"Unusable response from model {model} ({e.kind}: {e.reason}). "
                f"Raw response: {truncate_for_log(raw)}"
            )
            self.hooks.recommendation_completed(model, self.clock() - started, ok=False)
            e.attempts = attempts
            raise

        self.hooks.recommendation_completed(
            model, self.clock() - started, ok=True, confidence=recommendation.confidence
        )
        return recommendation, attempts

    def recommend(self, prompt, primary_model, fallback_model) -> RecommendationResult:
        models = [primary_model]
        if fallback_model and fallback_model != primary_model:
            models.append(fallback_model)

        errors = []
        total_attempts = 0

        for index, model in enumerate(models):
            if index > 0:
                logging.info(f"Attempting fallback model {model} after primary model {primary_model} failed")
            else:
                logging.info(f"Using model {model} for scaling recommendation (fallback: {fallback_model})")

            try:
                recommendation, attempts = self._ask(prompt, model)
            except RetriesExhaustedError as e:
                total_attempts += e.attempts
                errors.append((model, e.last_error))
                continue
            except RecommendationParseError as e:
                total_attempts += getattr(e, "attempts", 1)
                errors.append((model, e))
                continue

            total_attempts += attempts
            return RecommendationResult(
                recommendation=recommendation,
                model=model,
                fallback_used=index > 0,
                attempts=total_attempts,
            )

        raise BothModelsFailedError(errors, total_attempts)
