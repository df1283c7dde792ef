# decision/errors.py


class TransportError(Exception):
    """A collaborator (recommender, compute backend, metrics source) could not be reached."""


class RecommendationParseError(ValueError):
    """Recommender text could not be turned into a Recommendation."""

    kind = "parse_error"

    def __init__(self, reason, raw_text=None):
        super().__init__(reason)
        self.reason = reason
        self.raw_text = raw_text


class UnparseableError(RecommendationParseError):
    kind = "unparseable"


class InvalidShapeError(RecommendationParseError):
    kind = "invalid_shape"


class RecommendError(Exception):
    """No usable recommendation could be obtained."""


class BothModelsFailedError(RecommendError):
    def __init__(self, errors, attempts):
        # errors: list of (model, exception) in call order
        self.errors = list(errors)
        self.attempts = attempts
        models = ", ".join(f"{model}: {err}" for model, err in self.errors)
        super().__init__(f"All recommender models failed ({models})")


class RetriesExhaustedError(Exception):
    def __init__(self, label, attempts, last_error):
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{label} failed after {attempts} attempt(s): {last_error}")


class ScalingExecutionError(Exception):
    """The compute backend could not apply a capacity change after all retries."""

    def __init__(self, identity, target, attempts, last_error):
        self.identity = identity
        self.target = target
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Failed to scale {identity} to {target} instances after {attempts} attempt(s): {last_error}"
        )
