from unittest.mock import MagicMock

from backend import autoscaler_deamon
from backend.wiring import check_models
from conftest import FakeBackend, FakeClock, FakeMetricsSource, FakeRecommender, SleepRecorder, recommendation_json
from decision.models import CycleStatus, SkipReason
from decision.scaling_policy import ScalingDecisionEngine
from llm.fallback import FallbackRecommender


class RecordingEngine:
    def __init__(self, engine):
        self.engine = engine
        self.outcomes = []

    def run_cycle(self, config):
        outcome = self.engine.run_cycle(config)
        self.outcomes.append(outcome)
        return outcome


def make_engine(backend, clock):
    sleeper = SleepRecorder()
    recommender = FallbackRecommender(
        FakeRecommender({"llama3:8b": [recommendation_json(6, 0.9)]}), sleep=sleeper
    )
    return ScalingDecisionEngine(FakeMetricsSource(), recommender, backend, clock=clock, sleep=sleeper)


class TestAutoscaleLoop:
    def test_cooldown_held_across_cycles(self, config):
        backend = FakeBackend(capacity=3)
        engine = RecordingEngine(make_engine(backend, FakeClock()))
        sleeper = SleepRecorder()

        cycles = autoscaler_deamon.autoscale_loop(engine, config, interval=30, sleep=sleeper, max_cycles=3)

        assert cycles == 3
        assert engine.outcomes[0].status == CycleStatus.SUCCEEDED
        assert [o.reason for o in engine.outcomes[1:]] == [SkipReason.IN_COOLDOWN.value] * 2
        assert sleeper.calls == [30, 30]
        assert backend.set_calls == [("web-asg", 6)]

    def test_shutdown_requested_stops_loop(self, config, monkeypatch):
        monkeypatch.setattr(autoscaler_deamon, "shutdown_requested", True)
        engine = RecordingEngine(make_engine(FakeBackend(), FakeClock()))
        assert autoscaler_deamon.autoscale_loop(engine, config, sleep=SleepRecorder()) == 0

    def test_signal_handler_sets_flag(self, monkeypatch):
        monkeypatch.setattr(autoscaler_deamon, "shutdown_requested", False)
        autoscaler_deamon.signal_handler(15, None)
        assert autoscaler_deamon.shutdown_requested is True


class TestCheckModels:
    def test_missing_models(self):
        ollama = MagicMock()
        ollama.list_models.return_value = ["llama3:8b"]
        assert check_models(ollama, ["llama3:8b", "mistral:7b"]) == ["mistral:7b"]

    def test_unreachable(self):
        ollama = MagicMock()
        ollama.list_models.return_value = None
        assert check_models(ollama, ["llama3:8b"]) is None


class TestPrintOutcome:
    def test_no_change_prints_no_scaled_line(self, config, capsys):
        backend = FakeBackend(capacity=6)
        outcome = make_engine(backend, FakeClock()).run_cycle(config)
        assert outcome.reason == SkipReason.NO_CHANGE_NEEDED.value

        autoscaler_deamon.print_outcome(outcome, dry_run=False)

        out = capsys.readouterr().out
        assert "Recommended: 6" in out
        assert "Scaled:" not in out

    def test_scale_prints_transition(self, config, capsys):
        outcome = make_engine(FakeBackend(capacity=3), FakeClock()).run_cycle(config)
        autoscaler_deamon.print_outcome(outcome, dry_run=False)
        assert "Scaled: 3 -> 6" in capsys.readouterr().out
