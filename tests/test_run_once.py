import json

from backend import run_once
from conftest import FakeBackend, FakeClock, FakeMetricsSource, FakeRecommender, SleepRecorder, recommendation_json
from decision.scaling_policy import ScalingDecisionEngine
from llm.fallback import FallbackRecommender

BASE_ARGS = ["--asg-name", "web-asg", "--model", "m1", "--fallback-model", "m2",
             "--min-instances", "2", "--max-instances", "10"]


def engine_factory(backend, clock, responses=None):
    def factory(state=None):
        sleeper = SleepRecorder()
        recommender = FallbackRecommender(
            FakeRecommender(responses or {"m1": [recommendation_json(6, 0.9)]}), sleep=sleeper
        )
        return ScalingDecisionEngine(
            FakeMetricsSource(), recommender, backend, state=state, clock=clock, sleep=sleeper
        )
    return factory


class TestParseArgs:
    def test_flags(self):
        args = run_once.parse_args(BASE_ARGS + ["--live", "--cooldown-minutes", "20", "--confidence-threshold", "0.8"])
        config = run_once.config_from_args(args)
        assert config.identity == "web-asg"
        assert config.dry_run is False
        assert config.cooldown_seconds == 1200
        assert config.confidence_threshold == 0.8
        assert config.primary_model == "m1"

    def test_dry_run_flag(self):
        assert run_once.parse_args(["--dry-run"]).dry_run is True
        assert run_once.parse_args([]).dry_run is None


class TestMain:
    def test_success_persists_cooldown(self, tmp_path):
        state_file = tmp_path / "cooldown.json"
        backend = FakeBackend(capacity=3)
        clock = FakeClock()

        code = run_once.main(BASE_ARGS + ["--live", "--state-file", str(state_file)],
                             engine_factory=engine_factory(backend, clock))

        assert code == 0
        assert backend.capacity == 6
        assert json.loads(state_file.read_text())["last_scaling_timestamp"] == clock.now

    def test_cooldown_carried_between_runs(self, tmp_path):
        state_file = tmp_path / "cooldown.json"
        backend = FakeBackend(capacity=3)
        clock = FakeClock()
        argv = BASE_ARGS + ["--live", "--state-file", str(state_file)]

        run_once.main(argv, engine_factory=engine_factory(backend, clock))
        backend.capacity = 3
        run_once.main(argv, engine_factory=engine_factory(backend, clock))

        assert backend.set_calls == [("web-asg", 6)]

    def test_failure_exit_code(self, tmp_path):
        backend = FakeBackend(capacity=3, fail_set=99)
        code = run_once.main(
            BASE_ARGS + ["--live", "--state-file", str(tmp_path / "c.json")],
            engine_factory=engine_factory(backend, FakeClock()),
        )
        assert code == 1

    def test_skip_exit_code(self, tmp_path):
        backend = FakeBackend(capacity=6)
        code = run_once.main(
            BASE_ARGS + ["--state-file", str(tmp_path / "c.json")],
            engine_factory=engine_factory(backend, FakeClock()),
        )
        assert code == 0

    def test_invalid_bounds(self, tmp_path):
        code = run_once.main(
            ["--asg-name", "web-asg", "--min-instances", "5", "--max-instances", "2",
             "--state-file", str(tmp_path / "c.json")],
            engine_factory=engine_factory(FakeBackend(), FakeClock()),
        )
        assert code == 2
