import json

from decision.cooldown_store import CooldownStore
from decision.models import CooldownState


class TestCooldownStore:
    def test_missing_file_is_fresh_state(self, tmp_path):
        state = CooldownStore(str(tmp_path / "cooldown.json")).load()
        assert state.last_scaling_timestamp is None

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "state" / "cooldown.json"
        store = CooldownStore(str(path))

        store.save(CooldownState(last_scaling_timestamp=1_700_000_123.5))

        assert json.loads(path.read_text()) == {"last_scaling_timestamp": 1_700_000_123.5}
        assert store.load().last_scaling_timestamp == 1_700_000_123.5
        assert not (tmp_path / "state" / "cooldown.json.tmp").exists()

    def test_corrupt_file_is_fresh_state(self, tmp_path):
        path = tmp_path / "cooldown.json"
        path.write_text("{not json")
        assert CooldownStore(str(path)).load().last_scaling_timestamp is None

    def test_wrong_shape_is_fresh_state(self, tmp_path):
        path = tmp_path / "cooldown.json"
        path.write_text("[1, 2]")
        assert CooldownStore(str(path)).load().last_scaling_timestamp is None

    def test_null_timestamp(self, tmp_path):
        path = tmp_path / "cooldown.json"
        store = CooldownStore(str(path))
        store.save(CooldownState())
        assert store.load().last_scaling_timestamp is None


class TestCooldownState:
    def test_remaining(self):
        state = CooldownState(last_scaling_timestamp=1000.0)
        assert state.remaining(1300.0, 900) == 600.0
        assert state.remaining(5000.0, 900) == 0.0

    def test_never_scaled(self):
        assert CooldownState().remaining(1000.0, 900) == 0.0
