# decision/cooldown_store.py

import json
import logging
import os

from decision.models import CooldownState


class CooldownStore:
    """
    Persists CooldownState between one-shot invocations.

    The file is a single JSON object: {"last_scaling_timestamp": <epoch seconds | null>}.
    """

    def __init__(self, path="state/cooldown.json"):
        self.path = path

    def load(self) -> CooldownState:
        if not os.path.exists(self.path):
            return CooldownState()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            ts = data.get("last_scaling_timestamp")
            return CooldownState(last_scaling_timestamp=float(ts) if ts is not None else None)
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logging.warning(f"Ignoring unreadable cooldown state {self.path}: {e}")
            return CooldownState()

    def save(self, state: CooldownState) -> None:
        """Atomically overwrite the state file (write temp, then rename)."""
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        temp_path = self.path + ".tmp"
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump({"last_scaling_timestamp": state.last_scaling_timestamp}, f)
        os.replace(temp_path, self.path)

        logging.info(f"Saved cooldown state to {self.path}")
