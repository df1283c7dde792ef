# llm/ollama_client.py

import logging

import requests

from decision.errors import TransportError

# Generation options per model; unknown models get DEFAULT_MODEL_PROFILE.
MODEL_PROFILES = {
    "llama3:70b": {
        "temperature": 0.1,
        "num_predict": 100,
        "description": "Most accurate for complex resource decisions",
    },
    "llama3:8b": {
        "temperature": 0.1,
        "num_predict": 100,
        "num_ctx": 4096,
        "stop": ["\n}", "}\n"],
        "description": "Optimized model for cloud scaling decisions",
    },
    "mistral:7b": {
        "temperature": 0.3,
        "num_predict": 75,
        "description": "Efficient model for scaling decisions",
    },
    "mixtral:8x7b": {
        "temperature": 0.2,
        "num_predict": 100,
        "description": "Strong reasoning for complex metrics analysis",
    },
    "gemma:7b": {
        "temperature": 0.2,
        "num_predict": 75,
        "description": "Efficient model with good reasoning",
    },
}

DEFAULT_MODEL_PROFILE = {
    "temperature": 0.2,
    "num_predict": 75,
    "description": "Default configuration",
}


def model_options(model):
    profile = MODEL_PROFILES.get(model, DEFAULT_MODEL_PROFILE)
    return {k: v for k, v in profile.items() if k != "description"}


class OllamaRecommender:
    """Recommender backed by a local Ollama server."""

    def __init__(self, base_url="http://localhost:11434", session=None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def complete(self, prompt, system_prompt, model, timeout):
        url = f"{self.base_url}/api/generate"
        payload = {
            "model": model,
            "prompt": prompt,
            "system": system_prompt,
            "format": "json",
            "stream": False,
            "options": model_options(model),
        }

        logging.info(f"Sending request to Ollama API: {url}, model: {model}")
        try:
            r = self.session.post(url, json=payload, timeout=timeout)
            r.raise_for_status()
            body = r.json()
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Ollama request timed out after {timeout}s: {e}") from e
        except (requests.exceptions.RequestException, ValueError) as e:
            raise TransportError(f"Ollama request failed: {e}") from e

        text = body.get("response") if isinstance(body, dict) else None
        if not isinstance(text, str):
            raise TransportError("Ollama response did not contain a 'response' field")

        logging.debug(f"Ollama raw response: {text}")
        return text

    def list_models(self, timeout=10.0):
        """Names of models pulled on the server, or None when it cannot be reached."""
        try:
            r = self.session.get(f"{self.base_url}/api/tags", timeout=timeout)
            r.raise_for_status()
            models = r.json().get("models", [])
        except (requests.exceptions.RequestException, ValueError, AttributeError) as e:
            logging.error(f"Error listing available Ollama models: {e}")
            return None
        return [m.get("name") for m in models if isinstance(m, dict)]
