"""
Ollama Model Manager for LifeWrap
Talks to the locally running Ollama service over its REST API.

Used by the on-device assistant tier. Structured output needs Ollama 0.5+
(format="json" on /api/chat), so the server version doubles as the minimum
capability flag that gates the tier.
"""

import re
import time

import requests

from lifewrap.config import (
    MAX_OUTPUT_CHARS,
    OLLAMA_API_BASE,
    OLLAMA_CONTEXT_WINDOW,
    OLLAMA_MIN_VERSION,
    OLLAMA_MODEL_NAME,
    OLLAMA_PROBE_TIMEOUT_SECONDS,
    OLLAMA_TIMEOUT_SECONDS,
)
from lifewrap.errors import AvailabilityError, GenerationFailure
from lifewrap.logging_config import debug, debug_log, preview


def parse_version(version: str) -> tuple[int, ...]:
    """'0.5.7-rc1' -> (0, 5, 7). Non-numeric parts are ignored."""
    match = re.match(r'^\D*(\d+(?:\.\d+)*)', version or "")
    if not match:
        return ()
    return tuple(int(part) for part in match.group(1).split('.'))


class OllamaModelManager:
    """
    Thin client for the Ollama REST API.

    Probe methods (get_server_version, get_available_models, check_ready)
    only issue GET requests and keep no state, so they are safe to call from
    availability checks.
    """

    def __init__(
        self,
        api_base: str = OLLAMA_API_BASE,
        model_name: str = OLLAMA_MODEL_NAME,
        min_version: str = OLLAMA_MIN_VERSION,
        timeout: float = OLLAMA_TIMEOUT_SECONDS,
    ):
        self.api_base = api_base.rstrip('/')
        self.model_name = model_name
        self.min_version = min_version
        self.timeout = timeout

    def get_server_version(self) -> str | None:
        """Server version string, or None if Ollama is not reachable."""
        try:
            response = requests.get(f"{self.api_base}/api/version", timeout=OLLAMA_PROBE_TIMEOUT_SECONDS)
        except requests.exceptions.RequestException as e:
            debug_log(f"[OLLAMA] Version probe failed: {e}")
            return None
        if response.status_code != 200:
            debug_log(f"[OLLAMA] Version probe returned status {response.status_code}")
            return None
        try:
            version = response.json().get('version')
        except (ValueError, AttributeError) as e:
            debug_log(f"[OLLAMA] Version probe returned an unexpected body: {e}")
            return None
        return version if isinstance(version, str) else None

    def meets_min_version(self, version: str | None) -> bool:
        if not version:
            return False
        return parse_version(version) >= parse_version(self.min_version)

    def get_available_models(self) -> dict:
        """
        Models installed in Ollama.

        Returns:
            dict: Model names mapped to size/modified metadata ({} on failure)
        """
        try:
            response = requests.get(f"{self.api_base}/api/tags", timeout=OLLAMA_PROBE_TIMEOUT_SECONDS)
        except requests.exceptions.RequestException as e:
            debug_log(f"[OLLAMA] Error fetching models: {e}")
            return {}
        if response.status_code != 200:
            debug(f"[OLLAMA] Failed to get models: {response.status_code}")
            return {}

        models = {}
        try:
            for model in response.json().get('models', []):
                models[model['name']] = {
                    'name': model['name'],
                    'size': model.get('size', 0),
                    'modified': model.get('modified_at', ''),
                }
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            debug_log(f"[OLLAMA] Unexpected model list from {self.api_base}: {e}")
            return {}
        debug_log(f"[OLLAMA] Found {len(models)} models: {list(models.keys())}")
        return models

    def has_model(self, models: dict) -> bool:
        """Exact tag match, or an untagged name matching ':latest'."""
        if self.model_name in models:
            return True
        if ':' not in self.model_name:
            return f"{self.model_name}:latest" in models
        return False

    def check_ready(self) -> bool:
        """Server reachable, new enough, and the configured model installed."""
        version = self.get_server_version()
        if not self.meets_min_version(version):
            debug_log(f"[OLLAMA] Not ready: version {version!r} < {self.min_version}")
            return False
        if not self.has_model(self.get_available_models()):
            debug_log(f"[OLLAMA] Not ready: model {self.model_name} not installed")
            return False
        return True

    def chat(
        self,
        messages: list[dict[str, str]],
        max_tokens: int,
        temperature: float,
        json_format: bool = True,
    ) -> str:
        """
        One non-streaming /api/chat call.

        Returns:
            Assistant message content, capped at MAX_OUTPUT_CHARS.

        Raises:
            AvailabilityError: Ollama unreachable or timed out.
            GenerationFailure: Non-200 response or malformed body.
        """
        payload = {
            "model": self.model_name,
            "messages": messages,
            "stream": False,
            "options": {
                "num_ctx": OLLAMA_CONTEXT_WINDOW,
                "num_predict": max_tokens,
                "temperature": temperature,
            },
        }
        if json_format:
            payload["format"] = "json"

        debug_log(f"[OLLAMA] Chat request: model={self.model_name}, max_tokens={max_tokens}")
        start_time = time.time()
        try:
            response = requests.post(f"{self.api_base}/api/chat", json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise AvailabilityError(f"Ollama did not answer within {self.timeout} seconds") from e
        except requests.exceptions.ConnectionError as e:
            raise AvailabilityError(
                f"Cannot connect to Ollama at {self.api_base}. Is it running? Start with: ollama serve"
            ) from e

        if response.status_code != 200:
            raise GenerationFailure(f"Ollama returned status {response.status_code}: {response.text[:200]}")

        try:
            result = response.json()
            content = result['message']['content']
        except (ValueError, KeyError, TypeError) as e:
            raise GenerationFailure(f"Malformed Ollama response: {e}") from e

        elapsed = time.time() - start_time
        debug_log(
            f"[OLLAMA] Complete: {result.get('eval_count', 0)} tokens in {elapsed:.2f}s, "
            f"{len(content)} chars: {preview(content)}"
        )
        return content[:MAX_OUTPUT_CHARS]
