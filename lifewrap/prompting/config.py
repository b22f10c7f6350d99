"""
Prompt Parameters Configuration Loader
Loads generation parameters per summary level from config/prompt_parameters.json.
"""

import json
from typing import Any

from lifewrap.config import PROMPT_PARAMS_FILE


class PromptConfig:
    """
    Loads and provides access to prompt and generation parameters.

    Reads prompt_parameters.json and falls back to DEFAULTS if the file is
    missing or corrupted. Keys starting with '_' are comments and are dropped.
    """

    DEFAULTS = {
        "generation": {
            "temperature": 0.2,
            "max_output_tokens": {
                "chunk": 256,
                "session": 512,
                "day": 512,
                "week": 640,
                "month": 768,
                "year": 1024,
                "yearRollup": 1024
            }
        },
        "fallback": {
            "leading_words": 60,
            "title_words": 8
        },
        "basic": {
            "summary_words": {
                "chunk": 80,
                "session": 150,
                "rollup": 200
            },
            "keyword_limit": 5,
            "min_keyword_length": 4
        }
    }

    def __init__(self, params_file=PROMPT_PARAMS_FILE):
        self.params_file = params_file
        self._params = self._load_params()

    def _load_params(self) -> dict[str, Any]:
        """
        Load parameters from JSON file.

        Returns:
            dict: Loaded parameters, or defaults if file not found
        """
        from lifewrap.logging_config import debug_log

        try:
            if self.params_file.exists():
                with open(self.params_file, encoding='utf-8') as f:
                    return self._filter_comments(json.load(f))
            debug_log(f"[PROMPT CONFIG] Prompt parameters file not found at {self.params_file}")
            debug_log("[PROMPT CONFIG] Using default values.")
            return json.loads(json.dumps(self.DEFAULTS))

        except (json.JSONDecodeError, OSError) as e:
            debug_log(f"[PROMPT CONFIG] Error loading prompt parameters: {e}")
            debug_log("[PROMPT CONFIG] Using default values.")
            return json.loads(json.dumps(self.DEFAULTS))

    def _filter_comments(self, data: Any) -> Any:
        """Recursively remove keys starting with '_' (comments)."""
        if isinstance(data, dict):
            return {
                key: self._filter_comments(value)
                for key, value in data.items()
                if not key.startswith('_')
            }
        elif isinstance(data, list):
            return [self._filter_comments(item) for item in data]
        return data

    def get(self, *keys, default=None) -> Any:
        """
        Get a parameter value by nested keys.

        Example:
            config.get('fallback', 'leading_words')  # Returns 60
        """
        value = self._params
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    @property
    def temperature(self) -> float:
        return self.get('generation', 'temperature', default=0.2)

    def max_output_tokens(self, level) -> int:
        """Token budget for one level's JSON response."""
        key = getattr(level, 'value', level)
        default = self.DEFAULTS['generation']['max_output_tokens'].get(key, 512)
        return self.get('generation', 'max_output_tokens', key, default=default)

    @property
    def fallback_leading_words(self) -> int:
        """Words of source text kept by the extractive parse fallback."""
        return self.get('fallback', 'leading_words', default=60)

    @property
    def fallback_title_words(self) -> int:
        return self.get('fallback', 'title_words', default=8)

    def basic_summary_words(self, level) -> int:
        """Word budget for the basic engine's extractive summary."""
        key = getattr(level, 'value', level)
        if key not in ('chunk', 'session'):
            key = 'rollup'
        return self.get('basic', 'summary_words', key, default=150)

    @property
    def keyword_limit(self) -> int:
        return self.get('basic', 'keyword_limit', default=5)

    @property
    def min_keyword_length(self) -> int:
        return self.get('basic', 'min_keyword_length', default=4)


# Global instance for easy access
_prompt_config = None


def get_prompt_config() -> PromptConfig:
    """
    Get the global PromptConfig instance (singleton pattern).

    Returns:
        PromptConfig: The global configuration instance
    """
    global _prompt_config
    if _prompt_config is None:
        _prompt_config = PromptConfig()
    return _prompt_config
