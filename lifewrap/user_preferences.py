"""
User Preferences Manager for LifeWrap
Persists engine choices: preferred tier, remote provider and model, local model.
"""

import json
from pathlib import Path
from typing import Any

from lifewrap.ai.providers import RemoteProvider
from lifewrap.config import DEFAULT_LOCAL_MODEL, USER_PREFERENCES_FILE, load_model_configs
from lifewrap.coordinator import CoordinatorPreference
from lifewrap.engines.base import EngineTier
from lifewrap.logging_config import debug_log


class UserPreferencesManager:
    """
    Manages user preferences stored in user_preferences.json.

    Unknown or corrupt files fall back to defaults; every setter validates
    before writing.
    """

    def __init__(self, preferences_file: Path = USER_PREFERENCES_FILE):
        """
        Initialize the preferences manager.

        Args:
            preferences_file: Path to user_preferences.json
        """
        self.preferences_file = Path(preferences_file)
        self._preferences = self._load_preferences()

    def _load_preferences(self) -> dict[str, Any]:
        default_structure = {
            "preferred_tier": None,
            "remote_provider": RemoteProvider.OPENAI.value,
            "remote_models": {},
            "local_model": DEFAULT_LOCAL_MODEL,
        }

        if not self.preferences_file.exists():
            return default_structure
        try:
            with open(self.preferences_file, encoding='utf-8') as f:
                prefs = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            debug_log(f"[PREFS] Could not read {self.preferences_file.name}, using defaults: {e}")
            return default_structure

        if not isinstance(prefs, dict):
            return default_structure
        for key, value in default_structure.items():
            prefs.setdefault(key, value)
        return prefs

    def _save_preferences(self) -> None:
        try:
            self.preferences_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.preferences_file, 'w', encoding='utf-8') as f:
                json.dump(self._preferences, f, indent=2)
        except OSError as e:
            # Log error but don't crash
            debug_log(f"[PREFS] Could not save user preferences: {e}")

    def get_preferred_tier(self) -> EngineTier | None:
        """The stored tier, or None for automatic selection."""
        value = self._preferences.get("preferred_tier")
        try:
            return EngineTier(value) if value else None
        except ValueError:
            debug_log(f"[PREFS] Ignoring unknown preferred tier {value!r}")
            return None

    def set_preferred_tier(self, tier: EngineTier | str | None) -> None:
        """
        Args:
            tier: An EngineTier (or its value), or None/"auto" to clear.

        Raises:
            ValueError: If ``tier`` is not a known tier.
        """
        if tier is None or tier == "auto":
            self._preferences["preferred_tier"] = None
        else:
            self._preferences["preferred_tier"] = EngineTier(tier).value
        self._save_preferences()

    def get_remote_provider(self) -> RemoteProvider:
        try:
            return RemoteProvider(self._preferences.get("remote_provider"))
        except ValueError:
            return RemoteProvider.OPENAI

    def set_remote_provider(self, provider: RemoteProvider | str) -> None:
        self._preferences["remote_provider"] = RemoteProvider(provider).value
        self._save_preferences()

    def get_remote_model(self, provider: RemoteProvider | str | None = None) -> str:
        """Stored model for ``provider`` (default: current provider), else its default."""
        provider = RemoteProvider(provider) if provider else self.get_remote_provider()
        return self._preferences.get("remote_models", {}).get(provider.value) or provider.default_model

    def set_remote_model(self, provider: RemoteProvider | str, model: str) -> None:
        """
        Raises:
            ConfigurationError: If ``model`` does not belong to ``provider``.
        """
        provider = RemoteProvider(provider)
        provider.validate_model(model)
        self._preferences.setdefault("remote_models", {})[provider.value] = model
        self._save_preferences()

    def get_local_model(self) -> str:
        return self._preferences.get("local_model") or DEFAULT_LOCAL_MODEL

    def set_local_model(self, model_key: str) -> None:
        """
        Raises:
            ValueError: If ``model_key`` is not in models.yaml.
        """
        known = load_model_configs()
        if model_key not in known:
            raise ValueError(
                f"Unknown local model {model_key!r}; expected one of {sorted(known)}"
            )
        self._preferences["local_model"] = model_key
        self._save_preferences()

    def to_coordinator_preference(self) -> CoordinatorPreference:
        return CoordinatorPreference(preferred_tier=self.get_preferred_tier())


# Global instance
_user_prefs = None


def get_user_preferences(preferences_file: Path = None) -> UserPreferencesManager:
    """
    Get the global UserPreferencesManager instance (singleton pattern).

    Args:
        preferences_file: Optional path to preferences file (only used on first call)
    """
    global _user_prefs

    if _user_prefs is None:
        _user_prefs = UserPreferencesManager(preferences_file or USER_PREFERENCES_FILE)

    return _user_prefs
