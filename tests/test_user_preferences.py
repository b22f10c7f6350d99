"""
Tests for persisted engine preferences.
"""

import json
import sys
from pathlib import Path

import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from lifewrap.ai.providers import RemoteProvider
from lifewrap.config import DEFAULT_LOCAL_MODEL
from lifewrap.engines import EngineTier
from lifewrap.errors import ConfigurationError
from lifewrap.user_preferences import UserPreferencesManager


@pytest.fixture
def prefs_file(tmp_path):
    return tmp_path / "config" / "user_preferences.json"


class TestDefaults:
    """Test behavior without a preferences file."""

    def test_defaults(self, prefs_file):
        """Automatic selection, OpenAI, the default local model."""
        prefs = UserPreferencesManager(prefs_file)
        assert prefs.get_preferred_tier() is None
        assert prefs.get_remote_provider() is RemoteProvider.OPENAI
        assert prefs.get_remote_model() == RemoteProvider.OPENAI.default_model
        assert prefs.get_local_model() == DEFAULT_LOCAL_MODEL

    def test_corrupt_file_uses_defaults(self, prefs_file):
        """Unreadable JSON is ignored."""
        prefs_file.parent.mkdir(parents=True)
        prefs_file.write_text("{not json")
        assert UserPreferencesManager(prefs_file).get_preferred_tier() is None

    def test_unknown_tier_ignored(self, prefs_file):
        """A stale tier name reads as automatic."""
        prefs_file.parent.mkdir(parents=True)
        prefs_file.write_text(json.dumps({"preferred_tier": "cloud"}))
        assert UserPreferencesManager(prefs_file).get_preferred_tier() is None


class TestPreferredTier:
    """Test the preferred tier setting."""

    def test_persisted(self, prefs_file):
        """A new manager sees the saved tier."""
        UserPreferencesManager(prefs_file).set_preferred_tier(EngineTier.LOCAL)
        assert UserPreferencesManager(prefs_file).get_preferred_tier() is EngineTier.LOCAL

    def test_auto_clears(self, prefs_file):
        """'auto' restores automatic selection."""
        prefs = UserPreferencesManager(prefs_file)
        prefs.set_preferred_tier("local")
        prefs.set_preferred_tier("auto")
        assert prefs.get_preferred_tier() is None

    def test_invalid_tier(self, prefs_file):
        """Unknown tiers are rejected."""
        with pytest.raises(ValueError):
            UserPreferencesManager(prefs_file).set_preferred_tier("cloud")

    def test_coordinator_preference(self, prefs_file):
        """The saved tier becomes the coordinator's candidate order."""
        prefs = UserPreferencesManager(prefs_file)
        prefs.set_preferred_tier(EngineTier.ON_DEVICE_ASSISTANT)
        order = prefs.to_coordinator_preference().candidate_order()
        assert order == [EngineTier.ON_DEVICE_ASSISTANT, EngineTier.LOCAL, EngineTier.BASIC]


class TestRemoteSettings:
    """Test provider and model settings."""

    def test_provider_and_model(self, prefs_file):
        """Models are stored per provider."""
        prefs = UserPreferencesManager(prefs_file)
        prefs.set_remote_provider("anthropic")
        prefs.set_remote_model(RemoteProvider.ANTHROPIC, "claude-haiku-4-5")

        reloaded = UserPreferencesManager(prefs_file)
        assert reloaded.get_remote_provider() is RemoteProvider.ANTHROPIC
        assert reloaded.get_remote_model() == "claude-haiku-4-5"
        assert reloaded.get_remote_model("openai") == RemoteProvider.OPENAI.default_model

    def test_foreign_model_rejected(self, prefs_file):
        """A model from the other provider is not stored."""
        prefs = UserPreferencesManager(prefs_file)
        with pytest.raises(ConfigurationError):
            prefs.set_remote_model("openai", "claude-haiku-4-5")
        assert not prefs_file.exists()


class TestLocalModel:
    """Test the local model key."""

    def test_known_model(self, prefs_file):
        """Keys from models.yaml are accepted."""
        prefs = UserPreferencesManager(prefs_file)
        prefs.set_local_model("qwen2-0.5b")
        assert UserPreferencesManager(prefs_file).get_local_model() == "qwen2-0.5b"

    def test_unknown_model(self, prefs_file):
        """Unknown keys are rejected."""
        with pytest.raises(ValueError, match="Unknown local model"):
            UserPreferencesManager(prefs_file).set_local_model("gpt-2")
