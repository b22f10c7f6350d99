"""
Tests for the command-line entry point.

Preferences and credentials are injected so nothing touches the user's
real configuration; network probes are patched.
"""

import io
import json
import sys
from pathlib import Path
from unittest.mock import patch

import pytest
import requests

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from lifewrap.ai.llama_model_manager import LlamaModelManager, ModelFileStatus
from lifewrap.ai.providers import RemoteProvider
from lifewrap.credential_store import InMemoryCredentialStore
from lifewrap.engines import EngineTier
from lifewrap.main import build_parser, main
from lifewrap.user_preferences import UserPreferencesManager


@pytest.fixture
def prefs(tmp_path):
    return UserPreferencesManager(tmp_path / "user_preferences.json")


@pytest.fixture
def store():
    return InMemoryCredentialStore()


class TestParser:
    """Test argument parsing."""

    def test_command_required(self):
        """No subcommand is a usage error."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_invalid_tier(self):
        """Tier choices are checked."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["summarize", "--level", "chunk", "--tier", "cloud", "a.txt"])

    def test_summarize_args(self):
        """Summarize takes a level, optional tier and session, and files."""
        args = build_parser().parse_args(
            ["summarize", "--level", "session", "--tier", "basic", "--session", "s1", "a.txt", "b.txt"]
        )
        assert args.level == "session"
        assert args.tier == "basic"
        assert args.files == ["a.txt", "b.txt"]


class TestPreferCommand:
    """Test 'prefer'."""

    def test_prefer_local(self, prefs, store):
        """The tier is persisted."""
        assert main(["prefer", "local"], prefs=prefs, credential_store=store) == 0
        assert prefs.get_preferred_tier() is EngineTier.LOCAL

    def test_prefer_auto(self, prefs, store):
        """'auto' clears the preference."""
        main(["prefer", "local"], prefs=prefs, credential_store=store)
        main(["prefer", "auto"], prefs=prefs, credential_store=store)
        assert prefs.get_preferred_tier() is None


class TestKeyCommands:
    """Test 'set-key' and 'delete-key'."""

    def test_set_key_without_verification(self, prefs, store, monkeypatch):
        """A key read from stdin is stored and its provider selected."""
        monkeypatch.setattr(sys, "stdin", io.StringIO("sk-ant-test-1234\n"))

        assert main(["set-key", "anthropic", "--no-verify"], prefs=prefs, credential_store=store) == 0

        assert store.get(RemoteProvider.ANTHROPIC) == "sk-ant-test-1234"
        assert prefs.get_remote_provider() is RemoteProvider.ANTHROPIC

    def test_set_key_rejected_format(self, prefs, store, monkeypatch, capsys):
        """A key with the wrong prefix fails verification and is not stored."""
        monkeypatch.setattr(sys, "stdin", io.StringIO("not-a-key\n"))

        assert main(["set-key", "openai"], prefs=prefs, credential_store=store) == 1

        assert store.get("openai") is None
        assert "Error:" in capsys.readouterr().err

    @patch("lifewrap.engines.remote.requests.post")
    def test_set_key_verified(self, mock_post, prefs, store, monkeypatch):
        """A key the provider accepts is stored."""
        mock_post.return_value.status_code = 200
        mock_post.return_value.json.return_value = {"choices": [{"message": {"content": "OK"}}]}
        monkeypatch.setattr(sys, "stdin", io.StringIO("sk-test-5678\n"))

        assert main(["set-key", "openai"], prefs=prefs, credential_store=store) == 0
        assert store.get("openai") == "sk-test-5678"

    def test_set_key_empty(self, prefs, store, monkeypatch):
        """Empty input stores nothing."""
        monkeypatch.setattr(sys, "stdin", io.StringIO("\n"))
        assert main(["set-key", "openai", "--no-verify"], prefs=prefs, credential_store=store) == 1
        assert not store.has("openai")

    def test_delete_key(self, prefs):
        """delete-key removes the stored key."""
        store = InMemoryCredentialStore({"openai": "sk-test-1"})
        assert main(["delete-key", "openai"], prefs=prefs, credential_store=store) == 0
        assert store.get("openai") is None


class TestSummarizeCommand:
    """Test 'summarize'."""

    def test_basic_tier_prints_json(self, prefs, store, tmp_path, capsys):
        """An explicit basic request prints the structured summary."""
        first = tmp_path / "chunk1.txt"
        second = tmp_path / "chunk2.txt"
        first.write_text("I went for a long run along the river before breakfast.")
        second.write_text("In the evening Maya came over and we cooked pasta together.")

        exit_code = main(
            ["summarize", "--level", "session", "--tier", "basic", "--session", "s1", str(first), str(second)],
            prefs=prefs,
            credential_store=store,
        )

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["level"] == "session"
        assert output["engine_tier"] == "basic"
        assert output["source_ids"] == ["chunk1", "chunk2"]
        assert "session_summary" in output["fields"]

    @patch.object(LlamaModelManager, "check_model_file", return_value=ModelFileStatus.MISSING)
    def test_unavailable_explicit_tier(self, mock_check, prefs, store, tmp_path, capsys):
        """An explicit tier that is not ready is reported, not substituted."""
        source = tmp_path / "chunk.txt"
        source.write_text("Short note about the day.")

        exit_code = main(
            ["summarize", "--level", "chunk", "--tier", "local", str(source)],
            prefs=prefs,
            credential_store=store,
        )

        assert exit_code == 1
        captured = capsys.readouterr()
        assert "Error:" in captured.err
        assert captured.out == ""


class TestEnginesCommand:
    """Test 'engines'."""

    @patch.object(LlamaModelManager, "check_model_file", return_value=ModelFileStatus.MISSING)
    @patch("lifewrap.ai.ollama_model_manager.requests.get")
    def test_report_with_only_basic(self, mock_get, mock_check, prefs, store, capsys):
        """With nothing provisioned, basic is the active engine."""
        mock_get.side_effect = requests.exceptions.ConnectionError("refused")

        assert main(["engines"], prefs=prefs, credential_store=store) == 0

        output = capsys.readouterr().out
        assert "SUMMARIZATION ENGINES" in output
        basic_line = next(line for line in output.splitlines() if "(basic," in line)
        assert basic_line.startswith("[OK]")
        assert "<- active" in basic_line
        assert "Preference: auto" in output
