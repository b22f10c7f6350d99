"""
Tests for the streaming generator.

Tests cover:
- Stop-sequence truncation, including markers split across pieces
- Character ceiling
- Cancellation via event and stop_check
- Warnings for immediate truncation and unterminated output
"""

import sys
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from lifewrap.ai.generation_config import GenerationConfig
from lifewrap.ai.streaming import (
    CANCELLED,
    CEILING,
    EXHAUSTED,
    STOP_SEQUENCE,
    StopSequenceMatcher,
    StreamingGenerator,
)
from lifewrap.errors import GenerationCancelled
from lifewrap.prompting.templates import ModelFamily


def make_source(pieces):
    """Token source that replays fixed pieces and records the call."""
    calls = []

    def source(prompt, config):
        calls.append((prompt, config))
        yield from pieces

    source.calls = calls
    return source


@pytest.fixture
def phi3_config():
    return GenerationConfig.for_family(ModelFamily.PHI3)


class TestStopSequenceMatcher:
    """Test the incremental matcher."""

    def test_carry_is_longest_minus_one(self):
        """Carry covers a marker split across appends."""
        matcher = StopSequenceMatcher(["<|end|>", "<|endoftext|>"])
        assert matcher.carry == len("<|endoftext|>") - 1

    def test_finds_marker_spanning_boundary(self):
        """A marker starting before appended_from is still found."""
        matcher = StopSequenceMatcher(["<|end|>"])
        buffer = "hello <|en" + "d|>"
        assert matcher.find(buffer, appended_from=len("hello <|en")) == len("hello ")

    def test_earliest_marker_wins(self):
        """With two markers present the first position is returned."""
        matcher = StopSequenceMatcher(["</s>", "<|end|>"])
        assert matcher.find("ab<|end|>cd</s>", 0) == 2

    def test_no_marker(self):
        """No match returns None."""
        assert StopSequenceMatcher(["<|end|>"]).find("plain text", 0) is None

    def test_requires_stop_sequences(self):
        """An empty stop list is rejected."""
        with pytest.raises(ValueError):
            StopSequenceMatcher([])


class TestStopSequenceTruncation:
    """Test truncation at stop markers."""

    def test_hello_stop_world(self, phi3_config):
        """Output before the marker is kept; everything after is dropped."""
        source = make_source(["hello ", "<|end|>", "world"])
        generator = StreamingGenerator(phi3_config, source)

        assert generator.generate("prompt") == "hello "
        assert generator.last_stop_reason == STOP_SEQUENCE

    def test_marker_split_across_pieces(self, phi3_config):
        """A marker arriving in fragments still truncates."""
        source = make_source(["hello ", "<|e", "nd", "|>", "world"])
        generator = StreamingGenerator(phi3_config, source)

        assert generator.generate("prompt") == "hello "
        assert generator.last_stop_reason == STOP_SEQUENCE

    def test_marker_inside_piece(self, phi3_config):
        """Text after a marker in the same piece is removed."""
        source = make_source(['{"a": 1}<|end|>trailing'])
        generator = StreamingGenerator(phi3_config, source)
        assert generator.generate("prompt") == '{"a": 1}'

    def test_stops_consuming_after_match(self, phi3_config):
        """No further pieces are pulled once a marker matched."""
        consumed = []

        def source(prompt, config):
            for piece in ["ok", "<|end|>", "never", "reached"]:
                consumed.append(piece)
                yield piece

        StreamingGenerator(phi3_config, source).generate("prompt")
        assert consumed == ["ok", "<|end|>"]

    def test_exhausted_source(self, phi3_config):
        """A source that ends on its own returns everything."""
        generator = StreamingGenerator(phi3_config, make_source(["a", "b", "c"]))
        assert generator.generate("prompt") == "abc"
        assert generator.last_stop_reason == EXHAUSTED
        assert generator.last_token_count == 3

    def test_immediate_truncation_warns(self, phi3_config):
        """A marker before any real output is logged as a warning."""
        generator = StreamingGenerator(phi3_config, make_source(["<|end|>", "text"]))
        with patch("lifewrap.ai.streaming.warning") as mock_warning:
            assert generator.generate("prompt") == ""
        mock_warning.assert_called_once()
        assert "no usable output" in mock_warning.call_args[0][0]


class TestCeiling:
    """Test the hard character ceiling."""

    def test_ceiling_returns_partial_output(self):
        """Reaching the ceiling truncates and returns, not raises."""
        config = GenerationConfig.for_family(ModelFamily.PHI3, max_output_chars=10)
        generator = StreamingGenerator(config, make_source(["12345", "67890", "abcde"]))

        with patch("lifewrap.ai.streaming.warning") as mock_warning:
            output = generator.generate("prompt")

        assert output == "1234567890"
        assert generator.last_stop_reason == CEILING
        mock_warning.assert_called_once()

    def test_ceiling_cuts_inside_piece(self):
        """A piece crossing the ceiling is cut to the exact length."""
        config = GenerationConfig.for_family(ModelFamily.CHATML, max_output_chars=4)
        generator = StreamingGenerator(config, make_source(["abcdefgh"]))
        assert generator.generate("prompt") == "abcd"

    def test_unbounded_source_terminates(self):
        """An endless source without markers stops at the ceiling."""
        config = GenerationConfig.for_family(ModelFamily.LLAMA3, max_output_chars=100)

        def endless(prompt, cfg):
            while True:
                yield "x"

        assert len(StreamingGenerator(config, endless).generate("prompt")) == 100


class TestCancellation:
    """Test cancellation between tokens."""

    def test_cancel_event_raises(self, phi3_config):
        """A set event is observed before the next piece."""
        event = threading.Event()

        def source(prompt, config):
            yield "first "
            event.set()
            yield "second"

        generator = StreamingGenerator(phi3_config, source, cancel_event=event)
        with pytest.raises(GenerationCancelled):
            generator.generate("prompt")
        assert generator.last_stop_reason == CANCELLED

    def test_event_cleared_after_cancel(self, phi3_config):
        """The next generation runs normally after a cancel."""
        event = threading.Event()
        outputs = [["a", "b"], ["a", "b"]]

        def source(prompt, config):
            pieces = outputs.pop(0)
            if len(outputs) == 1:
                event.set()
            yield from pieces

        generator = StreamingGenerator(phi3_config, source, cancel_event=event)

        with pytest.raises(GenerationCancelled):
            generator.generate("prompt")
        assert not event.is_set()
        assert generator.generate("prompt") == "ab"

    def test_idle_cancel_does_not_carry_over(self, phi3_config):
        """A cancel set before generate() starts is discarded."""
        event = threading.Event()
        event.set()
        generator = StreamingGenerator(phi3_config, make_source(["a", "b"]), cancel_event=event)

        assert generator.generate("prompt") == "ab"
        assert generator.last_stop_reason == EXHAUSTED

    def test_stop_check_callable(self, phi3_config):
        """stop_check returning True cancels like the event."""
        generator = StreamingGenerator(phi3_config, make_source(["a", "b"]), stop_check=lambda: True)
        with pytest.raises(GenerationCancelled):
            generator.generate("prompt")

    def test_cancel_method(self, phi3_config):
        """cancel() sets the shared event."""
        event = threading.Event()
        generator = StreamingGenerator(phi3_config, make_source([]), cancel_event=event)
        generator.cancel()
        assert event.is_set()


class TestMaxTokensOverride:
    """Test per-call token budget."""

    def test_override_reaches_source(self, phi3_config):
        """max_tokens replaces the config budget for one call."""
        source = make_source(["done"])
        StreamingGenerator(phi3_config, source).generate("prompt", max_tokens=512)
        _, config = source.calls[0]
        assert config.max_output_tokens == 512
        assert phi3_config.max_output_tokens == 256
