"""
Streaming generation with manual stop-sequence enforcement.

The local backend streams raw text pieces and knows nothing about where a
response ends; this module decides. After every piece the matcher scans only
the newly appended text (plus a short carry so a marker split across two
pieces is still found), so the cost per piece does not grow with the length
of the output.

Three things end a generation:
    stop_sequence - a family stop marker appeared; output is cut before it
    ceiling       - max_output_chars reached; partial output is returned
    exhausted     - the backend stopped on its own (EOS or token cap)

Cancellation is checked between pieces and raises GenerationCancelled.

Two failure modes of a mismatched template/stop pairing are logged as
warnings instead of passing silently: a stop marker matching before any real
output, and a generation that only ends at the ceiling.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Iterable

from lifewrap.ai.generation_config import GenerationConfig
from lifewrap.errors import GenerationCancelled
from lifewrap.logging_config import debug_log, debug_timing, preview, warning

STOP_SEQUENCE = "stop_sequence"
CEILING = "ceiling"
EXHAUSTED = "exhausted"
CANCELLED = "cancelled"

# Output shorter than this when a stop marker hits counts as immediate truncation
MIN_MEANINGFUL_CHARS = 2

TokenSource = Callable[[str, GenerationConfig], Iterable[str]]


class StopSequenceMatcher:
    """
    Finds the earliest stop sequence in a growing buffer.

    Only ``buffer[appended_from - carry:]`` is searched on each call, where
    carry is one less than the longest stop sequence. Anything earlier was
    already searched and cannot contain a complete marker.
    """

    def __init__(self, stop_sequences: Iterable[str]):
        self.stop_sequences = tuple(stop_sequences)
        if not self.stop_sequences:
            raise ValueError("At least one stop sequence is required")
        self.carry = max(len(stop) for stop in self.stop_sequences) - 1

    def find(self, buffer: str, appended_from: int) -> int | None:
        """
        Args:
            buffer: Full accumulated output.
            appended_from: Length of the buffer before the latest append.

        Returns:
            Index where the earliest stop sequence starts, or None.
        """
        start = max(0, appended_from - self.carry)
        earliest = None
        for stop in self.stop_sequences:
            index = buffer.find(stop, start)
            if index != -1 and (earliest is None or index < earliest):
                earliest = index
        return earliest


class StreamingGenerator:
    """
    Drives a token source to completion under a GenerationConfig.

    Args:
        config: Validated generation config (template/stop pairing checked).
        token_source: Callable(prompt, config) returning an iterable of text
            pieces, e.g. LlamaModelManager.stream_tokens.
        cancel_event: Event observed between tokens. A private one is created
            if not given.
        stop_check: Optional callable; returning True cancels like the event.
    """

    def __init__(
        self,
        config: GenerationConfig,
        token_source: TokenSource,
        cancel_event: threading.Event | None = None,
        stop_check: Callable[[], bool] | None = None,
    ):
        config.validate()
        self.config = config
        self._token_source = token_source
        self._matcher = StopSequenceMatcher(config.stop_sequences)
        self._cancel_event = cancel_event or threading.Event()
        self._stop_check = stop_check
        self.last_stop_reason: str | None = None
        self.last_token_count = 0

    def cancel(self) -> None:
        """Request cancellation; takes effect at the next token boundary."""
        self._cancel_event.set()

    def _is_cancelled(self) -> bool:
        if self._cancel_event.is_set():
            return True
        return bool(self._stop_check and self._stop_check())

    def generate(self, prompt: str, max_tokens: int | None = None) -> str:
        """
        Generate until a stop sequence, the character ceiling, or the source ends.

        Args:
            prompt: Fully formatted prompt (template already applied).
            max_tokens: Overrides config.max_output_tokens for this call.

        Returns:
            Accumulated output with the stop marker and anything after it removed.

        Raises:
            GenerationCancelled: If cancellation was observed between tokens.
        """
        config = self.config
        if max_tokens is not None and max_tokens != config.max_output_tokens:
            config = config.with_max_output_tokens(max_tokens)

        ceiling = config.max_output_chars
        output = ""
        token_count = 0
        reason = EXHAUSTED
        start_time = time.time()

        debug_log(
            f"[STREAM] Starting generation (family={config.template_family.value}, "
            f"max_tokens={config.max_output_tokens}, ceiling={ceiling} chars, "
            f"prompt={len(prompt)} chars)"
        )

        # Cancels issued while idle do not carry over to this generation
        self._cancel_event.clear()
        pieces = iter(self._token_source(prompt, config))
        try:
            for piece in pieces:
                if self._is_cancelled():
                    reason = CANCELLED
                    break
                if not piece:
                    continue

                appended_from = len(output)
                output += piece
                token_count += 1

                match_at = self._matcher.find(output, appended_from)
                if match_at is not None:
                    output = output[:match_at]
                    reason = STOP_SEQUENCE
                    break

                if len(output) >= ceiling:
                    output = output[:ceiling]
                    reason = CEILING
                    break
        finally:
            close = getattr(pieces, "close", None)
            if close is not None:
                close()

        self.last_stop_reason = reason
        self.last_token_count = token_count
        debug_timing(f"[STREAM] Generation ({token_count} tokens, {reason})", time.time() - start_time)

        if reason == CANCELLED:
            self._cancel_event.clear()
            debug_log(f"[STREAM] Cancelled after {token_count} tokens")
            raise GenerationCancelled("Generation cancelled")

        if reason == STOP_SEQUENCE and len(output.strip()) < MIN_MEANINGFUL_CHARS:
            warning(
                f"[STREAM] Stop sequence matched after {token_count} token(s) with no usable "
                f"output; check that {config.template_family.value} stop sequences match "
                "the prompt template"
            )
        elif reason == CEILING:
            warning(
                f"[STREAM] Output hit the {ceiling}-character ceiling without a stop sequence "
                f"({token_count} tokens); generation never terminated on its own"
            )

        debug_log(f"[STREAM] Output {len(output)} chars: {preview(output)}")
        return output
