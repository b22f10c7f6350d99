"""
Llama-CPP Model Manager for LifeWrap

Loads a quantized GGUF model through llama-cpp-python and streams raw
completion text for the StreamingGenerator.

The weight file is checked against the size window from config/models.yaml
before loading. A missing file means the local tier is simply not
provisioned; a file outside the window is treated as a corrupt or wrong
download and raises FatalModelError. After a fatal failure the manager
refuses the same file until it changes on disk (re-provisioned).
"""

import os
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

from llama_cpp import Llama

from lifewrap.ai.generation_config import GenerationConfig
from lifewrap.config import DEFAULT_LOCAL_MODEL, MODELS_DIR, get_model_config
from lifewrap.errors import AvailabilityError, FatalModelError
from lifewrap.logging_config import Timer, debug, debug_log

BYTES_PER_MB = 1024 * 1024


class ModelFileStatus(Enum):
    MISSING = "missing"
    OK = "ok"
    OUT_OF_RANGE = "out_of_range"
    QUARANTINED = "quarantined"


class LlamaModelManager:
    """
    Owns one llama.cpp model handle.

    Not thread-safe by itself; the LocalEngine calls it only from its single
    worker thread.

    Args:
        model_key: Entry in config/models.yaml.
        models_dir: Directory holding GGUF files.
    """

    def __init__(self, model_key: str = DEFAULT_LOCAL_MODEL, models_dir: Path = MODELS_DIR):
        self.model_key = model_key
        self.model_config = get_model_config(model_key)
        self.models_dir = Path(models_dir)
        self.current_model: Optional[Llama] = None
        # (size, mtime) of a file that failed the size check
        self._quarantined_signature: tuple[int, float] | None = None

    @property
    def model_path(self) -> Path:
        return self.models_dir / self.model_config['filename']

    @property
    def expected_size_bytes(self) -> tuple[int, int]:
        low_mb, high_mb = self.model_config.get('expected_size_mb', [0, 0])
        return int(low_mb * BYTES_PER_MB), int(high_mb * BYTES_PER_MB)

    def _file_signature(self) -> tuple[int, float] | None:
        try:
            stat = self.model_path.stat()
        except FileNotFoundError:
            return None
        return stat.st_size, stat.st_mtime

    def check_model_file(self) -> ModelFileStatus:
        """
        Inspect the weight file without loading it.

        Pure read: stats the file and compares against the window.
        """
        signature = self._file_signature()
        if signature is None:
            return ModelFileStatus.MISSING
        if self._quarantined_signature is not None and signature == self._quarantined_signature:
            return ModelFileStatus.QUARANTINED
        low, high = self.expected_size_bytes
        if not low <= signature[0] <= high:
            return ModelFileStatus.OUT_OF_RANGE
        return ModelFileStatus.OK

    def is_model_loaded(self) -> bool:
        """Check if a model is currently loaded."""
        return self.current_model is not None

    def load_model(self, config: GenerationConfig, verbose: bool = False) -> None:
        """
        Load the GGUF model into memory (no-op if already loaded).

        Raises:
            AvailabilityError: The weight file is not there.
            FatalModelError: The weight file is outside its size window.
        """
        if self.current_model is not None:
            return

        status = self.check_model_file()
        if status is ModelFileStatus.MISSING:
            raise AvailabilityError(f"Local model not found: {self.model_path}")

        if status in (ModelFileStatus.OUT_OF_RANGE, ModelFileStatus.QUARANTINED):
            signature = self._file_signature()
            self._quarantined_signature = signature
            low, high = self.expected_size_bytes
            size_mb = signature[0] / BYTES_PER_MB if signature else 0
            debug_log(
                f"[LOCAL] Corrupted model file {self.model_path.name}: {size_mb:.0f} MB, "
                f"expected {low // BYTES_PER_MB}-{high // BYTES_PER_MB} MB"
            )
            raise FatalModelError(
                f"Model file {self.model_path.name} is {size_mb:.0f} MB, expected "
                f"{low // BYTES_PER_MB}-{high // BYTES_PER_MB} MB; re-download it"
            )

        # n_threads: physical cores for prompt processing, all logical cores for batches
        logical_cores = os.cpu_count() or 4
        physical_cores = max(1, logical_cores // 2)
        debug(f"[LOCAL] Thread config: {physical_cores} threads (prompt), {logical_cores} threads (batch)")

        try:
            with Timer(f"[LOCAL] Load {self.model_key}"):
                self.current_model = Llama(
                    model_path=str(self.model_path),
                    n_ctx=config.context_window,
                    n_batch=config.batch_size,
                    n_threads=physical_cores,
                    n_threads_batch=logical_cores,
                    verbose=verbose,
                )
        except ValueError as e:
            # llama.cpp rejects unreadable GGUF files with ValueError
            self._quarantined_signature = self._file_signature()
            raise FatalModelError(f"llama.cpp could not load {self.model_path.name}: {e}") from e

        self._quarantined_signature = None
        debug_log(f"[LOCAL] Model loaded: {self.model_key} ({self.model_path.name})")

    def stream_tokens(self, prompt: str, config: GenerationConfig) -> Iterator[str]:
        """
        Stream completion text piece by piece.

        Stop sequences are not passed to llama.cpp; the StreamingGenerator
        enforces them.

        Raises:
            AvailabilityError: If no model is loaded.
        """
        if self.current_model is None:
            raise AvailabilityError("No local model loaded. Call load_model() first.")

        debug_log(
            f"[LOCAL] Streaming (max_tokens={config.max_output_tokens}, "
            f"temp={config.temperature}, prompt={len(prompt)} chars)"
        )
        response = self.current_model(
            prompt,
            max_tokens=config.max_output_tokens,
            temperature=config.temperature,
            stream=True,
        )
        for output in response:
            yield output['choices'][0]['text']

    def unload_model(self) -> None:
        """Unload the current model from memory."""
        if self.current_model is not None:
            debug(f"[LOCAL] Unloading model: {self.model_key}")
            del self.current_model
            self.current_model = None
