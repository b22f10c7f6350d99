"""
Generation parameters for one concrete model family.

A GenerationConfig ties the prompt template family to the stop sequences
the streaming generator watches for. The pairing is checked when the config
is built: every stop sequence must belong to the template's family. A Phi-3
template paired with Llama-3 stop markers is rejected before any token is
generated.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from lifewrap.config import MAX_OUTPUT_CHARS, get_model_config
from lifewrap.errors import ConfigurationError
from lifewrap.prompting.templates import FAMILY_STOP_SEQUENCES, ModelFamily


def family_of_stop_sequence(stop: str) -> set[ModelFamily]:
    """All families that declare ``stop`` as one of their stop sequences."""
    return {family for family, stops in FAMILY_STOP_SEQUENCES.items() if stop in stops}


@dataclass(frozen=True)
class GenerationConfig:
    """
    Attributes:
        template_family: Chat template the prompt is rendered with.
        stop_sequences: Literal markers that end the response.
        context_window: Tokens of context (n_ctx).
        batch_size: Prompt-processing batch size (n_batch).
        max_output_tokens: Token cap passed to the backend.
        temperature: Sampling temperature.
        max_output_chars: Hard ceiling on accumulated characters.
    """

    template_family: ModelFamily
    stop_sequences: tuple[str, ...]
    context_window: int = 2048
    batch_size: int = 128
    max_output_tokens: int = 256
    temperature: float = 0.2
    max_output_chars: int = MAX_OUTPUT_CHARS
    model_key: str | None = field(default=None, compare=False)

    def __post_init__(self):
        try:
            family = ModelFamily(self.template_family)
        except ValueError as e:
            raise ConfigurationError(f"Unknown template family: {self.template_family!r}") from e
        object.__setattr__(self, "template_family", family)
        object.__setattr__(self, "stop_sequences", tuple(self.stop_sequences))
        self.validate()

    def validate(self) -> None:
        """
        Check numeric bounds and the template/stop-sequence pairing.

        Raises:
            ConfigurationError: On any invalid setting.
        """
        if not self.stop_sequences:
            raise ConfigurationError(
                f"{self.template_family.value} config has no stop sequences"
            )
        if any(not stop for stop in self.stop_sequences):
            raise ConfigurationError("Stop sequences must be non-empty strings")

        allowed = set(FAMILY_STOP_SEQUENCES[self.template_family])
        foreign = [stop for stop in self.stop_sequences if stop not in allowed]
        if foreign:
            owners = sorted({f.value for stop in foreign for f in family_of_stop_sequence(stop)})
            owner_text = f" (belongs to {', '.join(owners)})" if owners else ""
            raise ConfigurationError(
                f"Stop sequences {foreign} do not match the "
                f"{self.template_family.value} prompt template{owner_text}"
            )

        if self.max_output_tokens <= 0:
            raise ConfigurationError("max_output_tokens must be positive")
        if self.max_output_chars <= 0:
            raise ConfigurationError("max_output_chars must be positive")
        if self.context_window <= 0 or self.batch_size <= 0:
            raise ConfigurationError("context_window and batch_size must be positive")
        if not 0.0 <= self.temperature <= 2.0:
            raise ConfigurationError(f"temperature out of range: {self.temperature}")

    @property
    def max_stop_length(self) -> int:
        return max(len(stop) for stop in self.stop_sequences)

    def with_max_output_tokens(self, max_output_tokens: int) -> GenerationConfig:
        return GenerationConfig(
            template_family=self.template_family,
            stop_sequences=self.stop_sequences,
            context_window=self.context_window,
            batch_size=self.batch_size,
            max_output_tokens=max_output_tokens,
            temperature=self.temperature,
            max_output_chars=self.max_output_chars,
            model_key=self.model_key,
        )

    @classmethod
    def for_family(cls, family: ModelFamily, **overrides) -> GenerationConfig:
        """Config with the family's own stop sequences."""
        family = ModelFamily(family)
        return cls(template_family=family, stop_sequences=family.stop_sequences, **overrides)

    @classmethod
    def from_model_config(cls, model_key: str) -> GenerationConfig:
        """
        Build from a config/models.yaml entry.

        Raises:
            ConfigurationError: If the entry pairs a template with foreign stops.
        """
        entry = get_model_config(model_key)
        family = entry.get('family')
        stops = entry.get('stop_sequences')
        if not stops:
            try:
                stops = ModelFamily(family).stop_sequences
            except ValueError as e:
                raise ConfigurationError(f"Model '{model_key}' has unknown family {family!r}") from e
        return cls(
            template_family=family,
            stop_sequences=tuple(stops),
            context_window=entry.get('context_window', 2048),
            batch_size=entry.get('batch_size', 128),
            max_output_tokens=entry.get('max_output_tokens', 256),
            temperature=entry.get('temperature', 0.2),
            max_output_chars=entry.get('max_output_chars', MAX_OUTPUT_CHARS),
            model_key=model_key,
        )
