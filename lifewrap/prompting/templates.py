"""
Model-family chat templates for raw-completion backends.

llama.cpp completion takes a single prompt string, so the system/user pair
has to be rendered in the exact chat format the model was tuned on. Each
family also owns the stop sequences that end an assistant turn in that
format. The two always travel together: a Phi-3 prompt with Llama-3 stop
markers either never terminates or truncates after the first token.

Supported families:
- phi3:    <|system|> ... <|end|> <|user|> ... <|end|> <|assistant|>
- llama3:  <|start_header_id|>role<|end_header_id|> ... <|eot_id|>
- chatml:  <|im_start|>role ... <|im_end|>  (Qwen2 and friends)
- mistral: [INST] ... [/INST]
"""

from __future__ import annotations

from enum import Enum

from lifewrap.logging_config import debug
from lifewrap.prompting.builder import PromptMessages


class ModelFamily(str, Enum):
    PHI3 = "phi3"
    LLAMA3 = "llama3"
    CHATML = "chatml"
    MISTRAL = "mistral"

    @property
    def stop_sequences(self) -> tuple[str, ...]:
        return FAMILY_STOP_SEQUENCES[self]


FAMILY_STOP_SEQUENCES: dict[ModelFamily, tuple[str, ...]] = {
    ModelFamily.PHI3: ("<|end|>", "<|endoftext|>"),
    ModelFamily.LLAMA3: ("<|eot_id|>", "<|end_of_text|>"),
    ModelFamily.CHATML: ("<|im_end|>",),
    ModelFamily.MISTRAL: ("</s>",),
}


def format_prompt(family: ModelFamily, messages: PromptMessages) -> str:
    """
    Render a system/user pair in the family's chat template.

    The returned string ends with the assistant turn opener so the model
    continues as the assistant.
    """
    family = ModelFamily(family)
    system, user = messages.system, messages.user

    if family is ModelFamily.PHI3:
        return f"<|system|>\n{system}<|end|>\n<|user|>\n{user}<|end|>\n<|assistant|>\n"

    if family is ModelFamily.LLAMA3:
        return (
            "<|begin_of_text|>"
            f"<|start_header_id|>system<|end_header_id|>\n\n{system}<|eot_id|>"
            f"<|start_header_id|>user<|end_header_id|>\n\n{user}<|eot_id|>"
            "<|start_header_id|>assistant<|end_header_id|>\n\n"
        )

    if family is ModelFamily.CHATML:
        return (
            f"<|im_start|>system\n{system}<|im_end|>\n"
            f"<|im_start|>user\n{user}<|im_end|>\n"
            "<|im_start|>assistant\n"
        )

    # Mistral has no system role; prepend it to the user turn
    return f"<s>[INST] {system}\n\n{user} [/INST]"


def detect_family(model_name: str) -> ModelFamily | None:
    """
    Guess the template family from a model file or tag name.

    Args:
        model_name: e.g. "Phi-3.5-mini-instruct-Q4_K_M.gguf", "qwen2:0.5b"

    Returns:
        The detected family, or None for unknown models.
    """
    base = model_name.lower()

    if 'phi-3' in base or 'phi3' in base:
        family = ModelFamily.PHI3
    elif 'llama-3' in base or 'llama3' in base:
        family = ModelFamily.LLAMA3
    elif 'qwen' in base or 'chatml' in base:
        family = ModelFamily.CHATML
    elif 'mistral' in base:
        family = ModelFamily.MISTRAL
    else:
        debug(f"[PROMPT FORMAT] Unknown model family for '{model_name}'")
        return None

    debug(f"[PROMPT FORMAT] Detected {family.value} template for '{model_name}'")
    return family
