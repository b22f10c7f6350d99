"""
Summarization engines, one per EngineTier.

    BasicEngine       extractive, always available
    OnDeviceEngine    local Ollama service
    LocalEngine       GGUF model through llama.cpp, owns the chunk cache
    RemoteEngine      OpenAI/Anthropic chat API

Only BasicEngine is imported eagerly here; LocalEngine pulls in
llama-cpp-python and is imported from lifewrap.engines.local where needed.
"""

from lifewrap.engines.base import (
    DEFAULT_FALLBACK_ORDER,
    EngineTier,
    SummarizationEngine,
    SummaryRequest,
)
from lifewrap.engines.basic import BasicEngine

__all__ = [
    'DEFAULT_FALLBACK_ORDER',
    'EngineTier',
    'SummarizationEngine',
    'SummaryRequest',
    'BasicEngine',
]
