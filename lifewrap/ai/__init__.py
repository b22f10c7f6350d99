"""
LifeWrap AI Module
Model backends and the text-generation plumbing shared by the engines.

Components:
    GenerationConfig     - Template family, stop sequences and limits for one model
    StreamingGenerator   - Token loop with stop-sequence and ceiling truncation
    ResponseParser       - JSON extraction with extractive fallback
    OllamaModelManager   - HTTP client for the local Ollama service
    RemoteProvider       - OpenAI / Anthropic wire shapes

LlamaModelManager (llama.cpp) is imported from lifewrap.ai.llama_model_manager
so that loading the native library only happens when the local tier is built.
"""

from .generation_config import GenerationConfig, family_of_stop_sequence
from .ollama_model_manager import OllamaModelManager
from .providers import RemoteProvider
from .response_parser import ParseOutcome, ResponseParser
from .streaming import StreamingGenerator

__all__ = [
    'GenerationConfig',
    'family_of_stop_sequence',
    'StreamingGenerator',
    'ResponseParser',
    'ParseOutcome',
    'OllamaModelManager',
    'RemoteProvider',
]
