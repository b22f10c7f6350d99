"""
Prompting package: one entry point for everything that shapes a request.

    from lifewrap.prompting import (
        SummaryLevel, SchemaDefinition, schema,     # what to produce
        build_messages, PromptMessages,            # how to ask for it
        ModelFamily, format_prompt,                # how a raw model sees it
        PromptConfig, get_prompt_config,           # tunable parameters
    )

Architecture:
    schema(level)  ->  build_messages(level, input, metadata)
                              |
                   chat APIs take PromptMessages directly
                   llama.cpp gets format_prompt(family, messages)
"""

from lifewrap.prompting.builder import (
    SYSTEM_INSTRUCTION,
    PromptMessages,
    build_messages,
)
from lifewrap.prompting.config import PromptConfig, get_prompt_config
from lifewrap.prompting.schemas import (
    SchemaDefinition,
    SchemaField,
    SummaryLevel,
    all_schemas,
    schema,
)
from lifewrap.prompting.templates import (
    FAMILY_STOP_SEQUENCES,
    ModelFamily,
    detect_family,
    format_prompt,
)

__all__ = [
    'SummaryLevel',
    'SchemaField',
    'SchemaDefinition',
    'schema',
    'all_schemas',
    'SYSTEM_INSTRUCTION',
    'PromptMessages',
    'build_messages',
    'ModelFamily',
    'FAMILY_STOP_SEQUENCES',
    'format_prompt',
    'detect_family',
    'PromptConfig',
    'get_prompt_config',
]
