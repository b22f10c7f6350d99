"""
On-device assistant engine: the locally running Ollama service.

No transcript text leaves the machine. Availability requires a server at or
above the minimum version and the configured model installed; the probe is
read-only.
"""

from __future__ import annotations

from lifewrap.ai.ollama_model_manager import OllamaModelManager
from lifewrap.engines.base import EngineTier, SummarizationEngine, SummaryRequest
from lifewrap.parallel import ExecutorStrategy
from lifewrap.prompting import PromptConfig, build_messages
from lifewrap.summarization.result_types import StructuredSummary


class OnDeviceEngine(SummarizationEngine):
    tier = EngineTier.ON_DEVICE_ASSISTANT

    def __init__(
        self,
        manager: OllamaModelManager | None = None,
        strategy: ExecutorStrategy | None = None,
        prompt_config: PromptConfig | None = None,
    ):
        super().__init__(strategy=strategy, prompt_config=prompt_config)
        self.manager = manager or OllamaModelManager()

    def is_available(self) -> bool:
        return self.manager.check_ready()

    def _summarize(self, request: SummaryRequest) -> StructuredSummary:
        messages = build_messages(request.level, request.text, request.metadata)
        raw = self.manager.chat(
            messages.as_chat(),
            max_tokens=self.prompt_config.max_output_tokens(request.level),
            temperature=self.prompt_config.temperature,
        )
        outcome = self.parser.parse(raw, request.level, source_text=request.text)
        return self._to_summary(request.level, outcome)
