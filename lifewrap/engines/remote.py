"""
Remote engine: OpenAI- or Anthropic-style chat API over HTTPS.

The only tier that sends transcript text off the device, which is why the
coordinator never reaches it unless it heads the default order or is
requested by name. Every request reads the credential fresh from the
CredentialStore and drops it when done.

HTTP status mapping:
    401, 403      -> RemoteAuthenticationError (configuration, not retryable)
    404           -> ConfigurationError (unknown model or endpoint)
    429, 5xx      -> TransientRemoteError (retryable)
    timeout/conn  -> TransientRemoteError (retryable)
    other non-2xx -> GenerationFailure
"""

from __future__ import annotations

import threading
import time
from typing import Any

import requests

from lifewrap.ai.providers import RemoteProvider
from lifewrap.config import (
    REMOTE_CONNECTIVITY_TIMEOUT_SECONDS,
    REMOTE_MAX_OUTPUT_TOKENS,
    REMOTE_TIMEOUT_SECONDS,
)
from lifewrap.credential_store import CredentialStore
from lifewrap.engines.base import EngineTier, SummarizationEngine, SummaryRequest
from lifewrap.errors import (
    ConfigurationError,
    GenerationFailure,
    RemoteAuthenticationError,
    SummarizationError,
    TransientRemoteError,
)
from lifewrap.logging_config import debug_log, debug_timing, preview
from lifewrap.parallel import ExecutorStrategy
from lifewrap.prompting import PromptConfig, PromptMessages, build_messages
from lifewrap.summarization.result_types import StructuredSummary


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("message", error))
    return str(error or body)[:200]


def map_http_error(provider: RemoteProvider, response: requests.Response) -> SummarizationError:
    """Translate a non-2xx response into the error taxonomy."""
    status = response.status_code
    detail = _error_detail(response)
    name = provider.display_name
    tier = EngineTier.REMOTE

    if status in (401, 403):
        return RemoteAuthenticationError(
            f"{name} rejected the API key ({status}): {detail}", tier=tier, status_code=status
        )
    if status == 404:
        return ConfigurationError(f"{name} endpoint or model not found: {detail}", tier=tier)
    if status == 429:
        return TransientRemoteError(f"{name} rate limit reached: {detail}", tier=tier, status_code=status)
    if 500 <= status < 600:
        return TransientRemoteError(f"{name} server error ({status}): {detail}", tier=tier, status_code=status)
    return GenerationFailure(f"{name} request failed ({status}): {detail}", tier=tier)


class RemoteEngine(SummarizationEngine):
    """
    Args:
        credential_store: Source of the API key, read per request.
        provider: Which wire shape to speak.
        model: Model name; defaults to the provider's default.
        timeout: Per-request bound in seconds.
    """

    tier = EngineTier.REMOTE

    def __init__(
        self,
        credential_store: CredentialStore,
        provider: RemoteProvider = RemoteProvider.OPENAI,
        model: str | None = None,
        timeout: float = REMOTE_TIMEOUT_SECONDS,
        strategy: ExecutorStrategy | None = None,
        prompt_config: PromptConfig | None = None,
    ):
        super().__init__(strategy=strategy, prompt_config=prompt_config)
        self.credential_store = credential_store
        self.provider = RemoteProvider(provider)
        self.model = model or self.provider.default_model
        self.timeout = timeout
        self._usage_lock = threading.Lock()
        self.request_count = 0
        self.input_tokens = 0
        self.output_tokens = 0

    def configure(self, provider: RemoteProvider, model: str | None = None) -> None:
        """Switch provider/model; queued behind any in-flight request."""
        provider = RemoteProvider(provider)
        model = model or provider.default_model
        provider.validate_model(model)

        def apply(_):
            self.provider = provider
            self.model = model
            debug_log(f"[REMOTE] Configured {provider.display_name} / {model}")

        self._strategy.run(apply, None)

    def is_available(self) -> bool:
        if not self.credential_store.has(self.provider):
            debug_log(f"[REMOTE] Not available: no {self.provider.display_name} credential")
            return False
        return self.check_connectivity()

    def check_connectivity(self) -> bool:
        """Any HTTP answer from the provider host counts as reachable."""
        try:
            requests.head(self.provider.endpoint, timeout=REMOTE_CONNECTIVITY_TIMEOUT_SECONDS)
        except requests.exceptions.RequestException as e:
            debug_log(f"[REMOTE] {self.provider.display_name} unreachable: {e}")
            return False
        return True

    def _summarize(self, request: SummaryRequest) -> StructuredSummary:
        provider, model = self.provider, self.model
        provider.validate_model(model)

        messages = build_messages(request.level, request.text, request.metadata)
        max_tokens = max(self.prompt_config.max_output_tokens(request.level), REMOTE_MAX_OUTPUT_TOKENS)
        raw = self._complete(provider, model, messages, max_tokens)

        outcome = self.parser.parse(raw, request.level, source_text=request.text)
        return self._to_summary(request.level, outcome)

    def _complete(
        self,
        provider: RemoteProvider,
        model: str,
        messages: PromptMessages,
        max_tokens: int,
    ) -> str:
        api_key = self.credential_store.get(provider)
        if not api_key:
            raise ConfigurationError(f"No {provider.display_name} API key stored", tier=self.tier)

        payload = provider.build_payload(model, messages, self.prompt_config.temperature, max_tokens)
        body = self._post(provider, api_key, payload)

        try:
            text = provider.extract_text(body)
        except (KeyError, IndexError, TypeError) as e:
            raise GenerationFailure(
                f"Unexpected {provider.display_name} response shape: {e}", tier=self.tier
            ) from e
        # "content": null happens on refusals; let the parser fall back
        if not isinstance(text, str):
            text = ""

        input_tokens, output_tokens = provider.extract_usage(body)
        with self._usage_lock:
            self.request_count += 1
            self.input_tokens += input_tokens
            self.output_tokens += output_tokens
        debug_log(
            f"[REMOTE] {provider.display_name} returned {len(text)} chars "
            f"({input_tokens} in / {output_tokens} out tokens): {preview(text)}"
        )
        return text

    def _post(self, provider: RemoteProvider, api_key: str, payload: dict[str, Any]) -> dict[str, Any]:
        debug_log(f"[REMOTE] POST {provider.endpoint} model={payload['model']}")
        start_time = time.time()
        try:
            response = requests.post(
                provider.endpoint,
                headers=provider.headers(api_key),
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise TransientRemoteError(
                f"{provider.display_name} did not answer within {self.timeout} seconds", tier=self.tier
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise TransientRemoteError(
                f"Cannot reach {provider.display_name}: {e}", tier=self.tier
            ) from e
        except requests.exceptions.RequestException as e:
            raise TransientRemoteError(
                f"{provider.display_name} request failed: {e}", tier=self.tier
            ) from e
        debug_timing(f"[REMOTE] {provider.display_name} request", time.time() - start_time)

        if not 200 <= response.status_code < 300:
            raise map_http_error(provider, response)

        try:
            return response.json()
        except ValueError as e:
            raise GenerationFailure(
                f"{provider.display_name} returned a non-JSON body", tier=self.tier
            ) from e

    def validate_api_key(self, provider: RemoteProvider, api_key: str) -> bool:
        """
        Check a key before storing it: prefix check, then a one-token request.

        Returns:
            True if the provider accepted the key.

        Raises:
            RemoteAuthenticationError: The provider rejected the key.
            TransientRemoteError: Rate limited or provider unavailable.
        """
        provider = RemoteProvider(provider)
        if not provider.key_format_ok(api_key):
            raise RemoteAuthenticationError(
                f"That does not look like a {provider.display_name} API key", tier=self.tier
            )
        probe = PromptMessages(system="Reply with OK.", user="OK?")
        payload = provider.build_payload(provider.default_model, probe, 0.0, 1)
        self._strategy.run(lambda p: self._post(provider, api_key, p), payload)
        return True

    def usage_statistics(self) -> dict[str, int]:
        with self._usage_lock:
            return {
                'requests': self.request_count,
                'input_tokens': self.input_tokens,
                'output_tokens': self.output_tokens,
            }
