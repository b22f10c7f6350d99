"""
Error taxonomy for the summarization core.

Every failure that can cross a component boundary is one of these classes.
The ``retryable`` flag tells callers whether trying the same request again
later can reasonably succeed; this package itself never retries.

    SummarizationError
    ├── ConfigurationError          never retried
    │   └── RemoteAuthenticationError
    ├── AvailabilityError           advances the fallback chain in auto mode
    ├── GenerationFailure           recovered via extractive fallback when possible
    │   └── GenerationCancelled
    ├── ParseFailure                absorbed by the response parser
    ├── TransientRemoteError        retryable (timeout, 429, 5xx)
    └── FatalModelError             corrupt local weights, never retried
"""


class SummarizationError(Exception):
    """Base class for all summarization core errors."""

    retryable = False

    def __init__(self, message: str, tier=None):
        super().__init__(message)
        self.tier = tier


class ConfigurationError(SummarizationError):
    """Missing credential, mismatched provider/model, or invalid generation config."""


class RemoteAuthenticationError(ConfigurationError):
    """The remote provider rejected the credential (HTTP 401/403)."""

    def __init__(self, message: str, tier=None, status_code: int | None = None):
        super().__init__(message, tier=tier)
        self.status_code = status_code


class AvailabilityError(SummarizationError):
    """The requested tier is not ready to serve requests."""


class GenerationFailure(SummarizationError):
    """No usable output could be produced, not even an extractive fallback."""


class GenerationCancelled(GenerationFailure):
    """Generation was cancelled between tokens."""


class ParseFailure(SummarizationError):
    """Model output was not valid JSON for the target schema."""


class TransientRemoteError(SummarizationError):
    """Timeout, rate limit or server-side failure from the remote provider."""

    retryable = True

    def __init__(self, message: str, tier=None, status_code: int | None = None):
        super().__init__(message, tier=tier)
        self.status_code = status_code


class FatalModelError(SummarizationError):
    """The local weight file is corrupt or mismatched (size outside the expected window)."""
