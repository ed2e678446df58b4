"""Error taxonomy for the synthesis pipeline.

Two layers live here:

- ``GatewayError``: raised by the Model Gateway, tagged with a ``FailureSignal``
  at the SDK boundary. Its ``classification`` decides whether the Failover
  Orchestrator advances to the next credential or stops.
- ``SynthesisError`` subclasses: the caller-facing kinds. Each carries a stable
  ``code`` and a ``message`` suitable for direct display.
"""

from enum import Enum
from typing import Optional


class FailureClassification(str, Enum):
    """Whether another credential could plausibly succeed."""

    RECOVERABLE = "recoverable"
    FATAL = "fatal"


class FailureSignal(str, Enum):
    """What the underlying model call reported."""

    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    QUOTA_EXCEEDED = "quota_exceeded"
    SAFETY_BLOCKED = "safety_blocked"
    BAD_REQUEST = "bad_request"
    EMPTY_RESPONSE = "empty_response"
    UNKNOWN = "unknown"


RECOVERABLE_SIGNALS = frozenset(
    {
        FailureSignal.RATE_LIMITED,
        FailureSignal.SERVICE_UNAVAILABLE,
        FailureSignal.UNAUTHORIZED,
        FailureSignal.NOT_FOUND,
        FailureSignal.QUOTA_EXCEEDED,
    }
)


class GatewayError(Exception):
    """A failed model call, classified where it was raised."""

    def __init__(self, signal: FailureSignal, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.signal = signal
        self.message = message
        self.status_code = status_code

    @property
    def classification(self) -> FailureClassification:
        if self.signal in RECOVERABLE_SIGNALS:
            return FailureClassification.RECOVERABLE
        return FailureClassification.FATAL

    def __repr__(self) -> str:
        return f"GatewayError(signal={self.signal.value!r}, status_code={self.status_code!r}, message={self.message!r})"


class SynthesisError(Exception):
    """Base class for every failure surfaced to pipeline callers."""

    code = "SYNTHESIS_ERROR"
    default_message = "Recipe synthesis failed."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"status": "error", "error": self.code, "message": self.message}


class EmptyInput(SynthesisError):
    code = "EMPTY_INPUT"
    default_message = "Add at least one ingredient before generating a recipe."


class MissingCoreIngredient(SynthesisError):
    code = "MISSING_CORE_INGREDIENT"
    default_message = "Missing a main ingredient (protein, vegetable or grain). Add one or list at least three ingredients."


class InvalidImage(SynthesisError):
    code = "INVALID_IMAGE"
    default_message = "The image could not be read. Upload a JPEG, PNG or WEBP photo."


class Unconfigured(SynthesisError):
    code = "UNCONFIGURED"
    default_message = "No model credentials are configured for this deployment."


class CredentialsExhausted(SynthesisError):
    """Every credential in the pool failed recoverably (or the pool was empty)."""

    code = "CREDENTIALS_EXHAUSTED"
    default_message = "All configured credentials failed. Try again later or add a new credential."

    def __init__(
        self,
        message: Optional[str] = None,
        attempts: int = 0,
        last_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class SynthesisUnavailable(CredentialsExhausted):
    code = "SYNTHESIS_UNAVAILABLE"
    default_message = "The recipe engine is temporarily unavailable. Please try again in a moment."


class SynthesisRejectedInput(SynthesisError):
    """A fatal model failure: retrying with another credential cannot help."""

    code = "SYNTHESIS_REJECTED_INPUT"
    default_message = "The request was rejected by the model. Adjust the ingredients or preferences and retry."

    def __init__(self, message: Optional[str] = None, signal: FailureSignal = FailureSignal.UNKNOWN) -> None:
        super().__init__(message)
        self.signal = signal


class MalformedJSON(SynthesisError):
    """Model text that does not decode. Carries the text length, never the text."""

    code = "MALFORMED_JSON"

    def __init__(self, length: int) -> None:
        self.length = length
        super().__init__(f"Model response is not valid JSON ({length} characters).")


class SchemaViolation(SynthesisError):
    """Decoded object that breaks the Recipe contract; lists every violation found."""

    code = "SCHEMA_VIOLATION"

    def __init__(self, violations: list[tuple[str, str]]) -> None:
        self.violations = list(violations)
        details = " | ".join(f"{path}: {reason}" if path else reason for path, reason in self.violations)
        super().__init__(f"Recipe failed validation: {details}")

    @property
    def fields(self) -> list[str]:
        return [path for path, _ in self.violations]

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["violations"] = [{"field": path, "reason": reason} for path, reason in self.violations]
        return data


class NoImageProduced(SynthesisError):
    code = "NO_IMAGE_PRODUCED"
    default_message = "The image model returned no picture for this recipe."
