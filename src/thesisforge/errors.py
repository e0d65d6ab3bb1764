"""Error taxonomy.

Errors are classified where they are raised. Callers branch on the exception type, never on
the rendered message.
"""

from __future__ import annotations


class ThesisForgeError(RuntimeError):
    """Base class for all ThesisForge errors."""


# -------- Model gateway (fatal to the current step) --------


class GatewayError(ThesisForgeError):
    """The LLM backend could not produce an answer."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UnauthorizedError(GatewayError):
    pass


class EndpointNotFoundError(GatewayError):
    pass


class NetworkError(GatewayError):
    pass


class GatewayTimeoutError(GatewayError):
    pass


class RateLimitedError(GatewayError):
    pass


class EmptyResponseError(GatewayError):
    pass


# -------- Response parsing (recoverable) --------


class MalformedOutputError(ThesisForgeError):
    """Model output did not contain parseable structured data."""

    def __init__(self, reason: str, *, snippet: str = "") -> None:
        super().__init__(f"{reason}. Raw text snippet: {snippet}...")
        self.reason = reason
        self.snippet = snippet


# -------- Agents --------


class StructureGenerationFailedError(ThesisForgeError):
    """The architect could not build an outline."""


class RegenerationFailedError(ThesisForgeError):
    pass


class AdvisorUnavailableError(ThesisForgeError):
    pass


# -------- Workflow / persistence --------


class InvalidTransitionError(ThesisForgeError):
    pass


class SessionFormatError(ThesisForgeError):
    """A session file has an unsupported or unrecognised shape."""
