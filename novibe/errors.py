"""Error taxonomy shared by the pipeline, the HTTP layer and the MCP tools.

Every error carries the HTTP status and a stable machine-readable code so the
API can render a uniform ``{success: false, error: {message, code}}`` envelope.
"""
from __future__ import annotations

from typing import Any


class NoVibeError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": False,
            "error": {"message": self.message, "code": self.code},
        }
        if self.details:
            body["details"] = self.details
        return body


class AuthenticationRequired(NoVibeError):
    status_code = 401
    code = "AUTHENTICATION_ERROR"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class AccessDenied(NoVibeError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"


class ValidationError(NoVibeError):
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFound(NoVibeError):
    status_code = 404
    code = "NOT_FOUND"


class InsufficientCredits(NoVibeError):
    status_code = 429
    code = "INSUFFICIENT_CREDITS"

    def __init__(self, credits: int, tier: str, message: str | None = None):
        super().__init__(
            message or "You have run out of credits. Upgrade your plan to keep analyzing.",
            details={"credits": credits, "tier": tier},
        )
        self.credits = credits
        self.tier = tier


class ProviderUnavailable(NoVibeError):
    """The AI provider is not configured (missing key, unknown provider)."""
    code = "PROVIDER_UNAVAILABLE"


class ProviderError(NoVibeError):
    """Transport or SDK failure while talking to the AI provider."""
    code = "PROVIDER_ERROR"

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


class EmptyResponse(NoVibeError):
    code = "EMPTY_RESPONSE"

    def __init__(self, message: str = "The AI provider returned an empty response"):
        super().__init__(message)


class MalformedResponse(NoVibeError):
    code = "MALFORMED_RESPONSE"
    user_message = "The AI returned an invalid format. Please try again."

    def __init__(self, reason: str):
        super().__init__(self.user_message)
        self.reason = reason


class PersistenceError(NoVibeError):
    code = "DATABASE_ERROR"
