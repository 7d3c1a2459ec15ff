from __future__ import annotations

from typing import Any


class OnboardingError(Exception):
    """Base for errors that are reported to the caller as an ErrorResponse."""

    code = "onboarding_error"
    status_code = 400
    default_message = "Request could not be processed"
    retryable = False

    def __init__(self, message: str | None = None, *, details: list[dict[str, Any]] | None = None):
        self.message = message or self.default_message
        self.details = details or []
        super().__init__(self.message)


class InvalidToken(OnboardingError):
    code = "invalid_token"
    status_code = 404
    default_message = "Invalid or expired confirmation link"


class TokenExpired(OnboardingError):
    code = "token_expired"
    status_code = 410
    default_message = "This confirmation link has expired"


class AlreadyDeclined(OnboardingError):
    code = "already_declined"
    status_code = 409
    default_message = "This invitation was declined"


class AlreadyConfirmed(OnboardingError):
    code = "already_confirmed"
    status_code = 409
    default_message = "This profile is already confirmed"


class InvalidTransition(OnboardingError):
    code = "invalid_transition"
    status_code = 409
    default_message = "Lead cannot move to the requested state"


class LinkFailure(OnboardingError):
    code = "link_failure"
    status_code = 409
    default_message = "Listing could not be linked to the vendor"


class PersistenceFailure(OnboardingError):
    code = "persistence_failure"
    status_code = 503
    default_message = "Storage is temporarily unavailable, please retry"
    retryable = True


class LeadNotFound(OnboardingError):
    code = "lead_not_found"
    status_code = 404
    default_message = "Pending lead not found"


class VendorNotFound(OnboardingError):
    code = "vendor_not_found"
    status_code = 404
    default_message = "Invalid or expired edit link"


class GigNotFound(OnboardingError):
    code = "gig_not_found"
    status_code = 404
    default_message = "Gig not found"


class RateLimited(OnboardingError):
    code = "rate_limited"
    status_code = 429
    default_message = "Too many requests, slow down"
    retryable = True
