"""Domain error taxonomy for identity and onboarding.

Services raise these; a single exception handler in ``app.main`` turns
them into ``{"success": false, "error": <code>, "detail": <message>}``
responses. Every error carries the HTTP status the API reports and a
stable machine-readable ``code`` the client maps to a recovery action
(request a new invitation, log in instead, contact an administrator).
"""

from enum import StrEnum

from fastapi import status


class DomainError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"
    message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.message
        super().__init__(self.message)


class ValidationError(DomainError):
    """Malformed, missing or too-short input, detected before any write."""

    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
    code = "validation_error"
    message = "Invalid input"


class TokenErrorReason(StrEnum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ALREADY_USED = "already_used"
    INACTIVE = "inactive"


_TOKEN_ERRORS: dict[TokenErrorReason, tuple[int, str]] = {
    TokenErrorReason.NOT_FOUND: (status.HTTP_404_NOT_FOUND, "Invitation not found"),
    TokenErrorReason.EXPIRED: (status.HTTP_410_GONE, "Invitation has expired"),
    TokenErrorReason.ALREADY_USED: (status.HTTP_409_CONFLICT, "Invitation was already used"),
    TokenErrorReason.INACTIVE: (status.HTTP_410_GONE, "Invitation was deactivated"),
}


class InvalidTokenError(DomainError):
    """An invitation secret that cannot be used, with the reason why."""

    def __init__(self, reason: TokenErrorReason) -> None:
        self.reason = reason
        self.status_code, message = _TOKEN_ERRORS[reason]
        self.code = f"token_{reason.value}"
        super().__init__(message)


class DuplicateAccountError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "duplicate_account"
    message = "An account with these credentials already exists, log in instead"


class NotActivatedError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "not_activated"
    message = (
        "Enrollment id found, but access was never activated. "
        "Use the invitation link from your school to create the account."
    )


class AuthError(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "invalid_credentials"
    message = "Invalid login credentials"


class IdentityBackendError(DomainError):
    """The credential store failed for a reason other than a bad password."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "identity_backend_unavailable"
    message = "Authentication is temporarily unavailable"


class ForbiddenError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    message = "Your role does not allow this action"


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    message = "Not found"


class TenantNotFoundError(NotFoundError):
    code = "tenant_not_found"
    message = "Tenant not found"


class ProvisioningError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "provisioning_error"
    message = "Tenant could not be provisioned"


class AdministratorExistsError(ProvisioningError):
    code = "administrator_exists"
    message = "Tenant already has an administrator"


class DuplicateSubdomainError(ProvisioningError):
    code = "duplicate_subdomain"

    def __init__(self, subdomain: str) -> None:
        super().__init__(f"Subdomain '{subdomain}' is already taken")


class InvitationInUseError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "invitation_in_use"
    message = "A redeemed invitation cannot be deleted"
