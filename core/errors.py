"""
core/errors.py -- Typed error taxonomy shared by validators, services, and the API.

Every failure the domain can produce is a subclass of AppError and carries:
  code        -- stable machine-readable identifier (snake_case)
  status_code -- HTTP status the API boundary maps it to
  message     -- default user-facing message (overridable per raise)

The five families mirror the response classes the API exposes:
  ValidationFailed (400), NotFound (404), Conflict (409),
  Unauthorized (401), Forbidden (403), plus InternalError (500).

Callers catch the family when they only care about the class of failure
(e.g. the auth guard turns any TokenError into Unauthorized) and the leaf
class when they need the specific kind (tests, user-facing messages).

Layer rule: core/ is the kernel. This module has no project imports.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for all expected, user-mappable failures."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, detail: str | None = None) -> None:
        self.message = message or self.message
        self.detail = detail
        super().__init__(self.message)


class InternalError(AppError):
    pass


# ---------------------------------------------------------------------------
# Validation (400)
# ---------------------------------------------------------------------------


class ValidationFailed(AppError):
    status_code = 400
    code = "validation_error"
    message = "Invalid input."


class InvalidEmail(ValidationFailed):
    code = "invalid_email"
    message = "Invalid email address."


class PasswordTooShort(ValidationFailed):
    code = "password_too_short"
    message = "Password must be at least 8 characters long."


class PasswordTooWeak(ValidationFailed):
    code = "password_too_weak"
    message = "Password must contain uppercase letters, lowercase letters and digits."


class InvalidRole(ValidationFailed):
    code = "invalid_role"
    message = "Role must be 'admin' or 'member'."


class RequiredField(ValidationFailed):
    code = "required_field"
    message = "A required field is missing."


class MissingAcademicInfo(ValidationFailed):
    code = "missing_academic_info"
    message = "Course and registration number are required for academic volunteers."


class InvalidEntryDate(ValidationFailed):
    code = "invalid_entry_date"
    message = "Entry date is required and cannot be in the future."


class InvalidExitDate(ValidationFailed):
    code = "invalid_exit_date"
    message = "Exit date must not be earlier than the entry date."


class InvalidWorkshopName(ValidationFailed):
    code = "invalid_workshop_name"
    message = "Workshop name must be at least 3 characters long."


class InvalidWorkshopDate(ValidationFailed):
    code = "invalid_workshop_date"
    message = "Invalid date. Use the format YYYY-MM-DD."


class WorkshopDateTooFar(ValidationFailed):
    code = "workshop_date_too_far"
    message = "Workshop date cannot be more than one year in the future."


# ---------------------------------------------------------------------------
# Not found (404)
# ---------------------------------------------------------------------------


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    message = "Resource not found."


class UserNotFound(NotFound):
    message = "User not found."


class VolunteerNotFound(NotFound):
    message = "Volunteer not found."


class WorkshopNotFound(NotFound):
    message = "Workshop not found."


# ---------------------------------------------------------------------------
# Conflict (409)
# ---------------------------------------------------------------------------


class Conflict(AppError):
    status_code = 409
    code = "conflict"
    message = "The request conflicts with the current state of the resource."


class EmailAlreadyExists(Conflict):
    code = "email_already_exists"
    message = "A record with this email already exists."


class WorkshopNameTaken(Conflict):
    code = "workshop_name_taken"
    message = "A workshop with this name already exists."


class AlreadyInactive(Conflict):
    code = "already_inactive"
    message = "Volunteer is already inactive."


class VolunteerInactive(Conflict):
    code = "volunteer_inactive"
    message = "Volunteer is not active."


# ---------------------------------------------------------------------------
# Unauthorized (401)
# ---------------------------------------------------------------------------


class Unauthorized(AppError):
    status_code = 401
    code = "unauthorized"
    message = "Authentication required."


class MissingToken(Unauthorized):
    code = "missing_token"
    message = "Token not provided."


class MalformedHeader(Unauthorized):
    code = "malformed_header"
    message = "Invalid token format. Use: Bearer <token>"


class InvalidCredentials(Unauthorized):
    code = "bad_credentials"
    message = "Invalid email or password."


class UserInactive(Unauthorized):
    code = "user_inactive"
    message = "User account is inactive."


class TokenError(Unauthorized):
    """Base for failures raised by auth.tokens.TokenService.validate()."""

    code = "invalid_token"
    message = "Invalid or expired token."


class MalformedToken(TokenError):
    code = "malformed_token"
    message = "Token could not be parsed."


class InvalidSignature(TokenError):
    code = "invalid_signature"
    message = "Token signature is invalid."


class TokenExpired(TokenError):
    code = "token_expired"
    message = "Token has expired."


# ---------------------------------------------------------------------------
# Forbidden (403)
# ---------------------------------------------------------------------------


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    message = "Access denied. Insufficient permission."
