"""
API request and response models for the ELLP REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
roster/models.py, which own the internal domain representation. Route handlers
map between the two.

Request models only enforce shape (types, lengths). Domain rules (email
format, password strength, entry/exit dates, workshop dates) are enforced by
the validators behind the services, so every rule produces the same error
code no matter which entry point triggered it.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import SessionClaims, UserView
from roster.models import ReconcileReport, Volunteer, Workshop

# bcrypt only looks at the first 72 bytes of a password.
MAX_PASSWORD_LENGTH = 72


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(max_length=255)
    password: str = Field(max_length=MAX_PASSWORD_LENGTH)
    role: str = "member"


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(max_length=255)
    password: str = Field(max_length=MAX_PASSWORD_LENGTH)


class PasswordChange(BaseModel):
    """Request body for PUT /api/v1/auth/me/password."""

    current_password: str = Field(max_length=MAX_PASSWORD_LENGTH)
    new_password: str = Field(max_length=MAX_PASSWORD_LENGTH)


class UserPatch(BaseModel):
    """Request body for PATCH /api/v1/auth/users/{user_id}. All fields optional."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    role: Optional[str] = None
    is_active: Optional[bool] = None


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """User account as returned by the API. Never carries a password field."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    role: str
    is_active: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_view(cls, view: UserView) -> "UserResponse":
        return cls(
            id=view.id,
            name=view.name,
            email=view.email,
            role=view.role.value,
            is_active=view.is_active,
            created_at=view.created_at,
            updated_at=view.updated_at,
        )


class LoginResponse(BaseModel):
    """Response for POST /api/v1/auth/login."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    token: str
    token_type: str = "bearer"
    expires_in: int


class TokenResponse(BaseModel):
    """Response for POST /api/v1/auth/refresh."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    expires_in: int


class MeResponse(BaseModel):
    """Identity carried by the caller's token."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str
    role: str
    issued_at: int
    expires_at: int

    @classmethod
    def from_claims(cls, claims: SessionClaims) -> "MeResponse":
        return cls(
            user_id=claims.user_id,
            email=claims.email,
            role=claims.role.value,
            issued_at=claims.issued_at,
            expires_at=claims.expires_at,
        )


# ---------------------------------------------------------------------------
# Volunteers
# ---------------------------------------------------------------------------


class VolunteerCreate(BaseModel):
    """Request body for POST /api/v1/volunteers."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(default="", max_length=255)
    email: str = Field(default="", max_length=255)
    phone: str = Field(default="", max_length=50)
    is_academic: bool = False
    course: str = Field(default="", max_length=255)
    registration_number: str = Field(default="", max_length=50)
    entry_date: Optional[datetime] = None


class VolunteerUpdate(BaseModel):
    """Request body for PUT /api/v1/volunteers/{volunteer_id}.

    Omitted (or null) fields keep their stored value.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    is_academic: Optional[bool] = None
    course: Optional[str] = Field(default=None, max_length=255)
    registration_number: Optional[str] = Field(default=None, max_length=50)
    entry_date: Optional[datetime] = None


class VolunteerInactivate(BaseModel):
    """Request body for POST /api/v1/volunteers/{volunteer_id}/inactivate."""

    exit_date: datetime


class VolunteerResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    phone: str
    is_academic: bool
    course: str
    registration_number: str
    entry_date: Optional[datetime]
    exit_date: Optional[datetime] = None
    is_active: bool
    workshops: list[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_volunteer(cls, volunteer: Volunteer) -> "VolunteerResponse":
        return cls(
            id=volunteer.id or "",
            name=volunteer.name,
            email=volunteer.email,
            phone=volunteer.phone,
            is_academic=volunteer.is_academic,
            course=volunteer.course,
            registration_number=volunteer.registration_number,
            entry_date=volunteer.entry_date,
            exit_date=volunteer.exit_date,
            is_active=volunteer.is_active,
            workshops=list(volunteer.workshops),
            created_at=volunteer.created_at,
            updated_at=volunteer.updated_at,
        )


# ---------------------------------------------------------------------------
# Workshops
# ---------------------------------------------------------------------------


class WorkshopCreate(BaseModel):
    """Request body for POST /api/v1/workshops. date is YYYY-MM-DD."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(default="", max_length=255)
    date: str = Field(default="", max_length=10)
    description: str = Field(default="", max_length=2000)


class WorkshopUpdate(BaseModel):
    """Request body for PUT /api/v1/workshops/{workshop_id}. Partial."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, max_length=255)
    date: Optional[str] = Field(default=None, max_length=10)
    description: Optional[str] = Field(default=None, max_length=2000)


class WorkshopResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    date: str  # YYYY-MM-DD
    description: str
    volunteers: list[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_workshop(cls, workshop: Workshop) -> "WorkshopResponse":
        return cls(
            id=workshop.id or "",
            name=workshop.name,
            date=workshop.date.isoformat(),
            description=workshop.description,
            volunteers=list(workshop.volunteers),
            created_at=workshop.created_at,
            updated_at=workshop.updated_at,
        )


class ReconcileResponse(BaseModel):
    """Response for POST /api/v1/workshops/memberships/reconcile."""

    model_config = ConfigDict(frozen=True)

    links_added: int
    dangling_removed: int

    @classmethod
    def from_report(cls, report: ReconcileReport) -> "ReconcileResponse":
        return cls(links_added=report.links_added, dangling_removed=report.dangling_removed)
