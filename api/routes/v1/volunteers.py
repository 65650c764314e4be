"""
api/routes/v1/volunteers.py -- Volunteer registry REST endpoints.

Routes:
  POST   /api/v1/volunteers                                   -- create a volunteer
  GET    /api/v1/volunteers                                   -- list (name, is_active, page, limit)
  GET    /api/v1/volunteers/{id}                              -- volunteer detail
  PUT    /api/v1/volunteers/{id}                              -- partial update, re-validated
  DELETE /api/v1/volunteers/{id}                              -- delete (admin only)
  POST   /api/v1/volunteers/{id}/inactivate                   -- Active -> Inactive
  GET    /api/v1/volunteers/{id}/workshops                    -- workshops the volunteer attends
  POST   /api/v1/volunteers/{id}/workshops/{workshop_id}      -- link to a workshop
  DELETE /api/v1/volunteers/{id}/workshops/{workshop_id}      -- unlink from a workshop

Handlers are plain def: every one of them hits the database, and FastAPI runs
sync handlers in its thread pool so the event loop is never blocked.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from api.models import (
    VolunteerCreate,
    VolunteerInactivate,
    VolunteerResponse,
    VolunteerUpdate,
    WorkshopResponse,
)
from auth.dependencies import require_admin, require_auth
from auth.models import SessionClaims
from roster.models import Volunteer
from roster.service import VolunteerService, WorkshopService

# Auth policy:
# - DELETE /volunteers/{id}:  requires admin (require_admin)
# - everything else:          requires auth (require_auth)
router = APIRouter()


def _volunteers(request: Request) -> VolunteerService:
    return request.app.state.volunteers


@router.post("/volunteers", response_model=VolunteerResponse, status_code=201)
def create_volunteer(
    request: Request,
    body: VolunteerCreate,
    claims: SessionClaims = Depends(require_auth),
) -> VolunteerResponse:
    volunteer = _volunteers(request).create(Volunteer(**body.model_dump()))
    return VolunteerResponse.from_volunteer(volunteer)


@router.get("/volunteers", response_model=list[VolunteerResponse])
def list_volunteers(
    request: Request,
    name: Optional[str] = None,
    is_active: Optional[bool] = None,
    page: int = 1,
    limit: int = 0,
    claims: SessionClaims = Depends(require_auth),
) -> list[VolunteerResponse]:
    """List volunteers, newest first.

    name is a case-insensitive substring match. Pagination applies only when
    limit > 0.
    """
    volunteers = _volunteers(request).list(name=name, is_active=is_active, page=page, limit=limit)
    return [VolunteerResponse.from_volunteer(v) for v in volunteers]


@router.get("/volunteers/{volunteer_id}", response_model=VolunteerResponse)
def get_volunteer(
    request: Request,
    volunteer_id: str,
    claims: SessionClaims = Depends(require_auth),
) -> VolunteerResponse:
    return VolunteerResponse.from_volunteer(_volunteers(request).get(volunteer_id))


@router.put("/volunteers/{volunteer_id}", response_model=VolunteerResponse)
def update_volunteer(
    request: Request,
    volunteer_id: str,
    body: VolunteerUpdate,
    claims: SessionClaims = Depends(require_auth),
) -> VolunteerResponse:
    volunteer = _volunteers(request).update(volunteer_id, **body.model_dump(exclude_none=True))
    return VolunteerResponse.from_volunteer(volunteer)


@router.delete("/volunteers/{volunteer_id}", status_code=204)
def delete_volunteer(
    request: Request,
    volunteer_id: str,
    claims: SessionClaims = Depends(require_admin),
) -> Response:
    """Delete a volunteer and remove it from every workshop. Admin only."""
    _volunteers(request).delete(volunteer_id)
    return Response(status_code=204)


@router.post("/volunteers/{volunteer_id}/inactivate", response_model=VolunteerResponse)
def inactivate_volunteer(
    request: Request,
    volunteer_id: str,
    body: VolunteerInactivate,
    claims: SessionClaims = Depends(require_auth),
) -> VolunteerResponse:
    """Mark a volunteer inactive as of exit_date. There is no reactivation."""
    volunteer = _volunteers(request).inactivate(volunteer_id, body.exit_date)
    return VolunteerResponse.from_volunteer(volunteer)


# ---------------------------------------------------------------------------
# Workshop membership
# ---------------------------------------------------------------------------


@router.get("/volunteers/{volunteer_id}/workshops", response_model=list[WorkshopResponse])
def list_volunteer_workshops(
    request: Request,
    volunteer_id: str,
    claims: SessionClaims = Depends(require_auth),
) -> list[WorkshopResponse]:
    """Workshops whose volunteer list contains this volunteer, most recent first."""
    _volunteers(request).get(volunteer_id)  # 404 for unknown volunteers
    workshops: WorkshopService = request.app.state.workshops
    return [WorkshopResponse.from_workshop(w) for w in workshops.list_by_volunteer(volunteer_id)]


@router.post("/volunteers/{volunteer_id}/workshops/{workshop_id}", response_model=VolunteerResponse)
def add_workshop(
    request: Request,
    volunteer_id: str,
    workshop_id: str,
    claims: SessionClaims = Depends(require_auth),
) -> VolunteerResponse:
    """Link the volunteer to a workshop. Linking twice is a no-op."""
    volunteer = _volunteers(request).add_workshop(volunteer_id, workshop_id)
    return VolunteerResponse.from_volunteer(volunteer)


@router.delete("/volunteers/{volunteer_id}/workshops/{workshop_id}", response_model=VolunteerResponse)
def remove_workshop(
    request: Request,
    volunteer_id: str,
    workshop_id: str,
    claims: SessionClaims = Depends(require_auth),
) -> VolunteerResponse:
    volunteer = _volunteers(request).remove_workshop(volunteer_id, workshop_id)
    return VolunteerResponse.from_volunteer(volunteer)
