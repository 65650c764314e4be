"""
api/routes/v1/workshops.py -- Workshop REST endpoints.

Routes:
  POST   /api/v1/workshops                                    -- create a workshop
  GET    /api/v1/workshops                                    -- list (name, month, year, page, limit)
  POST   /api/v1/workshops/memberships/reconcile              -- repair membership (admin only)
  GET    /api/v1/workshops/{id}                               -- workshop detail
  PUT    /api/v1/workshops/{id}                               -- partial update
  DELETE /api/v1/workshops/{id}                               -- delete (admin only)
  POST   /api/v1/workshops/{id}/volunteers/{volunteer_id}     -- link a volunteer
  DELETE /api/v1/workshops/{id}/volunteers/{volunteer_id}     -- unlink a volunteer
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from api.models import ReconcileResponse, WorkshopCreate, WorkshopResponse, WorkshopUpdate
from auth.dependencies import require_admin, require_auth
from auth.models import SessionClaims
from roster.service import DEFAULT_WORKSHOP_PAGE_SIZE, MembershipService, WorkshopService

# Auth policy:
# - DELETE /workshops/{id}:                  requires admin (require_admin)
# - POST   /workshops/memberships/reconcile: requires admin (require_admin)
# - everything else:                         requires auth (require_auth)
router = APIRouter()


def _workshops(request: Request) -> WorkshopService:
    return request.app.state.workshops


@router.post("/workshops", response_model=WorkshopResponse, status_code=201)
def create_workshop(
    request: Request,
    body: WorkshopCreate,
    claims: SessionClaims = Depends(require_auth),
) -> WorkshopResponse:
    """Create a workshop. date must be YYYY-MM-DD and at most one year ahead."""
    workshop = _workshops(request).create(body.name, body.date, body.description)
    return WorkshopResponse.from_workshop(workshop)


@router.get("/workshops", response_model=list[WorkshopResponse])
def list_workshops(
    request: Request,
    name: Optional[str] = None,
    month: Optional[str] = None,
    year: Optional[str] = None,
    page: int = 1,
    limit: int = DEFAULT_WORKSHOP_PAGE_SIZE,
    claims: SessionClaims = Depends(require_auth),
) -> list[WorkshopResponse]:
    """List workshops, most recent date first.

    month (YYYY-MM) takes precedence over year (YYYY) when both are given.
    """
    workshops = _workshops(request).list(name=name, month=month, year=year, page=page, limit=limit)
    return [WorkshopResponse.from_workshop(w) for w in workshops]


@router.post("/workshops/memberships/reconcile", response_model=ReconcileResponse)
def reconcile_memberships(
    request: Request,
    claims: SessionClaims = Depends(require_admin),
) -> ReconcileResponse:
    """Make volunteer and workshop membership lists agree. Admin only."""
    membership: MembershipService = request.app.state.membership
    return ReconcileResponse.from_report(membership.reconcile())


@router.get("/workshops/{workshop_id}", response_model=WorkshopResponse)
def get_workshop(
    request: Request,
    workshop_id: str,
    claims: SessionClaims = Depends(require_auth),
) -> WorkshopResponse:
    return WorkshopResponse.from_workshop(_workshops(request).get(workshop_id))


@router.put("/workshops/{workshop_id}", response_model=WorkshopResponse)
def update_workshop(
    request: Request,
    workshop_id: str,
    body: WorkshopUpdate,
    claims: SessionClaims = Depends(require_auth),
) -> WorkshopResponse:
    """Update only the supplied fields; each is validated on its own."""
    workshop = _workshops(request).update(workshop_id, **body.model_dump(exclude_none=True))
    return WorkshopResponse.from_workshop(workshop)


@router.delete("/workshops/{workshop_id}", status_code=204)
def delete_workshop(
    request: Request,
    workshop_id: str,
    claims: SessionClaims = Depends(require_admin),
) -> Response:
    """Delete a workshop and remove it from every volunteer. Admin only."""
    _workshops(request).delete(workshop_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Volunteer membership
# ---------------------------------------------------------------------------


@router.post("/workshops/{workshop_id}/volunteers/{volunteer_id}", response_model=WorkshopResponse)
def add_volunteer(
    request: Request,
    workshop_id: str,
    volunteer_id: str,
    claims: SessionClaims = Depends(require_auth),
) -> WorkshopResponse:
    workshop = _workshops(request).add_volunteer(workshop_id, volunteer_id)
    return WorkshopResponse.from_workshop(workshop)


@router.delete("/workshops/{workshop_id}/volunteers/{volunteer_id}", response_model=WorkshopResponse)
def remove_volunteer(
    request: Request,
    workshop_id: str,
    volunteer_id: str,
    claims: SessionClaims = Depends(require_auth),
) -> WorkshopResponse:
    workshop = _workshops(request).remove_volunteer(workshop_id, volunteer_id)
    return WorkshopResponse.from_workshop(workshop)
