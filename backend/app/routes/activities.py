"""
PetMatch Backend - Activity Registration Route Handlers
=======================================================

What:  Read an activity and register / unregister the calling user.
Who:   Event pages in the client apps.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.activity import ActivityResponse, RegisterRequest, RegistrationResponse
from app.schemas.common import ErrorResponse
from app.security import get_current_actor
from app.services.activity_service import activity_service
from app.services.permissions import Actor

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/activities",
    tags=["Activities"],
    responses={
        401: {"description": "Missing or invalid bearer token", "model": ErrorResponse},
        404: {"description": "Activity or registration not found", "model": ErrorResponse},
        409: {"description": "Registration closed, started or duplicate", "model": ErrorResponse},
    },
)


@router.get("/{activity_id}", response_model=ActivityResponse, summary="Get an activity")
async def get_activity(
    activity_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
) -> ActivityResponse:
    return await activity_service.get_activity(db, activity_id)


@router.post(
    "/{activity_id}/register",
    response_model=RegistrationResponse,
    summary="Register for an activity",
    description="Registers the caller, or adds them to the waitlist when the activity is full.",
)
async def register(
    activity_id: str,
    body: RegisterRequest | None = None,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
) -> RegistrationResponse:
    notes = body.notes if body else None
    return await activity_service.register(db, activity_id, actor, notes)


@router.delete(
    "/{activity_id}/register",
    response_model=RegistrationResponse,
    summary="Cancel a registration",
    description="Frees the caller's spot and promotes the earliest waitlisted participant.",
)
async def unregister(
    activity_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
) -> RegistrationResponse:
    return await activity_service.unregister(db, activity_id, actor)
