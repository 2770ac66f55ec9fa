"""
PetMatch Backend - Adoption Route Handlers
==========================================

What:  HTTP surface of the adoption lifecycle: submission, reads, applicant
       edits, status transitions, visits, fees, payments and internal notes.
How:   Each handler resolves the actor from the bearer token, validates the
       body with a request schema and delegates to AdoptionService.
Who:   Applicant-facing and shelter dashboard clients.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.adoption import (
    AdditionalFeeRequest,
    AdoptionResponse,
    CompleteVisitRequest,
    InternalNoteRequest,
    PaymentRequest,
    ScheduleVisitRequest,
    StatusUpdateRequest,
    SubmitApplicationRequest,
    UpdateApplicationRequest,
)
from app.schemas.common import ErrorResponse
from app.security import get_current_actor
from app.services.adoption_service import adoption_service
from app.services.permissions import Actor

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(
    prefix="/api/adoptions",
    tags=["Adoptions"],
    responses={
        401: {"description": "Missing or invalid bearer token", "model": ErrorResponse},
        403: {"description": "Role not permitted", "model": ErrorResponse},
        404: {"description": "Application, pet or visit not found", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
)


@router.post(
    "",
    response_model=AdoptionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Pet unavailable or duplicate application", "model": ErrorResponse}},
    summary="Submit an adoption application",
)
async def submit_application(
    body: SubmitApplicationRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
) -> AdoptionResponse:
    return await adoption_service.submit_application(
        db=db,
        actor=actor,
        pet_id=body.pet_id,
        personal_info=body.personal_info.model_dump(mode="json"),
        housing_info=body.housing_info.model_dump(mode="json"),
        references=[ref.model_dump(mode="json") for ref in body.references],
    )


@router.get(
    "/{application_id}",
    response_model=AdoptionResponse,
    summary="Get an adoption application",
    description="Visible to the applicant, shelter staff and admins. Includes derived fees and next steps.",
)
async def get_application(
    application_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
) -> AdoptionResponse:
    return await adoption_service.get_application(db, application_id, actor)


@router.patch(
    "/{application_id}",
    response_model=AdoptionResponse,
    responses={409: {"description": "Application already under review", "model": ErrorResponse}},
    summary="Edit a submitted application",
)
async def update_application(
    application_id: str,
    body: UpdateApplicationRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
) -> AdoptionResponse:
    return await adoption_service.update_details(
        db=db,
        application_id=application_id,
        actor=actor,
        personal_info=body.personal_info.model_dump(mode="json") if body.personal_info else None,
        housing_info=body.housing_info.model_dump(mode="json") if body.housing_info else None,
        references=(
            [ref.model_dump(mode="json") for ref in body.references]
            if body.references is not None else None
        ),
    )


@router.post(
    "/{application_id}/status",
    response_model=AdoptionResponse,
    responses={
        409: {"description": "Status not reachable from the current status", "model": ErrorResponse},
    },
    summary="Change the application status",
    description=(
        "Moves the application one step along the status graph. The error body "
        "of a 409 lists the statuses reachable from the current one."
    ),
)
async def update_status(
    application_id: str,
    body: StatusUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
) -> AdoptionResponse:
    return await adoption_service.transition_status(
        db, application_id, actor, body.status, body.notes,
    )


@router.post(
    "/{application_id}/visits",
    response_model=AdoptionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Schedule a meet-and-greet, home visit or follow-up",
)
async def schedule_visit(
    application_id: str,
    body: ScheduleVisitRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
) -> AdoptionResponse:
    return await adoption_service.schedule_visit(
        db=db,
        application_id=application_id,
        actor=actor,
        visit_type=body.visit_type,
        scheduled_date=body.scheduled_date,
        duration_minutes=body.duration_minutes,
        location=body.location,
        notes=body.notes,
    )


@router.post(
    "/{application_id}/visits/{visit_id}/complete",
    response_model=AdoptionResponse,
    summary="Record a visit outcome",
)
async def complete_visit(
    application_id: str,
    visit_id: str,
    body: CompleteVisitRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
) -> AdoptionResponse:
    return await adoption_service.complete_visit(
        db, application_id, actor, visit_id, body.outcome, body.notes,
    )


@router.post(
    "/{application_id}/payments",
    response_model=AdoptionResponse,
    summary="Record a payment",
    description="Completes the adoption when an adoption-approved application is paid in full.",
)
async def record_payment(
    application_id: str,
    body: PaymentRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
) -> AdoptionResponse:
    return await adoption_service.record_payment(
        db, application_id, actor, body.amount, body.method, body.reference,
    )


@router.post(
    "/{application_id}/fees",
    response_model=AdoptionResponse,
    summary="Add an additional fee",
)
async def add_fee(
    application_id: str,
    body: AdditionalFeeRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
) -> AdoptionResponse:
    return await adoption_service.add_fee(db, application_id, actor, body.description, body.amount)


@router.post(
    "/{application_id}/notes",
    response_model=AdoptionResponse,
    summary="Add an internal staff note",
)
async def add_note(
    application_id: str,
    body: InternalNoteRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
) -> AdoptionResponse:
    return await adoption_service.add_note(db, application_id, actor, body.content, body.is_private)
