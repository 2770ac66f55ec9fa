"""
PetMatch Backend - Adoption Lifecycle Service
=============================================

What:  Drives an adoption application from submission to a terminal status:
       submission, status transitions, visits, fees and payments, and the
       cross-entity writes (pet availability, shelter statistics) that some
       transitions trigger.
How:   Every mutating operation follows the same order:
           1. load the application (NotFoundError)
           2. authorize the actor (ForbiddenError), before any state check
           3. validate input and preconditions (ValidationError,
              InvalidTransitionError, InvalidStateError)
           4. stage the changes on the ORM objects and flush
       Nothing is committed here; get_db_session commits once per request.
Who:   Called by routes/adoptions.py.

Orchestration Flow (status → adoption-completed):
    ┌──────────────┐    ┌──────────────┐    ┌────────────────┐    ┌──────────┐
    │  Load pet &  │───▶│  Application │───▶│  Pet adopted + │───▶│  Commit  │
    │  shelter     │    │  flush       │    │  shelter stats │    │ (request)│
    └──────────────┘    └──────────────┘    └────────────────┘    └──────────┘

    On failure:
    - Pet missing             → NotFoundError, nothing staged
    - Pet already adopted     → ConflictError, nothing staged
    - Application flush fails → ConflictError (lost race) / DatabaseError
    - Pet/shelter flush fails → transaction rolled back, PartialFailureError;
                                the application keeps its previous status
"""

import logging
import math
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.config import settings
from app.database import ensure_utc, utcnow
from app.exceptions import (
    ConflictError,
    DatabaseError,
    InvalidStateError,
    NotFoundError,
    PartialFailureError,
    ValidationError,
)
from app.models.adoption import (
    ACTIVE_STATUSES,
    ADOPTION_APPROVED,
    ADOPTION_COMPLETED,
    ALL_STATUSES,
    MAX_AMOUNT,
    ON_HOLD,
    PAYMENT_PAID,
    REJECTED,
    SUBMITTED,
    TERMINAL_STATUSES,
    VISIT_COMPLETED,
    VISIT_SCHEDULED,
    WITHDRAWN,
    Adoption,
    to_money,
)
from app.models.pet import PET_ADOPTED, PET_AVAILABLE, PET_PENDING, Pet
from app.models.shelter import Shelter
from app.schemas.adoption import AdoptionResponse
from app.services import lifecycle
from app.services.permissions import (
    ADD_FEE,
    ADD_NOTE,
    COMPLETE_VISIT,
    RECORD_PAYMENT,
    ROLE_USER,
    SCHEDULE_VISIT,
    SUBMIT_APPLICATION,
    UPDATE_DETAILS,
    VIEW_APPLICATION,
    Actor,
    authorize,
    authorize_transition,
)
from app.services.timeline import (
    append_entry,
    isoformat,
    log_event,
    replace_entry,
    timeline_entry,
)

logger = logging.getLogger(__name__)

# Step name reported by PartialFailureError when finalizing an adoption
STEP_PET_ADOPTED = "pet_adopted"


class AdoptionService:
    """
    Business logic layer for adoption applications.

    Responsibilities:
        - submit_application(): create an application for an available pet
        - transition_status(): move along the status graph
        - schedule_visit() / complete_visit(): visits and their status effects
        - record_payment() / add_fee(): the fee ledger (auto-completes on full payment)
        - update_details() / add_note() / get_application(): supporting operations

    The service is stateless apart from the pending-on-submit switch, which
    defaults to settings.pet_pending_on_submit and can be overridden per
    instance in tests.
    """

    def __init__(self, pet_pending_on_submit: Optional[bool] = None):
        self._pet_pending_on_submit = pet_pending_on_submit

    @property
    def pet_pending_on_submit(self) -> bool:
        if self._pet_pending_on_submit is None:
            return settings.pet_pending_on_submit
        return self._pet_pending_on_submit

    # ══════════════════════════════════════════════════════════════════════
    # Submission & Reads
    # ══════════════════════════════════════════════════════════════════════

    async def submit_application(
        self,
        db: AsyncSession,
        actor: Actor,
        pet_id: str,
        personal_info: Dict[str, Any],
        housing_info: Dict[str, Any],
        references: Optional[List[Dict[str, Any]]] = None,
    ) -> AdoptionResponse:
        """
        Create a new application in status 'submitted'.

        Raises:
            NotFoundError: pet does not exist
            ConflictError: pet not available, or the actor already has an
                           active application for this pet
        """
        authorize(SUBMIT_APPLICATION, actor)
        pet = await self._get_pet(db, pet_id)

        if pet.adoption_status != PET_AVAILABLE:
            raise ConflictError(
                message="This pet is not available for adoption",
                context={"pet_id": pet_id, "adoption_status": pet.adoption_status},
            )

        existing = await self._find_active_application(db, pet_id, actor.id)
        if existing is not None:
            raise ConflictError(
                message="You already have an active application for this pet",
                context={"pet_id": pet_id, "application_id": existing.id},
            )

        now = utcnow()
        application_id = str(uuid4())
        application = Adoption(
            id=application_id,
            pet_id=pet.id,
            applicant_id=actor.id,
            shelter_id=pet.shelter_id,
            status=SUBMITTED,
            personal_info=personal_info,
            housing_info=housing_info,
            references=list(references or []),
            visits=[],
            timeline=[timeline_entry(SUBMITTED, actor.id, now)],
            internal_notes=[],
            adoption_fee=float(to_money(pet.adoption_fee)),
            additional_fees=[],
            amount_paid=0.0,
            payments=[],
            pet_marked_pending=False,
            created_at=now,
            updated_at=now,
        )

        if self.pet_pending_on_submit:
            pet.adoption_status = PET_PENDING
            application.pet_marked_pending = True

        db.add(application)
        await self._flush(db, "application", application_id)

        logger.info("Application %s submitted for pet %s by %s", application_id, pet_id, actor.id)
        log_event("adoption.submitted", application=application_id, pet=pet_id, actor=actor.id)
        return self._to_response(application, actor, now)

    async def get_application(self, db: AsyncSession, application_id: str, actor: Actor) -> AdoptionResponse:
        application = await self._get_application(db, application_id)
        authorize(VIEW_APPLICATION, actor, owner_id=application.applicant_id)
        return self._to_response(application, actor)

    async def update_details(
        self,
        db: AsyncSession,
        application_id: str,
        actor: Actor,
        personal_info: Optional[Dict[str, Any]] = None,
        housing_info: Optional[Dict[str, Any]] = None,
        references: Optional[List[Dict[str, Any]]] = None,
    ) -> AdoptionResponse:
        """Applicant edits to the submitted documents. Locked once review starts."""
        application = await self._get_application(db, application_id)
        authorize(UPDATE_DETAILS, actor, owner_id=application.applicant_id)

        if application.status != SUBMITTED:
            raise InvalidStateError(
                message="Application details can only be changed before review starts",
                context={"current_status": application.status},
            )

        if personal_info is not None:
            application.personal_info = personal_info
        if housing_info is not None:
            application.housing_info = housing_info
        if references is not None:
            application.references = list(references)
        application.updated_at = utcnow()

        await self._flush(db, "application", application_id)
        return self._to_response(application, actor)

    # ══════════════════════════════════════════════════════════════════════
    # Status Transitions
    # ══════════════════════════════════════════════════════════════════════

    async def transition_status(
        self,
        db: AsyncSession,
        application_id: str,
        actor: Actor,
        new_status: str,
        notes: Optional[str] = None,
    ) -> AdoptionResponse:
        """
        Move an application to `new_status`.

        Authorization is checked before the graph, so an actor without the
        role gets ForbiddenError even for an unreachable target.

        Raises:
            NotFoundError, ForbiddenError, InvalidTransitionError,
            ConflictError (lost concurrent update), PartialFailureError
        """
        if new_status not in ALL_STATUSES:
            raise ValidationError(message=f"Unknown application status '{new_status}'", field="status")

        application = await self._get_application(db, application_id)
        authorize_transition(actor, application.applicant_id, application.status, new_status)
        lifecycle.ensure_transition(application.status, new_status, application.held_from)

        # A held application is not active, so the applicant may have applied
        # again for the same pet in the meantime
        if (
            lifecycle.is_resume(application.status, new_status, application.held_from)
            and new_status in ACTIVE_STATUSES
        ):
            other = await self._find_active_application(
                db, application.pet_id, application.applicant_id, exclude_id=application.id,
            )
            if other is not None:
                raise ConflictError(
                    message="The applicant already has another active application for this pet",
                    context={"application_id": application_id, "active_application_id": other.id},
                )

        await self._apply_transition(db, application, new_status, actor, notes)
        return self._to_response(application, actor)

    async def _apply_transition(
        self,
        db: AsyncSession,
        application: Adoption,
        new_status: str,
        actor: Actor,
        notes: Optional[str] = None,
    ) -> None:
        """
        Stage and flush one status change plus its side effects.

        Callers have already authorized and validated the move. Used directly
        by visit completion and full payment, which advance the status as a
        consequence of another operation.
        """
        application_id = application.id
        previous = application.status
        now = utcnow()

        # Load cross-entity rows before staging anything
        pet: Optional[Pet] = None
        shelter: Optional[Shelter] = None
        if new_status == ADOPTION_COMPLETED:
            pet = await self._get_pet(db, application.pet_id)
            if pet.adoption_status not in (PET_PENDING, PET_AVAILABLE):
                raise ConflictError(
                    message="This pet can no longer be adopted",
                    context={
                        "application_id": application_id,
                        "pet_id": pet.id,
                        "adoption_status": pet.adoption_status,
                    },
                )
            shelter = await db.get(Shelter, application.shelter_id)
        elif new_status in (REJECTED, WITHDRAWN) and application.pet_marked_pending:
            pet = await db.get(Pet, application.pet_id)

        application.status = new_status
        application.held_from = previous if new_status == ON_HOLD else None
        application.timeline = append_entry(
            application.timeline,
            timeline_entry(new_status, actor.id, now, notes),
        )
        stamp_field = lifecycle.STATUS_TIMESTAMP_FIELDS.get(new_status)
        if stamp_field:
            setattr(application, stamp_field, now)
        application.updated_at = now

        await self._flush(db, "application", application_id)

        logger.info("Application %s: %s → %s by %s", application_id, previous, new_status, actor.id)
        log_event(
            "adoption.transition",
            application=application_id,
            previous=previous,
            status=new_status,
            actor=actor.id,
        )

        if new_status == ADOPTION_COMPLETED:
            await self._finalize_adoption(db, application, pet, shelter, now)
        elif pet is not None:
            await self._release_pet(db, application, pet)

    async def _finalize_adoption(
        self,
        db: AsyncSession,
        application: Adoption,
        pet: Pet,
        shelter: Optional[Shelter],
        now: datetime,
    ) -> None:
        """
        Secondary writes of adoption-completed: pet → adopted, shelter counters.

        The application row is already flushed at this point. If these writes
        fail the whole transaction is rolled back, so the caller observes
        either both entities updated or neither.
        """
        application_id = application.id
        pet_id = pet.id

        try:
            self._mark_pet_adopted(pet, application, now)
            if shelter is not None:
                shelter.record_adoption(now)
            else:
                logger.warning(
                    "Shelter %s for application %s not found; adoption statistics not updated",
                    application.shelter_id, application_id,
                )
            await db.flush()
        except SQLAlchemyError as e:
            logger.error(
                "Finalizing adoption %s failed at step '%s': %s",
                application_id, STEP_PET_ADOPTED, str(e), exc_info=True,
            )
            await db.rollback()
            raise PartialFailureError(
                step=STEP_PET_ADOPTED,
                context={"application_id": application_id, "pet_id": pet_id},
            )

        log_event("adoption.completed", application=application_id, pet=pet_id)

    def _mark_pet_adopted(self, pet: Pet, application: Adoption, now: datetime) -> None:
        pet.adoption_status = PET_ADOPTED
        pet.adopted_date = now
        pet.adopted_by = application.applicant_id
        pet.adoption_history = append_entry(pet.adoption_history, {
            "adopted_by": application.applicant_id,
            "adoption_date": isoformat(now),
            "application_id": application.id,
            "status": "completed",
        })

    async def _release_pet(self, db: AsyncSession, application: Adoption, pet: Pet) -> None:
        """Return a pending pet to 'available' once no active application remains."""
        if pet.adoption_status != PET_PENDING:
            return

        others = await db.execute(
            select(Adoption.id).where(
                Adoption.pet_id == pet.id,
                Adoption.id != application.id,
                Adoption.status.in_(ACTIVE_STATUSES),
            ).limit(1)
        )
        if others.scalar_one_or_none() is not None:
            return

        pet_id = pet.id
        pet.adoption_status = PET_AVAILABLE
        await self._flush(db, "pet", pet_id)
        logger.info("Pet %s released back to available", pet_id)

    # ══════════════════════════════════════════════════════════════════════
    # Visits
    # ══════════════════════════════════════════════════════════════════════

    async def schedule_visit(
        self,
        db: AsyncSession,
        application_id: str,
        actor: Actor,
        visit_type: str,
        scheduled_date: datetime,
        duration_minutes: int = 60,
        location: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> AdoptionResponse:
        """
        Append a visit in status 'scheduled'. Does not change the application status.

        Raises:
            ValidationError: unknown visit type, or date not in the future
            InvalidStateError: application status does not allow this visit type
        """
        application = await self._get_application(db, application_id)
        authorize(SCHEDULE_VISIT, actor)

        required = lifecycle.VISIT_SCHEDULING_STATUSES.get(visit_type)
        if required is None:
            raise ValidationError(message=f"Unknown visit type '{visit_type}'", field="visit_type")

        now = utcnow()
        when = ensure_utc(scheduled_date)
        if when <= now:
            raise ValidationError(message="Visit date must be in the future", field="scheduled_date")

        if application.status not in required:
            raise InvalidStateError(
                message=f"A {visit_type} visit cannot be scheduled while the application is '{application.status}'",
                context={"current_status": application.status, "required_statuses": sorted(required)},
            )

        visit = {
            "id": str(uuid4()),
            "type": visit_type,
            "scheduled_date": isoformat(when),
            "duration_minutes": duration_minutes,
            "location": location,
            "status": VISIT_SCHEDULED,
            "outcome": None,
            "notes": notes,
            "scheduled_by": actor.id,
            "completed_at": None,
            "completed_by": None,
        }
        application.visits = append_entry(application.visits, visit)
        application.updated_at = now

        await self._flush(db, "application", application_id)
        log_event("adoption.visit_scheduled", application=application_id, visit=visit["id"], type=visit_type)
        return self._to_response(application, actor, now)

    async def complete_visit(
        self,
        db: AsyncSession,
        application_id: str,
        actor: Actor,
        visit_id: str,
        outcome: str,
        notes: Optional[str] = None,
    ) -> AdoptionResponse:
        """
        Record a visit outcome and apply its effect on the application status.

            approved meet-and-greet → meet-completed
            approved home-visit     → home-visit-completed
            rejected (any type)     → rejected
            needs-follow-up, or any follow-up visit → outcome recorded only
        """
        application = await self._get_application(db, application_id)
        authorize(COMPLETE_VISIT, actor)

        if outcome not in lifecycle.VISIT_OUTCOMES:
            raise ValidationError(message=f"Unknown visit outcome '{outcome}'", field="outcome")

        visit = application.find_visit(visit_id)
        if visit is None:
            raise NotFoundError(resource="visit", resource_id=visit_id)
        if visit.get("status") != VISIT_SCHEDULED:
            raise InvalidStateError(
                message="This visit has already been completed",
                context={"visit_id": visit_id, "visit_status": visit.get("status")},
            )

        target = lifecycle.visit_outcome_target(
            visit["type"], outcome, application.status, application.held_from,
        )

        now = utcnow()
        completed = {
            **visit,
            "status": VISIT_COMPLETED,
            "outcome": outcome,
            "notes": notes if notes is not None else visit.get("notes"),
            "completed_at": isoformat(now),
            "completed_by": actor.id,
        }
        application.visits = replace_entry(application.visits, "id", visit_id, completed)
        application.updated_at = now

        log_event(
            "adoption.visit_completed",
            application=application_id, visit=visit_id, outcome=outcome,
        )
        if target is not None:
            await self._apply_transition(db, application, target, actor, notes)
        else:
            await self._flush(db, "application", application_id)

        return self._to_response(application, actor)

    # ══════════════════════════════════════════════════════════════════════
    # Fees & Payments
    # ══════════════════════════════════════════════════════════════════════

    async def record_payment(
        self,
        db: AsyncSession,
        application_id: str,
        actor: Actor,
        amount: float,
        method: str,
        reference: Optional[str] = None,
    ) -> AdoptionResponse:
        """
        Add `amount` to the paid total.

        When the application is 'adoption-approved' and the payment covers the
        total, the adoption completes in the same call.
        """
        application = await self._get_application(db, application_id)
        authorize(RECORD_PAYMENT, actor, owner_id=application.applicant_id)

        money = self._validate_amount(amount, "Payment")
        if application.status in TERMINAL_STATUSES and application.status != ADOPTION_COMPLETED:
            raise InvalidStateError(
                message=f"Payments cannot be recorded for a '{application.status}' application",
                context={"current_status": application.status},
            )

        paid = to_money(application.amount_paid) + money
        if paid > MAX_AMOUNT:
            raise ValidationError(
                message="Payment would exceed the largest amount that can be recorded",
                field="amount",
                context={"paid": float(to_money(application.amount_paid))},
            )

        now = utcnow()
        application.amount_paid = float(paid)
        application.payment_method = method
        application.payment_reference = reference
        application.payments = append_entry(application.payments, {
            "amount": float(money),
            "method": method,
            "reference": reference,
            "paid_at": isoformat(now),
            "recorded_by": actor.id,
        })
        application.updated_at = now

        log_event(
            "adoption.payment",
            application=application_id, amount=float(money), paid=application.amount_paid,
            total=application.fees_total,
        )

        if application.status == ADOPTION_APPROVED and application.payment_status == PAYMENT_PAID:
            await self._apply_transition(
                db, application, ADOPTION_COMPLETED, actor, "Adoption fees paid in full",
            )
        else:
            await self._flush(db, "application", application_id)

        return self._to_response(application, actor)

    async def add_fee(
        self,
        db: AsyncSession,
        application_id: str,
        actor: Actor,
        description: str,
        amount: float,
    ) -> AdoptionResponse:
        application = await self._get_application(db, application_id)
        authorize(ADD_FEE, actor)

        money = self._validate_amount(amount, "Fee")
        if application.status in TERMINAL_STATUSES:
            raise InvalidStateError(
                message=f"Fees cannot be added to a '{application.status}' application",
                context={"current_status": application.status},
            )

        now = utcnow()
        application.additional_fees = append_entry(application.additional_fees, {
            "description": description,
            "amount": float(money),
            "added_at": isoformat(now),
            "added_by": actor.id,
        })
        application.updated_at = now

        await self._flush(db, "application", application_id)
        return self._to_response(application, actor, now)

    # ══════════════════════════════════════════════════════════════════════
    # Internal Notes
    # ══════════════════════════════════════════════════════════════════════

    async def add_note(
        self,
        db: AsyncSession,
        application_id: str,
        actor: Actor,
        content: str,
        is_private: bool = True,
    ) -> AdoptionResponse:
        application = await self._get_application(db, application_id)
        authorize(ADD_NOTE, actor)

        now = utcnow()
        application.internal_notes = append_entry(application.internal_notes, {
            "content": content,
            "author": actor.id,
            "created_at": isoformat(now),
            "is_private": is_private,
        })
        application.updated_at = now

        await self._flush(db, "application", application_id)
        return self._to_response(application, actor, now)

    # ══════════════════════════════════════════════════════════════════════
    # Helpers
    # ══════════════════════════════════════════════════════════════════════

    @staticmethod
    def _validate_amount(amount: Optional[float], label: str) -> Decimal:
        """
        Return `amount` quantized to cents.

        Raises ValidationError for missing, non-finite (inf/nan), non-positive
        or out-of-range amounts, and for amounts that round to zero cents.
        """
        if amount is None or not math.isfinite(amount):
            raise ValidationError(message=f"{label} amount must be a finite number", field="amount")
        money = to_money(amount)
        if money <= 0:
            raise ValidationError(message=f"{label} amount must be greater than zero", field="amount")
        if money > MAX_AMOUNT:
            raise ValidationError(
                message=f"{label} amount must not exceed {MAX_AMOUNT}",
                field="amount",
            )
        return money

    async def _get_application(self, db: AsyncSession, application_id: str) -> Adoption:
        application = await db.get(Adoption, application_id)
        if application is None:
            raise NotFoundError(resource="application", resource_id=application_id)
        return application

    async def _get_pet(self, db: AsyncSession, pet_id: str) -> Pet:
        pet = await db.get(Pet, pet_id)
        if pet is None:
            raise NotFoundError(resource="pet", resource_id=pet_id)
        return pet

    async def _find_active_application(
        self,
        db: AsyncSession,
        pet_id: str,
        applicant_id: str,
        exclude_id: Optional[str] = None,
    ) -> Optional[Adoption]:
        # Uses idx_adoptions_pet_applicant
        query = select(Adoption).where(
            Adoption.pet_id == pet_id,
            Adoption.applicant_id == applicant_id,
            Adoption.status.in_(ACTIVE_STATUSES),
        )
        if exclude_id is not None:
            query = query.where(Adoption.id != exclude_id)
        result = await db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def _flush(self, db: AsyncSession, resource: str, resource_id: str) -> None:
        """
        Flush staged changes, translating driver errors.

        StaleDataError means another request updated the same row since it was
        loaded (version_id_col mismatch); the caller may reload and retry.
        """
        try:
            await db.flush()
        except StaleDataError:
            await db.rollback()
            logger.warning("Concurrent update detected on %s %s", resource, resource_id)
            raise ConflictError(
                message=f"The {resource} was modified by another request. Reload and try again.",
                context={"resource": resource, "resource_id": resource_id},
            )
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Database error writing %s %s: %s", resource, resource_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the application. Please try again.",
                context={"resource": resource, "error_type": type(e).__name__},
            )

    def _to_response(
        self,
        application: Adoption,
        viewer: Actor,
        now: Optional[datetime] = None,
    ) -> AdoptionResponse:
        """
        Build the API representation, including derived fee values.

        Applicants only see internal notes that are not marked private.
        """
        now = now or utcnow()
        created_at = ensure_utc(application.created_at)

        notes = application.internal_notes or []
        if viewer.role == ROLE_USER:
            notes = [note for note in notes if not note.get("is_private", True)]

        return AdoptionResponse(
            id=application.id,
            pet_id=application.pet_id,
            applicant_id=application.applicant_id,
            shelter_id=application.shelter_id,
            status=application.status,
            held_from=application.held_from,
            is_active=application.is_active,
            personal_info=application.personal_info,
            housing_info=application.housing_info,
            references=application.references or [],
            visits=application.visits or [],
            timeline=application.timeline or [],
            fees={
                "adoption_fee": application.adoption_fee,
                "additional_fees": application.additional_fees or [],
                "total": application.fees_total,
                "paid": application.amount_paid or 0.0,
                "outstanding_balance": application.outstanding_balance,
                "payment_status": application.payment_status,
                "payment_method": application.payment_method,
                "payment_reference": application.payment_reference,
                "payments": application.payments or [],
            },
            internal_notes=notes,
            next_steps=list(lifecycle.next_steps(application.status)),
            days_in_process=max(0, (now - created_at).days),
            created_at=created_at,
            updated_at=ensure_utc(application.updated_at),
            approved_at=ensure_utc(application.approved_at),
            rejected_at=ensure_utc(application.rejected_at),
            withdrawn_at=ensure_utc(application.withdrawn_at),
            completed_at=ensure_utc(application.completed_at),
            returned_at=ensure_utc(application.returned_at),
        )


# ── Singleton Instance ────────────────────────────────────────────────────
adoption_service = AdoptionService()
