"""
PetMatch Backend - Authorization Table
======================================

What:  Role-based access control for every lifecycle and registration
       operation, expressed as one table instead of conditionals spread
       across services.
How:   PERMISSIONS maps an operation name to the roles allowed to perform it.
       Operations in OWNER_OPERATIONS are additionally open to the owner of
       the resource (the applicant). The admin role bypasses every check.
Who:   AdoptionService and ActivityService call authorize() /
       authorize_transition() before mutating anything.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from app.exceptions import ForbiddenError
from app.models.adoption import ADOPTION_RETURNED, ON_HOLD, REJECTED, SUBMITTED, WITHDRAWN

# ── Roles ─────────────────────────────────────────────────────────────────
ROLE_USER = "user"
ROLE_SHELTER = "shelter"
ROLE_ADMIN = "admin"

ROLES = frozenset({ROLE_USER, ROLE_SHELTER, ROLE_ADMIN})


@dataclass(frozen=True)
class Actor:
    """The acting principal resolved from the request's bearer token."""

    id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


# ── Operations ────────────────────────────────────────────────────────────
SUBMIT_APPLICATION = "submit_application"
VIEW_APPLICATION = "view_application"
UPDATE_DETAILS = "update_details"
REVIEW_APPLICATION = "review_application"
REJECT_APPLICATION = "reject_application"
HOLD_APPLICATION = "hold_application"
WITHDRAW_APPLICATION = "withdraw_application"
RETURN_ADOPTION = "return_adoption"
SCHEDULE_VISIT = "schedule_visit"
COMPLETE_VISIT = "complete_visit"
RECORD_PAYMENT = "record_payment"
ADD_FEE = "add_fee"
ADD_NOTE = "add_note"
REGISTER_ACTIVITY = "register_activity"

_STAFF = frozenset({ROLE_SHELTER, ROLE_ADMIN})
_EVERYONE = frozenset(ROLES)
_NOBODY: FrozenSet[str] = frozenset()

PERMISSIONS: Dict[str, FrozenSet[str]] = {
    SUBMIT_APPLICATION: _EVERYONE,
    VIEW_APPLICATION: _STAFF,
    UPDATE_DETAILS: _NOBODY,
    REVIEW_APPLICATION: _STAFF,
    REJECT_APPLICATION: _STAFF,
    HOLD_APPLICATION: _STAFF,
    WITHDRAW_APPLICATION: _NOBODY,
    RETURN_ADOPTION: _STAFF,
    SCHEDULE_VISIT: _STAFF,
    COMPLETE_VISIT: _STAFF,
    RECORD_PAYMENT: _STAFF,
    ADD_FEE: _STAFF,
    ADD_NOTE: _STAFF,
    REGISTER_ACTIVITY: _EVERYONE,
}

# Operations the resource owner may perform regardless of role
OWNER_OPERATIONS: FrozenSet[str] = frozenset({
    VIEW_APPLICATION,
    UPDATE_DETAILS,
    WITHDRAW_APPLICATION,
    RECORD_PAYMENT,
})

# Target status → operation that guards it. Anything not listed is a
# forward move through the review / approval chain.
TRANSITION_OPERATIONS: Dict[str, str] = {
    REJECTED: REJECT_APPLICATION,
    WITHDRAWN: WITHDRAW_APPLICATION,
    ON_HOLD: HOLD_APPLICATION,
    ADOPTION_RETURNED: RETURN_ADOPTION,
}


def is_permitted(operation: str, actor: Actor, owner_id: Optional[str] = None) -> bool:
    if actor.is_admin:
        return True
    if actor.role in PERMISSIONS.get(operation, _NOBODY):
        return True
    return operation in OWNER_OPERATIONS and owner_id is not None and actor.id == owner_id


def authorize(operation: str, actor: Actor, owner_id: Optional[str] = None) -> None:
    """Raise ForbiddenError unless `actor` may perform `operation`."""
    if not is_permitted(operation, actor, owner_id):
        context = {"actor_id": actor.id}
        if owner_id is not None:
            context["owner_id"] = owner_id
        raise ForbiddenError(operation=operation, role=actor.role, context=context)


def transition_operation(target: str) -> str:
    return TRANSITION_OPERATIONS.get(target, REVIEW_APPLICATION)


def authorize_transition(actor: Actor, applicant_id: str, current: str, target: str) -> None:
    """
    Authorize a status change on an application owned by `applicant_id`.

    Withdrawal is the one state-dependent rule: the applicant may only
    withdraw while the application is still 'submitted'; afterwards only an
    admin can.
    """
    operation = transition_operation(target)
    authorize(operation, actor, owner_id=applicant_id)
    if operation == WITHDRAW_APPLICATION and not actor.is_admin and current != SUBMITTED:
        raise ForbiddenError(
            operation=operation,
            role=actor.role,
            message="Applicants can only withdraw an application that has not been reviewed yet",
            context={"current_status": current},
        )
