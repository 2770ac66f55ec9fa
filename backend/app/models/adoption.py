"""
PetMatch Backend - Adoption Application SQLAlchemy Model
========================================================

What:  ORM model for the `adoptions` table: one applicant's application for
       one pet, together with its embedded visit list, audit timeline and fee
       ledger.
How:   Scalar fields are columns; the embedded arrays (references, visits,
       timeline, additional fees, payments, internal notes) are JSON documents.
       JSON values are always replaced, never mutated in place, so SQLAlchemy
       sees every change.
Who:   Written exclusively by AdoptionService.

Lifecycle:
    1. Created on submission (status = 'submitted', one timeline entry)
    2. Moved through the review / visit / approval chain by transitions
    3. Ends in a terminal status: rejected, withdrawn, adoption-completed
       (which may still become adoption-returned)
    4. Never deleted

Fees:
    Only the inputs are stored (adoption_fee, additional_fees, amount_paid).
    total, payment_status and outstanding_balance are computed properties, so
    they cannot drift from their inputs.
"""

import uuid
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, JSONDocument, Money, utcnow

# ── Application Status Values ─────────────────────────────────────────────
SUBMITTED = "submitted"
UNDER_REVIEW = "under-review"
APPROVED = "approved"
REJECTED = "rejected"
ON_HOLD = "on-hold"
MEET_SCHEDULED = "meet-scheduled"
MEET_COMPLETED = "meet-completed"
HOME_VISIT_SCHEDULED = "home-visit-scheduled"
HOME_VISIT_COMPLETED = "home-visit-completed"
ADOPTION_APPROVED = "adoption-approved"
ADOPTION_COMPLETED = "adoption-completed"
ADOPTION_RETURNED = "adoption-returned"
WITHDRAWN = "withdrawn"

ALL_STATUSES = frozenset({
    SUBMITTED, UNDER_REVIEW, APPROVED, REJECTED, ON_HOLD, MEET_SCHEDULED,
    MEET_COMPLETED, HOME_VISIT_SCHEDULED, HOME_VISIT_COMPLETED,
    ADOPTION_APPROVED, ADOPTION_COMPLETED, ADOPTION_RETURNED, WITHDRAWN,
})

ACTIVE_STATUSES = frozenset({
    SUBMITTED, UNDER_REVIEW, APPROVED, MEET_SCHEDULED, MEET_COMPLETED,
    HOME_VISIT_SCHEDULED, HOME_VISIT_COMPLETED, ADOPTION_APPROVED,
})

TERMINAL_STATUSES = frozenset({REJECTED, WITHDRAWN, ADOPTION_COMPLETED, ADOPTION_RETURNED})

# ── Visit Values ──────────────────────────────────────────────────────────
VISIT_MEET_AND_GREET = "meet-and-greet"
VISIT_HOME = "home-visit"
VISIT_FOLLOW_UP = "follow-up"

VISIT_SCHEDULED = "scheduled"
VISIT_COMPLETED = "completed"

OUTCOME_APPROVED = "approved"
OUTCOME_REJECTED = "rejected"
OUTCOME_NEEDS_FOLLOW_UP = "needs-follow-up"

# ── Payment Status Values ─────────────────────────────────────────────────
PAYMENT_PENDING = "pending"
PAYMENT_PARTIAL = "partial"
PAYMENT_PAID = "paid"


# ── Money ─────────────────────────────────────────────────────────────────
# Stored as NUMERIC(10, 2); arithmetic happens in Decimal cents
CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("99999999.99")


def to_money(value: Any) -> Decimal:
    """Quantize an amount to cents. Floats go through str() so 0.1 stays 0.10."""
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


def derive_total(adoption_fee: float, additional_fees: List[Dict[str, Any]]) -> float:
    """total = adoption fee + sum of additional fee amounts, summed in cents."""
    total = to_money(adoption_fee)
    for fee in additional_fees or []:
        total += to_money(fee.get("amount"))
    return float(total)


def derive_payment_status(paid: float, total: float) -> str:
    """paid ≥ total → paid; 0 < paid < total → partial; otherwise pending."""
    paid_money, total_money = to_money(paid), to_money(total)
    if paid_money >= total_money:
        return PAYMENT_PAID
    if paid_money > 0:
        return PAYMENT_PARTIAL
    return PAYMENT_PENDING


class Adoption(Base):
    """
    An adoption application.

    Query Patterns:
        - Duplicate check: WHERE pet_id = :pet AND applicant_id = :user AND status IN (active)
          → idx_adoptions_pet_applicant
        - Other active applications for a pet: WHERE pet_id = :pet AND status IN (active)
        - Applicant / shelter dashboards: WHERE applicant_id | shelter_id = :id
    """

    __tablename__ = "adoptions"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    # ── References ────────────────────────────────────────────────────────
    pet_id: Mapped[str] = mapped_column(String(36), ForeignKey("pets.id"), nullable=False)
    applicant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    shelter_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("shelters.id"), nullable=False, index=True,
    )

    # ── Status ────────────────────────────────────────────────────────────
    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=SUBMITTED,
        server_default=text(f"'{SUBMITTED}'"),
        index=True,
    )
    # The status an on-hold application returns to; null when not on hold
    held_from: Mapped[str | None] = mapped_column(String(30), nullable=True)

    # ── Applicant-Supplied Information ────────────────────────────────────
    personal_info: Mapped[Dict[str, Any]] = mapped_column(JSONDocument, nullable=False, default=dict)
    housing_info: Mapped[Dict[str, Any]] = mapped_column(JSONDocument, nullable=False, default=dict)
    # Column renamed: REFERENCES is an SQL keyword
    references: Mapped[List[Dict[str, Any]]] = mapped_column(
        "applicant_references", JSONDocument, nullable=False, default=list,
    )

    # ── Embedded Workflow Documents ───────────────────────────────────────
    visits: Mapped[List[Dict[str, Any]]] = mapped_column(JSONDocument, nullable=False, default=list)
    timeline: Mapped[List[Dict[str, Any]]] = mapped_column(JSONDocument, nullable=False, default=list)
    internal_notes: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONDocument, nullable=False, default=list,
    )

    # ── Fee Inputs ────────────────────────────────────────────────────────
    adoption_fee: Mapped[float] = mapped_column(Money, nullable=False, default=0.0)
    additional_fees: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONDocument, nullable=False, default=list,
    )
    amount_paid: Mapped[float] = mapped_column(
        Money, nullable=False, default=0.0, server_default=text("0"),
    )
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payments: Mapped[List[Dict[str, Any]]] = mapped_column(JSONDocument, nullable=False, default=list)

    # True when submission flipped the pet to 'pending'
    pet_marked_pending: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false"),
    )

    # ── Status Date Stamps ────────────────────────────────────────────────
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    withdrawn_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    returned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    # Optimistic lock: concurrent transitions on the same application
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_adoptions_pet_applicant", "pet_id", "applicant_id"),
        Index("idx_adoptions_created_at", created_at.desc()),
    )

    # ── Derived Values ────────────────────────────────────────────────────
    @property
    def fees_total(self) -> float:
        return derive_total(self.adoption_fee, self.additional_fees)

    @property
    def payment_status(self) -> str:
        return derive_payment_status(self.amount_paid or 0.0, self.fees_total)

    @property
    def outstanding_balance(self) -> float:
        balance = to_money(self.fees_total) - to_money(self.amount_paid)
        return float(max(Decimal("0.00"), balance))

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def find_visit(self, visit_id: str) -> Dict[str, Any] | None:
        for visit in self.visits or []:
            if visit.get("id") == visit_id:
                return visit
        return None

    def __repr__(self) -> str:
        return (
            f"<Adoption(id={self.id}, pet_id={self.pet_id}, "
            f"applicant_id={self.applicant_id}, status='{self.status}')>"
        )
