"""
PetMatch Backend - Adoption Request/Response Schemas
====================================================

What:  Pydantic models defining the API contract for adoption applications.
How:   Request models validate the applicant-supplied documents and the
       staff actions (status change, visit, payment, fee, note). Response
       models expose the stored application plus the derived fee values.
Who:   Route handlers (request bodies, response_model) and AdoptionService
       (builds AdoptionResponse from the ORM row).

Enumerated string fields use Literal so FastAPI rejects unknown values with
a 422 before any service code runs.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

AdoptionStatus = Literal[
    "submitted", "under-review", "approved", "rejected", "on-hold",
    "meet-scheduled", "meet-completed", "home-visit-scheduled",
    "home-visit-completed", "adoption-approved", "adoption-completed",
    "adoption-returned", "withdrawn",
]
VisitType = Literal["meet-and-greet", "home-visit", "follow-up"]
VisitOutcome = Literal["approved", "rejected", "needs-follow-up"]
PaymentStatus = Literal["pending", "partial", "paid"]


# ══════════════════════════════════════════════════════════════════════════
# Applicant Documents
# ══════════════════════════════════════════════════════════════════════════


class PreviousPet(BaseModel):
    species: str = Field(max_length=50)
    breed: Optional[str] = Field(default=None, max_length=100)
    years_owned: Optional[float] = Field(default=None, ge=0, le=50)
    what_happened: Optional[str] = Field(default=None, max_length=500)


class PersonalInfo(BaseModel):
    """Who the applicant is and how a pet would fit into their life."""

    motivation: str = Field(min_length=1, max_length=1000, description="Why the applicant wants to adopt")
    experience_level: Literal["none", "some", "experienced", "expert"]
    work_schedule: Literal["full-time", "part-time", "remote", "retired", "student", "unemployed"]
    activity_level: Literal["low", "moderate", "high", "very-high"]
    hours_away_daily: Optional[float] = Field(default=None, ge=0, le=24)
    travel_frequency: Optional[Literal["never", "rarely", "sometimes", "often"]] = None
    previous_pets: List[PreviousPet] = Field(default_factory=list)
    training_experience: Optional[str] = Field(default=None, max_length=500)


class CurrentPet(BaseModel):
    species: str = Field(max_length=50)
    name: Optional[str] = Field(default=None, max_length=100)
    age: Optional[float] = Field(default=None, ge=0)
    spayed_neutered: Optional[bool] = None
    vaccinated: Optional[bool] = None


class HousingInfo(BaseModel):
    type: Literal["house", "apartment", "condo", "townhouse", "mobile-home", "farm", "other"]
    ownership: Literal["own", "rent", "live-with-family"]
    has_yard: bool = False
    yard_fenced: Optional[bool] = None
    landlord_approval: Optional[bool] = None
    household_size: Optional[int] = Field(default=None, ge=1, le=50)
    has_children: Optional[bool] = None
    current_pets: List[CurrentPet] = Field(default_factory=list)
    pet_restrictions: Optional[str] = Field(default=None, max_length=500)
    emergency_plan: Optional[str] = Field(default=None, max_length=500)


class Reference(BaseModel):
    type: Literal["personal", "veterinary", "professional", "landlord"]
    name: str = Field(min_length=1, max_length=100)
    relationship: Optional[str] = Field(default=None, max_length=100)
    phone: str = Field(min_length=3, max_length=30)
    email: Optional[EmailStr] = None


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class SubmitApplicationRequest(BaseModel):
    pet_id: str = Field(min_length=1, max_length=36)
    personal_info: PersonalInfo
    housing_info: HousingInfo
    references: List[Reference] = Field(default_factory=list, max_length=5)


class UpdateApplicationRequest(BaseModel):
    """Applicant edits; only allowed while the application is still 'submitted'."""

    personal_info: Optional[PersonalInfo] = None
    housing_info: Optional[HousingInfo] = None
    references: Optional[List[Reference]] = Field(default=None, max_length=5)


class StatusUpdateRequest(BaseModel):
    status: AdoptionStatus
    notes: Optional[str] = Field(default=None, max_length=1000)


class ScheduleVisitRequest(BaseModel):
    visit_type: VisitType
    scheduled_date: datetime = Field(description="When the visit takes place (must be in the future)")
    duration_minutes: int = Field(default=60, ge=15, le=480)
    location: Optional[str] = Field(default=None, max_length=200)
    notes: Optional[str] = Field(default=None, max_length=1000)


class CompleteVisitRequest(BaseModel):
    outcome: VisitOutcome
    notes: Optional[str] = Field(default=None, max_length=1000)


class PaymentRequest(BaseModel):
    # Sign and range are checked by the service so those map to 400;
    # Infinity / NaN never get that far
    amount: float = Field(allow_inf_nan=False)
    method: str = Field(min_length=1, max_length=50)
    reference: Optional[str] = Field(default=None, max_length=100)


class AdditionalFeeRequest(BaseModel):
    description: str = Field(min_length=1, max_length=200)
    amount: float = Field(allow_inf_nan=False)


class InternalNoteRequest(BaseModel):
    content: str = Field(min_length=1, max_length=2000)
    is_private: bool = True

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Note content cannot be blank")
        return stripped


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class TimelineEntry(BaseModel):
    status: AdoptionStatus
    date: datetime
    notes: Optional[str] = None
    actor: Optional[str] = None


class VisitResponse(BaseModel):
    id: str
    type: VisitType
    scheduled_date: datetime
    duration_minutes: int
    location: Optional[str] = None
    status: Literal["scheduled", "completed", "cancelled", "no-show", "rescheduled"]
    outcome: Optional[VisitOutcome] = None
    notes: Optional[str] = None
    scheduled_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None


class FeeItem(BaseModel):
    description: str
    amount: float
    added_at: Optional[datetime] = None
    added_by: Optional[str] = None


class PaymentRecord(BaseModel):
    amount: float
    method: str
    reference: Optional[str] = None
    paid_at: datetime
    recorded_by: Optional[str] = None


class FeesResponse(BaseModel):
    """
    Fee ledger. total, payment_status and outstanding_balance are derived
    from adoption_fee, additional_fees and paid on every read.
    """

    adoption_fee: float
    additional_fees: List[FeeItem] = Field(default_factory=list)
    total: float
    paid: float
    outstanding_balance: float
    payment_status: PaymentStatus
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    payments: List[PaymentRecord] = Field(default_factory=list)


class InternalNote(BaseModel):
    content: str
    author: str
    created_at: datetime
    is_private: bool = True


class AdoptionResponse(BaseModel):
    """Full representation of an adoption application."""

    id: str
    pet_id: str
    applicant_id: str
    shelter_id: str
    status: AdoptionStatus
    held_from: Optional[AdoptionStatus] = None
    is_active: bool
    personal_info: PersonalInfo
    housing_info: HousingInfo
    references: List[Reference] = Field(default_factory=list)
    visits: List[VisitResponse] = Field(default_factory=list)
    timeline: List[TimelineEntry] = Field(description="Status history, oldest first")
    fees: FeesResponse
    internal_notes: List[InternalNote] = Field(
        default_factory=list,
        description="Staff notes; private notes are only included for shelter staff and admins",
    )
    next_steps: List[str] = Field(default_factory=list)
    days_in_process: int = Field(ge=0)
    created_at: datetime
    updated_at: datetime
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    withdrawn_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    returned_at: Optional[datetime] = None
