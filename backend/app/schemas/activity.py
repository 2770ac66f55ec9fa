"""
PetMatch Backend - Activity Registration Schemas
================================================

What:  Request/response models for activity registration.
Who:   routes/activities.py and ActivityService.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

ParticipantStatus = Literal["registered", "attended", "no-show", "cancelled", "waitlisted"]


class RegisterRequest(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=500)


class ParticipantResponse(BaseModel):
    user_id: str
    status: ParticipantStatus
    registered_at: datetime
    notes: Optional[str] = None
    promoted_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class CapacityResponse(BaseModel):
    max: int = Field(ge=0)
    current: int = Field(ge=0, description="Participants with status 'registered'")
    waitlist: int = Field(ge=0, description="Participants with status 'waitlisted'")
    spots_available: int = Field(ge=0)
    is_fully_booked: bool


class ActivityResponse(BaseModel):
    id: str
    title: str
    category: str
    status: str
    shelter_id: Optional[str] = None
    start_at: datetime
    end_at: datetime
    registration_deadline: Optional[datetime] = None
    capacity: CapacityResponse
    participants: List[ParticipantResponse] = Field(default_factory=list)
    participant_stats: Dict[str, int] = Field(default_factory=dict)


class RegistrationResponse(BaseModel):
    """Outcome of a register / unregister call."""
    message: str
    participant_status: ParticipantStatus
    activity: ActivityResponse
