"""
PetMatch Backend - Activity SQLAlchemy Model
============================================

What:  ORM model for the `activities` table (adoption events, volunteer days,
       training sessions) and its embedded participant list.
Who:   Activities are created by the events component; the registration
       engine (ActivityService) owns participants and the capacity counters.

Capacity invariant:
    capacity_current  == count(participants with status 'registered') ≤ capacity_max
    capacity_waitlist == count(participants with status 'waitlisted')
    The counters are maintained incrementally by register / unregister only.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Tuple

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, JSONDocument, ensure_utc, utcnow

# ── Activity Status Values ────────────────────────────────────────────────
ACTIVITY_DRAFT = "draft"
ACTIVITY_PUBLISHED = "published"
ACTIVITY_CANCELLED = "cancelled"
ACTIVITY_COMPLETED = "completed"
ACTIVITY_POSTPONED = "postponed"

# ── Participant Status Values ─────────────────────────────────────────────
PARTICIPANT_REGISTERED = "registered"
PARTICIPANT_ATTENDED = "attended"
PARTICIPANT_NO_SHOW = "no-show"
PARTICIPANT_CANCELLED = "cancelled"
PARTICIPANT_WAITLISTED = "waitlisted"

PARTICIPANT_STATUSES = (
    PARTICIPANT_REGISTERED,
    PARTICIPANT_ATTENDED,
    PARTICIPANT_NO_SHOW,
    PARTICIPANT_CANCELLED,
    PARTICIPANT_WAITLISTED,
)


def recount_capacity(participants: List[Dict[str, Any]]) -> Tuple[int, int]:
    """Recompute (current, waitlist) from the participant list."""
    current = sum(1 for p in participants if p.get("status") == PARTICIPANT_REGISTERED)
    waitlist = sum(1 for p in participants if p.get("status") == PARTICIPANT_WAITLISTED)
    return current, waitlist


class Activity(Base):
    """A scheduled shelter activity with capacity-bounded registration."""

    __tablename__ = "activities"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(30), nullable=False, default="adoption-event")

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ACTIVITY_PUBLISHED,
        server_default=text(f"'{ACTIVITY_PUBLISHED}'"),
    )

    shelter_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("shelters.id"), nullable=True, index=True,
    )

    # ── Schedule ──────────────────────────────────────────────────────────
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    registration_deadline: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    # ── Capacity ──────────────────────────────────────────────────────────
    capacity_max: Mapped[int] = mapped_column(Integer, nullable=False)
    capacity_current: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0"),
    )
    capacity_waitlist: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0"),
    )

    # Entries: {"user_id", "status", "registered_at" (ISO 8601), "notes"}
    participants: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONDocument, nullable=False, default=list,
    )

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

    # Optimistic lock: capacity counters are shared between concurrent registrations
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_activities_start_status", "start_at", "status"),
    )

    # ── Derived Values ────────────────────────────────────────────────────
    @property
    def spots_available(self) -> int:
        return max(0, self.capacity_max - self.capacity_current)

    @property
    def is_fully_booked(self) -> bool:
        return self.capacity_current >= self.capacity_max

    def has_started(self, now: datetime) -> bool:
        return ensure_utc(self.start_at) <= now

    def participant_stats(self) -> Dict[str, int]:
        """Participant counts keyed by status."""
        stats = {status: 0 for status in PARTICIPANT_STATUSES}
        for participant in self.participants or []:
            status = participant.get("status")
            if status in stats:
                stats[status] += 1
        return stats

    def __repr__(self) -> str:
        return (
            f"<Activity(id={self.id}, title='{self.title}', "
            f"capacity={self.capacity_current}/{self.capacity_max}, waitlist={self.capacity_waitlist})>"
        )
