"""
PetMatch Backend - Activity Registration Service
================================================

What:  Capacity-bounded registration for shelter activities with a FIFO
       waitlist.
How:   The participant list and both capacity counters live on the same row,
       so every change is staged on one Activity object and flushed once.
       The row's version counter turns a concurrent registration into
       StaleDataError, reported to the client as a retryable ConflictError.
Who:   Called by routes/activities.py.

Waitlist promotion:
    When a registered participant cancels, the waitlisted participant with the
    earliest registered_at (ties: earliest position in the list) becomes
    registered in the same write.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.database import ensure_utc, utcnow
from app.exceptions import ConflictError, DatabaseError, InvalidStateError, NotFoundError
from app.models.activity import (
    ACTIVITY_PUBLISHED,
    PARTICIPANT_CANCELLED,
    PARTICIPANT_REGISTERED,
    PARTICIPANT_WAITLISTED,
    Activity,
)
from app.schemas.activity import ActivityResponse, RegistrationResponse
from app.services.permissions import REGISTER_ACTIVITY, Actor, authorize
from app.services.timeline import isoformat, log_event, parse_timestamp

logger = logging.getLogger(__name__)


class ActivityService:
    """
    Business logic layer for activity registration.

    Responsibilities:
        - register(): take a spot, or join the waitlist when full
        - unregister(): give a spot back and promote from the waitlist
        - get_activity(): read the activity with capacity figures
    """

    async def register(
        self,
        db: AsyncSession,
        activity_id: str,
        actor: Actor,
        notes: Optional[str] = None,
    ) -> RegistrationResponse:
        """
        Register `actor` for an activity.

        Raises:
            NotFoundError: activity does not exist
            InvalidStateError: activity started, not open, or past its deadline
            ConflictError: already registered or waitlisted, or lost race
        """
        authorize(REGISTER_ACTIVITY, actor)
        activity = await self._get_activity(db, activity_id)
        now = utcnow()

        if activity.has_started(now):
            raise InvalidStateError(
                message="Cannot register for an activity that has already started",
                context={"activity_id": activity_id, "start_at": isoformat(activity.start_at)},
            )
        if activity.status != ACTIVITY_PUBLISHED:
            raise InvalidStateError(
                message=f"Registration is not open for a '{activity.status}' activity",
                context={"activity_id": activity_id, "activity_status": activity.status},
            )
        deadline = ensure_utc(activity.registration_deadline)
        if deadline is not None and now > deadline:
            raise InvalidStateError(
                message="The registration deadline for this activity has passed",
                context={"activity_id": activity_id, "registration_deadline": isoformat(deadline)},
            )

        if self._find_participant(activity.participants, actor.id) is not None:
            raise ConflictError(
                message="You are already registered for this activity",
                context={"activity_id": activity_id},
            )

        if activity.capacity_current < activity.capacity_max:
            status = PARTICIPANT_REGISTERED
            activity.capacity_current += 1
        else:
            status = PARTICIPANT_WAITLISTED
            activity.capacity_waitlist += 1

        activity.participants = [*(activity.participants or []), {
            "user_id": actor.id,
            "status": status,
            "registered_at": isoformat(now),
            "notes": notes,
        }]
        activity.updated_at = now

        await self._flush(db, activity_id)

        logger.info("User %s %s for activity %s", actor.id, status, activity_id)
        log_event("activity.registered", activity=activity_id, user=actor.id, status=status)

        message = (
            "Successfully registered for activity"
            if status == PARTICIPANT_REGISTERED
            else "Activity is full. You have been added to the waitlist"
        )
        return RegistrationResponse(
            message=message,
            participant_status=status,
            activity=self._to_response(activity),
        )

    async def unregister(self, db: AsyncSession, activity_id: str, actor: Actor) -> RegistrationResponse:
        """
        Cancel `actor`'s registration or waitlist entry.

        Raises:
            NotFoundError: activity missing, or no live registration for the user
            InvalidStateError: activity already started
        """
        activity = await self._get_activity(db, activity_id)
        now = utcnow()

        if activity.has_started(now):
            raise InvalidStateError(
                message="Cannot unregister from an activity that has already started",
                context={"activity_id": activity_id, "start_at": isoformat(activity.start_at)},
            )

        participants = [dict(p) for p in activity.participants or []]
        found = self._find_participant(participants, actor.id)
        if found is None:
            raise NotFoundError(resource="registration", resource_id=actor.id)

        index, entry = found
        previous = entry["status"]
        if previous not in (PARTICIPANT_REGISTERED, PARTICIPANT_WAITLISTED):
            raise InvalidStateError(
                message=f"A '{previous}' registration cannot be cancelled",
                context={"activity_id": activity_id, "participant_status": previous},
            )

        participants[index] = {**entry, "status": PARTICIPANT_CANCELLED, "cancelled_at": isoformat(now)}

        promoted: Optional[str] = None
        if previous == PARTICIPANT_REGISTERED:
            activity.capacity_current -= 1
            next_index = self._next_waitlisted(participants)
            if next_index is not None:
                participants[next_index]["status"] = PARTICIPANT_REGISTERED
                participants[next_index]["promoted_at"] = isoformat(now)
                promoted = participants[next_index]["user_id"]
                activity.capacity_current += 1
                activity.capacity_waitlist -= 1
        else:
            activity.capacity_waitlist -= 1

        activity.participants = participants
        activity.updated_at = now

        await self._flush(db, activity_id)

        logger.info("User %s unregistered from activity %s", actor.id, activity_id)
        log_event("activity.unregistered", activity=activity_id, user=actor.id, previous=previous)
        if promoted:
            log_event("activity.promoted", activity=activity_id, user=promoted)

        return RegistrationResponse(
            message="Registration cancelled",
            participant_status=PARTICIPANT_CANCELLED,
            activity=self._to_response(activity),
        )

    async def get_activity(self, db: AsyncSession, activity_id: str) -> ActivityResponse:
        activity = await self._get_activity(db, activity_id)
        return self._to_response(activity)

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _get_activity(self, db: AsyncSession, activity_id: str) -> Activity:
        activity = await db.get(Activity, activity_id)
        if activity is None:
            raise NotFoundError(resource="activity", resource_id=activity_id)
        return activity

    @staticmethod
    def _find_participant(
        participants: List[Dict[str, Any]], user_id: str,
    ) -> Optional[Tuple[int, Dict[str, Any]]]:
        """The user's non-cancelled entry with its index, or None."""
        for index, participant in enumerate(participants or []):
            if participant.get("user_id") == user_id and participant.get("status") != PARTICIPANT_CANCELLED:
                return index, participant
        return None

    @staticmethod
    def _next_waitlisted(participants: List[Dict[str, Any]]) -> Optional[int]:
        """Index of the earliest waitlisted entry; list position breaks ties."""
        candidates: List[Tuple[datetime, int]] = [
            (parse_timestamp(p.get("registered_at")), index)
            for index, p in enumerate(participants)
            if p.get("status") == PARTICIPANT_WAITLISTED
        ]
        if not candidates:
            return None
        return min(candidates)[1]

    async def _flush(self, db: AsyncSession, activity_id: str) -> None:
        try:
            await db.flush()
        except StaleDataError:
            await db.rollback()
            logger.warning("Concurrent registration change on activity %s", activity_id)
            raise ConflictError(
                message="The activity was modified by another request. Please try again.",
                context={"resource": "activity", "resource_id": activity_id},
            )
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Database error writing activity %s: %s", activity_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the registration. Please try again.",
                context={"resource": "activity", "error_type": type(e).__name__},
            )

    def _to_response(self, activity: Activity) -> ActivityResponse:
        return ActivityResponse(
            id=activity.id,
            title=activity.title,
            category=activity.category,
            status=activity.status,
            shelter_id=activity.shelter_id,
            start_at=ensure_utc(activity.start_at),
            end_at=ensure_utc(activity.end_at),
            registration_deadline=ensure_utc(activity.registration_deadline),
            capacity={
                "max": activity.capacity_max,
                "current": activity.capacity_current,
                "waitlist": activity.capacity_waitlist,
                "spots_available": activity.spots_available,
                "is_fully_booked": activity.is_fully_booked,
            },
            participants=activity.participants or [],
            participant_stats=activity.participant_stats(),
        )


# ── Singleton Instance ────────────────────────────────────────────────────
activity_service = ActivityService()
