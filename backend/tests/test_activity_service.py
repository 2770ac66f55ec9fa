"""
PetMatch Backend - Activity Service Tests
=========================================

What:  Tests for ActivityService registration, waitlist and promotion.

What we test:
    - Registration fills capacity, then waitlists
    - Counters always agree with the participant list
    - Preconditions: started, not published, deadline passed, duplicate
    - Unregistration promotes the earliest waitlisted participant
    - Concurrent modification surfaces as ConflictError
"""

from datetime import timedelta

import pytest
from sqlalchemy import text

from app.database import utcnow
from app.exceptions import ConflictError, InvalidStateError, NotFoundError
from app.models.activity import recount_capacity
from app.services.activity_service import ActivityService
from app.services.permissions import ROLE_USER, Actor


def users(*ids):
    return [Actor(id=user_id, role=ROLE_USER) for user_id in ids]


def assert_counters_match(activity):
    current, waitlist = recount_capacity(activity.participants)
    assert activity.capacity_current == current
    assert activity.capacity_waitlist == waitlist
    assert activity.capacity_current <= activity.capacity_max


class TestRegister:

    def setup_method(self):
        self.service = ActivityService()

    @pytest.mark.asyncio
    async def test_register_takes_a_spot(self, db_session, activity, applicant):
        result = await self.service.register(db_session, activity.id, applicant, notes="Bringing my kids")

        assert result.participant_status == "registered"
        assert result.message == "Successfully registered for activity"
        assert result.activity.capacity.current == 1
        assert result.activity.capacity.spots_available == 1
        assert result.activity.participants[0].user_id == applicant.id
        assert result.activity.participants[0].notes == "Bringing my kids"
        assert_counters_match(activity)

    @pytest.mark.asyncio
    async def test_full_activity_waitlists(self, db_session, activity):
        activity.capacity_max = 1
        await db_session.commit()
        first, second = users("user-a", "user-b")

        await self.service.register(db_session, activity.id, first)
        result = await self.service.register(db_session, activity.id, second)

        assert result.participant_status == "waitlisted"
        assert "waitlist" in result.message
        assert result.activity.capacity.current == 1
        assert result.activity.capacity.waitlist == 1
        assert result.activity.capacity.is_fully_booked is True
        assert result.activity.participant_stats["waitlisted"] == 1
        assert_counters_match(activity)

    @pytest.mark.asyncio
    async def test_duplicate_registration_conflicts(self, db_session, activity, applicant):
        await self.service.register(db_session, activity.id, applicant)

        with pytest.raises(ConflictError):
            await self.service.register(db_session, activity.id, applicant)
        assert_counters_match(activity)

    @pytest.mark.asyncio
    async def test_waitlisted_user_cannot_register_again(self, db_session, activity):
        activity.capacity_max = 1
        await db_session.commit()
        first, second = users("user-a", "user-b")
        await self.service.register(db_session, activity.id, first)
        await self.service.register(db_session, activity.id, second)

        with pytest.raises(ConflictError):
            await self.service.register(db_session, activity.id, second)

    @pytest.mark.asyncio
    async def test_started_activity_rejected(self, db_session, activity, applicant):
        activity.start_at = utcnow() - timedelta(minutes=5)
        await db_session.commit()

        with pytest.raises(InvalidStateError, match="already started"):
            await self.service.register(db_session, activity.id, applicant)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["draft", "cancelled", "postponed", "completed"])
    async def test_unpublished_activity_rejected(self, db_session, activity, applicant, status):
        activity.status = status
        await db_session.commit()

        with pytest.raises(InvalidStateError) as exc_info:
            await self.service.register(db_session, activity.id, applicant)
        assert exc_info.value.context["activity_status"] == status

    @pytest.mark.asyncio
    async def test_deadline_passed(self, db_session, activity, applicant):
        activity.registration_deadline = utcnow() - timedelta(hours=1)
        await db_session.commit()

        with pytest.raises(InvalidStateError, match="deadline"):
            await self.service.register(db_session, activity.id, applicant)

    @pytest.mark.asyncio
    async def test_unknown_activity(self, db_session, applicant):
        with pytest.raises(NotFoundError):
            await self.service.register(db_session, "missing", applicant)

    @pytest.mark.asyncio
    async def test_concurrent_change_conflicts(self, db_session, activity, applicant):
        activity_id = activity.id

        # Another request registered someone since this session loaded the row
        await db_session.execute(
            text("UPDATE activities SET version = version + 1 WHERE id = :id"), {"id": activity_id},
        )

        with pytest.raises(ConflictError, match="modified by another request"):
            await self.service.register(db_session, activity_id, applicant)


class TestUnregister:

    def setup_method(self):
        self.service = ActivityService()

    @pytest.mark.asyncio
    async def test_unregister_frees_spot(self, db_session, activity, applicant):
        await self.service.register(db_session, activity.id, applicant)

        result = await self.service.unregister(db_session, activity.id, applicant)

        assert result.participant_status == "cancelled"
        assert result.activity.capacity.current == 0
        assert result.activity.participants[0].status == "cancelled"
        assert result.activity.participants[0].cancelled_at is not None
        assert_counters_match(activity)

    @pytest.mark.asyncio
    async def test_promotion_from_waitlist(self, db_session, activity):
        activity.capacity_max = 1
        await db_session.commit()
        first, second = users("user-a", "user-b")
        await self.service.register(db_session, activity.id, first)
        await self.service.register(db_session, activity.id, second)

        result = await self.service.unregister(db_session, activity.id, first)

        by_user = {p.user_id: p for p in result.activity.participants}
        assert by_user["user-a"].status == "cancelled"
        assert by_user["user-b"].status == "registered"
        assert by_user["user-b"].promoted_at is not None
        assert result.activity.capacity.current == 1
        assert result.activity.capacity.waitlist == 0
        assert_counters_match(activity)

    @pytest.mark.asyncio
    async def test_earliest_waitlisted_promoted_first(self, db_session, activity):
        first, second, third, fourth = users("user-a", "user-b", "user-c", "user-d")
        for actor in (first, second, third, fourth):
            await self.service.register(db_session, activity.id, actor)
        assert activity.capacity_waitlist == 2

        result = await self.service.unregister(db_session, activity.id, second)

        statuses = {p.user_id: p.status for p in result.activity.participants}
        assert statuses == {
            "user-a": "registered",
            "user-b": "cancelled",
            "user-c": "registered",
            "user-d": "waitlisted",
        }
        assert_counters_match(activity)

    @pytest.mark.asyncio
    async def test_waitlisted_user_leaves(self, db_session, activity):
        activity.capacity_max = 1
        await db_session.commit()
        first, second = users("user-a", "user-b")
        await self.service.register(db_session, activity.id, first)
        await self.service.register(db_session, activity.id, second)

        result = await self.service.unregister(db_session, activity.id, second)

        assert result.activity.capacity.current == 1
        assert result.activity.capacity.waitlist == 0
        assert_counters_match(activity)

    @pytest.mark.asyncio
    async def test_can_register_again_after_cancelling(self, db_session, activity, applicant):
        await self.service.register(db_session, activity.id, applicant)
        await self.service.unregister(db_session, activity.id, applicant)

        result = await self.service.register(db_session, activity.id, applicant)

        assert result.participant_status == "registered"
        assert len(result.activity.participants) == 2
        assert_counters_match(activity)

    @pytest.mark.asyncio
    async def test_not_registered(self, db_session, activity, applicant):
        with pytest.raises(NotFoundError):
            await self.service.unregister(db_session, activity.id, applicant)

    @pytest.mark.asyncio
    async def test_attended_registration_cannot_be_cancelled(self, db_session, activity, applicant):
        activity.participants = [{
            "user_id": applicant.id,
            "status": "attended",
            "registered_at": utcnow().isoformat(),
            "notes": None,
        }]
        await db_session.commit()

        with pytest.raises(InvalidStateError):
            await self.service.unregister(db_session, activity.id, applicant)

    @pytest.mark.asyncio
    async def test_started_activity(self, db_session, activity, applicant):
        await self.service.register(db_session, activity.id, applicant)
        activity.start_at = utcnow() - timedelta(minutes=1)
        await db_session.commit()

        with pytest.raises(InvalidStateError):
            await self.service.unregister(db_session, activity.id, applicant)

    @pytest.mark.asyncio
    async def test_get_activity(self, db_session, activity, applicant):
        await self.service.register(db_session, activity.id, applicant)

        result = await self.service.get_activity(db_session, activity.id)

        assert result.title == "Saturday Adoption Fair"
        assert result.capacity.max == 2
        assert result.participant_stats["registered"] == 1
