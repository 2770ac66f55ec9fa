"""
PetMatch Backend - Authorization & Token Tests
==============================================

What:  Tests for the role/ownership table and bearer token decoding.
"""

import pytest

from app.exceptions import AuthenticationError, ForbiddenError
from app.models.adoption import ADOPTION_RETURNED, APPROVED, ON_HOLD, REJECTED, SUBMITTED, UNDER_REVIEW, WITHDRAWN
from app.security import create_access_token, decode_access_token
from app.services import permissions
from app.services.permissions import Actor, authorize, authorize_transition, is_permitted


class TestAuthorizationTable:

    def setup_method(self):
        self.user = Actor(id="user-1", role="user")
        self.staff = Actor(id="staff-1", role="shelter")
        self.admin = Actor(id="admin-1", role="admin")

    def test_every_operation_has_an_entry(self):
        for operation in permissions.OWNER_OPERATIONS:
            assert operation in permissions.PERMISSIONS

    def test_admin_bypasses_everything(self):
        for operation in permissions.PERMISSIONS:
            assert is_permitted(operation, self.admin, owner_id="someone-else")

    def test_staff_operations(self):
        for operation in (
            permissions.REVIEW_APPLICATION,
            permissions.SCHEDULE_VISIT,
            permissions.COMPLETE_VISIT,
            permissions.ADD_FEE,
        ):
            assert is_permitted(operation, self.staff)
            assert not is_permitted(operation, self.user, owner_id=self.user.id)

    def test_owner_may_view_and_pay(self):
        assert is_permitted(permissions.VIEW_APPLICATION, self.user, owner_id="user-1")
        assert is_permitted(permissions.RECORD_PAYMENT, self.user, owner_id="user-1")

    def test_non_owner_user_is_refused(self):
        with pytest.raises(ForbiddenError) as exc_info:
            authorize(permissions.VIEW_APPLICATION, self.user, owner_id="user-2")

        assert exc_info.value.operation == permissions.VIEW_APPLICATION
        assert exc_info.value.context["role"] == "user"

    def test_unknown_role_is_refused(self):
        assert not is_permitted(permissions.SUBMIT_APPLICATION, Actor(id="x", role="volunteer"))


class TestTransitionAuthorization:

    def setup_method(self):
        self.user = Actor(id="user-1", role="user")
        self.staff = Actor(id="staff-1", role="shelter")
        self.admin = Actor(id="admin-1", role="admin")

    def test_applicant_withdraws_submitted_application(self):
        authorize_transition(self.user, "user-1", SUBMITTED, WITHDRAWN)

    def test_applicant_cannot_withdraw_after_review_starts(self):
        with pytest.raises(ForbiddenError):
            authorize_transition(self.user, "user-1", UNDER_REVIEW, WITHDRAWN)

    def test_admin_withdraws_at_any_point(self):
        authorize_transition(self.admin, "user-1", APPROVED, WITHDRAWN)

    def test_shelter_cannot_withdraw_for_applicant(self):
        with pytest.raises(ForbiddenError):
            authorize_transition(self.staff, "user-1", SUBMITTED, WITHDRAWN)

    @pytest.mark.parametrize("target", [UNDER_REVIEW, REJECTED, ON_HOLD, ADOPTION_RETURNED])
    def test_applicant_cannot_drive_review(self, target):
        with pytest.raises(ForbiddenError):
            authorize_transition(self.user, "user-1", SUBMITTED, target)

    @pytest.mark.parametrize("target", [UNDER_REVIEW, REJECTED, ON_HOLD, ADOPTION_RETURNED])
    def test_shelter_drives_review(self, target):
        authorize_transition(self.staff, "user-1", SUBMITTED, target)


class TestAccessTokens:

    def test_round_trip(self):
        token = create_access_token("user-42", "shelter")
        actor = decode_access_token(token)
        assert actor == Actor(id="user-42", role="shelter")

    def test_expired_token(self):
        token = create_access_token("user-42", "user", expires_minutes=-1)
        with pytest.raises(AuthenticationError, match="expired"):
            decode_access_token(token)

    def test_tampered_token(self):
        token = create_access_token("user-42", "user")
        with pytest.raises(AuthenticationError):
            decode_access_token(token[:-4] + "abcd")

    def test_unknown_role_rejected(self):
        token = create_access_token("user-42", "superuser")
        with pytest.raises(AuthenticationError):
            decode_access_token(token)
