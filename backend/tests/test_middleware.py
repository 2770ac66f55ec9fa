"""
PetMatch Backend - Middleware Tests
===================================

What:  Tests for the access log and request ID middleware.

What we test:
    - Log level per status code
    - Access-log message and structured fields, with and without an actor
    - Caller-supplied request IDs: kept when well-formed, replaced otherwise
    - End to end: the authenticated actor appears on the access-log record
"""

import logging

import pytest

from app.middleware.logging import ANONYMOUS, access_fields, access_level
from app.middleware.request_id import resolve_request_id
from app.services.permissions import ROLE_SHELTER, Actor


class TestAccessLevel:

    @pytest.mark.parametrize("status, level", [
        (200, logging.INFO),
        (201, logging.INFO),
        (304, logging.INFO),
        (404, logging.INFO),
        (400, logging.WARNING),
        (401, logging.WARNING),
        (409, logging.WARNING),
        (500, logging.ERROR),
        (503, logging.ERROR),
    ])
    def test_level_for_status(self, status, level):
        assert access_level(status) == level


class TestAccessFields:

    def test_authenticated_actor(self):
        actor = Actor(id="staff-9", role=ROLE_SHELTER)

        message, extra = access_fields("POST", "/api/adoptions/a1/status", 200, 12.3, "req-1", actor)

        assert message == "POST /api/adoptions/a1/status 200 12.3ms [req-1] by staff-9 (shelter)"
        assert extra["actor_id"] == "staff-9"
        assert extra["actor_role"] == "shelter"
        assert extra["request_id"] == "req-1"
        assert extra["duration_ms"] == 12.3

    def test_anonymous_request(self):
        message, extra = access_fields("GET", "/api/activities/x", 401, 1.0, "req-2", None)

        assert message.endswith(f"by {ANONYMOUS}")
        assert extra["actor_id"] == ANONYMOUS
        assert extra["actor_role"] is None


class TestResolveRequestId:

    def test_well_formed_id_kept(self):
        assert resolve_request_id("gw-2024.10_abc") == "gw-2024.10_abc"

    @pytest.mark.parametrize("header", [None, "", "bad id", "line\nbreak", "x" * 65, "<script>"])
    def test_malformed_id_replaced(self, header):
        rid = resolve_request_id(header)

        assert rid != header
        assert len(rid) == 12
        assert rid.isalnum()


class TestAccessLogRecords:

    @pytest.mark.asyncio
    async def test_actor_logged_for_authenticated_request(
        self, test_client, activity, applicant, auth_headers, caplog,
    ):
        with caplog.at_level(logging.INFO, logger="petmatch.access"):
            response = await test_client.get(
                f"/api/activities/{activity.id}",
                headers={**auth_headers(applicant), "X-Request-ID": "trace-7"},
            )

        assert response.status_code == 200
        records = [r for r in caplog.records if r.name == "petmatch.access"]
        assert len(records) == 1
        assert records[0].actor_id == applicant.id
        assert records[0].actor_role == applicant.role
        assert records[0].request_id == "trace-7"
        assert records[0].levelno == logging.INFO

    @pytest.mark.asyncio
    async def test_rejected_token_logged_as_anonymous(self, test_client, activity, caplog):
        with caplog.at_level(logging.INFO, logger="petmatch.access"):
            response = await test_client.get(
                f"/api/activities/{activity.id}", headers={"Authorization": "Bearer not-a-jwt"},
            )

        assert response.status_code == 401
        records = [r for r in caplog.records if r.name == "petmatch.access"]
        assert len(records) == 1
        assert records[0].actor_id == ANONYMOUS
        assert records[0].levelno == logging.WARNING

    @pytest.mark.asyncio
    async def test_injected_request_id_not_echoed(self, test_client, activity, applicant, auth_headers):
        response = await test_client.get(
            f"/api/activities/{activity.id}",
            headers={**auth_headers(applicant), "X-Request-ID": "fake] by admin-1 (admin)"},
        )

        assert response.headers["X-Request-ID"] != "fake] by admin-1 (admin)"
        assert len(response.headers["X-Request-ID"]) == 12
