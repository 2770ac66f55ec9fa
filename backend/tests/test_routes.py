"""
PetMatch Backend - HTTP Route Tests
===================================

What:  End-to-end tests through the FastAPI app with HTTPX.

What we test:
    - Bearer authentication (missing, invalid, expired tokens)
    - Status codes and error bodies for each error kind
    - Happy paths for the adoption and activity endpoints
    - Health endpoint and request ID propagation
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.security import create_access_token


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_missing_token(self, test_client, pet, application_payload):
        response = await test_client.post("/api/adoptions", json={"pet_id": pet.id, **application_payload})

        assert response.status_code == 401
        assert response.json()["error"] == "authentication_error"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_garbage_token(self, test_client, activity):
        response = await test_client.get(
            f"/api/activities/{activity.id}", headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_token(self, test_client, activity, applicant):
        token = create_access_token(applicant.id, applicant.role, expires_minutes=-1)

        response = await test_client.get(
            f"/api/activities/{activity.id}", headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Token has expired"


class TestAdoptionRoutes:

    async def _submit(self, test_client, headers, pet, payload):
        response = await test_client.post("/api/adoptions", json={"pet_id": pet.id, **payload}, headers=headers)
        assert response.status_code == 201
        return response.json()

    @pytest.mark.asyncio
    async def test_submit_application(self, test_client, pet, applicant, auth_headers, application_payload):
        data = await self._submit(test_client, auth_headers(applicant), pet, application_payload)

        assert data["status"] == "submitted"
        assert data["applicant_id"] == applicant.id
        assert data["fees"]["total"] == 200.0
        assert len(data["timeline"]) == 1

    @pytest.mark.asyncio
    async def test_invalid_body_rejected(self, test_client, pet, applicant, auth_headers, application_payload):
        payload = {**application_payload, "housing_info": {"type": "castle", "ownership": "own"}}

        response = await test_client.post(
            "/api/adoptions", json={"pet_id": pet.id, **payload}, headers=auth_headers(applicant),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_pending_pet_conflicts(
        self, test_client, pet, applicant, other_user, auth_headers, application_payload,
    ):
        await self._submit(test_client, auth_headers(applicant), pet, application_payload)

        response = await test_client.post(
            "/api/adoptions", json={"pet_id": pet.id, **application_payload}, headers=auth_headers(other_user),
        )

        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_user_cannot_approve(self, test_client, pet, applicant, auth_headers, application_payload):
        data = await self._submit(test_client, auth_headers(applicant), pet, application_payload)

        response = await test_client.post(
            f"/api/adoptions/{data['id']}/status",
            json={"status": "approved"},
            headers=auth_headers(applicant),
        )

        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"

    @pytest.mark.asyncio
    async def test_invalid_transition_details(
        self, test_client, pet, applicant, shelter_staff, auth_headers, application_payload,
    ):
        data = await self._submit(test_client, auth_headers(applicant), pet, application_payload)

        response = await test_client.post(
            f"/api/adoptions/{data['id']}/status",
            json={"status": "adoption-completed"},
            headers=auth_headers(shelter_staff),
        )

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "invalid_transition"
        assert body["details"]["current_status"] == "submitted"
        assert body["details"]["requested_status"] == "adoption-completed"
        assert "under-review" in body["details"]["allowed"]

    @pytest.mark.asyncio
    async def test_staff_moves_application_forward(
        self, test_client, pet, applicant, shelter_staff, auth_headers, application_payload,
    ):
        data = await self._submit(test_client, auth_headers(applicant), pet, application_payload)

        response = await test_client.post(
            f"/api/adoptions/{data['id']}/status",
            json={"status": "under-review", "notes": "Starting review"},
            headers=auth_headers(shelter_staff),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "under-review"
        assert response.json()["timeline"][-1]["notes"] == "Starting review"

    @pytest.mark.asyncio
    async def test_get_application_owner_only(
        self, test_client, pet, applicant, other_user, auth_headers, application_payload,
    ):
        data = await self._submit(test_client, auth_headers(applicant), pet, application_payload)

        own = await test_client.get(f"/api/adoptions/{data['id']}", headers=auth_headers(applicant))
        other = await test_client.get(f"/api/adoptions/{data['id']}", headers=auth_headers(other_user))

        assert own.status_code == 200
        assert other.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_application(self, test_client, shelter_staff, auth_headers):
        response = await test_client.get("/api/adoptions/missing", headers=auth_headers(shelter_staff))

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_visit_scheduling_and_payment(
        self, test_client, pet, applicant, shelter_staff, auth_headers, application_payload,
    ):
        data = await self._submit(test_client, auth_headers(applicant), pet, application_payload)
        url = f"/api/adoptions/{data['id']}"
        staff = auth_headers(shelter_staff)
        for status in ("under-review", "approved"):
            await test_client.post(f"{url}/status", json={"status": status}, headers=staff)

        visit_date = (datetime.now(timezone.utc) + timedelta(days=3)).isoformat()
        scheduled = await test_client.post(
            f"{url}/visits",
            json={"visit_type": "meet-and-greet", "scheduled_date": visit_date, "location": "Lobby"},
            headers=staff,
        )
        assert scheduled.status_code == 201
        visit_id = scheduled.json()["visits"][0]["id"]

        completed = await test_client.post(
            f"{url}/visits/{visit_id}/complete", json={"outcome": "approved"}, headers=staff,
        )
        assert completed.json()["status"] == "meet-completed"

        payment = await test_client.post(
            f"{url}/payments",
            json={"amount": 75.0, "method": "card", "reference": "txn-42"},
            headers=auth_headers(applicant),
        )
        assert payment.status_code == 200
        assert payment.json()["fees"]["payment_status"] == "partial"

    @pytest.mark.asyncio
    async def test_non_positive_payment_is_bad_request(
        self, test_client, pet, applicant, auth_headers, application_payload,
    ):
        data = await self._submit(test_client, auth_headers(applicant), pet, application_payload)

        response = await test_client.post(
            f"/api/adoptions/{data['id']}/payments",
            json={"amount": 0, "method": "card"},
            headers=auth_headers(applicant),
        )

        assert response.status_code == 400
        assert response.json()["details"]["field"] == "amount"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("literal", ["Infinity", "-Infinity", "NaN"])
    async def test_non_finite_payment_is_unprocessable(
        self, test_client, pet, applicant, auth_headers, application_payload, literal,
    ):
        data = await self._submit(test_client, auth_headers(applicant), pet, application_payload)

        response = await test_client.post(
            f"/api/adoptions/{data['id']}/payments",
            content=f'{{"amount": {literal}, "method": "card"}}',
            headers={**auth_headers(applicant), "Content-Type": "application/json"},
        )

        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["body", "amount"]
        stored = await test_client.get(f"/api/adoptions/{data['id']}", headers=auth_headers(applicant))
        assert stored.json()["fees"]["paid"] == 0.0

    @pytest.mark.asyncio
    async def test_private_note_hidden_from_applicant(
        self, test_client, pet, applicant, shelter_staff, auth_headers, application_payload,
    ):
        data = await self._submit(test_client, auth_headers(applicant), pet, application_payload)

        await test_client.post(
            f"/api/adoptions/{data['id']}/notes",
            json={"content": "  Landlord not yet reached  "},
            headers=auth_headers(shelter_staff),
        )
        response = await test_client.get(f"/api/adoptions/{data['id']}", headers=auth_headers(applicant))

        assert response.json()["internal_notes"] == []


class TestActivityRoutes:

    @pytest.mark.asyncio
    async def test_register_and_unregister(self, test_client, activity, applicant, auth_headers):
        url = f"/api/activities/{activity.id}/register"

        registered = await test_client.post(url, json={"notes": "First time"}, headers=auth_headers(applicant))
        assert registered.status_code == 200
        assert registered.json()["participant_status"] == "registered"
        assert registered.json()["activity"]["capacity"]["current"] == 1

        cancelled = await test_client.delete(url, headers=auth_headers(applicant))
        assert cancelled.status_code == 200
        assert cancelled.json()["activity"]["capacity"]["current"] == 0

    @pytest.mark.asyncio
    async def test_register_without_body(self, test_client, activity, applicant, auth_headers):
        response = await test_client.post(
            f"/api/activities/{activity.id}/register", headers=auth_headers(applicant),
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_duplicate_registration(self, test_client, activity, applicant, auth_headers):
        url = f"/api/activities/{activity.id}/register"
        await test_client.post(url, headers=auth_headers(applicant))

        response = await test_client.post(url, headers=auth_headers(applicant))

        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_unregister_without_registration(self, test_client, activity, applicant, auth_headers):
        response = await test_client.delete(
            f"/api/activities/{activity.id}/register", headers=auth_headers(applicant),
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_activity(self, test_client, applicant, auth_headers):
        response = await test_client.get("/api/activities/missing", headers=auth_headers(applicant))
        assert response.status_code == 404


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health", headers={"X-Request-ID": "lb-check-1"})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert response.headers["X-Request-ID"] == "lb-check-1"
