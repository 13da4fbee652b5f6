"""HTTP API tests against the FastAPI app with a SQLite-backed service."""

import uuid

import httpx
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

from app.api.dependencies import get_service
from app.core.assistant import ConversationStore, RecommendationService
from app.core.errors import RecommendationUnavailable
from app.core.service import ConsultationService
from app.main import app


BERLIN_QUERY = {"lat": 52.52, "lng": 13.405}
PATIENT = {"X-Patient-ID": "patient-1"}
OTHER_PATIENT = {"X-Patient-ID": "patient-2"}


@pytest.fixture
def recommender():
    recommender = AsyncMock(spec=RecommendationService)
    recommender.recommend.return_value = "Dr. Alice Heart is a good fit."
    return recommender


@pytest.fixture
def service(session_factory, recommender, no_redis):
    return ConsultationService(
        session_factory,
        recommender=recommender,
        conversation_store=ConversationStore(ttl=600),
    )


@pytest_asyncio.fixture
async def client(service):
    app.dependency_overrides[get_service] = lambda: service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


class TestDoctorEndpoints:
    """Test /doctors."""

    @pytest.mark.asyncio
    async def test_search_by_specialty(self, client, seeded):
        response = await client.get("/doctors", params={"specialty": "Cardiology", **BERLIN_QUERY})

        assert response.status_code == 200
        data = response.json()
        assert [d["full_name"] for d in data] == ["Dr. Alice Heart", "Dr. Dan Remote"]
        assert data[0]["distance_km"] == 0.0
        assert data[1]["distance_km"] is None

    @pytest.mark.asyncio
    async def test_default_radius_with_location(self, client, seeded):
        """Test a known location applies the default 50 km radius."""
        response = await client.get("/doctors", params=BERLIN_QUERY)

        assert [d["full_name"] for d in response.json()] == [
            "Dr. Alice Heart",
            "Dr. Bob Brain",
            "Dr. Dan Remote",
        ]

    @pytest.mark.asyncio
    async def test_search_without_location(self, client, seeded):
        response = await client.get("/doctors", params={"search": "migraine"})

        assert [d["full_name"] for d in response.json()] == ["Dr. Bob Brain"]

    @pytest.mark.asyncio
    async def test_invalid_coordinates(self, client, seeded):
        response = await client.get("/doctors", params={"lat": 100, "lng": 0})

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_specialties(self, client, seeded):
        response = await client.get("/doctors/specialties")

        assert response.json() == ["Cardiology", "Dermatology", "Neurology"]

    @pytest.mark.asyncio
    async def test_profile(self, client, seeded):
        response = await client.get(f"/doctors/{seeded.doctors['heart']}")

        assert response.status_code == 200
        data = response.json()
        assert data["full_name"] == "Dr. Alice Heart"
        assert data["review_count"] == 2
        assert data["average_review_rating"] == 4.5
        assert [r["reviewer_name"] for r in data["reviews"]] == ["Ben", "Anna"]

    @pytest.mark.asyncio
    async def test_profile_unknown(self, client, seeded):
        response = await client.get(f"/doctors/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["error"] == "doctor_not_found"

    @pytest.mark.asyncio
    async def test_slots(self, client, seeded):
        response = await client.get(f"/doctors/{seeded.doctors['heart']}/slots")

        assert response.status_code == 200
        assert [s["id"] for s in response.json()] == [
            str(seeded.slots["day1"]),
            str(seeded.slots["day2"]),
        ]

    @pytest.mark.asyncio
    async def test_slots_unknown_doctor(self, client, seeded):
        response = await client.get("/doctors/not-a-doctor/slots")

        assert response.status_code == 404


class TestAppointmentEndpoints:
    """Test /appointments."""

    async def book(self, client, slot_id, headers=PATIENT, **overrides):
        body = {"slot_id": str(slot_id), "visit_type": "video", "reason": "fever"}
        body.update(overrides)
        return await client.post("/appointments", json=body, headers=headers)

    @pytest.mark.asyncio
    async def test_requires_patient(self, client, seeded):
        response = await self.book(client, seeded.slots["day1"], headers={})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_book(self, client, seeded):
        response = await self.book(client, seeded.slots["day1"])

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "scheduled"
        assert data["display_status"] == "scheduled"
        assert data["doctor_name"] == "Dr. Alice Heart"
        assert data["patient_id"] == "patient-1"

    @pytest.mark.asyncio
    async def test_book_taken_slot(self, client, seeded):
        await self.book(client, seeded.slots["day1"])

        response = await self.book(client, seeded.slots["day1"], headers=OTHER_PATIENT)

        assert response.status_code == 409
        assert response.json()["error"] == "slot_unavailable"

    @pytest.mark.asyncio
    async def test_book_unknown_slot(self, client, seeded):
        response = await self.book(client, uuid.uuid4())

        assert response.status_code == 404
        assert response.json()["error"] == "slot_not_found"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides", [{"reason": "  "}, {"visit_type": "phone"}])
    async def test_book_invalid(self, client, seeded, overrides):
        response = await self.book(client, seeded.slots["day1"], **overrides)

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_list_and_cancel(self, client, seeded):
        booked = (await self.book(client, seeded.slots["day1"])).json()

        listing = (await client.get("/appointments", headers=PATIENT)).json()
        assert [a["id"] for a in listing["upcoming"]] == [booked["id"]]
        assert listing["past"] == []

        response = await client.post(f"/appointments/{booked['id']}/cancel", headers=PATIENT)
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        again = await client.post(f"/appointments/{booked['id']}/cancel", headers=PATIENT)
        assert again.status_code == 409
        assert again.json()["error"] == "invalid_transition"

        listing = (await client.get("/appointments", headers=PATIENT)).json()
        assert listing["upcoming"] == []
        assert [a["display_status"] for a in listing["past"]] == ["cancelled"]

    @pytest.mark.asyncio
    async def test_missed_appointment(self, client, seeded):
        await self.book(client, seeded.slots["past"])

        listing = (await client.get("/appointments", headers=PATIENT)).json()

        assert [(a["status"], a["display_status"]) for a in listing["past"]] == [
            ("scheduled", "missed")
        ]

    @pytest.mark.asyncio
    async def test_cancel_other_patients_appointment(self, client, seeded):
        booked = (await self.book(client, seeded.slots["day1"])).json()

        response = await client.post(f"/appointments/{booked['id']}/cancel", headers=OTHER_PATIENT)

        assert response.status_code == 404
        assert (await client.get("/appointments", headers=OTHER_PATIENT)).json()["upcoming"] == []


class TestChatEndpoints:
    """Test /chat."""

    @pytest.mark.asyncio
    async def test_conversation(self, client, recommender, seeded):
        created = await client.post("/chat/sessions", headers=PATIENT)
        assert created.status_code == 201
        session_id = created.json()["session_id"]

        response = await client.post(
            f"/chat/sessions/{session_id}/messages",
            params=BERLIN_QUERY,
            json={"message": "I have chest pain"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "message": "Dr. Alice Heart is a good fit.",
            "session_id": session_id,
            "turn_count": 2,
        }
        request = recommender.recommend.call_args.args[0]
        assert request.requester_location.latitude == 52.52

    @pytest.mark.asyncio
    async def test_service_failure(self, client, recommender, seeded):
        """Test a 502 keeps the patient's message without a reply."""
        recommender.recommend.side_effect = RecommendationUnavailable("timed out")
        session_id = (await client.post("/chat/sessions")).json()["session_id"]

        response = await client.post(
            f"/chat/sessions/{session_id}/messages",
            json={"message": "Hello?"},
        )

        assert response.status_code == 502
        assert response.json()["error"] == "recommendation_unavailable"

        session = (await client.get(f"/chat/sessions/{session_id}")).json()
        assert session["turns"] == [{"role": "patient", "text": "Hello?"}]
        assert session["awaiting_reply"] is True

    @pytest.mark.asyncio
    async def test_empty_message(self, client, seeded):
        session_id = (await client.post("/chat/sessions")).json()["session_id"]

        response = await client.post(f"/chat/sessions/{session_id}/messages", json={"message": ""})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_session(self, client, seeded):
        response = await client.post("/chat/sessions/missing/messages", json={"message": "Hi"})

        assert response.status_code == 404
        assert response.json()["error"] == "session_not_found"

    @pytest.mark.asyncio
    async def test_end_session(self, client, seeded):
        session_id = (await client.post("/chat/sessions")).json()["session_id"]

        assert (await client.delete(f"/chat/sessions/{session_id}")).status_code == 204
        assert (await client.get(f"/chat/sessions/{session_id}")).status_code == 404


class TestHealth:
    """Test /health."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
