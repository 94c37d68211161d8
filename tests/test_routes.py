import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from carebook.api.deps import get_clock, get_session
from carebook.main import app
from carebook.models import Appointment, Notification
from carebook.services import notification_service
from conftest import NOW, TOMORROW, BrokenSession, HangingSession, make_access_token


@pytest_asyncio.fixture
async def client(session_maker, monkeypatch: pytest.MonkeyPatch):
    async def _get_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_clock] = lambda: (lambda: NOW)
    monkeypatch.setattr(notification_service, "async_session_maker", session_maker)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def _auth(patient_id: str = "patient-1") -> dict[str, str]:
    return {"Authorization": f"Bearer {make_access_token(patient_id)}"}


async def _book(client: AsyncClient, time: str = "2:00 PM", patient_id: str = "patient-1", **fields):
    body = {"provider_id": "prov-1", "date": TOMORROW, "time": time, **fields}
    return await client.post("/api/v1/appointments", json=body, headers=_auth(patient_id))


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_available_slots_for_open_day(client: AsyncClient) -> None:
    response = await client.get("/api/v1/providers/prov-1/slots", params={"date": TOMORROW})

    assert response.status_code == 200
    payload = response.json()
    assert payload["date"] == TOMORROW
    assert payload["fully_unavailable"] is False
    assert len(payload["slots"]) == 19
    assert payload["slots"][0]["display_time"] == "10:00 AM"
    assert all(s["is_bookable"] for s in payload["slots"])


@pytest.mark.asyncio
async def test_available_slots_reflect_bookings_blackouts_and_now(
    client: AsyncClient, add_appointment, add_unavailability
) -> None:
    await add_appointment(date="2026-03-02", time="15:00")
    await add_unavailability(date="2026-03-02", times=["17:30"])

    response = await client.get("/api/v1/providers/prov-1/slots", params={"date": "2026-03-02"})

    slots = {s["storage_time"]: s for s in response.json()["slots"]}
    assert not slots["11:00"]["is_bookable"]
    assert slots["11:30"]["is_bookable"]
    assert slots["15:00"]["is_occupied"] and not slots["15:00"]["is_bookable"]
    assert not slots["17:30"]["is_bookable"] and not slots["17:30"]["is_occupied"]


@pytest.mark.asyncio
async def test_available_slots_rejects_bad_date(client: AsyncClient) -> None:
    response = await client.get("/api/v1/providers/prov-1/slots", params={"date": "next tuesday"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_provider_details_with_placeholder(client: AsyncClient, add_provider) -> None:
    await add_provider("prov-1", first_name="Ana", last_name="Reyes", specialization="Physiotherapy")

    known = await client.get("/api/v1/providers/prov-1")
    unknown = await client.get("/api/v1/providers/prov-404")

    assert known.json() == {"id": "prov-1", "display_name": "Ana Reyes", "specialization": "Physiotherapy"}
    assert unknown.json() == {"id": "prov-404", "display_name": "Unknown Doctor", "specialization": "General Practice"}


@pytest.mark.asyncio
async def test_provider_patient_count(client: AsyncClient, add_appointment) -> None:
    await add_appointment(patient_id="patient-1", time="10:00")
    await add_appointment(patient_id="patient-2", time="10:30")

    response = await client.get("/api/v1/providers/prov-1/patients/count")

    assert response.json() == {"provider_id": "prov-1", "patient_count": 2}


@pytest.mark.asyncio
async def test_booking_requires_access_token(client: AsyncClient) -> None:
    body = {"provider_id": "prov-1", "date": TOMORROW, "time": "2:00 PM"}

    missing = await client.post("/api/v1/appointments", json=body)
    wrong_type = await client.post(
        "/api/v1/appointments",
        json=body,
        headers={"Authorization": f"Bearer {make_access_token('patient-1', token_type='refresh')}"},
    )
    garbage = await client.post("/api/v1/appointments", json=body, headers={"Authorization": "Bearer not-a-jwt"})

    assert missing.status_code == 401
    assert wrong_type.status_code == 401
    assert garbage.status_code == 401


@pytest.mark.asyncio
async def test_booking_creates_appointment_and_notification(
    client: AsyncClient, session_maker, add_provider
) -> None:
    await add_provider("prov-1", first_name="Ana", last_name="Reyes", specialization="Physiotherapy")

    response = await _book(client, symptoms="Neck stiffness")

    assert response.status_code == 201
    payload = response.json()
    assert payload["status"] == "pending"
    assert payload["time"] == "14:00"
    assert payload["display_time"] == "2:00 PM"
    assert payload["message"] == "Neck stiffness"
    assert payload["provider_name"] == "Ana Reyes"

    async with session_maker() as session:
        notifications = (await session.execute(select(Notification))).scalars().all()
    assert len(notifications) == 1
    assert notifications[0].appointment_id == payload["id"]
    assert notifications[0].type == "new_booking"
    assert notifications[0].message == (
        "Your appointment with Ana Reyes on 2026-03-03 at 2:00 PM has been submitted and is pending approval."
    )


@pytest.mark.asyncio
async def test_booking_survives_notification_failure(
    client: AsyncClient, session_maker, monkeypatch: pytest.MonkeyPatch
) -> None:
    def _broken_session_maker():
        raise RuntimeError("notification store down")

    monkeypatch.setattr(notification_service, "async_session_maker", _broken_session_maker)

    response = await _book(client)

    assert response.status_code == 201
    async with session_maker() as session:
        stored = await session.get(Appointment, response.json()["id"])
    assert stored is not None


@pytest.mark.asyncio
async def test_second_booking_of_same_slot_conflicts(client: AsyncClient) -> None:
    first = await _book(client, patient_id="patient-1")
    second = await _book(client, patient_id="patient-2")

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["detail"]["code"] == "slot_already_booked"


@pytest.mark.asyncio
async def test_booking_error_mapping(client: AsyncClient, add_unavailability) -> None:
    await add_unavailability(date=TOMORROW, times=["16:00"])
    await _book(client, time="10:00 AM")

    same_date = await _book(client, time="3:00 PM")
    invalid = await _book(client, time="3:10 PM", patient_id="patient-2")
    blocked = await _book(client, time="4:00 PM", patient_id="patient-3")
    past = await client.post(
        "/api/v1/appointments",
        json={"provider_id": "prov-1", "date": "2026-03-02", "time": "10:30 AM"},
        headers=_auth("patient-4"),
    )

    assert (same_date.status_code, same_date.json()["detail"]["code"]) == (409, "patient_already_booked_that_date")
    assert (invalid.status_code, invalid.json()["detail"]["code"]) == (400, "invalid_slot")
    assert (blocked.status_code, blocked.json()["detail"]["code"]) == (409, "provider_unavailable")
    assert (past.status_code, past.json()["detail"]["code"]) == (409, "slot_in_past")


@pytest.mark.asyncio
async def test_patient_lists(client: AsyncClient, add_appointment) -> None:
    await add_appointment(date="2026-03-01", time="10:00", created_at=100)
    await add_appointment(date="2026-03-05", time="10:00", created_at=200)
    await add_appointment(date="2026-03-04", time="10:00", status="cancelled", created_at=300)
    await add_appointment(date="2026-03-06", time="10:00", patient_id="patient-2", created_at=400)

    history = await client.get("/api/v1/appointments", headers=_auth())
    upcoming = await client.get("/api/v1/appointments/upcoming", headers=_auth())
    booked = await client.get("/api/v1/appointments/booked-dates", headers=_auth())

    assert [a["created_at"] for a in history.json()] == [300, 200, 100]
    assert history.json()[0]["provider_name"] == "Unknown Doctor"
    assert [a["date"] for a in upcoming.json()] == ["2026-03-05"]
    assert booked.json() == {"dates": ["2026-03-01", "2026-03-05"]}


@pytest.mark.asyncio
async def test_cancel_flow_frees_the_slot(client: AsyncClient) -> None:
    booked = await _book(client)
    appointment_id = booked.json()["id"]

    stranger = await client.post(
        f"/api/v1/appointments/{appointment_id}/cancel", json={"reason": "x"}, headers=_auth("patient-2")
    )
    cancelled = await client.post(
        f"/api/v1/appointments/{appointment_id}/cancel", json={"reason": "Schedule clash"}, headers=_auth()
    )
    again = await client.post(f"/api/v1/appointments/{appointment_id}/cancel", json={}, headers=_auth())
    rebooked = await _book(client, patient_id="patient-2")

    assert stranger.status_code == 404
    assert cancelled.status_code == 204
    assert again.status_code == 409
    assert rebooked.status_code == 201

    history = await client.get("/api/v1/appointments", headers=_auth())
    assert history.json()[0]["status"] == "cancelled"
    assert history.json()[0]["message"].endswith("Cancelled: Schedule clash")


@pytest.fixture
def use_store(client: AsyncClient):
    """Serve request sessions from ``session_factory`` instead of the test database."""

    def _use(session_factory) -> None:
        async def _get_session():
            yield session_factory()

        app.dependency_overrides[get_session] = _get_session

    return _use


@pytest.mark.asyncio
async def test_listing_routes_time_out_on_slow_store(client: AsyncClient, use_store, short_store_timeout) -> None:
    use_store(HangingSession)

    history = await client.get("/api/v1/appointments", headers=_auth())
    upcoming = await client.get("/api/v1/appointments/upcoming", headers=_auth())
    count = await client.get("/api/v1/providers/prov-1/patients/count")

    assert history.status_code == 504
    assert upcoming.status_code == 504
    assert count.status_code == 504


@pytest.mark.asyncio
async def test_unreachable_store_reads(client: AsyncClient, use_store) -> None:
    use_store(BrokenSession)

    history = await client.get("/api/v1/appointments", headers=_auth())
    count = await client.get("/api/v1/providers/prov-1/patients/count")
    slots = await client.get("/api/v1/providers/prov-1/slots", params={"date": TOMORROW})
    provider = await client.get("/api/v1/providers/prov-1")

    assert history.status_code == 503
    assert count.status_code == 503
    assert slots.status_code == 200
    assert all(s["is_bookable"] for s in slots.json()["slots"])
    assert provider.json()["display_name"] == "Unknown Doctor"
