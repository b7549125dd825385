"""Tests for the dashboard screens."""

import asyncio
from datetime import date, datetime

import pytest

from app.core.exceptions import AuthMissing, FetchFailure
from app.core.gateway import DataGateway
from app.schemas.appointments import UNKNOWN_PATIENT
from app.schemas.auth import AuthContext
from app.schemas.common import RecordStatus
from app.views.appointments import AppointmentsScreen
from app.views.dashboard import DashboardScreen, initials
from app.views.patients import PatientsScreen


async def add_appointment(gateway: DataGateway, when: datetime, patient_id: int | None, **extra) -> dict:
    return await gateway.insert(
        "appointments_records",
        {"patient_id": patient_id, "appointment_date": when, "appointment_type": "Checkup", **extra},
    )


async def eventually(condition, timeout: float = 2.0) -> None:
    """Wait until a change notification has been processed."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_mount_without_session_raises(gateway: DataGateway) -> None:
    """Screens refuse to mount without a signed-in administrator."""
    screen = PatientsScreen(gateway, None)

    with pytest.raises(AuthMissing) as exc_info:
        await screen.mount()

    assert exc_info.value.redirect_to == "/auth"
    assert gateway.changefeed.subscriber_count == 0


@pytest.mark.asyncio
async def test_unmount_releases_subscriptions(gateway: DataGateway, admin: AuthContext) -> None:
    """Every subscription is released when the screen goes away."""
    screen = AppointmentsScreen(gateway, admin)

    async with screen.mounted():
        assert gateway.changefeed.subscriber_count == 2
        assert screen.is_mounted

    assert gateway.changefeed.subscriber_count == 0
    assert not screen.is_mounted


@pytest.mark.asyncio
async def test_patients_screen_lists_and_searches(gateway: DataGateway, admin: AuthContext) -> None:
    """Patients are ordered by MRN and narrowed by search."""
    await gateway.insert("patients_records", {"first_name": "Zoe", "medical_record_number": "MRN-002"})
    await gateway.insert("patients_records", {"first_name": "Ada", "medical_record_number": "MRN-001"})
    screen = PatientsScreen(gateway, admin)

    async with screen.mounted():
        state = screen.render()
        assert [row["first_name"] for row in state["rows"]] == ["Ada", "Zoe"]
        assert state["loading"] is False
        assert state["empty_message"] is None

        await screen.handle({"action": "search", "query": "zo"})
        assert [patient.first_name for patient in screen.patients.items] == ["Zoe"]

        await screen.handle({"action": "search", "query": "nobody"})
        state = screen.render()
        assert state["rows"] == []
        assert state["empty_message"] == "No patients found matching your search"


@pytest.mark.asyncio
async def test_patients_screen_empty_message(gateway: DataGateway, admin: AuthContext) -> None:
    """An empty clinic invites adding the first patient."""
    async with PatientsScreen(gateway, admin).mounted() as screen:
        assert screen.render()["empty_message"] == "No patients yet. Add your first patient!"


@pytest.mark.asyncio
async def test_patients_screen_status_change(
    gateway: DataGateway,
    admin: AuthContext,
    test_patient: dict,
) -> None:
    """Status changes from the screen report success."""
    screen = PatientsScreen(gateway, admin)
    notices = []
    screen.on_notice(notices.append)

    async with screen.mounted():
        await screen.handle(
            {"action": "set_status", "id": test_patient["id"], "status": "Confirmed"}
        )

        assert screen.patients.get(test_patient["id"]).status == RecordStatus.CONFIRMED

    assert [notice.message for notice in notices] == ["Status updated successfully"]


@pytest.mark.asyncio
async def test_patients_screen_add_patient(gateway: DataGateway, admin: AuthContext) -> None:
    """A patient added through the form appears after the change notification."""
    screen = PatientsScreen(gateway, admin)

    async with screen.mounted():
        await screen.handle({"action": "open_form"})
        await screen.handle({"action": "set_field", "field": "first_name", "value": "Ada"})
        await screen.handle(
            {"action": "set_field", "field": "medical_record_number", "value": "MRN-001"}
        )
        notice = await screen.handle({"action": "submit"})

        assert notice.message == "Patient added successfully"
        assert screen.render()["form"]["open"] is False
        await eventually(lambda: len(screen.patients.items) == 1)


@pytest.mark.asyncio
async def test_unknown_and_invalid_commands(gateway: DataGateway, admin: AuthContext) -> None:
    """Bad commands become error notices instead of exceptions."""
    screen = PatientsScreen(gateway, admin)

    async with screen.mounted():
        unknown = await screen.handle({"action": "fly"})
        invalid = await screen.handle({"action": "set_status", "id": 1, "status": "Archived"})
        missing = await screen.handle({"action": "delete"})

    assert unknown.message == "Unknown action: fly"
    assert invalid.message == "Invalid set_status command"
    assert missing.message == "Invalid delete command"


@pytest.mark.asyncio
async def test_calendar_groups_by_day(gateway: DataGateway, admin: AuthContext) -> None:
    """The calendar shows the selected day's appointments in time order."""
    patient = await gateway.insert("patients_records", {"first_name": "Ada", "last_name": "Lovelace"})
    afternoon = await add_appointment(gateway, datetime(2024, 1, 5, 14, 30), patient["id"])
    morning = await add_appointment(gateway, datetime(2024, 1, 5, 9, 0), patient["id"])
    await add_appointment(gateway, datetime(2024, 1, 6, 10, 0), patient["id"])

    screen = AppointmentsScreen(gateway, admin, selected_day=date(2024, 1, 5))

    async with screen.mounted():
        assert [row.id for row in screen.day_rows()] == [morning["id"], afternoon["id"]]
        assert screen.marked_days() == [date(2024, 1, 5), date(2024, 1, 6)]
        assert screen.day_rows(date(2024, 1, 7)) == []

        calendar = screen.render()["calendar"]
        assert calendar["selected_day"] == "2024-01-05"
        assert calendar["marked_days"] == ["2024-01-05", "2024-01-06"]
        assert [item["patient_name"] for item in calendar["items"]] == ["Ada Lovelace"] * 2

        await screen.handle({"action": "select_day", "day": "2024-01-06"})
        assert len(screen.render()["calendar"]["items"]) == 1


@pytest.mark.asyncio
async def test_deleted_patient_shows_unknown_patient(gateway: DataGateway, admin: AuthContext) -> None:
    """Appointments of a deleted patient stay listed as Unknown Patient."""
    await gateway.insert("patients_records", {"id": 7, "first_name": "Ada", "last_name": "Lovelace"})
    appointment = await add_appointment(gateway, datetime(2024, 1, 5, 9, 0), 7)
    screen = AppointmentsScreen(gateway, admin, selected_day=date(2024, 1, 5))

    async with screen.mounted():
        assert screen.rows[0].patient_name == "Ada Lovelace"

        await gateway.delete("patients_records", 7)
        await eventually(lambda: not screen.patients.items)

        rows = screen.rows
        assert [row.id for row in rows] == [appointment["id"]]
        assert rows[0].patient_name == UNKNOWN_PATIENT


@pytest.mark.asyncio
async def test_appointments_screen_delete(gateway: DataGateway, admin: AuthContext, test_patient: dict) -> None:
    """Deleting an appointment removes it once the change arrives."""
    appointment = await add_appointment(gateway, datetime(2024, 1, 5, 9, 0), test_patient["id"])
    screen = AppointmentsScreen(gateway, admin)

    async with screen.mounted():
        notice = await screen.handle({"action": "delete", "id": appointment["id"]})

        assert notice.message == "Appointment deleted successfully"
        await eventually(lambda: not screen.appointments.items)


@pytest.mark.asyncio
async def test_appointments_form_offers_patients(
    gateway: DataGateway,
    admin: AuthContext,
    test_patient: dict,
) -> None:
    """The rendered form lists the selectable patients."""
    async with AppointmentsScreen(gateway, admin).mounted() as screen:
        await screen.handle({"action": "open_form"})
        form = screen.render()["form"]

    assert form["open"] is True
    assert form["patients"] == [
        {"id": test_patient["id"], "first_name": "Grace", "last_name": "Hopper"}
    ]


def test_initials():
    """Initials take the first letter of each word."""
    assert initials("Jane Admin") == "JA"
    assert initials("ada") == "A"


@pytest.mark.asyncio
async def test_dashboard_profile_defaults(gateway: DataGateway) -> None:
    """Missing profile fields fall back to placeholders."""
    screen = DashboardScreen(gateway, AuthContext(user_id="u1", email="ops@clinic.org"))

    profile = screen.profile

    assert profile.full_name == "System Administrator"
    assert profile.phone == "No phone number"
    assert profile.initials == "O"


@pytest.mark.asyncio
async def test_dashboard_counts_and_refreshes(gateway: DataGateway, admin: AuthContext) -> None:
    """Counters load on mount and follow table changes."""
    screen = DashboardScreen(gateway, admin, today=date(2024, 1, 5))

    async with screen.mounted():
        assert screen.stats.total_patients == 0
        assert gateway.changefeed.subscriber_count == 2

        await gateway.insert("patients_records", {"first_name": "Ada"})
        await eventually(lambda: screen.stats.total_patients == 1)

        state = screen.render()
        assert state["profile"]["initials"] == "JA"
        assert state["stats"]["total_patients"] == 1

    assert gateway.changefeed.subscriber_count == 0


@pytest.mark.asyncio
async def test_dashboard_failure_after_unmount_is_silent(gateway: DataGateway, admin: AuthContext) -> None:
    """A counter fetch failing after the screen is gone emits no notice."""
    screen = DashboardScreen(gateway, admin)
    notices = []
    screen.on_notice(notices.append)
    await screen.mount()

    started = asyncio.Event()
    release = asyncio.Event()

    async def slow_failing_stats(today=None):
        started.set()
        await release.wait()
        raise FetchFailure("Failed to count appointments_records", table="appointments_records")

    screen.stats_service.get_stats = slow_failing_stats
    refresh = asyncio.create_task(screen.refresh())
    await started.wait()

    await screen.unmount()
    release.set()
    await refresh

    assert notices == []
