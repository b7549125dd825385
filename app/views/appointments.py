"""Appointments screen: schedule table and day calendar."""

from datetime import date
from typing import Any

from app.core.gateway import DataGateway
from app.schemas.appointments import Appointment, AppointmentRow
from app.schemas.auth import AuthContext
from app.schemas.common import Notice
from app.schemas.patients import PatientOption
from app.services.appointment_service import appointments_on, join_patient_names, marked_days
from app.services.forms import AppointmentForm
from app.services.optimistic import OptimisticMutator
from app.views.base import ActionHandler, Screen


class AppointmentsScreen(Screen):
    """Appointments ordered by date, shown as a table and as a calendar.

    Patient names come from a second store over the patient table, so a
    deleted patient turns into ``Unknown Patient`` without touching the
    appointment.
    """

    name = "appointments"
    fetch_error_message = "Failed to fetch appointments"

    def __init__(
        self,
        gateway: DataGateway,
        auth: AuthContext | None,
        selected_day: date | None = None,
        discard_stale: bool = False,
    ):
        """Initialize screen with the calendar on ``selected_day`` (default today)."""
        super().__init__(gateway, auth, discard_stale=discard_stale)
        self.selected_day = selected_day or date.today()
        self.appointments = self.add_store(
            "appointments_records",
            "appointment_date",
            Appointment,
        )
        self.patients = self.add_store(
            "patients_records",
            "id",
            PatientOption,
            columns=("id", "first_name", "last_name"),
        )
        self.mutator = OptimisticMutator(gateway, self.appointments, "appointment")
        self.form = AppointmentForm(gateway)

    @property
    def rows(self) -> list[AppointmentRow]:
        """Appointments joined with patient names, in date order."""
        lookup = {patient.id: patient for patient in self.patients.items}
        return join_patient_names(self.appointments.items, lookup)

    def day_rows(self, day: date | None = None) -> list[AppointmentRow]:
        """Appointments on one day (default the selected day), by time."""
        return appointments_on(self.rows, day or self.selected_day)

    def marked_days(self) -> list[date]:
        """Days the calendar highlights."""
        return marked_days(self.appointments.items)

    def select_day(self, day: date) -> None:
        """Move the calendar to another day."""
        self.selected_day = day
        self.changed()

    def actions(self) -> dict[str, ActionHandler]:
        return {
            **super().actions(),
            "set_status": self.action_set_status,
            "delete": self.action_delete,
            "select_day": self.action_select_day,
        }

    async def action_set_status(self, command: dict[str, Any]) -> Notice | None:
        status = self.parse_status(command["status"])
        return await self.mutator.change_status(int(command["id"]), status)

    async def action_delete(self, command: dict[str, Any]) -> Notice | None:
        return await self.mutator.delete(int(command["id"]))

    async def action_select_day(self, command: dict[str, Any]) -> Notice | None:
        self.select_day(date.fromisoformat(command["day"]))
        return None

    def render_form(self) -> dict[str, Any] | None:
        state = super().render_form()
        if state is not None and isinstance(self.form, AppointmentForm):
            state["patients"] = [patient.model_dump() for patient in self.form.patients]
        return state

    def render(self) -> dict[str, Any]:
        state = super().render()
        rows = self.rows
        state.update(
            {
                "error": self.appointments.error or self.patients.error,
                "rows": [row.model_dump(mode="json") for row in rows],
                "empty_message": None if rows else "No appointments yet. Schedule your first appointment!",
                "calendar": {
                    "selected_day": self.selected_day.isoformat(),
                    "marked_days": [day.isoformat() for day in self.marked_days()],
                    "items": [
                        row.model_dump(mode="json") for row in appointments_on(rows, self.selected_day)
                    ],
                },
            }
        )
        return state
