"""Patients screen: searchable table of patient records."""

from typing import Any

from app.core.gateway import DataGateway
from app.schemas.auth import AuthContext
from app.schemas.common import Notice
from app.schemas.patients import Patient
from app.services.forms import PatientForm
from app.services.optimistic import OptimisticMutator
from app.services.search import SearchFilter
from app.views.base import ActionHandler, Screen


class PatientsScreen(Screen):
    """Patient records ordered by MRN, with inline status edits."""

    name = "patients"
    fetch_error_message = "Failed to fetch patients"

    def __init__(
        self,
        gateway: DataGateway,
        auth: AuthContext | None,
        search: str = "",
        discard_stale: bool = False,
    ):
        """Initialize screen with an optional initial search query."""
        super().__init__(gateway, auth, discard_stale=discard_stale)
        self.search_filter = SearchFilter(search)
        self.patients = self.add_store(
            "patients_records",
            "medical_record_number",
            Patient,
            predicate=self.search_filter,
        )
        self.mutator = OptimisticMutator(gateway, self.patients, "patient")
        self.form = PatientForm(gateway)

    async def search(self, query: str) -> None:
        """Replace the search query and refetch with it."""
        self.search_filter = SearchFilter(query)
        self.patients.predicate = self.search_filter
        await self.patients.refresh()

    def actions(self) -> dict[str, ActionHandler]:
        return {
            **super().actions(),
            "search": self.action_search,
            "set_status": self.action_set_status,
            "delete": self.action_delete,
        }

    async def action_search(self, command: dict[str, Any]) -> Notice | None:
        await self.search(str(command.get("query") or ""))
        return None

    async def action_set_status(self, command: dict[str, Any]) -> Notice | None:
        status = self.parse_status(command["status"])
        return await self.mutator.change_status(int(command["id"]), status)

    async def action_delete(self, command: dict[str, Any]) -> Notice | None:
        return await self.mutator.delete(int(command["id"]))

    @property
    def empty_message(self) -> str:
        """Text shown when the table has no rows."""
        if not self.search_filter.is_empty:
            return "No patients found matching your search"
        return "No patients yet. Add your first patient!"

    def render(self) -> dict[str, Any]:
        state = super().render()
        state.update(
            {
                "search": self.search_filter.query,
                "error": self.patients.error,
                "rows": [patient.model_dump(mode="json") for patient in self.patients.items],
                "empty_message": None if self.patients.items else self.empty_message,
            }
        )
        return state
