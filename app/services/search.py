"""Free-text search over patient records."""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any, TypeVar

from sqlalchemy import ColumnElement, Table, or_

PATIENT_SEARCH_FIELDS = (
    "first_name",
    "last_name",
    "email_address",
    "medical_record_number",
)

T = TypeVar("T")


def escape_like(value: str, escape: str = "\\") -> str:
    """Escape LIKE wildcards so the query matches literally."""
    return (
        value.replace(escape, escape * 2).replace("%", f"{escape}%").replace("_", f"{escape}_")
    )


class SearchFilter:
    """Case-insensitive substring match OR'd across several text fields.

    A blank query filters nothing. The filter is normally pushed down to the
    fetch with ``to_clause`` so results keep the query's ordering; ``matches``
    applies the same rule to records already in memory.
    """

    def __init__(self, query: str | None = "", fields: Sequence[str] = PATIENT_SEARCH_FIELDS):
        """Initialize filter with a query and the fields it searches."""
        self.query = (query or "").strip()
        self.fields = tuple(fields)

    def __repr__(self) -> str:
        return f"SearchFilter({self.query!r})"

    @property
    def is_empty(self) -> bool:
        """Whether the filter lets every record through."""
        return not self.query

    def to_clause(self, table: Table) -> ColumnElement[bool] | None:
        """Build the SQL condition for a table, or None for a blank query."""
        if self.is_empty:
            return None
        pattern = f"%{escape_like(self.query)}%"
        return or_(*(table.c[field].ilike(pattern, escape="\\") for field in self.fields))

    def matches(self, record: Mapping[str, Any] | Any) -> bool:
        """Check a single record against the query."""
        if self.is_empty:
            return True
        needle = self.query.lower()
        for field in self.fields:
            if isinstance(record, Mapping):
                value = record.get(field)
            else:
                value = getattr(record, field, None)
            if value and needle in str(value).lower():
                return True
        return False

    def apply(self, records: Iterable[T]) -> list[T]:
        """Filter records in memory, keeping their order."""
        return [record for record in records if self.matches(record)]
