"""
Column sorting for the submissions table.

The order is computed over rows that are already loaded; it never queries the
database. String columns compare case-insensitively, `date` compares by the
underlying instant. Python's sort is stable, so ties keep their loaded order
(newest first).
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, List

from salaysay.submissions.models import Submission


class SortField(str, Enum):
    NAME = "name"
    DATE = "date"
    CATEGORY = "category"
    STATUS = "status"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    def flipped(self) -> "SortDirection":
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


_SORT_KEYS: dict[SortField, Callable[[Submission], Any]] = {
    SortField.NAME: lambda s: s.file_name.casefold(),
    SortField.DATE: lambda s: s.created_at,
    SortField.CATEGORY: lambda s: s.violation_type.casefold(),
    SortField.STATUS: lambda s: s.status.value.casefold(),
}


@dataclass(frozen=True)
class SortState:
    field: SortField = SortField.DATE
    direction: SortDirection = SortDirection.DESC

    def toggle(self, field: SortField) -> "SortState":
        """Same column flips the direction; a new column starts ascending."""
        if field is self.field:
            return SortState(field=field, direction=self.direction.flipped())
        return SortState(field=field, direction=SortDirection.ASC)

    @classmethod
    def parse(cls, field: str | None, direction: str | None) -> "SortState":
        if not field and not direction:
            return cls()
        try:
            f = SortField((field or cls.field.value).strip().lower())
            d = SortDirection((direction or "asc").strip().lower())
        except ValueError:
            raise ValueError("invalid_sort") from None
        return cls(field=f, direction=d)


def sort_submissions(rows: Iterable[Submission], state: SortState) -> List[Submission]:
    return sorted(rows, key=_SORT_KEYS[state.field], reverse=state.direction is SortDirection.DESC)


__all__ = ["SortField", "SortDirection", "SortState", "sort_submissions"]
