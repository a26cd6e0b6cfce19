"""Doctor list filtering for the search page."""
from __future__ import annotations
from datetime import date
from typing import Sequence

from pydantic import BaseModel

from .models import Doctor


class FilterCriteria(BaseModel):
    """Every predicate is optional; unset or empty values do not filter."""

    search: str = ""
    gender: str = ""
    department: str = ""
    time_slot: str = ""
    on_date: date | None = None
    available_only: bool = False

    def is_empty(self) -> bool:
        return self == FilterCriteria()


def filter_doctors(doctors: Sequence[Doctor], criteria: FilterCriteria | None = None) -> list[Doctor]:
    """Doctors matching all active predicates, in their original order."""
    if criteria is None or criteria.is_empty():
        return list(doctors)

    term = criteria.search.strip().lower()
    matched = []
    for doc in doctors:
        if term and term not in doc.name.lower() and term not in doc.department.lower():
            continue
        if criteria.gender and doc.gender != criteria.gender:
            continue
        if criteria.department and doc.department != criteria.department:
            continue
        if criteria.time_slot and criteria.time_slot not in doc.available_times:
            continue
        if criteria.on_date and criteria.on_date not in doc.available_dates:
            continue
        if criteria.available_only and not doc.next_available_time:
            continue
        matched.append(doc)
    return matched


class FilterState:
    """Staged filters being edited, and the active set the list is shown with.

    ``apply`` commits the staged set; ``preview`` evaluates it without
    committing.
    """

    def __init__(self, department: str = ""):
        self.staged = FilterCriteria(department=department)
        self.active = self.staged.model_copy()

    def stage(self, **changes) -> FilterCriteria:
        self.staged = FilterCriteria.model_validate({**self.staged.model_dump(), **changes})
        return self.staged

    def apply(self) -> FilterCriteria:
        self.active = self.staged.model_copy()
        return self.active

    def reset(self) -> None:
        self.staged = FilterCriteria()
        self.active = FilterCriteria()

    def results(self, doctors: Sequence[Doctor]) -> list[Doctor]:
        return filter_doctors(doctors, self.active)

    def preview(self, doctors: Sequence[Doctor]) -> list[Doctor]:
        return filter_doctors(doctors, self.staged)
