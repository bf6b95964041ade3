from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence

import pandas as pd

from core.records import (
    CLOSE_CLASS_FIELD,
    EMAIL_FIELD,
    NAME_FIELD,
    ROLE_FIELD,
    SOURCE_FIELD,
    STATUS_FIELD,
    Person,
)

ALL_STATUSES = "All"

TABLE_COLUMNS = {
    NAME_FIELD: "Name",
    EMAIL_FIELD: "Email",
    STATUS_FIELD: "Status",
    CLOSE_CLASS_FIELD: "Close Class",
    ROLE_FIELD: "Role",
    SOURCE_FIELD: "Source",
}
DASHED_COLUMNS = {"Close Class", "Source"}


@dataclass(frozen=True)
class TableFilters:
    query: str = ""
    status: str = ALL_STATUSES


def normalize_filters(raw: dict) -> TableFilters:
    query = str(raw.get("query") or raw.get("q") or "").strip()
    status = str(raw.get("status") or "").strip() or ALL_STATUSES
    return TableFilters(query=query, status=status)


def _matches_query(person: Person, needle: str) -> bool:
    if not needle:
        return True
    return any(needle in (text or "").lower() for text in (person.name, person.email))


def filter_people(people: Iterable[Person], filters: TableFilters) -> List[Person]:
    needle = filters.query.lower()
    return [
        p
        for p in people
        if _matches_query(p, needle) and (filters.status == ALL_STATUSES or p.status == filters.status)
    ]


def status_options(people: Iterable[Person]) -> List[str]:
    seen: List[str] = []
    for p in people:
        if p.status and p.status not in seen:
            seen.append(p.status)
    return [ALL_STATUSES, *seen]


def people_frame(people: Sequence[Person]) -> pd.DataFrame:
    rows = [{label: p.fields.get(field) for field, label in TABLE_COLUMNS.items()} for p in people]
    df = pd.DataFrame(rows, columns=list(TABLE_COLUMNS.values()))
    df.insert(0, "id", [p.id for p in people])
    for col in DASHED_COLUMNS:
        df[col] = df[col].where(df[col].notna() & (df[col].astype(str) != ""), "-")
    return df
