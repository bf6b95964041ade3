from datetime import datetime, timezone

import pytest

from core.records import FunnelEvent, Person

NOW = datetime(2026, 10, 14, 12, 0, 0, tzinfo=timezone.utc)  # a Wednesday


def make_person(pid, status=None, close_class=None, created=None, **extra):
    fields = dict(extra)
    if status is not None:
        fields["Status"] = status
    if close_class is not None:
        fields["Close Class"] = close_class
    if created is not None:
        fields["Created"] = created
    fields.setdefault("Name", f"Person {pid}")
    return Person.from_record({"id": pid, "fields": fields})


def make_event(eid, to_status, changed_at, from_status=None):
    fields = {"To Status": to_status, "Changed At": changed_at}
    if from_status is not None:
        fields["From Status"] = from_status
    return FunnelEvent.from_record({"id": eid, "fields": fields})


def people_with_statuses(counts, closed_classes=None):
    """Build people from {status: n}; closed people take labels from `closed_classes` in order."""
    people = []
    labels = list(closed_classes or [])
    for status, n in counts.items():
        for i in range(n):
            close_class = None
            if status == "Closed" and labels:
                close_class = labels.pop(0)
            people.append(make_person(f"{status}-{i}", status=status, close_class=close_class))
    return people


class FakeFetcher:
    def __init__(self, people=None, events=None, people_error=None, events_error=None):
        self.people = people or []
        self.events = events or []
        self.people_error = people_error
        self.events_error = events_error
        self.updates = []

    def fetch_people(self):
        if self.people_error:
            raise self.people_error
        return list(self.people)

    def fetch_funnel_events(self):
        if self.events_error:
            raise self.events_error
        return list(self.events)

    def update_fields(self, person_id, fields):
        self.updates.append((person_id, dict(fields)))
        person = next(p for p in self.people if p.id == person_id)
        return Person.from_record({"id": person_id, "fields": {**person.fields, **fields}})

    def close(self):
        pass


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def scenario_people():
    """100 people: New 20, Lead 10, Onboarded 15, Closed 55 (10 closed after a call)."""
    return people_with_statuses(
        {"New": 20, "Lead": 10, "Onboarded": 15, "Closed": 55},
        closed_classes=["Disqualified — After Call"] * 5 + ["Withdrew — after call"] * 5,
    )
