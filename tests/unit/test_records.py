from core.records import FunnelEvent, FunnelStatus, Person, RECOGNIZED_STATUSES, STATUS_DESCRIPTIONS


def test_person_from_airtable_record():
    person = Person.from_record(
        {
            "id": "rec1",
            "createdTime": "2026-01-02T03:04:05.000Z",
            "fields": {"Name": "Ada", "Status": "Lead", "Close Class": "n/a", "Email": "ada@example.com", "Extra": [1, 2]},
        }
    )
    assert person.id == "rec1"
    assert person.name == "Ada"
    assert person.status == "Lead"
    assert person.close_class == "n/a"
    assert person.email == "ada@example.com"
    # no Created field -> falls back to the record creation time
    assert person.created == "2026-01-02T03:04:05.000Z"
    assert person.to_dict() == {
        "id": "rec1",
        "Name": "Ada",
        "Status": "Lead",
        "Close Class": "n/a",
        "Email": "ada@example.com",
        "Extra": [1, 2],
    }


def test_person_from_flat_mapping_prefers_created_field():
    person = Person.from_record({"id": "rec2", "Name": "Bo", "Created": "2026-02-01T00:00:00Z"})
    assert person.created == "2026-02-01T00:00:00Z"
    assert person.status is None
    assert person.to_dict() == {"id": "rec2", "Name": "Bo", "Created": "2026-02-01T00:00:00Z"}


def test_funnel_event_from_record():
    event = FunnelEvent.from_record(
        {"id": "ev1", "fields": {"From Status": "Lead", "To Status": "Onboarded", "Changed At": "2026-03-01T10:00:00Z", "Lead": ["rec1"]}}
    )
    assert event.from_status == "Lead"
    assert event.to_status == "Onboarded"
    assert event.changed_at == "2026-03-01T10:00:00Z"
    assert event.lead == ["rec1"]
    assert event.to_dict()["id"] == "ev1"


def test_every_status_has_a_description():
    assert set(STATUS_DESCRIPTIONS) == set(FunnelStatus)
    assert len(RECOGNIZED_STATUSES) == 9
    assert "Scheduling Email Sent" in RECOGNIZED_STATUSES
