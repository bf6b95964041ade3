from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

# Airtable field names
NAME_FIELD = "Name"
STATUS_FIELD = "Status"
CLOSE_CLASS_FIELD = "Close Class"
CREATED_FIELD = "Created"
EMAIL_FIELD = "Email"
ROLE_FIELD = "Role"
GITHUB_FIELD = "GitHub Link"
SOURCE_FIELD = "Source/Channel"

FROM_STATUS_FIELD = "From Status"
TO_STATUS_FIELD = "To Status"
CHANGED_AT_FIELD = "Changed At"
LEAD_FIELD = "Lead"


class FunnelStatus(str, Enum):
    NEW = "New"
    LEAD = "Lead"
    SCHEDULING_EMAIL_SENT = "Scheduling Email Sent"
    CALL_SCHEDULED = "Call Scheduled"
    CALL_COMPLETED = "Call Completed"
    ONBOARDED = "Onboarded"
    ACTIVE = "Active"
    PAUSED = "Paused"
    CLOSED = "Closed"


STATUS_DESCRIPTIONS: Dict[FunnelStatus, str] = {
    FunnelStatus.NEW: "Applied through the form; not yet reviewed.",
    FunnelStatus.LEAD: "Reviewed GitHub; meets initial criteria. Starting point after form.",
    FunnelStatus.SCHEDULING_EMAIL_SENT: "Outreach sent to schedule a call.",
    FunnelStatus.CALL_SCHEDULED: "Intro or screening call is on the calendar.",
    FunnelStatus.CALL_COMPLETED: "Initial call happened; evaluating fit.",
    FunnelStatus.ONBOARDED: "Completed onboarding; access and materials provided.",
    FunnelStatus.ACTIVE: "Joined Slack, contributing, or signed docs.",
    FunnelStatus.PAUSED: "Temporarily on hold; may resume later.",
    FunnelStatus.CLOSED: "Exited funnel; see closure reason.",
}

RECOGNIZED_STATUSES = frozenset(s.value for s in FunnelStatus)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return str(value)


def _split_record(record: Mapping[str, Any]) -> Tuple[str, Dict[str, Any], Optional[str]]:
    """Accept either an Airtable record or an already flattened `{id, ...fields}` dict."""
    record_id = str(record.get("id") or "")
    if isinstance(record.get("fields"), Mapping):
        return record_id, dict(record["fields"]), record.get("createdTime")
    fields = {k: v for k, v in record.items() if k != "id"}
    return record_id, fields, None


@dataclass(frozen=True)
class Person:
    id: str
    name: Optional[str] = None
    status: Optional[str] = None
    close_class: Optional[str] = None
    created: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Person":
        record_id, fields, created_time = _split_record(record)
        return cls(
            id=record_id,
            name=_text(fields.get(NAME_FIELD)),
            status=_text(fields.get(STATUS_FIELD)),
            close_class=_text(fields.get(CLOSE_CLASS_FIELD)),
            created=_text(fields.get(CREATED_FIELD)) or created_time,
            fields=fields,
        )

    @property
    def email(self) -> Optional[str]:
        return _text(self.fields.get(EMAIL_FIELD))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, **self.fields}


@dataclass(frozen=True)
class FunnelEvent:
    id: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    changed_at: Optional[str] = None
    lead: List[str] = field(default_factory=list)
    fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "FunnelEvent":
        record_id, fields, _ = _split_record(record)
        lead = fields.get(LEAD_FIELD) or []
        if isinstance(lead, str):
            lead = [lead]
        return cls(
            id=record_id,
            from_status=_text(fields.get(FROM_STATUS_FIELD)),
            to_status=_text(fields.get(TO_STATUS_FIELD)),
            changed_at=_text(fields.get(CHANGED_AT_FIELD)),
            lead=[str(x) for x in lead],
            fields=fields,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, **self.fields}
