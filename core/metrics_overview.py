from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from core.flow import count_statuses, summarize_funnel
from core.records import FunnelEvent, FunnelStatus, Person

NO_VALUE = "—"

WEEKLY_QUALIFIED_STATUSES = {
    FunnelStatus.LEAD.value,
    FunnelStatus.SCHEDULING_EMAIL_SENT.value,
    FunnelStatus.CALL_SCHEDULED.value,
    FunnelStatus.CALL_COMPLETED.value,
    FunnelStatus.ONBOARDED.value,
}


def percentage(numerator: float, denominator: float) -> int:
    if not denominator:
        return 0
    return int(round(numerator / denominator * 100))


def _to_timestamp(value: object) -> Optional[pd.Timestamp]:
    if value is None:
        return None
    ts = pd.to_datetime(value, utc=True, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    return ts


def time_ago(value: object, now: datetime) -> str:
    """Elapsed time in the coarsest whole unit, e.g. ``"3h ago"``."""
    ts = _to_timestamp(value)
    if ts is None:
        return NO_VALUE
    seconds = max(0, math.floor((pd.Timestamp(_utc(now)).tz_convert("UTC") - ts).total_seconds()))
    if seconds < 60:
        return f"{seconds}s ago"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    days = hours // 24
    if days < 7:
        return f"{days}d ago"
    return f"{days // 7}w ago"


def week_start(now: datetime) -> datetime:
    """Monday 00:00 of the week containing ``now`` (same timezone as ``now``)."""
    monday = now - timedelta(days=now.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)


def days_remaining_in_week(now: datetime) -> int:
    friday = week_start(now) + timedelta(days=4)
    return max(0, math.ceil((friday - now).total_seconds() / 86400))


def _utc(now: datetime) -> datetime:
    return now if now.tzinfo is not None else now.replace(tzinfo=timezone.utc)


def people_status_frame(people: Sequence[Person]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "status": [p.status for p in people],
            "close_class": [p.close_class for p in people],
            "created": pd.to_datetime(pd.Series([p.created for p in people], dtype="object"), utc=True, errors="coerce", format="ISO8601"),
        }
    )


def events_frame(events: Sequence[FunnelEvent]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "to_status": [e.to_status for e in events],
            "changed_at": pd.to_datetime(pd.Series([e.changed_at for e in events], dtype="object"), utc=True, errors="coerce", format="ISO8601"),
        }
    )


def compute_closures(people_df: pd.DataFrame) -> List[Dict[str, Any]]:
    closed = people_df[people_df["status"] == FunnelStatus.CLOSED.value]
    if closed.empty:
        return []
    labels = closed["close_class"].fillna("").astype(str).str.strip().replace("", "Unknown")
    counts = labels.value_counts().reset_index()
    counts.columns = ["label", "n"]
    counts = counts.sort_values(["n", "label"], ascending=[False, True])
    total = len(closed)
    return [
        {"close_class": str(r.label), "count": int(r.n), "pct": percentage(int(r.n), total)}
        for r in counts.itertuples(index=False)
    ]


def compute_overview(
    people: Sequence[Person],
    events: Sequence[FunnelEvent],
    *,
    now: Optional[datetime] = None,
    onboarded_goal: int = 100,
) -> Dict[str, Any]:
    now = _utc(now or datetime.now(timezone.utc))
    people_df = people_status_frame(people)
    events_df = events_frame(events)

    status_counts = count_statuses(people)
    total = len(people_df)

    def count(status: FunnelStatus) -> int:
        return int(status_counts.get(status.value, 0))

    closed = count(FunnelStatus.CLOSED)
    funnel = summarize_funnel(people) if people else None
    qualified_total = funnel.total_qualified if funnel else 0
    qualified_dropped = (funnel.closed_after_call + funnel.closed_after_onboarding) if funnel else 0

    start = pd.Timestamp(week_start(now)).tz_convert("UTC")
    this_week = people_df[people_df["created"] >= start]
    onboarded_events = events_df[(events_df["to_status"] == FunnelStatus.ONBOARDED.value) & events_df["changed_at"].notna()]

    last_created = people_df["created"].max() if not people_df.empty else None
    last_onboarded = onboarded_events["changed_at"].max() if not onboarded_events.empty else None

    return {
        "total": total,
        "status_counts": status_counts,
        "onboarded": count(FunnelStatus.ONBOARDED),
        "onboarded_goal": int(onboarded_goal),
        "attrition": {
            "rejected": closed,
            "rejected_pct": percentage(closed, total),
            "qualified_dropped": qualified_dropped,
            "qualified_dropped_pct": percentage(qualified_dropped, qualified_total),
            "unassessed": count(FunnelStatus.NEW),
        },
        "weekly": {
            "week_start": start.isoformat(),
            "applications": int(len(this_week)),
            "qualified": int(this_week["status"].isin(WEEKLY_QUALIFIED_STATUSES).sum()),
            "onboarded": int((onboarded_events["changed_at"] >= start).sum()),
            "days_remaining": days_remaining_in_week(now),
        },
        "recency": {
            "last_application": time_ago(last_created, now) if last_created is not None and pd.notna(last_created) else NO_VALUE,
            "last_onboarded": time_ago(last_onboarded, now) if last_onboarded is not None and pd.notna(last_onboarded) else NO_VALUE,
        },
        "closures": compute_closures(people_df),
        "closed_total": closed,
        "funnel": funnel.to_dict() if funnel else None,
    }
