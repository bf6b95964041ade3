"""Funnel aggregation: current People snapshot -> fixed-topology flow graph.

The graph always has the same nine stages and nine links; only the weights
change between refreshes. Weights come from present-tense status counts, with
closed people split by their closure classification so that drop-offs after
qualification flow through the Qualified branch instead of the initial reject.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Sequence, Tuple

import pandas as pd

from core.errors import NoDataError
from core.records import FunnelStatus, Person

AFTER_CALL_MARKER = "after call"
AFTER_ONBOARD_MARKER = "after onboard"


class FlowStage(str, Enum):
    APPLICATIONS = "Applications"
    UNASSESSED = "Unassessed"
    CLOSED_REJECTED = "Closed/Rejected"
    QUALIFIED = "Qualified"
    WAITING_ON_REPLY = "Waiting on Reply"
    CALL_UPCOMING = "Call Upcoming"
    CALL_COMPLETED = "Call Completed"
    ONBOARDED = "Onboarded"
    PAUSED = "Paused"


class StageCategory(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"
    PAUSED = "paused"


@dataclass(frozen=True)
class StageStyle:
    category: StageCategory
    depth: int
    color: str


# Closed/Rejected sits in the last column so the drop-off band stays out of the way.
STAGE_STYLES: Dict[FlowStage, StageStyle] = {
    FlowStage.APPLICATIONS: StageStyle(StageCategory.ACTIVE, 0, "#777777"),
    FlowStage.UNASSESSED: StageStyle(StageCategory.PAUSED, 1, "#8a7a4a"),
    FlowStage.CLOSED_REJECTED: StageStyle(StageCategory.CLOSED, 5, "#aaaaaa"),
    FlowStage.QUALIFIED: StageStyle(StageCategory.ACTIVE, 1, "#1a4a5a"),
    FlowStage.WAITING_ON_REPLY: StageStyle(StageCategory.PAUSED, 2, "#5a7a8a"),
    FlowStage.CALL_UPCOMING: StageStyle(StageCategory.ACTIVE, 2, "#5a7a8a"),
    FlowStage.CALL_COMPLETED: StageStyle(StageCategory.ACTIVE, 2, "#1a4a5a"),
    FlowStage.ONBOARDED: StageStyle(StageCategory.ACTIVE, 3, "#1a4a5a"),
    FlowStage.PAUSED: StageStyle(StageCategory.PAUSED, 3, "#5a7a8a"),
}


@dataclass(frozen=True)
class FlowNode:
    name: FlowStage
    category: StageCategory

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name.value, "category": self.category.value}


@dataclass(frozen=True)
class FlowEdge:
    source: FlowStage
    target: FlowStage
    value: int

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source.value, "target": self.target.value, "value": int(self.value)}


@dataclass(frozen=True)
class FlowGraph:
    nodes: List[FlowNode]
    edges: List[FlowEdge]

    def node_totals(self) -> Dict[FlowStage, int]:
        """Throughput per stage: the larger of its inbound and outbound weight."""
        inbound: Dict[FlowStage, int] = {n.name: 0 for n in self.nodes}
        outbound: Dict[FlowStage, int] = {n.name: 0 for n in self.nodes}
        for e in self.edges:
            outbound[e.source] += e.value
            inbound[e.target] += e.value
        return {stage: max(inbound[stage], outbound[stage]) for stage in inbound}

    def to_dict(self) -> Dict[str, Any]:
        return {"nodes": [n.to_dict() for n in self.nodes], "links": [e.to_dict() for e in self.edges]}


@dataclass(frozen=True)
class ClosureSplit:
    closed_initially: int
    closed_after_call: int
    closed_after_onboarding: int

    @property
    def closed_after_qualifying(self) -> int:
        return self.closed_after_call + self.closed_after_onboarding


@dataclass(frozen=True)
class FunnelCounts:
    status_counts: Dict[str, int] = field(default_factory=dict)
    closed_initially: int = 0
    closed_after_call: int = 0
    closed_after_onboarding: int = 0
    total_qualified: int = 0

    def count(self, status: FunnelStatus) -> int:
        return int(self.status_counts.get(status.value, 0))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def count_statuses(people: Iterable[Person]) -> Dict[str, int]:
    """Tally every non-empty status, recognised or not."""
    statuses = pd.Series([p.status for p in people if p.status], dtype="object")
    if statuses.empty:
        return {}
    return {str(k): int(v) for k, v in statuses.value_counts(sort=False).items()}


def classify_closure(close_class: str | None) -> str:
    text = (close_class or "").lower()
    if AFTER_CALL_MARKER in text:
        return "after_call"
    if AFTER_ONBOARD_MARKER in text:
        return "after_onboarding"
    return "initial"


def partition_closed(people: Iterable[Person]) -> ClosureSplit:
    buckets = {"initial": 0, "after_call": 0, "after_onboarding": 0}
    for p in people:
        if p.status == FunnelStatus.CLOSED.value:
            buckets[classify_closure(p.close_class)] += 1
    return ClosureSplit(
        closed_initially=buckets["initial"],
        closed_after_call=buckets["after_call"],
        closed_after_onboarding=buckets["after_onboarding"],
    )


# Statuses that mean the person got past initial screening and is still in play.
QUALIFIED_STATUSES: Tuple[FunnelStatus, ...] = (
    FunnelStatus.LEAD,
    FunnelStatus.SCHEDULING_EMAIL_SENT,
    FunnelStatus.CALL_SCHEDULED,
    FunnelStatus.CALL_COMPLETED,
    FunnelStatus.ONBOARDED,
    FunnelStatus.ACTIVE,
    FunnelStatus.PAUSED,
)


def summarize_funnel(people: Sequence[Person]) -> FunnelCounts:
    status_counts = count_statuses(people)
    split = partition_closed(people)
    in_play = sum(int(status_counts.get(s.value, 0)) for s in QUALIFIED_STATUSES)
    return FunnelCounts(
        status_counts=status_counts,
        closed_initially=split.closed_initially,
        closed_after_call=split.closed_after_call,
        closed_after_onboarding=split.closed_after_onboarding,
        total_qualified=in_play + split.closed_after_qualifying,
    )


def build_flow_graph(people: Sequence[Person]) -> FlowGraph:
    if not people:
        raise NoDataError("No data available from Airtable")

    counts = summarize_funnel(people)
    c = counts.count
    closed_late = counts.closed_after_call + counts.closed_after_onboarding

    completed_calls = (
        c(FunnelStatus.CALL_COMPLETED)
        + c(FunnelStatus.ONBOARDED)
        + c(FunnelStatus.ACTIVE)
        + c(FunnelStatus.PAUSED)
        + closed_late
    )

    S = FlowStage
    weights = [
        (S.APPLICATIONS, S.UNASSESSED, c(FunnelStatus.NEW)),
        (S.APPLICATIONS, S.QUALIFIED, counts.total_qualified),
        (S.APPLICATIONS, S.CLOSED_REJECTED, counts.closed_initially),
        (S.QUALIFIED, S.WAITING_ON_REPLY, c(FunnelStatus.SCHEDULING_EMAIL_SENT)),
        (S.QUALIFIED, S.CALL_UPCOMING, c(FunnelStatus.CALL_SCHEDULED)),
        (S.QUALIFIED, S.CALL_COMPLETED, completed_calls),
        # Everyone who closed after qualifying exits at Call Completed.
        (S.CALL_COMPLETED, S.ONBOARDED, c(FunnelStatus.ONBOARDED) + c(FunnelStatus.ACTIVE)),
        (S.CALL_COMPLETED, S.PAUSED, c(FunnelStatus.PAUSED)),
        (S.CALL_COMPLETED, S.CLOSED_REJECTED, closed_late),
    ]

    nodes = [FlowNode(stage, STAGE_STYLES[stage].category) for stage in FlowStage]
    edges = [FlowEdge(src, dst, int(value)) for src, dst, value in weights if value > 0]
    return FlowGraph(nodes=nodes, edges=edges)
