"""
Tests for funnel aggregation and flow graph construction.
"""

import pytest

from core.errors import NoDataError
from core.flow import (
    STAGE_STYLES,
    FlowStage,
    StageCategory,
    build_flow_graph,
    classify_closure,
    count_statuses,
    partition_closed,
    summarize_funnel,
)
from tests.conftest import make_person, people_with_statuses


def edge_map(graph):
    return {(e.source, e.target): e.value for e in graph.edges}


def test_scenario_closed_split_and_initial_rejects(scenario_people):
    counts = summarize_funnel(scenario_people)
    assert counts.closed_after_call == 10
    assert counts.closed_after_onboarding == 0
    assert counts.closed_initially == 45
    # Lead + Onboarded + closed after call
    assert counts.total_qualified == 35

    edges = edge_map(build_flow_graph(scenario_people))
    assert edges[(FlowStage.APPLICATIONS, FlowStage.CLOSED_REJECTED)] == 45
    assert edges[(FlowStage.APPLICATIONS, FlowStage.UNASSESSED)] == 20
    assert edges[(FlowStage.APPLICATIONS, FlowStage.QUALIFIED)] == 35
    assert edges[(FlowStage.QUALIFIED, FlowStage.CALL_COMPLETED)] == 25
    assert edges[(FlowStage.CALL_COMPLETED, FlowStage.ONBOARDED)] == 15
    assert edges[(FlowStage.CALL_COMPLETED, FlowStage.CLOSED_REJECTED)] == 10


def test_zero_weight_edges_are_dropped(scenario_people):
    edges = edge_map(build_flow_graph(scenario_people))
    assert all(v > 0 for v in edges.values())
    assert (FlowStage.QUALIFIED, FlowStage.WAITING_ON_REPLY) not in edges
    assert (FlowStage.QUALIFIED, FlowStage.CALL_UPCOMING) not in edges
    assert (FlowStage.CALL_COMPLETED, FlowStage.PAUSED) not in edges


def test_empty_people_raises_no_data():
    with pytest.raises(NoDataError):
        build_flow_graph([])


def test_nine_fixed_nodes_with_categories():
    graph = build_flow_graph([make_person("p1", status="New")])
    assert [n.name for n in graph.nodes] == list(FlowStage)
    assert len(graph.nodes) == 9
    categories = {n.name: n.category for n in graph.nodes}
    assert categories[FlowStage.CLOSED_REJECTED] == StageCategory.CLOSED
    assert categories[FlowStage.UNASSESSED] == StageCategory.PAUSED
    assert categories[FlowStage.APPLICATIONS] == StageCategory.ACTIVE
    assert set(STAGE_STYLES) == set(FlowStage)


def test_all_statuses_fill_every_edge():
    people = people_with_statuses(
        {
            "New": 3,
            "Lead": 4,
            "Scheduling Email Sent": 2,
            "Call Scheduled": 5,
            "Call Completed": 1,
            "Onboarded": 6,
            "Active": 2,
            "Paused": 3,
            "Closed": 7,
        },
        closed_classes=["No response", "Withdrew — After Call", "Left — After Onboarding"],
    )
    graph = build_flow_graph(people)
    edges = edge_map(graph)
    assert len(graph.edges) == 9
    assert edges[(FlowStage.APPLICATIONS, FlowStage.CLOSED_REJECTED)] == 5
    assert edges[(FlowStage.QUALIFIED, FlowStage.WAITING_ON_REPLY)] == 2
    assert edges[(FlowStage.QUALIFIED, FlowStage.CALL_UPCOMING)] == 5
    # Call Completed + Onboarded + Active + Paused + two late closures
    assert edges[(FlowStage.QUALIFIED, FlowStage.CALL_COMPLETED)] == 1 + 6 + 2 + 3 + 2
    assert edges[(FlowStage.CALL_COMPLETED, FlowStage.ONBOARDED)] == 8
    assert edges[(FlowStage.CALL_COMPLETED, FlowStage.PAUSED)] == 3
    assert edges[(FlowStage.CALL_COMPLETED, FlowStage.CLOSED_REJECTED)] == 2


@pytest.mark.parametrize(
    "counts",
    [
        {"New": 1},
        {"Closed": 4},
        {"Lead": 2, "Paused": 1, "Closed": 3},
        {"Call Completed": 3, "Onboarded": 2, "Active": 5, "Closed": 6},
    ],
)
def test_outbound_never_exceeds_inbound(counts):
    people = people_with_statuses(counts, closed_classes=["after call", "after onboarding"])
    graph = build_flow_graph(people)
    inbound = {}
    outbound = {}
    for e in graph.edges:
        assert isinstance(e.value, int) and e.value >= 0
        inbound[e.target] = inbound.get(e.target, 0) + e.value
        outbound[e.source] = outbound.get(e.source, 0) + e.value
    for stage, out in outbound.items():
        if stage == FlowStage.APPLICATIONS:
            continue
        assert out <= inbound.get(stage, 0)


def test_closure_partition_is_exhaustive_and_disjoint():
    labels = ["After Call", "AFTER ONBOARDING", None, "", "Ghosted", "after call and after onboard"]
    people = [make_person(f"c{i}", status="Closed", close_class=label) for i, label in enumerate(labels)]
    people.append(make_person("open", status="Lead", close_class="After Call"))
    split = partition_closed(people)
    assert split.closed_after_call == 2
    assert split.closed_after_onboarding == 1
    assert split.closed_initially == 3
    assert split.closed_initially + split.closed_after_qualifying == len(labels)


def test_classify_closure_is_case_insensitive():
    assert classify_closure("Disqualified — After Call") == "after_call"
    assert classify_closure("Left after Onboard") == "after_onboarding"
    assert classify_closure(None) == "initial"


def test_unrecognized_statuses_counted_but_not_aggregated():
    people = [make_person("a", status="Mystery"), make_person("b", status="Lead"), make_person("c")]
    assert count_statuses(people) == {"Mystery": 1, "Lead": 1}
    counts = summarize_funnel(people)
    assert counts.total_qualified == 1
    graph = build_flow_graph(people)
    assert edge_map(graph) == {(FlowStage.APPLICATIONS, FlowStage.QUALIFIED): 1}


def test_graph_serializes_to_nodes_and_links(scenario_people):
    data = build_flow_graph(scenario_people).to_dict()
    assert data["nodes"][0] == {"name": "Applications", "category": "active"}
    assert {"source": "Applications", "target": "Closed/Rejected", "value": 45} in data["links"]


def test_node_totals_use_larger_of_in_and_out(scenario_people):
    totals = build_flow_graph(scenario_people).node_totals()
    assert totals[FlowStage.APPLICATIONS] == 100
    assert totals[FlowStage.CLOSED_REJECTED] == 55
    assert totals[FlowStage.CALL_COMPLETED] == 25
    assert totals[FlowStage.PAUSED] == 0
