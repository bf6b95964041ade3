from __future__ import annotations

from typing import Any, Dict, List, Tuple

import altair as alt
import pandas as pd

from core.flow import STAGE_STYLES, FlowGraph, FlowStage

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def stage_positions() -> Dict[FlowStage, Dict[str, float]]:
    """Column = stage depth; rows stack in declaration order within a column."""
    rows: Dict[int, int] = {}
    positions: Dict[FlowStage, Dict[str, float]] = {}
    for stage in FlowStage:
        depth = STAGE_STYLES[stage].depth
        row = rows.get(depth, 0)
        rows[depth] = row + 1
        positions[stage] = {"x": float(depth), "y": float(row)}
    return positions


def flow_frames(graph: FlowGraph) -> Tuple[pd.DataFrame, pd.DataFrame]:
    positions = stage_positions()
    totals = graph.node_totals()
    node_rows: List[Dict[str, Any]] = []
    for node in graph.nodes:
        pos = positions[node.name]
        node_rows.append(
            {
                "stage": node.name.value,
                "category": node.category.value,
                "total": int(totals.get(node.name, 0)),
                "label": f"{node.name.value} ({int(totals.get(node.name, 0))})",
                "x": pos["x"],
                "y": pos["y"],
            }
        )
    link_rows = [
        {
            "source": e.source.value,
            "target": e.target.value,
            "value": int(e.value),
            "x": positions[e.source]["x"],
            "y": positions[e.source]["y"],
            "x2": positions[e.target]["x"],
            "y2": positions[e.target]["y"],
        }
        for e in graph.edges
    ]
    nodes = pd.DataFrame(node_rows, columns=["stage", "category", "total", "label", "x", "y"])
    links = pd.DataFrame(link_rows, columns=["source", "target", "value", "x", "y", "x2", "y2"])
    return nodes, links


def flow_chart(graph: FlowGraph, *, height: int = 420) -> alt.LayerChart:
    nodes, links = flow_frames(graph)
    stage_scale = alt.Scale(domain=[s.value for s in FlowStage], range=[STAGE_STYLES[s].color for s in FlowStage])
    color = alt.Color("stage:N", scale=stage_scale, legend=None)
    x = alt.X("x:Q", axis=None, scale=alt.Scale(padding=40))
    y = alt.Y("y:Q", axis=None, scale=alt.Scale(reverse=True, padding=30))

    link_layer = (
        alt.Chart(links)
        .mark_rule(opacity=0.25, strokeCap="round")
        .encode(
            x=x,
            y=y,
            x2="x2:Q",
            y2="y2:Q",
            strokeWidth=alt.StrokeWidth("value:Q", scale=alt.Scale(range=[1, 28]), legend=None),
            color=alt.Color("target:N", scale=stage_scale, legend=None),
            tooltip=[alt.Tooltip("source:N", title="From"), alt.Tooltip("target:N", title="To"), alt.Tooltip("value:Q", title="People")],
        )
    )
    node_layer = (
        alt.Chart(nodes)
        .mark_circle(opacity=1)
        .encode(
            x=x,
            y=y,
            size=alt.Size("total:Q", scale=alt.Scale(range=[40, 900]), legend=None),
            color=color,
            tooltip=[alt.Tooltip("stage:N", title="Stage"), alt.Tooltip("category:N"), alt.Tooltip("total:Q", title="People")],
        )
    )
    label_layer = alt.Chart(nodes).mark_text(align="left", dx=14, fontSize=12).encode(x=x, y=y, text="label:N")
    return alt.layer(link_layer, node_layer, label_layer).properties(height=height)
