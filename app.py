import pandas as pd
import streamlit as st
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from core.airtable import AirtableClient
from core.charts import flow_chart
from core.config import configure_logging, get_settings
from core.filters import TableFilters, filter_people, people_frame, status_options
from core.records import STATUS_DESCRIPTIONS, STATUS_FIELD, FunnelStatus
from core.refresh import DashboardView, PeriodicRefresher, RefreshState

# Dashboard re-reads the shared snapshot this often; Airtable is polled on its own interval.
RENDER_INTERVAL_SECONDS = 5


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #d1d5db;margin-bottom: 10px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 600;color: #1f2937;font-family: Georgia, serif;}
        .app-top-bar .live {color: #6b7280;font-size: 0.8rem;font-style: italic;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-size: 0.75rem;letter-spacing: 0.08em;text-transform: uppercase;color: #6b7280;margin-bottom: 8px;}
        .goal {font-size: 2rem;font-family: Georgia, serif;color: #1f2937;}
        .goal span {font-size: 1.25rem;color: #9ca3af;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def render_page_header(title: str, view: DashboardView):
    inject_base_styles()
    c1, c2 = st.columns([8, 2])
    updated = view.last_updated
    live = f"Live as of {updated.astimezone():%b %d, %I:%M %p}" if updated else "Waiting for first load"
    c1.markdown(
        f"<div class='app-top-bar'><div class='page-title'>{title}</div><div class='live'>{live}</div></div>",
        unsafe_allow_html=True,
    )
    if c2.button("Refresh"):
        view.refresh()


# ---------- shared resources ----------
@st.cache_resource
def get_airtable_client() -> AirtableClient:
    return AirtableClient(get_settings())


@st.cache_resource
def get_refresher() -> PeriodicRefresher:
    """One poller per server process; every browser session reads its snapshot."""
    settings = get_settings()
    view = DashboardView(get_airtable_client(), onboarded_goal=settings.ONBOARDED_GOAL)
    return PeriodicRefresher(view, settings.REFRESH_INTERVAL_SECONDS).start()


def render_unavailable(view: DashboardView) -> bool:
    """Show the loading / error panel; return True when there is nothing else to draw."""
    if view.state == RefreshState.ERROR:
        st.error(f"Connection Error: {view.error}")
        st.caption("The dashboard requires live Airtable data to function.")
        return True
    if view.snapshot is None:
        st.info("Loading data from Airtable...")
        return True
    return False


# ---------- Dashboard page ----------
def render_attrition(overview: Dict[str, Any]):
    a = overview["attrition"]
    st.markdown(f"**{a['rejected_pct']}%** of applications rejected ({a['rejected']})")
    st.markdown(f"**{a['qualified_dropped_pct']}%** of qualified dropped after qualifying ({a['qualified_dropped']})")
    st.markdown(f"**{a['unassessed']}** unassessed *(pending)*")


def render_weekly(overview: Dict[str, Any]):
    w = overview["weekly"]
    cols = st.columns(4)
    cols[0].metric("Applications this week", w["applications"])
    cols[1].metric("Qualified this week", w["qualified"])
    cols[2].metric("Onboarded this week", w["onboarded"])
    cols[3].metric("Days left (to Fri)", w["days_remaining"])


def render_closures(overview: Dict[str, Any]):
    closures: List[Dict[str, Any]] = overview["closures"]
    if not closures:
        st.caption("No closed applications.")
        return
    df = pd.DataFrame(closures).rename(columns={"close_class": "Closure reason", "count": "Count", "pct": "% of closed"})
    st.dataframe(df, hide_index=True, use_container_width=True)


@st.fragment(run_every=RENDER_INTERVAL_SECONDS)
def render_dashboard_page():
    view = get_refresher().view
    render_page_header("Developer Pipeline", view)
    if render_unavailable(view):
        return

    snap = view.snapshot
    overview = snap.overview
    st.markdown(
        f"<div class='goal'>{overview['onboarded']}<span>/{overview['onboarded_goal']}</span></div>"
        "<div class='live'>onboarded to date</div>",
        unsafe_allow_html=True,
    )
    st.altair_chart(flow_chart(snap.graph), use_container_width=True)

    left, right = st.columns(2)
    with left:
        with card("Attrition"):
            render_attrition(overview)
    with right:
        with card("Recent Activity"):
            st.markdown(f"Last application: *{overview['recency']['last_application']}*")
            st.markdown(f"Last onboarded: *{overview['recency']['last_onboarded']}*")
    with card("This Week"):
        render_weekly(overview)
    with card(f"Closure Reasons ({overview['closed_total']} total)"):
        render_closures(overview)


# ---------- Records page ----------
def render_status_editor(people_df: pd.DataFrame, view: DashboardView):
    with st.expander("Update status", expanded=False):
        if people_df.empty:
            st.caption("No records to edit.")
            return
        labels = {
            row.id: f"{row.Name if pd.notna(row.Name) else row.id} ({row.Status})"
            for row in people_df.itertuples(index=False)
        }
        person_id = st.selectbox("Person", options=list(labels), format_func=lambda pid: labels[pid])
        new_status = st.selectbox("New status", options=[s.value for s in FunnelStatus])
        if st.button("Save"):
            try:
                get_airtable_client().update_field(person_id, STATUS_FIELD, new_status)
            except Exception as exc:
                st.error(f"Update failed: {exc}")
                return
            st.success(f"Status set to {new_status}.")
            view.refresh()


def render_records_page():
    view = get_refresher().view
    render_page_header("All Records", view)
    if render_unavailable(view):
        return

    people = view.snapshot.people
    c1, c2 = st.columns([3, 1])
    query = c1.text_input("Search by name or email...", "")
    status = c2.selectbox("Status", options=status_options(people))
    filtered = filter_people(people, TableFilters(query=query.strip(), status=status))

    table = people_frame(filtered)
    st.dataframe(
        table.drop(columns=["id"]),
        hide_index=True,
        use_container_width=True,
        column_config={
            "Status": st.column_config.TextColumn(
                "Status", help=" | ".join(f"{s.value}: {d}" for s, d in STATUS_DESCRIPTIONS.items())
            )
        },
    )
    st.caption(f"Showing {len(filtered)} of {len(people)} records")
    render_status_editor(table, view)


# ---------- UI setup ----------
configure_logging()
st.set_page_config(page_title="Developer Pipeline", layout="wide")
inject_base_styles()

with st.sidebar:
    st.markdown("### Navigate")
    nav_choice: Optional[str] = st.radio("Navigate", ["Dashboard", "All Records"], index=0)

if nav_choice == "All Records":
    render_records_page()
else:
    render_dashboard_page()
