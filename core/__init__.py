"""Core (UI-agnostic) funnel dashboard logic.

This package contains:
- Airtable record fetching (People, Funnel Events)
- funnel aggregation into a fixed-topology flow graph
- overview metrics and records-view filters (JSON-serializable payloads)
- the refresh cycle shared by the Streamlit app
- chart helpers (Altair -> Vega-Lite spec dict)
"""
