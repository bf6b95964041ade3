from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterator, Optional

import numpy as np
import pandas as pd
from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.schemas import ErrorResponse, FlowGraphResponse, HealthResponse
from core.airtable import AirtableClient
from core.charts import flow_chart, to_vega_spec
from core.config import configure_logging, get_settings
from core.filters import filter_people, normalize_filters
from core.flow import build_flow_graph
from core.metrics_overview import compute_overview
from core.refresh import fetch_records

configure_logging()
app = FastAPI(title="Recruitment Funnel API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_client() -> Iterator[AirtableClient]:
    client = AirtableClient(get_settings())
    try:
        yield client
    finally:
        client.close()


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    body = ErrorResponse(error=str(exc) or "Unknown error", type=type(exc).__name__)
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    logger.warning("%s %s rejected: %s", request.method, request.url.path, details)
    body = ErrorResponse(error=f"Invalid request: {details}", type=type(exc).__name__)
    return JSONResponse(status_code=400, content=body.model_dump())


@app.get("/healthz")
def healthz():
    return HealthResponse().model_dump()


@app.get("/api/people")
def list_people(
    q: str = Query(default=""),
    status: Optional[str] = Query(default=None),
    client: AirtableClient = Depends(get_client),
):
    try:
        people = client.fetch_people()
        if q or status:
            people = filter_people(people, normalize_filters({"query": q, "status": status}))
        return _json([p.to_dict() for p in people])
    except Exception as exc:
        logger.exception("list_people failed")
        return _error(exc)


@app.get("/api/funnel-events")
def list_funnel_events(client: AirtableClient = Depends(get_client)):
    try:
        events = client.fetch_funnel_events()
        return _json([e.to_dict() for e in events])
    except Exception as exc:
        logger.exception("list_funnel_events failed")
        return _error(exc)


@app.patch("/api/people/{person_id}")
def update_person(
    person_id: str,
    fields: Dict[str, Any] = Body(...),
    client: AirtableClient = Depends(get_client),
):
    if not fields:
        return _error(ValueError("No fields to update"), status_code=400)
    try:
        person = client.update_fields(person_id, fields)
        return _json(person.to_dict())
    except Exception as exc:
        logger.exception("update_person failed")
        return _error(exc)


@app.get("/api/flow-graph")
def flow_graph(client: AirtableClient = Depends(get_client)):
    try:
        graph = build_flow_graph(client.fetch_people())
        payload = FlowGraphResponse(**graph.to_dict(), charts={"flow": to_vega_spec(flow_chart(graph))})
        return _json(payload.model_dump())
    except Exception as exc:
        logger.exception("flow_graph failed")
        return _error(exc)


@app.get("/api/overview")
def overview(client: AirtableClient = Depends(get_client)):
    try:
        people, events = fetch_records(client)
        graph = build_flow_graph(people)
        metrics = compute_overview(people, events, onboarded_goal=get_settings().ONBOARDED_GOAL)
        return _json({**metrics, "flow": graph.to_dict()})
    except Exception as exc:
        logger.exception("overview failed")
        return _error(exc)
