from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: str
    type: Optional[str] = None


class FlowNodeModel(BaseModel):
    name: str
    category: str


class FlowLinkModel(BaseModel):
    source: str
    target: str
    value: int = Field(ge=0)


class FlowGraphResponse(BaseModel):
    nodes: List[FlowNodeModel]
    links: List[FlowLinkModel]
    charts: Dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str = "ok"
