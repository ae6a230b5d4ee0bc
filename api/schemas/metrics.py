"""Pydantic schemas for the /metrics and /providers endpoints."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from api.schemas.job import MetricSelectionIn


class MetricInfo(BaseModel):
    id: str
    name: str
    description: str
    category: str
    version: str
    requires_input: bool
    input_label: Optional[str] = None
    input_placeholder: Optional[str] = None
    is_default: bool = False


class CategoryPlugin(BaseModel):
    id: str
    name: str


class MetricCategoryInfo(BaseModel):
    category: str
    count: int
    plugins: list[CategoryPlugin]


class MetricCategoriesResponse(BaseModel):
    categories: list[MetricCategoryInfo]
    total: int


class EvaluateRequest(BaseModel):
    """Ad-hoc evaluation of a text, outside any job."""

    text: str
    metrics: Optional[list[MetricSelectionIn]] = None
    disabled_metrics: list[str] = Field(default_factory=list)
    reference_text: Optional[str] = None


class MetricErrorOut(BaseModel):
    metric_id: str
    error: str


class EvaluateResponse(BaseModel):
    results: dict[str, Any]
    avg_score: float
    errors: list[MetricErrorOut] = Field(default_factory=list)
    processing_time_ms: float
    cache_hit: bool = False

    model_config = {"from_attributes": True}


class ProviderInfo(BaseModel):
    name: str
    models: list[str]
    supports_streaming: bool
    builtin: bool
