"""
Metric plugin endpoints.

GET  /metrics/          → plugin catalogue, defaults flagged
GET  /metrics/categories → plugins grouped by category
GET  /metrics/{id}      → one plugin
POST /metrics/evaluate  → score a text without creating a job
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_evaluator, get_metric_registry
from api.schemas.metrics import (
    CategoryPlugin,
    EvaluateRequest,
    EvaluateResponse,
    MetricCategoriesResponse,
    MetricCategoryInfo,
    MetricErrorOut,
    MetricInfo,
)
from metrics.base import MetricPlugin
from metrics.evaluator import MetricsEvaluator, MetricsUnavailableError, parse_selections
from metrics.registry import MetricRegistry
from metrics.scoring import calculate_average_score
from models.enums import MetricCategory

router = APIRouter(prefix="/metrics", tags=["metrics"])


def _info(plugin: MetricPlugin, registry: MetricRegistry) -> MetricInfo:
    return MetricInfo(**plugin.describe(), is_default=registry.is_default(plugin.id))


@router.get("/", response_model=list[MetricInfo])
async def list_metrics(
    category: Optional[MetricCategory] = Query(None, description="Only plugins in this category"),
    registry: MetricRegistry = Depends(get_metric_registry),
) -> list[MetricInfo]:
    plugins = registry.get_by_category(category) if category else registry.get_all()
    return [_info(p, registry) for p in plugins]


@router.get("/categories", response_model=MetricCategoriesResponse)
async def list_categories(
    registry: MetricRegistry = Depends(get_metric_registry),
) -> MetricCategoriesResponse:
    categories = [
        MetricCategoryInfo(
            category=category.value,
            count=len(plugins),
            plugins=[CategoryPlugin(id=p.id, name=p.name) for p in plugins],
        )
        for category, plugins in registry.categories().items()
    ]
    return MetricCategoriesResponse(categories=categories, total=len(categories))


@router.get("/{metric_id}", response_model=MetricInfo)
async def get_metric(
    metric_id: str,
    registry: MetricRegistry = Depends(get_metric_registry),
) -> MetricInfo:
    plugin = registry.get(metric_id)
    if plugin is None:
        raise HTTPException(status_code=404, detail=f"Metric {metric_id} not found")
    return _info(plugin, registry)


@router.post("/evaluate", response_model=EvaluateResponse)
async def evaluate_text(
    request: EvaluateRequest,
    evaluator: MetricsEvaluator = Depends(get_evaluator),
) -> EvaluateResponse:
    selections = None
    if request.metrics is not None:
        selections = parse_selections(m.model_dump() for m in request.metrics)
    try:
        result = await evaluator.evaluate(
            request.text,
            selections=selections,
            disabled=request.disabled_metrics,
            reference_text=request.reference_text,
        )
    except MetricsUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return EvaluateResponse(
        results=result.results,
        avg_score=calculate_average_score(result.results),
        errors=[MetricErrorOut(metric_id=e.metric_id, error=e.error) for e in result.errors],
        processing_time_ms=result.processing_time_ms,
        cache_hit=result.cache_hit,
    )
