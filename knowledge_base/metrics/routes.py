from fastapi import APIRouter, Query, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from .controllers import get_ui_metrics

router = APIRouter()


@router.get("/metrics")
def metrics():
	return Response(generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)


@router.get("/ui-metrics")
def ui_metrics(
	stage: list[str] | None = Query(None, description="Only these latency stages"),
):
	"""Counters per component plus latency stats per pipeline stage."""
	return get_ui_metrics(stages=stage)
