from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from contract_engine.core.observability.metrics import snapshot_named

router = APIRouter()


@router.get("/metrics/snapshot")
def metrics_snapshot():
    return snapshot_named()


@router.get("/metrics")
def metrics_prometheus():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
