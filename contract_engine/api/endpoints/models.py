from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from contract_engine.api.deps import get_engine
from contract_engine.api.schemas.contracts import ComputeRequest, ModelsResponse
from contract_engine.core.engine.compute_engine import ComputeEngine
from contract_engine.core.observability.metrics import inc_named

router = APIRouter(prefix="/models", tags=["models"])


@router.get("", response_model=ModelsResponse)
def list_models(engine: ComputeEngine = Depends(get_engine)):
    return ModelsResponse(
        models=engine.list_models(),
        runtimes=engine.registered_runtimes(),
        loaded=engine.cached_keys(),
    )


@router.post("/{name}/compute")
async def compute(name: str, req: ComputeRequest, engine: ComputeEngine = Depends(get_engine)):
    if name not in engine.list_models():
        raise HTTPException(status_code=404, detail=f"Model {name} not found")
    inc_named("models_compute")
    return await engine.compute(name, req.data, req.options)
