from __future__ import annotations

from fastapi import APIRouter, Depends

from contract_engine.api.deps import get_engine
from contract_engine.api.schemas.contracts import (
    ContractRequest,
    DetectRequest,
    DetectResponse,
    ExecuteRequest,
    LoadResponse,
    StatusResponse,
)
from contract_engine.core.contracts.models import parse_contract
from contract_engine.core.engine.compute_engine import ComputeEngine
from contract_engine.core.observability.metrics import inc_named

router = APIRouter(prefix="/contracts", tags=["contracts"])


@router.post("/execute")
async def execute(req: ExecuteRequest, engine: ComputeEngine = Depends(get_engine)):
    inc_named("contracts_execute")
    envelope = await engine.execute_contract(req.contract, req.inputs, req.options)
    return envelope.model_dump(by_alias=True)


@router.post("/load", response_model=LoadResponse)
async def load(req: ContractRequest, engine: ComputeEngine = Depends(get_engine)):
    inc_named("contracts_load")
    contract = parse_contract(req.contract)
    model = await engine.load_model_from_contract(contract)
    signature = getattr(model, "signature", None)
    return LoadResponse(
        key=contract.key,
        loaded=engine.check_loaded(contract),
        signature=signature.model_dump() if signature is not None else {},
    )


@router.post("/status", response_model=StatusResponse)
def status(req: ContractRequest, engine: ComputeEngine = Depends(get_engine)):
    contract = parse_contract(req.contract)
    return StatusResponse(
        key=contract.key,
        registered=engine.check_registered(contract),
        loaded=engine.check_loaded(contract),
        state=engine.model_state(contract).value,
    )


@router.post("/detect", response_model=DetectResponse)
def detect(req: DetectRequest, engine: ComputeEngine = Depends(get_engine)):
    return DetectResponse(runtimeType=engine.detect_model_type(req.source))
