from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, Field


class ContractRequest(BaseModel):
    # validated by the engine so malformed contracts surface as 400, not 422
    contract: Dict[str, Any]


class ExecuteRequest(ContractRequest):
    inputs: Any = None
    options: Dict[str, Any] = Field(default_factory=dict)


class DetectRequest(BaseModel):
    source: Any = None


class DetectResponse(BaseModel):
    runtimeType: str


class LoadResponse(BaseModel):
    key: str
    loaded: bool
    signature: Dict[str, Any]


class StatusResponse(BaseModel):
    key: str
    registered: bool
    loaded: bool
    state: str


class ComputeRequest(BaseModel):
    data: Any = None
    options: Dict[str, Any] = Field(default_factory=dict)


class ModelsResponse(BaseModel):
    models: List[str]
    runtimes: List[str]
    loaded: List[str]
