from __future__ import annotations

from fastapi import Request

from contract_engine.core.engine.compute_engine import ComputeEngine
from contract_engine.core.engine.default import get_default_engine


def get_engine(request: Request) -> ComputeEngine:
    """The app's engine; tests swap it by assigning app.state.engine."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        engine = get_default_engine()
        request.app.state.engine = engine
    return engine
