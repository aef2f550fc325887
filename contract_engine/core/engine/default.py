from __future__ import annotations

from typing import Optional

from contract_engine.core.engine.compute_engine import ComputeEngine

_DEFAULT_ENGINE: Optional[ComputeEngine] = None


def get_default_engine() -> ComputeEngine:
    """Opt-in process-wide engine with the three built-in loaders; created on first use."""
    global _DEFAULT_ENGINE
    if _DEFAULT_ENGINE is None:
        _DEFAULT_ENGINE = ComputeEngine.with_default_loaders()
    return _DEFAULT_ENGINE


def reset_default_engine() -> None:
    global _DEFAULT_ENGINE
    engine, _DEFAULT_ENGINE = _DEFAULT_ENGINE, None
    if engine is not None:
        engine.close()
