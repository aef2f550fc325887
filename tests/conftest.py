import os
from dataclasses import replace
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from contract_engine.api.main import app
from contract_engine.core.bytecode.host import KERNELS_DIR, BytecodeHost
from contract_engine.core.config import EngineSettings
from contract_engine.core.engine.compute_engine import ComputeEngine
from contract_engine.core.observability.metrics import reset_metrics


@pytest.fixture(scope="session", autouse=True)
def _force_test_env():
    # Make runtime behave deterministically in tests
    os.environ.setdefault("CENGINE_ENV", "dev")
    os.environ.setdefault("CENGINE_INTEGRITY_MODE", "enforce")


@pytest.fixture(autouse=True)
def _clean_metrics():
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture()
def settings(tmp_path: Path) -> EngineSettings:
    models = tmp_path / "hop-models"
    models.mkdir()
    return replace(EngineSettings(), models_dir=str(models), arena_pages=4, arena_max_pages=8)


@pytest.fixture()
def host() -> BytecodeHost:
    return BytecodeHost(initial_pages=4, max_pages=8)


@pytest.fixture()
def engine(settings):
    eng = ComputeEngine.with_default_loaders(settings)
    yield eng
    eng.close()


@pytest.fixture()
def client(engine):
    app.state.engine = engine
    try:
        yield TestClient(app)
    finally:
        app.state.engine = None


@pytest.fixture(scope="session")
def sum_kernel_path() -> Path:
    return KERNELS_DIR / "sum-statistics.wat"
