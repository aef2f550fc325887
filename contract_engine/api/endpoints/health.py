from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter
from starlette.responses import JSONResponse

from contract_engine.core.bytecode.host import KERNELS_DIR
from contract_engine.core.config import load_settings
from contract_engine.core.observability.metrics import inc_named

router = APIRouter()


@router.get("/health/live")
async def live():
    inc_named("health_live")
    return {"status": "ok"}


@router.get("/health/ready")
def ready():
    """
    Readiness reflects ability to serve traffic.
    The models directory is optional outside prod.
    """
    inc_named("health_ready")

    settings = load_settings()
    problems: list[str] = []

    if not any(KERNELS_DIR.glob("*.wat")):
        problems.append(f"missing_kernels:{KERNELS_DIR}")

    if settings.env == "prod" and not Path(settings.models_dir).is_dir():
        problems.append(f"missing_models_dir:{settings.models_dir}")

    if problems:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "problems": problems},
        )

    return {"status": "ready", "integrity_mode": settings.integrity_mode}
