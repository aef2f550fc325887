from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from contract_engine.api.endpoints import health
from contract_engine.api.endpoints import metrics as metrics_ep
from contract_engine.api.endpoints.contracts import router as contracts_router
from contract_engine.api.endpoints.models import router as models_router
from contract_engine.api.middleware.error_shaping import SafeErrorMiddleware, engine_error_handler
from contract_engine.api.middleware.request_context import RequestContextMiddleware
from contract_engine.core.engine.default import reset_default_engine
from contract_engine.core.errors import ContractEngineError

from fastapi.middleware.cors import CORSMiddleware

logging.basicConfig(level=(os.getenv("CENGINE_LOG_LEVEL") or "INFO").strip().upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # stops the script engine interpreter if the default engine started one
    reset_default_engine()


app = FastAPI(
    title="Contract Compute Engine API",
    version="0.1.0",
    lifespan=lifespan,
)

# ------------------------------------------------------------
# Middleware stack (ORDER MATTERS)
# Starlette reverses add_middleware order: the LAST call is the OUTERMOST wrapper.
# Runtime order (outermost -> innermost):
#   SafeErrorMiddleware -> CORSMiddleware -> RequestContext -> handler
# ------------------------------------------------------------

app.add_middleware(RequestContextMiddleware)

_cors_origins_raw = os.getenv("CENGINE_CORS_ORIGINS", "").strip()
_cors_origins = [o.strip() for o in _cors_origins_raw.split(",") if o.strip()] if _cors_origins_raw else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(SafeErrorMiddleware)

app.add_exception_handler(ContractEngineError, engine_error_handler)


# ------------------------------------------------------------
# Unversioned probes
# ------------------------------------------------------------
app.include_router(health.router)
app.include_router(metrics_ep.router)

# ------------------------------------------------------------
# Versioned API
# ------------------------------------------------------------
app.include_router(contracts_router, prefix="/api/v1")
app.include_router(models_router, prefix="/api/v1")
