from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from contract_engine.core.contracts.models import Contract, ModelSignature, RuntimeType
from contract_engine.core.errors import LoadError, ScriptEngineError
from contract_engine.core.integrity.verification import MODE_ENFORCE, ensure_integrity
from contract_engine.core.loaders.sources import SourceResolver
from contract_engine.core.script_engine.runtime import ScriptEngineRuntime, default_runtime

log = logging.getLogger("cengine.loaders")

COMPUTE_SYMBOL = "compute"


class ScriptEngineModel:
    """Model living in the script engine interpreter; inputs and results cross as JSON."""

    def __init__(self, runtime: ScriptEngineRuntime, namespace: str, signature: ModelSignature):
        self.runtime = runtime
        self.namespace = namespace
        self.signature = signature

    async def compute(self, data: Any, options: Optional[Dict[str, Any]] = None) -> Any:
        return await self.runtime.call(self.namespace, COMPUTE_SYMBOL, data, dict(options or {}))


class ScriptEngineLoader:
    runtime_type = RuntimeType.SCRIPT_ENGINE.value

    def __init__(
        self,
        runtime: Optional[ScriptEngineRuntime] = None,
        resolver: Optional[SourceResolver] = None,
        *,
        integrity_mode: str = MODE_ENFORCE,
    ):
        self._runtime = runtime
        self.resolver = resolver or SourceResolver()
        self.integrity_mode = integrity_mode

    @property
    def runtime(self) -> ScriptEngineRuntime:
        if self._runtime is None:
            self._runtime = default_runtime()
        return self._runtime

    async def load(self, contract: Contract) -> ScriptEngineModel:
        key = contract.key
        try:
            resolved = await self.resolver.resolve(contract.source)
            digest = ensure_integrity(key, resolved.data, contract.expected_hash, self.integrity_mode)
            code = resolved.data.decode("utf-8")

            runtime = self.runtime
            await runtime.start()
            missing = await runtime.missing_imports(code)
            if missing:
                raise LoadError(key, f"script engine is missing packages: {', '.join(missing)}")

            # a reload after cache eviction starts from an empty namespace
            await runtime.drop(key)
            try:
                await runtime.run_code(key, code, filename=resolved.origin)
            except ScriptEngineError:
                await runtime.drop(key)
                raise
            if not await runtime.has_symbol(key, COMPUTE_SYMBOL):
                await runtime.drop(key)
                raise LoadError(key, f"script defines no {COMPUTE_SYMBOL} function")

            log.info("Loaded script engine model %s from %s", key, resolved.origin)
            signature = ModelSignature(type=self.runtime_type, version=contract.version, content_hash=digest)
            return ScriptEngineModel(runtime, key, signature)
        except LoadError:
            raise
        except Exception as e:
            raise LoadError(key, f"{type(e).__name__}: {e}") from e
