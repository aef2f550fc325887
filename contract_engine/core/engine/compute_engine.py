from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

import numpy as np

from contract_engine.core.bytecode.host import BytecodeHost
from contract_engine.core.config import EngineSettings, load_settings
from contract_engine.core.contracts.models import (
    Contract,
    ResultEnvelope,
    ResultMetadata,
    parse_contract,
    runtime_key,
)
from contract_engine.core.engine.detection import detect_model_type
from contract_engine.core.engine.state import ModelState
from contract_engine.core.errors import ComputeError, ContractEngineError, LoadError, UnregisteredRuntimeError
from contract_engine.core.loaders import build_default_loaders
from contract_engine.core.loaders.contracts import LoaderFn, LoaderLike
from contract_engine.core.models import MODEL_CATALOG
from contract_engine.core.models.base import Model, now_millis
from contract_engine.core.observability.metrics import record_cache_hit, record_compute, record_load
from contract_engine.core.script_engine.runtime import ScriptEngineRuntime

log = logging.getLogger("cengine.engine")

ContractLike = Union[Contract, Dict[str, Any]]


def input_count(inputs: Any) -> int:
    if isinstance(inputs, (list, tuple, np.ndarray)):
        return len(inputs)
    return 1


def _consume_exception(task: "asyncio.Task[Any]") -> None:
    # joiners may all have gone away; keep asyncio from reporting it as unretrieved
    if not task.cancelled():
        task.exception()


class ComputeEngine:
    """
    Contract -> loader -> model -> compute.

    Owns the loader table (runtime type -> loader) and the model cache
    ("id@version" -> model). A load in flight is stored as a pending task so
    concurrent callers for the same key share one loader invocation.
    """

    def __init__(
        self,
        loaders: Optional[Mapping[str, LoaderLike]] = None,
        *,
        catalog: Optional[Mapping[str, Any]] = None,
        host: Optional[BytecodeHost] = None,
    ):
        self._loaders: Dict[str, LoaderFn] = {}
        self._models: Dict[str, Model] = {}
        self._runtimes: Dict[str, str] = {}
        self._pending: Dict[str, "asyncio.Task[Model]"] = {}

        self._catalog: Dict[str, Any] = dict(MODEL_CATALOG if catalog is None else catalog)
        self._named: Dict[str, Model] = {}
        self._host = host
        self._owned_runtime: Optional[ScriptEngineRuntime] = None

        for runtime_type, loader in (loaders or {}).items():
            self.register_loader(runtime_type, loader)

    @classmethod
    def with_default_loaders(
        cls,
        settings: Optional[EngineSettings] = None,
        *,
        runtime: Optional[ScriptEngineRuntime] = None,
    ) -> "ComputeEngine":
        settings = settings or load_settings()
        host = BytecodeHost(initial_pages=settings.arena_pages, max_pages=settings.arena_max_pages)
        owned = runtime is None
        if owned:
            runtime = ScriptEngineRuntime(python=settings.script_python)
        engine = cls(build_default_loaders(settings, host=host, runtime=runtime), host=host)
        if owned:
            engine._owned_runtime = runtime
        return engine

    def close(self) -> None:
        """Stop the script engine interpreter if this engine started it."""
        if self._owned_runtime is not None:
            self._owned_runtime.close()
            self._owned_runtime = None

    # ------------------------------------------------------------------
    # loader table
    # ------------------------------------------------------------------
    def register_loader(self, runtime_type: Any, loader: LoaderLike) -> None:
        key = runtime_key(runtime_type)
        if not key:
            raise ValueError("runtime type must be a non-empty string")
        load = getattr(loader, "load", None)
        fn = load if callable(load) else loader
        if not callable(fn):
            raise TypeError(f"loader for {key} must be callable or expose load(contract)")
        if key in self._loaders:
            log.info("Replacing loader for runtime type %s", key)
        self._loaders[key] = fn

    def registered_runtimes(self) -> List[str]:
        return sorted(self._loaders)

    # ------------------------------------------------------------------
    # contracts
    # ------------------------------------------------------------------
    @staticmethod
    def detect_model_type(source: Any) -> str:
        return detect_model_type(source)

    def resolve_runtime_type(self, contract: Contract) -> str:
        return contract.runtime_type or detect_model_type(contract.source)

    def check_registered(self, contract: ContractLike) -> bool:
        return self.resolve_runtime_type(parse_contract(contract)) in self._loaders

    def check_loaded(self, contract: ContractLike) -> bool:
        return parse_contract(contract).key in self._models

    def model_state(self, contract: ContractLike) -> ModelState:
        contract = parse_contract(contract)
        if contract.key in self._models:
            return ModelState.LOADED
        if self.resolve_runtime_type(contract) in self._loaders:
            return ModelState.REGISTERED
        return ModelState.UNREGISTERED

    def cached_keys(self) -> List[str]:
        return sorted(self._models)

    async def load_model_from_contract(self, contract: ContractLike) -> Model:
        contract = parse_contract(contract)
        key = contract.key

        model = self._models.get(key)
        if model is not None:
            record_cache_hit()
            return model

        task = self._pending.get(key)
        if task is None:
            runtime = self.resolve_runtime_type(contract)
            loader = self._loaders.get(runtime)
            if loader is None:
                record_load(runtime, "unregistered")
                raise UnregisteredRuntimeError(runtime)

            task = asyncio.get_running_loop().create_task(self._load(key, runtime, loader, contract))
            task.add_done_callback(_consume_exception)
            self._pending[key] = task
        else:
            log.debug("Joining in-flight load for %s", key)

        # one caller's cancellation must not cancel the shared load
        return await asyncio.shield(task)

    async def _load(self, key: str, runtime: str, loader: LoaderFn, contract: Contract) -> Model:
        try:
            try:
                model = await loader(contract)
            except LoadError:
                raise
            except Exception as e:
                raise LoadError(key, e) from e

            if model is None or not callable(getattr(model, "compute", None)):
                raise LoadError(key, f"loader for {runtime} returned an object without compute()")

            self._models[key] = model
            self._runtimes[key] = runtime
        except LoadError as e:
            record_load(runtime, "failed")
            log.warning("Model load failed key=%s runtime=%s: %s", key, runtime, e)
            raise
        finally:
            self._pending.pop(key, None)

        record_load(runtime, "ok")
        log.info("Model loaded key=%s runtime=%s", key, runtime)
        return model

    async def execute_contract(
        self,
        contract: ContractLike,
        inputs: Any = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> ResultEnvelope:
        contract = parse_contract(contract)
        model = await self.load_model_from_contract(contract)
        runtime = self._runtimes.get(contract.key) or self.resolve_runtime_type(contract)
        options = dict(options or {})

        started = now_millis()
        try:
            result = await model.compute(inputs, options)
        except ContractEngineError:
            record_compute(runtime, "failed")
            raise
        except Exception as e:
            record_compute(runtime, "failed")
            raise ComputeError(f"model `{contract.key}` failed to compute: {type(e).__name__}: {e}") from e

        envelope = ResultEnvelope(
            result=result,
            metadata=ResultMetadata(
                count=input_count(inputs),
                timestamp_millis=started,
                model_id=contract.id,
                version=contract.version,
                runtime_type=runtime,
                options=options,
            ),
        )
        record_compute(runtime, "error" if envelope.error else "ok")
        return envelope

    def clear_cache(self, key: Optional[str] = None) -> int:
        """Evict one key (or everything); evicted keys go back to REGISTERED."""
        keys = list(self._models) if key is None else [key]
        removed = 0
        for k in keys:
            if k in self._models:
                del self._models[k]
                self._runtimes.pop(k, None)
                removed += 1
        if removed:
            log.info("Evicted %d cached model(s)", removed)
        return removed

    # ------------------------------------------------------------------
    # built-in catalog
    # ------------------------------------------------------------------
    def list_models(self) -> List[str]:
        return sorted(self._catalog)

    def register_model(self, name: str, model: Any) -> None:
        self._catalog[name] = model
        self._named.pop(name, None)

    async def load_model(self, name: str) -> Model:
        model = self._named.get(name)
        if model is not None:
            return model
        entry = self._catalog.get(name)
        if entry is None:
            raise LoadError(name, f"model {name} not found")
        model = entry(host=self._host) if isinstance(entry, type) else entry
        self._named[name] = model
        return model

    async def compute(self, name: str, data: Any, options: Optional[Dict[str, Any]] = None) -> Any:
        model = await self.load_model(name)
        return await model.compute(data, dict(options or {}))
