from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from contract_engine.core.bytecode.host import BytecodeHost, default_host
from contract_engine.core.contracts.models import DEFAULT_EXPORT_NAME, Contract, ModelSignature, RuntimeType
from contract_engine.core.errors import LoadError
from contract_engine.core.integrity.verification import MODE_ENFORCE, ensure_integrity
from contract_engine.core.loaders.sources import SourceResolver
from contract_engine.core.models.base import item_value

log = logging.getLogger("cengine.loaders")


class BytecodeModel:
    """Calls one export with the (offset, length) convention; arrays go through the host arena."""

    def __init__(self, host: BytecodeHost, module_name: str, export_name: str, signature: ModelSignature):
        self.host = host
        self.module_name = module_name
        self.export_name = export_name
        self.signature = signature

    async def compute(self, data: Any, options: Optional[Dict[str, Any]] = None) -> Any:
        if data is None:
            return await self.host.call_function(self.module_name, self.export_name)
        if isinstance(data, (list, tuple)):
            data = [item_value(item) for item in data]
        # scalars pass through unchanged
        return await self.host.call_function(self.module_name, self.export_name, data)


class BytecodeLoader:
    runtime_type = RuntimeType.BYTECODE.value

    def __init__(
        self,
        host: Optional[BytecodeHost] = None,
        resolver: Optional[SourceResolver] = None,
        *,
        integrity_mode: str = MODE_ENFORCE,
    ):
        self._host = host
        self.resolver = resolver or SourceResolver()
        self.integrity_mode = integrity_mode

    @property
    def host(self) -> BytecodeHost:
        if self._host is None:
            self._host = default_host()
        return self._host

    async def load(self, contract: Contract) -> BytecodeModel:
        key = contract.key
        export_name = contract.export_name or DEFAULT_EXPORT_NAME
        try:
            resolved = await self.resolver.resolve(contract.source)
            digest = ensure_integrity(key, resolved.data, contract.expected_hash, self.integrity_mode)

            # content-addressed: a reloaded key with new bytes gets a new instance
            module_name = f"{key}#{digest[:16]}"
            if not self.host.has_module(module_name):
                self.host.register_module(module_name, resolved.data)
            exports = await self.host.instantiate(module_name)
            if export_name not in exports:
                raise LoadError(key, f"bytecode module does not export '{export_name}' (exports: {', '.join(exports) or 'none'})")

            log.info("Loaded bytecode model %s (module %s, export %s)", key, module_name, export_name)
            signature = ModelSignature(type=self.runtime_type, version=contract.version, content_hash=digest)
            return BytecodeModel(self.host, module_name, export_name, signature)
        except LoadError:
            raise
        except Exception as e:
            raise LoadError(key, f"{type(e).__name__}: {e}") from e
