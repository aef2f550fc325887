from __future__ import annotations

import hashlib
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from contract_engine.core.bytecode.host import BytecodeHost, default_host
from contract_engine.core.contracts.models import ModelSignature

# options flag selecting the bytecode path of dual-path models
ACCELERATED_OPTION = "use_bytecode"
# spelling used by callers of the earlier WebAssembly-only API
ACCELERATED_OPTION_ALIASES = (ACCELERATED_OPTION, "useWasm")


@runtime_checkable
class Model(Protocol):
    """
    Minimal stable contract for a loaded model.
    Every loader returns an object implementing this protocol.
    """
    signature: ModelSignature

    async def compute(self, data: Any, options: Optional[Dict[str, Any]] = None) -> Any:
        ...


def now_millis() -> int:
    return int(time.time() * 1000)


def item_value(item: Any) -> Any:
    """Plain numbers pass through; records contribute their `value`."""
    if isinstance(item, dict):
        return item.get("value")
    return item


class KernelModel(ABC):
    """
    Built-in numeric kernel with a normal path and an optional bytecode path.

    Bad input is reported as {"error": ...} rather than raised.
    """

    type_name = "base"
    version = "1.0.0"

    def __init__(self, host: Optional[BytecodeHost] = None):
        self._host = host
        self.signature = ModelSignature(type=self.type_name, version=self.version, content_hash=self.generate_hash())

    def generate_hash(self) -> str:
        data = f"{self.type_name}:{self.version}"
        return hashlib.sha256(data.encode("utf-8")).hexdigest()

    async def verify(self) -> bool:
        return self.signature.content_hash == self.generate_hash()

    @property
    def host(self) -> BytecodeHost:
        if self._host is None:
            self._host = default_host()
        return self._host

    async def compute(self, data: Any, options: Optional[Dict[str, Any]] = None) -> Any:
        options = dict(options or {})
        if any(options.get(flag) for flag in ACCELERATED_OPTION_ALIASES):
            return await self.compute_accelerated(data, options)
        return await self.compute_normal(data, options)

    @abstractmethod
    async def compute_normal(self, data: Any, options: Dict[str, Any]) -> Any:
        ...

    async def compute_accelerated(self, data: Any, options: Dict[str, Any]) -> Any:
        return {"error": f"{self.type_name} has no bytecode path"}

    def _envelope(self, result: Any, data: List[Any], options: Dict[str, Any], **extra: Any) -> Dict[str, Any]:
        return {
            "result": result,
            "metadata": {
                "count": len(data),
                "timestamp": now_millis(),
                "options": options,
                **extra,
            },
        }
