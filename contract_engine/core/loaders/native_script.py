"""
native-script runtime: Python executed in the host process.

Inline code is the body of `async def compute(inputs, options)`. Compiling
it is unrestricted code execution in this process; it is not a security
boundary. Untrusted contracts need an out-of-process or capability-
restricted evaluator instead of this loader.
"""
from __future__ import annotations

import builtins
import logging
import textwrap
from typing import Any, Callable, Dict, Optional

from contract_engine.core.contracts.models import Contract, InlineCode, ModelSignature, RuntimeType
from contract_engine.core.errors import LoadError
from contract_engine.core.integrity.verification import MODE_ENFORCE, ensure_integrity
from contract_engine.core.loaders.module_import import (
    accepts_options,
    call_compute,
    compute_callable,
    exec_module_source,
)
from contract_engine.core.loaders.sources import SourceResolver

log = logging.getLogger("cengine.loaders")

_INLINE_TEMPLATE = "async def compute(inputs, options=None):\n    options = options or {{}}\n{body}\n"


def compile_inline(code: str, key: str) -> Callable[..., Any]:
    body = textwrap.indent(textwrap.dedent(code).strip("\n"), "    ")
    src = _INLINE_TEMPLATE.format(body=body)
    ns: Dict[str, Any] = {"__builtins__": builtins, "__name__": f"cengine_inline_{key}"}
    exec(compile(src, f"<contract {key}>", "exec"), ns)
    return ns["compute"]


class FunctionModel:
    """Model backed by a Python callable `compute(inputs[, options])`."""

    def __init__(self, fn: Callable[..., Any], signature: ModelSignature):
        self.fn = fn
        self.signature = signature
        self._with_options = accepts_options(fn)

    async def compute(self, data: Any, options: Optional[Dict[str, Any]] = None) -> Any:
        return await call_compute(self.fn, data, dict(options or {}), self._with_options)


class NativeScriptLoader:
    runtime_type = RuntimeType.NATIVE_SCRIPT.value

    def __init__(self, resolver: Optional[SourceResolver] = None, *, integrity_mode: str = MODE_ENFORCE):
        self.resolver = resolver or SourceResolver()
        self.integrity_mode = integrity_mode

    async def load(self, contract: Contract) -> FunctionModel:
        key = contract.key
        try:
            resolved = await self.resolver.resolve(contract.source)
            digest = ensure_integrity(key, resolved.data, contract.expected_hash, self.integrity_mode)
            signature = ModelSignature(type=self.runtime_type, version=contract.version, content_hash=digest)

            if isinstance(contract.source, InlineCode):
                log.warning("Compiling inline code for %s in-process (unsandboxed)", key)
                return FunctionModel(compile_inline(contract.source.code, key), signature)

            mod = exec_module_source(resolved.data, resolved.origin, key)
            fn = compute_callable(mod)
            if fn is None:
                raise LoadError(key, f"{resolved.origin} exposes neither MODEL nor a compute function")
            return FunctionModel(fn, signature)
        except LoadError:
            raise
        except Exception as e:
            raise LoadError(key, f"{type(e).__name__}: {e}") from e
