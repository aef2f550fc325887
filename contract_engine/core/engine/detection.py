from __future__ import annotations

import re
from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import BaseModel

from contract_engine.core.bytecode.host import is_wasm_binary
from contract_engine.core.contracts.models import RuntimeType, coerce_source
from contract_engine.core.errors import ContractValidationError

BYTECODE_SUFFIXES = (".wasm", ".wat")
SCRIPT_ENGINE_SUFFIXES = (".py",)

DATA_SCIENCE_LIBRARIES = ("numpy", "pandas", "scipy", "sklearn", "statsmodels", "matplotlib")

_DATA_SCIENCE_IMPORT = re.compile(
    r"^\s*(?:import|from)\s+(?:%s)\b" % "|".join(DATA_SCIENCE_LIBRARIES),
    re.MULTILINE,
)


def _by_suffix(location: str) -> str:
    # ignore query strings and fragments on urls
    path = (urlparse(location).path or location).lower()
    if path.endswith(BYTECODE_SUFFIXES):
        return RuntimeType.BYTECODE.value
    if path.endswith(SCRIPT_ENGINE_SUFFIXES):
        return RuntimeType.SCRIPT_ENGINE.value
    return RuntimeType.NATIVE_SCRIPT.value


def detect_model_type(source: Optional[Any]) -> str:
    """Infer the runtime type from a source. Pure; native-script when nothing else fits."""
    try:
        src = coerce_source(source)
    except ContractValidationError:
        # an unusable buffer counts as no source
        src = None
    if src is None:
        return RuntimeType.NATIVE_SCRIPT.value

    if isinstance(src, BaseModel):
        fields = src.model_dump()
    elif isinstance(src, dict):
        fields = src
    else:
        return RuntimeType.NATIVE_SCRIPT.value

    kind = fields.get("kind")
    if kind == "url":
        return _by_suffix(str(fields.get("url") or ""))
    if kind == "path":
        return _by_suffix(str(fields.get("path") or ""))
    if kind == "inline":
        if _DATA_SCIENCE_IMPORT.search(str(fields.get("code") or "")):
            return RuntimeType.SCRIPT_ENGINE.value
        return RuntimeType.NATIVE_SCRIPT.value
    data = fields.get("data") or b""
    if kind == "buffer" and isinstance(data, (bytes, bytearray, memoryview)) and is_wasm_binary(bytes(data)):
        return RuntimeType.BYTECODE.value
    return RuntimeType.NATIVE_SCRIPT.value
