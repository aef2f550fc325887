from __future__ import annotations

import re
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from contract_engine.core.errors import ContractValidationError


DEFAULT_VERSION = "latest"
DEFAULT_EXPORT_NAME = "compute"

_HEX_CHARS = re.compile(r"[0-9a-f]*")


class RuntimeType(str, Enum):
    NATIVE_SCRIPT = "native-script"
    BYTECODE = "bytecode"
    SCRIPT_ENGINE = "script-engine"


def runtime_key(runtime_type: Union[str, RuntimeType]) -> str:
    """Loader-table key for a runtime type (enum members hash by name, not value)."""
    if isinstance(runtime_type, Enum):
        return str(runtime_type.value)
    return str(runtime_type).strip()


class InlineCode(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["inline"] = "inline"
    code: str


class LocalPath(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["path"] = "path"
    path: str


class RemoteUrl(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["url"] = "url"
    url: str


class Buffer(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["buffer"] = "buffer"
    data: bytes


Source = Annotated[Union[InlineCode, LocalPath, RemoteUrl, Buffer], Field(discriminator="kind")]

_SOURCE_TYPES = (InlineCode, LocalPath, RemoteUrl, Buffer)


def coerce_source(raw: Any) -> Any:
    """
    Map the untagged source shapes onto the tagged variants.

    {"url": ...} wins over {"code": ...}, which wins over {"path": ...}.
    Returns None when no usable source is present.
    """
    if raw is None or isinstance(raw, _SOURCE_TYPES):
        return raw
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return Buffer(data=bytes(raw))
    if not isinstance(raw, dict):
        return raw
    if "kind" in raw:
        return raw

    if raw.get("url"):
        return {"kind": "url", "url": raw["url"]}
    code = raw.get("code")
    if isinstance(code, str) and code.strip():
        return {"kind": "inline", "code": code}
    if raw.get("path"):
        return {"kind": "path", "path": str(raw["path"])}
    buf = raw.get("buffer", raw.get("data"))
    if isinstance(buf, str):
        buf = buf.encode("utf-8")
    if buf and isinstance(buf, (bytes, bytearray, memoryview, list)):
        try:
            data = bytes(buf)
        except (TypeError, ValueError) as e:
            raise ContractValidationError("source", f"invalid model contract: source: buffer must hold bytes 0-255 ({e})") from e
        return {"kind": "buffer", "data": data}
    return None


class Contract(BaseModel):
    """Declarative description of one model: identity, runtime, source, integrity hash."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1)
    version: str = DEFAULT_VERSION
    runtime_type: Optional[str] = Field(default=None, alias="runtimeType")
    source: Source
    expected_hash: Optional[str] = Field(default=None, alias="expectedHash")
    export_name: Optional[str] = Field(default=None, alias="exportName")

    @field_validator("version", mode="before")
    @classmethod
    def _default_version(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_VERSION
        return v

    @field_validator("runtime_type", mode="before")
    @classmethod
    def _runtime_value(cls, v: Any) -> Any:
        if v is None:
            return None
        key = runtime_key(v)
        return key or None

    @field_validator("source", mode="before")
    @classmethod
    def _coerce_source(cls, v: Any) -> Any:
        return coerce_source(v)

    @field_validator("expected_hash")
    @classmethod
    def _hex_digest(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        digest = v.strip().lower()
        if digest.startswith("sha256:"):
            digest = digest[len("sha256:"):]
        if not _HEX_CHARS.fullmatch(digest):
            raise ValueError("expected a hex sha256 digest")
        return v

    @property
    def key(self) -> str:
        return f"{self.id}@{self.version}"


_ALIASES = {
    "runtimeType": "runtime_type",
    "expectedHash": "expected_hash",
    "exportName": "export_name",
}


def parse_contract(obj: Any) -> Contract:
    """Build a Contract from a dict (or pass one through), raising ContractValidationError."""
    if isinstance(obj, Contract):
        return obj
    if not isinstance(obj, dict):
        raise ContractValidationError("contract", f"invalid model contract: expected a mapping, got {type(obj).__name__}")

    if not obj.get("id"):
        raise ContractValidationError("id")
    if coerce_source(obj.get("source")) is None:
        raise ContractValidationError("source")

    try:
        return Contract.model_validate(obj)
    except ValidationError as e:
        err = e.errors()[0]
        loc = err.get("loc") or ("contract",)
        field = _ALIASES.get(str(loc[0]), str(loc[0]))
        raise ContractValidationError(field, f"invalid model contract: {field}: {err.get('msg')}") from e


class ModelSignature(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    version: str
    content_hash: str = ""


class ResultMetadata(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, protected_namespaces=())

    count: int
    timestamp_millis: int = Field(alias="timestampMillis")
    model_id: str = Field(alias="modelId")
    version: str
    runtime_type: str = Field(alias="runtimeType")
    options: Dict[str, Any] = Field(default_factory=dict)


class ResultEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    result: Any = None
    metadata: ResultMetadata

    @property
    def error(self) -> Optional[str]:
        """Structured error reported by the model in its result, if any."""
        if isinstance(self.result, dict) and self.result.get("error"):
            return str(self.result["error"])
        return None
