from __future__ import annotations

from typing import Optional


class ContractEngineError(Exception):
    """Base class for every error raised by the engine."""


class ContractValidationError(ContractEngineError, ValueError):
    """Contract is missing identity or source information, or is malformed."""

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"invalid model contract: missing {field}")


class UnregisteredRuntimeError(ContractEngineError, LookupError):
    def __init__(self, runtime_type: str):
        self.runtime_type = runtime_type
        super().__init__(f"no loader registered for {runtime_type}")


class LoadError(ContractEngineError):
    """Resolution, compile or instantiate failure for one model key."""

    def __init__(self, key: str, cause: object):
        self.key = key
        self.cause = cause
        super().__init__(f"failed to load model `{key}`: {cause}")


class IntegrityError(LoadError):
    def __init__(self, key: str, expected: Optional[str], actual: str):
        self.expected = expected
        self.actual = actual
        if expected:
            cause = f"integrity check failed (expected sha256 {expected}, got {actual})"
        else:
            cause = f"integrity check failed (no expected hash declared, got {actual})"
        super().__init__(key, cause)


class ComputeError(ContractEngineError):
    """A model rejected its input by raising instead of returning an error field."""


class BytecodeError(ContractEngineError):
    pass


class ArgumentValidationError(BytecodeError, ValueError):
    pass


class MemoryCapacityError(BytecodeError):
    def __init__(self, required: int, capacity: int):
        self.required = required
        self.capacity = capacity
        super().__init__(
            f"not enough memory available for operation: need {required} bytes, arena holds {capacity}"
        )


class ExportNotFoundError(BytecodeError, LookupError):
    def __init__(self, module_name: str, export_name: str):
        self.module_name = module_name
        self.export_name = export_name
        super().__init__(f"function {export_name} not found in exports of module {module_name}")


class ScriptEngineError(ContractEngineError):
    pass
