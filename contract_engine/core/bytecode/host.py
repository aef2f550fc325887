from __future__ import annotations

import asyncio
import logging
import numbers
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from wasmtime import (
    Engine,
    Func,
    FuncType,
    Instance,
    Limits,
    Linker,
    Memory,
    MemoryType,
    Module,
    Store,
    Table,
    TableType,
    ValType,
    WasmtimeError,
    wat2wasm,
)

from contract_engine.core.errors import (
    ArgumentValidationError,
    BytecodeError,
    ExportNotFoundError,
    MemoryCapacityError,
)

log = logging.getLogger("cengine.bytecode")

WASM_MAGIC = b"\0asm"
PAGE_SIZE = 64 * 1024
BYTES_PER_ELEMENT = 8  # f64

KERNELS_DIR = Path(__file__).resolve().parent / "kernels"


def is_wasm_binary(data: bytes) -> bool:
    return bytes(data[:4]) == WASM_MAGIC


def to_wasm_binary(data: bytes) -> bytes:
    """Binary modules pass through; anything else is treated as WAT text."""
    if is_wasm_binary(data):
        return bytes(data)
    try:
        text = bytes(data).decode("utf-8")
    except UnicodeDecodeError as e:
        raise BytecodeError(f"module is neither wasm binary nor wat text: {e}") from e
    return bytes(wat2wasm(text))


def is_numeric_sequence(arg: Any) -> bool:
    return isinstance(arg, (list, tuple, np.ndarray))


def _as_f64_array(values: Any) -> np.ndarray:
    if isinstance(values, np.ndarray):
        if values.dtype.kind not in "iuf":
            raise ArgumentValidationError(f"array must contain only finite numbers (dtype {values.dtype})")
        arr = values.astype(np.float64, copy=False)
    else:
        for v in values:
            if isinstance(v, bool) or not isinstance(v, numbers.Real):
                raise ArgumentValidationError(f"array must contain only finite numbers (got {v!r})")
        arr = np.asarray(values, dtype=np.float64)

    if arr.ndim != 1:
        raise ArgumentValidationError(f"array arguments must be one-dimensional (got {arr.ndim} dimensions)")
    if not np.isfinite(arr).all():
        raise ArgumentValidationError("array must contain only finite numbers")
    return arr


class BytecodeHost:
    """
    One linear-memory arena shared by every module the host instantiates.

    Modules import `env.memory`, and may import `env.table`, `env.abort`
    (i32 x4, traps) and `env.log` (f64). Array arguments are written into
    the arena starting at `base_offset` and passed as (offset, length).
    Calls are serialized so one call's write/invoke cannot interleave with
    another's.
    """

    def __init__(
        self,
        *,
        initial_pages: int = 256,
        max_pages: Optional[int] = 512,
        base_offset: int = 0,
        kernels_dir: Optional[Path] = None,
    ):
        if base_offset < 0 or base_offset % BYTES_PER_ELEMENT:
            raise ValueError(f"base_offset must be a non-negative multiple of {BYTES_PER_ELEMENT}")

        self.base_offset = base_offset
        self.kernels_dir = Path(kernels_dir) if kernels_dir is not None else KERNELS_DIR

        self._engine = Engine()
        self._store = Store(self._engine)
        self._memory = Memory(self._store, MemoryType(Limits(initial_pages, max_pages)))
        self._table = Table(self._store, TableType(ValType.funcref(), Limits(0, None)), None)

        self._linker = Linker(self._engine)
        self._linker.define(self._store, "env", "memory", self._memory)
        self._linker.define(self._store, "env", "table", self._table)
        self._linker.define(
            self._store,
            "env",
            "abort",
            Func(self._store, FuncType([ValType.i32(), ValType.i32(), ValType.i32(), ValType.i32()], []), self._abort),
        )
        self._linker.define(
            self._store,
            "env",
            "log",
            Func(self._store, FuncType([ValType.f64()], []), self._log_value),
        )

        self._sources: Dict[str, bytes] = {}
        self._modules: Dict[str, Module] = {}
        self._instances: Dict[str, Instance] = {}
        self._offset = base_offset
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

    # ------------------------------------------------------------------
    # imports
    # ------------------------------------------------------------------
    @staticmethod
    def _abort(msg: int, file: int, line: int, column: int) -> None:
        raise BytecodeError(f"bytecode runtime error: abort(msg={msg}, file={file}, line={line}, column={column})")

    @staticmethod
    def _log_value(value: float) -> None:
        log.info("bytecode log: %s", value)

    # ------------------------------------------------------------------
    # arena
    # ------------------------------------------------------------------
    @property
    def capacity(self) -> int:
        return self._memory.data_len(self._store)

    def grow(self, pages: int) -> int:
        """Grow the arena by `pages` 64 KiB pages; returns the new capacity in bytes."""
        try:
            self._memory.grow(self._store, pages)
        except WasmtimeError as e:
            raise MemoryCapacityError(self.capacity + pages * PAGE_SIZE, self.capacity) from e
        return self.capacity

    def read_array(self, offset: int, length: int) -> List[float]:
        if length <= 0:
            return []
        raw = self._memory.read(self._store, offset, offset + length * BYTES_PER_ELEMENT)
        return np.frombuffer(bytes(raw), dtype="<f8").tolist()

    # ------------------------------------------------------------------
    # modules
    # ------------------------------------------------------------------
    def register_module(self, module_name: str, data: bytes) -> None:
        """Make module bytes (wasm binary or wat text) available under a name."""
        if module_name in self._instances:
            raise BytecodeError(f"module {module_name} is already instantiated")
        self._sources[module_name] = bytes(data)

    def has_module(self, module_name: str) -> bool:
        return module_name in self._instances

    def _module_bytes(self, module_name: str) -> bytes:
        if module_name in self._sources:
            return self._sources[module_name]
        for suffix in (".wasm", ".wat"):
            p = self.kernels_dir / f"{module_name}{suffix}"
            if p.exists():
                return p.read_bytes()
        raise BytecodeError(f"no bytecode module named {module_name}")

    def _compile(self, data: bytes) -> Module:
        return Module(self._engine, to_wasm_binary(data))

    async def _ensure_instance(self, module_name: str) -> Instance:
        inst = self._instances.get(module_name)
        if inst is not None:
            return inst

        data = await asyncio.to_thread(self._module_bytes, module_name)
        module = await asyncio.to_thread(self._compile, data)
        inst = self._linker.instantiate(self._store, module)

        self._modules[module_name] = module
        self._instances[module_name] = inst
        log.info("Instantiated bytecode module %s (%d bytes)", module_name, len(data))
        return inst

    async def instantiate(self, module_name: str) -> List[str]:
        """Compile and instantiate once; returns the module's export names."""
        async with self._call_lock():
            await self._ensure_instance(module_name)
            return [e.name for e in self._modules[module_name].exports]

    def _export(self, inst: Instance, module_name: str, export_name: str) -> Func:
        try:
            item = inst.exports(self._store)[export_name]
        except KeyError:
            raise ExportNotFoundError(module_name, export_name) from None
        if not isinstance(item, Func):
            raise ExportNotFoundError(module_name, export_name)
        return item

    # ------------------------------------------------------------------
    # calls
    # ------------------------------------------------------------------
    def _marshal_args(self, args: Sequence[Any]) -> Tuple[List[Any], List[Tuple[int, bytes]]]:
        """Validate every array and lay them out; nothing is written yet."""
        call_args: List[Any] = []
        writes: List[Tuple[int, bytes]] = []
        offset = self._offset

        for arg in args:
            if not is_numeric_sequence(arg):
                call_args.append(arg)
                continue
            arr = _as_f64_array(arg)
            payload = arr.astype("<f8", copy=False).tobytes()
            writes.append((offset, payload))
            call_args.extend([offset, int(arr.shape[0])])
            offset += len(payload)

        required = offset - self.base_offset
        if required > self.capacity - self.base_offset:
            raise MemoryCapacityError(required, self.capacity - self.base_offset)
        return call_args, writes

    def _call_lock(self) -> asyncio.Lock:
        # one lock per event loop; hosts outlive asyncio.run() calls
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def call_function(self, module_name: str, export_name: str, *args: Any) -> Any:
        async with self._call_lock():
            inst = await self._ensure_instance(module_name)
            func = self._export(inst, module_name, export_name)

            call_args, writes = self._marshal_args(args)
            for offset, payload in writes:
                if payload:
                    self._memory.write(self._store, payload, offset)
                    self._offset = offset + len(payload)

            try:
                return func(self._store, *call_args)
            except Exception as e:
                log.warning("Bytecode call %s.%s failed: %s", module_name, export_name, e)
                raise
            finally:
                self._offset = self.base_offset

    async def sum(self, values: Sequence[float]) -> float:
        return await self.call_function("sum-statistics", "sum", values)

    async def average(self, values: Sequence[float]) -> float:
        return await self.call_function("average-statistics", "average", values)


_DEFAULT_HOST: Optional[BytecodeHost] = None


def default_host() -> BytecodeHost:
    """Opt-in process-wide host for callers that do not inject their own."""
    global _DEFAULT_HOST
    if _DEFAULT_HOST is None:
        from contract_engine.core.config import load_settings

        settings = load_settings()
        _DEFAULT_HOST = BytecodeHost(initial_pages=settings.arena_pages, max_pages=settings.arena_max_pages)
    return _DEFAULT_HOST
