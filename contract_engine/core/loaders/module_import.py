from __future__ import annotations

import hashlib
import importlib.util
import inspect
import re
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Dict, Optional

MODEL_SYMBOL = "MODEL"
COMPUTE_SYMBOL = "compute"


def _module_name(origin: str, key: str) -> str:
    # deterministic across interpreter restarts
    stem = re.sub(r"\W", "_", Path(origin).stem) or "source"
    digest = hashlib.sha1(f"{key}|{origin}".encode("utf-8")).hexdigest()[:16]
    return f"cengine_model_{stem}_{digest}"


def exec_module_source(data: bytes, origin: str, key: str) -> ModuleType:
    """Execute already-verified source bytes as a fresh module."""
    module_name = _module_name(origin, key)
    spec = importlib.util.spec_from_loader(module_name, loader=None, origin=origin)
    if spec is None:
        raise ImportError(f"Cannot create module spec for {origin}")

    mod = importlib.util.module_from_spec(spec)
    if not origin.startswith("<") and "://" not in origin:
        mod.__file__ = origin

    # register BEFORE exec (dataclasses resolve their module through sys.modules)
    sys.modules[module_name] = mod
    try:
        exec(compile(data, origin, "exec"), mod.__dict__)
    except BaseException:
        # do not leave a broken module cached
        sys.modules.pop(module_name, None)
        raise
    return mod


def compute_callable(mod: ModuleType) -> Optional[Callable[..., Any]]:
    """`MODEL` (instance or class with compute) wins over a module-level `compute`."""
    obj = getattr(mod, MODEL_SYMBOL, None)
    if obj is not None:
        if inspect.isclass(obj):
            obj = obj()
        fn = getattr(obj, COMPUTE_SYMBOL, None)
        return fn if callable(fn) else None
    fn = getattr(mod, COMPUTE_SYMBOL, None)
    return fn if callable(fn) else None


def accepts_options(fn: Callable[..., Any]) -> bool:
    try:
        inspect.signature(fn).bind(None, None)
    except TypeError:
        return False
    except ValueError:
        # builtins without a signature
        return True
    return True


async def call_compute(fn: Callable[..., Any], data: Any, options: Dict[str, Any], with_options: bool) -> Any:
    result = fn(data, options) if with_options else fn(data)
    if inspect.isawaitable(result):
        result = await result
    return result
