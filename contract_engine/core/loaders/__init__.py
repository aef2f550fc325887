from typing import Dict, Optional

from contract_engine.core.bytecode.host import BytecodeHost
from contract_engine.core.config import EngineSettings, load_settings
from contract_engine.core.installed.models_dir import ModelDirectory
from contract_engine.core.script_engine.runtime import ScriptEngineRuntime

from .bytecode import BytecodeLoader, BytecodeModel
from .contracts import Loader, LoaderFn, LoaderLike
from .native_script import FunctionModel, NativeScriptLoader
from .script_engine import ScriptEngineLoader, ScriptEngineModel
from .sources import ResolvedSource, SourceResolver


def build_default_loaders(
    settings: Optional[EngineSettings] = None,
    *,
    host: Optional[BytecodeHost] = None,
    runtime: Optional[ScriptEngineRuntime] = None,
) -> Dict[str, Loader]:
    """The three built-in backends, keyed by runtime type, sharing one source resolver."""
    settings = settings or load_settings()
    resolver = SourceResolver(
        models_dir=ModelDirectory(settings.models_dir),
        http_timeout=settings.http_timeout_seconds,
    )
    if host is None:
        host = BytecodeHost(initial_pages=settings.arena_pages, max_pages=settings.arena_max_pages)
    if runtime is None:
        runtime = ScriptEngineRuntime(python=settings.script_python)

    loaders = [
        NativeScriptLoader(resolver, integrity_mode=settings.integrity_mode),
        BytecodeLoader(host, resolver, integrity_mode=settings.integrity_mode),
        ScriptEngineLoader(runtime, resolver, integrity_mode=settings.integrity_mode),
    ]
    return {loader.runtime_type: loader for loader in loaders}


__all__ = [
    "BytecodeLoader",
    "BytecodeModel",
    "FunctionModel",
    "Loader",
    "LoaderFn",
    "LoaderLike",
    "NativeScriptLoader",
    "ResolvedSource",
    "ScriptEngineLoader",
    "ScriptEngineModel",
    "SourceResolver",
    "build_default_loaders",
]
