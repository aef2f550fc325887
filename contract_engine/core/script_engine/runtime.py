from __future__ import annotations

import asyncio
import itertools
import logging
import os
import subprocess
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from contract_engine.core.errors import ScriptEngineError
from contract_engine.core.script_engine.marshalling import dumps, loads

log = logging.getLogger("cengine.script")

WORKER_MODULE = "contract_engine.core.script_engine.worker"

# script_engine -> core -> contract_engine -> project root
_PROJECT_ROOT = Path(__file__).resolve().parents[3]


class ScriptEngineRuntime:
    """
    Second interpreter for script-engine models, running in a child process.

    Started lazily on first use and kept for the life of the runtime. Traffic
    is one JSON request and one JSON reply per line; requests are serialized.
    """

    def __init__(self, python: Optional[str] = None):
        self.python = python or sys.executable
        self._proc: Optional[subprocess.Popen] = None
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    @property
    def started(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    def _spawn(self) -> None:
        env = dict(os.environ)
        env["PYTHONPATH"] = os.pathsep.join(p for p in (str(_PROJECT_ROOT), env.get("PYTHONPATH", "")) if p)
        env["PYTHONUNBUFFERED"] = "1"
        try:
            self._proc = subprocess.Popen(
                [self.python, "-u", "-m", WORKER_MODULE],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                env=env,
            )
        except OSError as e:
            raise ScriptEngineError(f"cannot start script engine interpreter {self.python}: {e}") from e
        log.info("Started script engine interpreter pid=%s python=%s", self._proc.pid, self.python)

    def _roundtrip(self, payload: Dict[str, Any]) -> Any:
        with self._lock:
            if not self.started:
                self._spawn()
            proc = self._proc
            assert proc is not None and proc.stdin is not None and proc.stdout is not None

            rid = next(self._ids)
            try:
                proc.stdin.write(dumps({"id": rid, **payload}) + "\n")
                proc.stdin.flush()
                line = proc.stdout.readline()
            except (BrokenPipeError, OSError) as e:
                self._proc = None
                raise ScriptEngineError(f"script engine interpreter is unavailable: {e}") from e

            if not line:
                code = proc.poll()
                self._proc = None
                raise ScriptEngineError(f"script engine interpreter exited (code {code})")

        reply = loads(line)
        if reply.get("id") != rid:
            raise ScriptEngineError(f"script engine reply out of sequence (sent {rid}, got {reply.get('id')})")
        if not reply.get("ok"):
            log.debug("Script engine traceback:\n%s", reply.get("traceback", ""))
            raise ScriptEngineError(reply.get("error") or "script engine request failed")
        return reply.get("result")

    async def _request(self, op: str, **fields: Any) -> Any:
        return await asyncio.to_thread(self._roundtrip, {"op": op, **fields})

    async def start(self) -> Dict[str, Any]:
        return await self._request("ping")

    async def missing_imports(self, code: str) -> List[str]:
        return await self._request("check_imports", code=code)

    async def run_code(self, namespace: str, code: str, filename: str = "<model>") -> None:
        await self._request("run", namespace=namespace, code=code, filename=filename)

    async def has_symbol(self, namespace: str, name: str) -> bool:
        return bool(await self._request("has", namespace=namespace, name=name))

    async def call(self, namespace: str, name: str, *args: Any, **kwargs: Any) -> Any:
        return await self._request("call", namespace=namespace, name=name, args=list(args), kwargs=kwargs)

    async def drop(self, namespace: str) -> bool:
        return bool(await self._request("drop", namespace=namespace))

    def close(self) -> None:
        with self._lock:
            proc, self._proc = self._proc, None
        if proc is None:
            return
        if proc.stdin is not None:
            proc.stdin.close()
        try:
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
        if proc.stdout is not None:
            proc.stdout.close()


_DEFAULT_RUNTIME: Optional[ScriptEngineRuntime] = None


def default_runtime() -> ScriptEngineRuntime:
    """Opt-in process-wide interpreter; the process starts on its first request."""
    global _DEFAULT_RUNTIME
    if _DEFAULT_RUNTIME is None:
        from contract_engine.core.config import load_settings

        _DEFAULT_RUNTIME = ScriptEngineRuntime(python=load_settings().script_python)
    return _DEFAULT_RUNTIME
