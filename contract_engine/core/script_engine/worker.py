"""
Script engine interpreter process.

Speaks newline-delimited JSON on stdin/stdout:

    request:  {"id": 1, "op": "run", "namespace": "m@1", "code": "...", "filename": "<m>"}
    response: {"id": 1, "ok": true, "result": null}

Ops: ping, check_imports, run, has, call, drop. Each model runs in its own
namespace. Model code that prints writes to stderr so the protocol stream
stays clean.
"""
from __future__ import annotations

import ast
import asyncio
import builtins
import importlib.util
import inspect
import sys
import traceback
from typing import Any, Dict, List

from contract_engine.core.script_engine.marshalling import dumps, loads

_namespaces: Dict[str, Dict[str, Any]] = {}


def _imported_roots(code: str) -> List[str]:
    roots: List[str] = []
    for node in ast.walk(ast.parse(code)):
        if isinstance(node, ast.Import):
            names = [a.name for a in node.names]
        elif isinstance(node, ast.ImportFrom) and node.module and node.level == 0:
            names = [node.module]
        else:
            continue
        for n in names:
            root = n.split(".", 1)[0]
            if root not in roots:
                roots.append(root)
    return roots


def _missing_imports(code: str) -> List[str]:
    return [r for r in _imported_roots(code) if importlib.util.find_spec(r) is None]


def _namespace(name: str) -> Dict[str, Any]:
    ns = _namespaces.get(name)
    if ns is None:
        raise KeyError(f"no code has been run in namespace {name!r}")
    return ns


async def _await(value: Any) -> Any:
    return await value


def _handle(req: Dict[str, Any]) -> Any:
    op = req.get("op")
    if op == "ping":
        return {"python": sys.version.split()[0]}

    if op == "check_imports":
        return _missing_imports(req["code"])

    if op == "run":
        name = req["namespace"]
        ns = _namespaces.setdefault(name, {"__name__": f"cengine_script_{len(_namespaces)}", "__builtins__": builtins})
        exec(compile(req["code"], req.get("filename") or "<model>", "exec"), ns)
        return None

    if op == "has":
        ns = _namespaces.get(req["namespace"]) or {}
        return callable(ns.get(req["name"]))

    if op == "call":
        fn = _namespace(req["namespace"]).get(req["name"])
        if not callable(fn):
            raise NameError(f"{req['name']} is not defined in namespace {req['namespace']!r}")
        args = req.get("args") or []
        kwargs = req.get("kwargs") or {}
        try:
            inspect.signature(fn).bind(*args, **kwargs)
        except TypeError:
            # compute(inputs) without an options parameter
            args, kwargs = args[:1], {}
        except ValueError:
            pass
        result = fn(*args, **kwargs)
        if inspect.isawaitable(result):
            result = asyncio.run(_await(result))
        return result

    if op == "drop":
        return _namespaces.pop(req["namespace"], None) is not None

    raise ValueError(f"unknown op {op!r}")


def main() -> int:
    protocol = sys.stdout
    sys.stdout = sys.stderr

    for line in sys.stdin:
        if not line.strip():
            continue
        rid = None
        try:
            req = loads(line)
            rid = req.get("id")
            reply = {"id": rid, "ok": True, "result": _handle(req)}
        except Exception as e:
            reply = {
                "id": rid,
                "ok": False,
                "error": f"{type(e).__name__}: {e}",
                "traceback": traceback.format_exc(),
            }
        protocol.write(dumps(reply) + "\n")
        protocol.flush()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
