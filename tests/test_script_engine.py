import asyncio
import hashlib

import pytest

from contract_engine.core.contracts.models import parse_contract
from contract_engine.core.errors import LoadError, ScriptEngineError
from contract_engine.core.loaders.script_engine import ScriptEngineLoader
from contract_engine.core.script_engine.marshalling import dumps, loads, to_jsonable
from contract_engine.core.script_engine.runtime import ScriptEngineRuntime

NUMPY_MEAN = """
import numpy as np


def compute(inputs, options):
    weights = options.get("weights")
    return float(np.average(np.asarray(inputs, dtype=float), weights=weights))
"""

SINGLE_ARG = """
import numpy as np

def compute(inputs):
    return np.cumsum(inputs).tolist()
"""


def _sha(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _contract(id_, code, **kw):
    c = {"id": id_, "source": {"code": code}, "expectedHash": _sha(code)}
    c.update(kw)
    return c


def test_numpy_inline_model_runs_in_script_engine(engine):
    env = asyncio.run(engine.execute_contract(_contract("np-mean", NUMPY_MEAN), [1, 2, 3, 4], {"weights": [1, 1, 1, 5]}))
    assert env.metadata.runtime_type == "script-engine"
    assert env.metadata.count == 4
    assert env.result == pytest.approx(3.25)


def test_compute_without_options_parameter(engine):
    env = asyncio.run(engine.execute_contract(_contract("cumsum", SINGLE_ARG), [1, 2, 3]))
    assert env.result == [1, 3, 6]


def test_missing_package_is_load_error(engine):
    code = "import numpy\nimport package_that_is_not_installed\n\ndef compute(inputs, options):\n    return 0\n"
    with pytest.raises(LoadError) as ei:
        asyncio.run(engine.load_model_from_contract(_contract("missing", code)))
    assert "package_that_is_not_installed" in str(ei.value)
    assert "numpy" not in str(ei.value).split("missing packages:")[-1]


def test_script_without_compute_is_load_error(engine):
    code = "import numpy as np\nVALUE = np.pi\n"
    with pytest.raises(LoadError) as ei:
        asyncio.run(engine.load_model_from_contract(_contract("no-compute", code)))
    assert "compute" in str(ei.value)


def test_compute_failure_raises_script_engine_error(engine):
    code = "import numpy as np\n\ndef compute(inputs, options):\n    raise ValueError('bad series')\n"
    with pytest.raises(ScriptEngineError) as ei:
        asyncio.run(engine.execute_contract(_contract("fails", code), [1]))
    assert "bad series" in str(ei.value)


def test_models_get_separate_namespaces():
    rt = ScriptEngineRuntime()
    try:
        async def run():
            await rt.run_code("a@1", "X = 1\ndef compute(inputs, options):\n    return X\n")
            await rt.run_code("b@1", "X = 2\ndef compute(inputs, options):\n    return X\n")
            return await rt.call("a@1", "compute", None, {}), await rt.call("b@1", "compute", None, {})

        assert asyncio.run(run()) == (1, 2)
        assert asyncio.run(rt.drop("a@1")) is True
        assert asyncio.run(rt.has_symbol("a@1", "compute")) is False
        with pytest.raises(ScriptEngineError):
            asyncio.run(rt.call("a@1", "compute", None, {}))
    finally:
        rt.close()
    assert rt.started is False


def test_printing_model_does_not_break_protocol():
    rt = ScriptEngineRuntime()
    try:
        async def run():
            await rt.run_code("p@1", "print('noise')\ndef compute(inputs, options):\n    print('more noise')\n    return 42\n")
            return await rt.call("p@1", "compute", [1], {})

        assert asyncio.run(run()) == 42
    finally:
        rt.close()


def test_marshalling_handles_numpy_and_dataclasses():
    import numpy as np
    from dataclasses import dataclass

    @dataclass
    class Point:
        x: float
        y: float

    payload = {"arr": np.array([1.5, 2.5]), "n": np.int64(3), "p": Point(1.0, 2.0), "t": (1, 2)}
    assert to_jsonable(payload) == {"arr": [1.5, 2.5], "n": 3, "p": {"x": 1.0, "y": 2.0}, "t": [1, 2]}
    assert loads(dumps(payload)) == {"arr": [1.5, 2.5], "n": 3, "p": {"x": 1.0, "y": 2.0}, "t": [1, 2]}


def test_failed_script_leaves_no_namespace_behind():
    rt = ScriptEngineRuntime()
    code = "def compute(inputs, options):\n    return 1\n\nraise RuntimeError('half loaded')\n"
    contract = parse_contract(_contract("half", code))
    try:
        with pytest.raises(LoadError) as ei:
            asyncio.run(ScriptEngineLoader(rt).load(contract))
        assert "half loaded" in str(ei.value)
        assert asyncio.run(rt.has_symbol("half@latest", "compute")) is False
    finally:
        rt.close()
