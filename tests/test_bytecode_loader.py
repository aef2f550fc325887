import asyncio
import shutil

import pytest

from contract_engine.core.bytecode.host import to_wasm_binary
from contract_engine.core.contracts.models import parse_contract
from contract_engine.core.errors import LoadError
from contract_engine.core.integrity.verification import sha256_bytes, sha256_file
from contract_engine.core.loaders.bytecode import BytecodeLoader


def _load(loader, contract):
    return asyncio.run(loader.load(parse_contract(contract)))


def test_load_wat_file_and_compute(host, sum_kernel_path):
    model = _load(
        BytecodeLoader(host),
        {"id": "sum-kernel", "source": {"path": str(sum_kernel_path)}, "expectedHash": sha256_file(sum_kernel_path)},
    )
    assert model.export_name == "compute"
    assert model.signature.type == "bytecode"
    assert asyncio.run(model.compute([1, 2, 3, 4, 5])) == pytest.approx(15.0)
    assert asyncio.run(model.compute([{"value": 2}, {"value": 3}])) == pytest.approx(5.0)


def test_load_binary_buffer_with_named_export(host, sum_kernel_path):
    binary = to_wasm_binary(sum_kernel_path.read_bytes())
    model = _load(
        BytecodeLoader(host),
        {
            "id": "sum-buffer",
            "runtimeType": "bytecode",
            "exportName": "sum",
            "source": binary,
            "expectedHash": sha256_bytes(binary),
        },
    )
    assert asyncio.run(model.compute([0.5, 0.25])) == pytest.approx(0.75)


def test_missing_export_fails_at_load(host, sum_kernel_path):
    with pytest.raises(LoadError) as ei:
        _load(
            BytecodeLoader(host),
            {
                "id": "sum-kernel",
                "exportName": "median",
                "source": {"path": str(sum_kernel_path)},
                "expectedHash": sha256_file(sum_kernel_path),
            },
        )
    assert "median" in str(ei.value)


def test_invalid_module_is_load_error(host):
    junk = b"(module (func $broken"
    with pytest.raises(LoadError):
        _load(
            BytecodeLoader(host),
            {"id": "junk", "runtimeType": "bytecode", "source": junk, "expectedHash": sha256_bytes(junk)},
        )


def test_same_bytes_share_a_module_instance(host, sum_kernel_path, tmp_path):
    copy = tmp_path / "copy.wat"
    shutil.copy(sum_kernel_path, copy)
    digest = sha256_file(sum_kernel_path)
    loader = BytecodeLoader(host)

    a = _load(loader, {"id": "k", "version": "1", "source": {"path": str(sum_kernel_path)}, "expectedHash": digest})
    b = _load(loader, {"id": "k", "version": "1", "source": {"path": str(copy)}, "expectedHash": digest})
    assert a.module_name == b.module_name
