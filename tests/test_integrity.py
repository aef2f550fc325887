import asyncio
import hashlib
import logging

import pytest

from contract_engine.core.errors import ContractValidationError, IntegrityError, LoadError
from contract_engine.core.integrity.verification import (
    MODE_WARN,
    ensure_integrity,
    normalize_digest,
    sha256_file,
    verify_bytes,
)
from contract_engine.core.loaders.bytecode import BytecodeLoader
from contract_engine.core.loaders.native_script import NativeScriptLoader
from contract_engine.core.contracts.models import parse_contract


CODE = "return sum(inputs)"


def _digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def test_normalize_digest_strips_prefix_and_case():
    assert normalize_digest("  SHA256:ABCDEF ") == "abcdef"
    assert normalize_digest(None) == ""


def test_verify_bytes():
    data = b"model"
    assert verify_bytes(data, _digest(data))
    assert verify_bytes(data, "sha256:" + _digest(data).upper())
    assert not verify_bytes(data, "0" * 64)
    assert not verify_bytes(data, None)


def test_sha256_file_matches_bytes(tmp_path):
    f = tmp_path / "m.py"
    f.write_bytes(b"x" * 20000)
    assert sha256_file(f) == _digest(b"x" * 20000)


def test_enforce_mismatch_raises_with_both_digests():
    with pytest.raises(IntegrityError) as ei:
        ensure_integrity("m@latest", b"data", "0" * 64)
    err = ei.value
    assert err.expected == "0" * 64
    assert err.actual == _digest(b"data")
    assert isinstance(err, LoadError)
    assert "m@latest" in str(err)


def test_enforce_missing_hash_raises():
    with pytest.raises(IntegrityError) as ei:
        ensure_integrity("m@latest", b"data", None)
    assert ei.value.expected is None


def test_warn_mode_logs_and_returns_actual(caplog):
    with caplog.at_level(logging.WARNING, logger="cengine.integrity"):
        actual = ensure_integrity("m@latest", b"data", "0" * 64, MODE_WARN)
    assert actual == _digest(b"data")
    assert "Integrity mismatch" in caplog.text


def test_native_loader_rejects_tampered_inline_code():
    loader = NativeScriptLoader()
    contract = parse_contract({"id": "m", "source": {"code": CODE}, "expectedHash": _digest(b"other")})
    with pytest.raises(IntegrityError):
        asyncio.run(loader.load(contract))


def test_bytecode_loader_does_not_instantiate_on_mismatch(host, sum_kernel_path):
    loader = BytecodeLoader(host)
    contract = parse_contract(
        {"id": "k", "runtimeType": "bytecode", "source": {"path": str(sum_kernel_path)}, "expectedHash": "0" * 64}
    )
    with pytest.raises(IntegrityError):
        asyncio.run(loader.load(contract))

    actual = sha256_file(sum_kernel_path)
    assert not host.has_module(f"k@latest#{actual[:16]}")


def test_engine_does_not_cache_on_mismatch(engine):
    contract = {"id": "tampered", "source": {"code": CODE}, "expectedHash": "0" * 64}
    with pytest.raises(IntegrityError):
        asyncio.run(engine.load_model_from_contract(contract))
    assert engine.check_loaded(contract) is False


def test_malformed_digest_is_a_mismatch_not_a_crash():
    data = b"model"
    assert not verify_bytes(data, "é" * 64)
    assert not verify_bytes(data, "abc")
    with pytest.raises(IntegrityError) as ei:
        ensure_integrity("m@latest", data, "é" * 64)
    assert ei.value.actual == _digest(data)


def test_non_hex_expected_hash_is_rejected_at_parse_time():
    with pytest.raises(ContractValidationError) as ei:
        parse_contract({"id": "m", "source": {"code": "return 1"}, "expectedHash": "é" * 64})
    assert ei.value.field == "expected_hash"
