import pytest

from contract_engine.core.contracts.models import (
    Buffer,
    InlineCode,
    LocalPath,
    RemoteUrl,
    ResultEnvelope,
    ResultMetadata,
    RuntimeType,
    parse_contract,
    runtime_key,
)
from contract_engine.core.errors import ContractValidationError


def test_version_defaults_to_latest():
    c = parse_contract({"id": "cached-model", "source": {"code": "return 1"}})
    assert c.version == "latest"
    assert c.key == "cached-model@latest"
    assert isinstance(c.source, InlineCode)


def test_camel_case_fields_are_accepted():
    c = parse_contract(
        {
            "id": "m",
            "version": "2",
            "runtimeType": "bytecode",
            "expectedHash": "abc",
            "exportName": "sum",
            "source": {"path": "model.wasm"},
        }
    )
    assert c.runtime_type == "bytecode"
    assert c.expected_hash == "abc"
    assert c.export_name == "sum"
    assert isinstance(c.source, LocalPath)


def test_runtime_type_enum_is_normalized():
    c = parse_contract({"id": "m", "runtime_type": RuntimeType.SCRIPT_ENGINE, "source": {"code": "x"}})
    assert c.runtime_type == "script-engine"
    assert runtime_key(RuntimeType.BYTECODE) == "bytecode"


def test_url_wins_over_code_and_path():
    c = parse_contract({"id": "m", "source": {"url": "https://x/m.py", "code": "return 1", "path": "p.py"}})
    assert isinstance(c.source, RemoteUrl)
    c = parse_contract({"id": "m", "source": {"code": "return 1", "path": "p.py"}})
    assert isinstance(c.source, InlineCode)


def test_bytes_source_becomes_buffer():
    c = parse_contract({"id": "m", "source": b"\0asm\x01\0\0\0"})
    assert isinstance(c.source, Buffer)
    assert c.source.data.startswith(b"\0asm")


def test_tagged_source_passes_through():
    c = parse_contract({"id": "m", "source": {"kind": "path", "path": "a.wat"}})
    assert c.source == LocalPath(path="a.wat")


def test_missing_id():
    with pytest.raises(ContractValidationError) as ei:
        parse_contract({"source": {"code": "return 1"}})
    assert ei.value.field == "id"
    assert "missing id" in str(ei.value)


def test_missing_source():
    with pytest.raises(ContractValidationError) as ei:
        parse_contract({"id": "m"})
    assert "missing source" in str(ei.value)


def test_blank_code_is_not_a_source():
    with pytest.raises(ContractValidationError):
        parse_contract({"id": "m", "source": {"code": "   "}})


def test_non_mapping_contract():
    with pytest.raises(ContractValidationError):
        parse_contract(["not", "a", "contract"])


def test_validation_error_is_value_error():
    with pytest.raises(ValueError):
        parse_contract({"id": "", "source": {"code": "return 1"}})


def test_contract_passthrough_and_frozen():
    c = parse_contract({"id": "m", "source": {"code": "return 1"}})
    assert parse_contract(c) is c
    with pytest.raises(Exception):
        c.id = "other"


def test_envelope_error_and_aliases():
    meta = ResultMetadata(count=0, timestamp_millis=1, model_id="m", version="latest", runtime_type="native-script")
    env = ResultEnvelope(result={"error": "No data provided"}, metadata=meta)
    assert env.error == "No data provided"
    dumped = env.model_dump(by_alias=True)
    assert dumped["metadata"]["modelId"] == "m"
    assert dumped["metadata"]["runtimeType"] == "native-script"
    assert dumped["metadata"]["timestampMillis"] == 1
    assert ResultEnvelope(result=3, metadata=meta).error is None


@pytest.mark.parametrize("buffer", [[0, 97, 115, 109, 300], [0, "a", 1], [-1]])
def test_buffer_with_non_byte_items_is_a_validation_error(buffer):
    with pytest.raises(ContractValidationError) as ei:
        parse_contract({"id": "m", "source": {"buffer": buffer}})
    assert ei.value.field == "source"
