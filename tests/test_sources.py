import asyncio

import pytest
import requests

from contract_engine.core.contracts.models import Buffer, InlineCode, LocalPath, RemoteUrl
from contract_engine.core.installed.models_dir import ModelDirectory
from contract_engine.core.loaders.sources import SourceResolver


class FakeResponse:
    def __init__(self, content, status=200):
        self.content = content
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        return self.response


def _resolve(resolver, source):
    return asyncio.run(resolver.resolve(source))


def test_models_dir_layout(tmp_path):
    (tmp_path / "statistics").mkdir()
    (tmp_path / "statistics" / "trend.py").write_text("x", encoding="utf-8")
    (tmp_path / "sum.wasm").write_bytes(b"\0asm")
    (tmp_path / "exact.wat").write_text("(module)", encoding="utf-8")
    md = ModelDirectory(tmp_path)

    assert md.resolve("trend") == (tmp_path / "statistics" / "trend.py").resolve()
    assert md.resolve("sum") == (tmp_path / "sum.wasm").resolve()
    assert md.resolve("exact.wat") == (tmp_path / "exact.wat").resolve()
    assert md.resolve("absent") is None


def test_models_dir_stays_inside_root(tmp_path):
    root = tmp_path / "models"
    root.mkdir()
    (tmp_path / "secret.py").write_text("x", encoding="utf-8")
    assert ModelDirectory(root).resolve("../secret.py") is None


def test_inline_and_buffer():
    r = SourceResolver()
    assert _resolve(r, InlineCode(code="return 1")).data == b"return 1"
    out = _resolve(r, Buffer(data=b"\0asm"))
    assert out.data == b"\0asm"
    assert out.origin == "<buffer>"


def test_relative_path_falls_back_to_models_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    models = tmp_path / "hop-models"
    models.mkdir()
    (models / "ar.py").write_text("def compute(x): return x", encoding="utf-8")
    r = SourceResolver(models_dir=ModelDirectory(models))
    out = _resolve(r, LocalPath(path="ar"))
    assert out.data.startswith(b"def compute")
    assert out.origin.endswith("ar.py")


def test_missing_path_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        _resolve(SourceResolver(), LocalPath(path=str(tmp_path / "nope.py")))


def test_file_url(tmp_path):
    f = tmp_path / "m.wat"
    f.write_text("(module)", encoding="utf-8")
    assert _resolve(SourceResolver(), RemoteUrl(url=f.as_uri())).data == b"(module)"


def test_http_url_uses_session_with_timeout():
    session = FakeSession(FakeResponse(b"(module)"))
    r = SourceResolver(http_timeout=3.0, session=session)
    out = _resolve(r, RemoteUrl(url="https://models.example/m.wat"))
    assert out.data == b"(module)"
    assert out.origin == "https://models.example/m.wat"
    assert session.calls == [("https://models.example/m.wat", 3.0)]


def test_http_error_status_raises():
    r = SourceResolver(session=FakeSession(FakeResponse(b"", status=404)))
    with pytest.raises(requests.HTTPError):
        _resolve(r, RemoteUrl(url="https://models.example/missing.wasm"))


def test_unsupported_scheme():
    with pytest.raises(ValueError):
        _resolve(SourceResolver(), RemoteUrl(url="ftp://models.example/m.wasm"))
