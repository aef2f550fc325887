from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

import requests

from contract_engine.core.contracts.models import Buffer, InlineCode, LocalPath, RemoteUrl
from contract_engine.core.installed.models_dir import ModelDirectory

log = logging.getLogger("cengine.loaders")


@dataclass(frozen=True)
class ResolvedSource:
    data: bytes
    origin: str  # file path, url, or <inline>/<buffer>


class SourceResolver:
    """Turns a contract source into bytes: inline, buffer, local file, or remote URL."""

    def __init__(
        self,
        *,
        models_dir: Optional[ModelDirectory] = None,
        http_timeout: float = 20.0,
        session: Optional[requests.Session] = None,
    ):
        self.models_dir = models_dir
        self.http_timeout = http_timeout
        self.session = session or requests.Session()

    async def resolve(self, source) -> ResolvedSource:
        if isinstance(source, InlineCode):
            return ResolvedSource(source.code.encode("utf-8"), "<inline>")
        if isinstance(source, Buffer):
            return ResolvedSource(bytes(source.data), "<buffer>")
        if isinstance(source, LocalPath):
            path = await asyncio.to_thread(self._locate, source.path)
            return ResolvedSource(await asyncio.to_thread(path.read_bytes), str(path))
        if isinstance(source, RemoteUrl):
            parsed = urlparse(source.url)
            if parsed.scheme == "file":
                path = await asyncio.to_thread(self._locate, url2pathname(parsed.path))
                return ResolvedSource(await asyncio.to_thread(path.read_bytes), str(path))
            if parsed.scheme not in ("http", "https"):
                raise ValueError(f"unsupported url scheme {parsed.scheme!r} in {source.url}")
            return ResolvedSource(await asyncio.to_thread(self._fetch, source.url), source.url)
        raise ValueError(f"unsupported model source {type(source).__name__}")

    def _locate(self, raw: str) -> Path:
        p = Path(raw).expanduser()
        if p.is_file():
            return p
        if not p.is_absolute() and self.models_dir is not None:
            found = self.models_dir.resolve(raw)
            if found is not None:
                log.debug("Resolved %s through models dir %s", raw, self.models_dir.root)
                return found
        raise FileNotFoundError(f"model source not found: {raw}")

    def _fetch(self, url: str) -> bytes:
        resp = self.session.get(url, timeout=self.http_timeout)
        resp.raise_for_status()
        return resp.content
