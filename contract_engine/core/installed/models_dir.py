from __future__ import annotations

from pathlib import Path
from typing import List, Optional


class ModelDirectory:
    """Installed models on disk.

    Layout: <root>/<name>, <root>/statistics/<name>.py, <root>/<name>.{py,wasm,wat}
    """

    SUFFIXES = (".py", ".wasm", ".wat")

    def __init__(self, root: Path):
        self.root = Path(root).expanduser()

    def candidates(self, name: str) -> List[Path]:
        rel = Path(name)
        out = [self.root / rel]
        if not rel.suffix:
            out.append(self.root / "statistics" / f"{name}.py")
            out.extend(self.root / f"{name}{s}" for s in self.SUFFIXES)
        return out

    def resolve(self, name: str) -> Optional[Path]:
        root = self.root.resolve()
        for p in self.candidates(name):
            p = p.resolve()
            # stay inside the models root
            try:
                p.relative_to(root)
            except ValueError:
                continue
            if p.is_file():
                return p
        return None
