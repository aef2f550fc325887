"""Print the sha256 a contract's expectedHash must carry for a model source."""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

from contract_engine.core.integrity.verification import sha256_bytes, sha256_file


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("paths", nargs="*", help="model files (.py, .wasm, .wat)")
    parser.add_argument("--code", help="inline model code, hashed as utf-8")
    args = parser.parse_args(argv)

    if not args.paths and args.code is None:
        parser.print_usage()
        print("ERROR: give at least one path or --code")
        return 2

    rc = 0
    if args.code is not None:
        print(f"{sha256_bytes(args.code.encode('utf-8'))}  <inline>")
    for p in args.paths:
        path = Path(p)
        if not path.is_file():
            print(f"ERROR: not a file: {p}")
            rc = 1
            continue
        print(f"{sha256_file(path)}  {p}")
    return rc


if __name__ == "__main__":
    raise SystemExit(main())
