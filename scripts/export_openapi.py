"""
Экспорт / сверка OpenAPI-схемы HTTP API.

  python scripts/export_openapi.py            # записать openapi/openapi.json
  python scripts/export_openapi.py --check    # сверить с закоммиченной схемой
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from apps.api_gateway.main import app

DEFAULT_PATH = Path("openapi/openapi.json")


def _normalize(obj: dict) -> dict:
    # сравниваем нормализованный JSON: порядок ключей не важен
    return json.loads(json.dumps(obj, sort_keys=True, ensure_ascii=False))


def main() -> int:
    parser = argparse.ArgumentParser(description="Export or verify the OpenAPI schema")
    parser.add_argument("--check", action="store_true", help="fail if the schema file is stale")
    parser.add_argument("--path", type=Path, default=DEFAULT_PATH)
    args = parser.parse_args()

    current = app.openapi()
    if args.check:
        if not args.path.exists():
            print(f"ERROR: {args.path} not found. Run without --check first.")
            return 1
        expected = json.loads(args.path.read_text(encoding="utf-8"))
        if _normalize(current) != _normalize(expected):
            print("ERROR: OpenAPI schema mismatch, re-export and commit it.")
            return 1
        print("OK: OpenAPI schema matches")
        return 0

    args.path.parent.mkdir(parents=True, exist_ok=True)
    args.path.write_text(json.dumps(current, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    print(f"Wrote {args.path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
