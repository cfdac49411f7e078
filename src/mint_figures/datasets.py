from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Any


def utc_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def load_json(path: Path) -> Any | None:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError):
        return None


def dumps_dataset(data: Any) -> str:
    return json.dumps(data, indent=4, ensure_ascii=False) + "\n"


def write_dataset(path: Path, data: Any) -> Path:
    """Write ``data`` as pretty JSON, replacing ``path`` atomically."""

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")
    tmp_path.write_text(dumps_dataset(data), encoding="utf-8", newline="\n")
    os.replace(tmp_path, path)
    return path
