"""Shared utilities for stratify."""

from __future__ import annotations

import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import orjson


def _to_dict(obj: object) -> object:
    """Convert object to dict for JSON serialization."""
    from dataclasses import asdict, is_dataclass

    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    return obj


def _default(obj: object) -> object:
    # Paths and enums nested inside dataclasses.
    if hasattr(obj, "as_posix"):
        return obj.as_posix()
    if hasattr(obj, "value"):
        return obj.value
    raise TypeError


def write_json(path: Path, obj: object, *, sort_keys: bool = True) -> None:
    """Serialize ``obj`` to ``path`` through a temp file in the same directory.

    Readers see either the previous document or the new one, never a
    partially written file.
    """
    payload = _to_dict(obj)
    opts = orjson.OPT_INDENT_2
    if sort_keys:
        opts |= orjson.OPT_SORT_KEYS
    data = orjson.dumps(payload, default=_default, option=opts)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def load_json(path: Path) -> dict[str, Any]:
    """Load a JSON object from disk; non-object documents yield an empty dict."""
    data = orjson.loads(path.read_bytes())
    return data if isinstance(data, dict) else {}


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string with second precision."""
    return datetime.now(UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def relative_posix(path: Path, root: Path) -> str:
    """Render ``path`` relative to ``root`` when possible, else as given."""
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()
