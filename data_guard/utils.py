"""Formatting and file helpers shared across data_guard."""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path


def fmt_bytes(n: int) -> str:
    """Format bytes to human readable string using binary units (e.g. 1.2 GiB).

    Example:
        >>> fmt_bytes(1536)
        '1.5 KiB'
        >>> fmt_bytes(1073741824)
        '1.0 GiB'
    """
    units = ["B", "KiB", "MiB", "GiB", "TiB"]
    i = 0
    f = float(max(0, n))
    while f >= 1024 and i < len(units) - 1:
        f /= 1024
        i += 1
    return f"{f:.1f} {units[i]}"


def fmt_percent(used: int, limit: int) -> str:
    if limit <= 0:
        return "n/a"
    return f"{used / limit * 100:.0f}%"


def device_label(override: str | None = None) -> str:
    """Human-readable device identifier used in alert messages."""
    if override and override.strip():
        return override.strip()
    node = platform.node() or "unknown host"
    system = platform.system()
    return f"{node} ({system})" if system else node


def write_json_atomic(path: Path, data: object) -> None:
    """Write ``data`` as JSON to ``path`` via a temp file and ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise
