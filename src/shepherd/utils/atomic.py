"""All-or-nothing file replacement for the task store document."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from atomicwrites import atomic_write  # type: ignore[import-untyped]

__all__ = [
    "atomic_write_json",
    "atomic_write_text",
]


def atomic_write_text(path: Path | str, content: str, *, mkdir: bool = True) -> None:
    """Write ``content`` to a sibling temp file and rename it over ``path``.

    Raises:
        OSError: If the write or rename fails. ``path`` is then unchanged.
    """
    target = Path(path)
    if mkdir:
        target.parent.mkdir(parents=True, exist_ok=True)
    with atomic_write(str(target), mode="w", encoding="utf-8", overwrite=True) as f:
        f.write(content)


def atomic_write_json(path: Path | str, data: Any, *, mkdir: bool = True) -> None:
    """Serialize ``data`` (indented, UTF-8, ``str()`` fallback) and write it.

    Raises:
        OSError: If the write or rename fails.
        TypeError: If ``data`` is not a JSON-compatible structure.
    """
    atomic_write_text(
        path,
        json.dumps(data, indent=2, ensure_ascii=False, default=str),
        mkdir=mkdir,
    )
