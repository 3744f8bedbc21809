from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def write_bytes_exclusive(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("xb") as handle:
        handle.write(data)


async def read_bytes_async(path: Path) -> bytes:
    return await asyncio.to_thread(path.read_bytes)


async def write_bytes_exclusive_async(path: Path, data: bytes) -> None:
    await asyncio.to_thread(write_bytes_exclusive, path, data)
