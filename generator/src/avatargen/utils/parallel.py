from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tqdm import tqdm

T = TypeVar("T")


async def gather_settled(
    tasks: list[Callable[[], Awaitable[T]]],
    *,
    progress_desc: str | None = None,
) -> list[T | BaseException]:
    if not tasks:
        return []

    async def _run(idx: int, task: Callable[[], Awaitable[T]]) -> tuple[int, T | BaseException]:
        try:
            return idx, await task()
        except Exception as exc:  # noqa: BLE001 - reported per task
            return idx, exc

    coros = [asyncio.create_task(_run(idx, task)) for idx, task in enumerate(tasks)]
    results: list[T | BaseException | None] = [None] * len(tasks)

    if progress_desc:
        for coro in tqdm(asyncio.as_completed(coros), total=len(coros), desc=progress_desc):
            idx, value = await coro
            results[idx] = value
    else:
        for idx, value in await asyncio.gather(*coros):
            results[idx] = value

    return [value for value in results]
