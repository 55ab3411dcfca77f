import asyncio
import os
from functools import partial
from pathlib import Path
from typing import Any, Callable

async def run_io_bound(func: Callable[..., Any], *args, **kwargs):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(func, *args, **kwargs))


def _write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


async def write_file(path: Path, data: bytes) -> None:
    await run_io_bound(_write_bytes, path, data)


async def read_file(path: Path) -> bytes:
    return await run_io_bound(path.read_bytes)


async def remove_file(path: Path) -> bool:
    """Удаляет файл, если он есть. Возвращает True, если файл был удалён."""
    def _remove() -> bool:
        if not os.path.exists(path):
            return False
        os.unlink(path)
        return True
    return await run_io_bound(_remove)
