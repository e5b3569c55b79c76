from __future__ import annotations

import asyncio
from typing import Coroutine, TypeVar

import anyio

T = TypeVar("T")


def run_async(coro: Coroutine[object, object, T], *, timeout: float | None = None) -> T:
    """
    Drive a coroutine to completion from synchronous code.

    - Inside a threadpool worker (sync FastAPI endpoints), the coroutine runs
      on the application's event loop via anyio.from_thread.
    - With no loop around (CLI, plain sync tests) a private loop is started.
    - Calling it from a coroutine on the loop thread is an error; await instead.
    """

    async def _runner() -> T:
        if timeout is None:
            return await coro
        with anyio.fail_after(timeout):
            return await coro

    try:
        return anyio.from_thread.run(_runner)
    except RuntimeError:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return anyio.run(_runner)
        coro.close()
        raise RuntimeError("run_async called from async context; use await instead")
