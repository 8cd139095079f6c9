# connectors/datalake/blocking.py
from __future__ import annotations
import asyncio
import functools
import inspect
from typing import Any, Awaitable, TypeVar

T = TypeVar("T")


async def _await(aw: Awaitable[T]) -> T:
    return await aw


def run_blocking(aw: Awaitable[T]) -> T:
    """
    Drive an awaitable to completion on the calling thread.
    Refuses to nest inside a running loop (use the async API there).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(_await(aw))
    if inspect.iscoroutine(aw):
        aw.close()
    raise RuntimeError("blocking call made from inside a running event loop; await the async API instead")


class Blocking:
    """
    Synchronous view over an async operations object.
    Same methods, same code path: coroutines are run to completion and
    pagers are walked into lists.
    """

    def __init__(self, target: Any):
        self._target = target

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._target, name)
        if not callable(attr):
            return attr

        @functools.wraps(attr)
        def call(*args: Any, **kwargs: Any) -> Any:
            result = attr(*args, **kwargs)
            to_list = getattr(result, "to_list", None)
            if callable(to_list):
                return to_list()
            if inspect.isawaitable(result):
                return run_blocking(result)
            return result

        return call

    def __repr__(self) -> str:
        return f"Blocking({self._target!r})"
