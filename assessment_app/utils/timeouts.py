"""Bounded execution of calls into external collaborators."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, TypeVar

from assessment_app.core.errors import StoreCallTimedOut

T = TypeVar("T")

_EXECUTOR = ThreadPoolExecutor(max_workers=8, thread_name_prefix="StoreCall")


def call_with_timeout(func: Callable[..., T], *args, timeout: float | None, **kwargs) -> T:
    """Run ``func`` and wait at most ``timeout`` seconds for its result.

    Exceptions raised by ``func`` propagate unchanged. Expiry raises
    ``StoreCallTimedOut`` carrying the future of the abandoned call, which may
    still complete (and write) after the caller has given up on it.
    """
    if timeout is None:
        return func(*args, **kwargs)
    future = _EXECUTOR.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as exc:
        future.cancel()
        name = getattr(func, "__qualname__", repr(func))
        raise StoreCallTimedOut(f"{name} did not complete within {timeout:g}s", pending=future) from exc
