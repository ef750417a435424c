"""Timeout and error translation around persistence calls."""

from collections.abc import Awaitable, Callable
from typing import TypeVar

import anyio

from segengine.core.exceptions import PersistenceError, PersistenceTimeoutError, SegEngineError

T = TypeVar("T")


async def guarded(
    operation: str,
    table: str,
    call: Callable[[], Awaitable[T]],
    *,
    timeout: float | None,
) -> T:
    """
    Await ``call()`` with an optional timeout.

    Timeouts become :class:`PersistenceTimeoutError`; any other failure
    that is not already an engine error becomes :class:`PersistenceError`.
    """
    try:
        if timeout is None:
            return await call()
        with anyio.fail_after(timeout):
            return await call()
    except TimeoutError as e:
        raise PersistenceTimeoutError(operation, table, timeout or 0.0) from e
    except SegEngineError:
        raise
    except Exception as e:
        raise PersistenceError(operation, table, str(e)) from e
