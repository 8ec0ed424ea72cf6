"""Promise-like values: detection, awaitable bridging and an asyncio-backed factory.

A *thenable* is any object exposing a callable ``then`` member. The engine
never depends on a particular promise implementation; the bundled
:func:`future_thenable` factory is only used when configured.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Generator
from typing import Any

from grapnel.errors import ThenableRejectedError

Resolve = Callable[..., None]
Reject = Callable[[Any], None]
Executor = Callable[[Resolve, Reject], Any]


def is_thenable(subject: Any) -> bool:
    return callable(getattr(subject, "then", None))


def as_exception(reason: Any) -> BaseException:
    if isinstance(reason, BaseException):
        return reason
    return ThenableRejectedError(reason)


def subscribe(
    result: Any,
    on_fulfilled: Callable[[Any], None],
    on_rejected: Callable[[BaseException], None],
) -> bool:
    """Attach settlement handlers to a thenable or awaitable ``result``.

    Returns ``False`` (without calling either handler) when ``result`` is a
    plain value.
    """
    if is_thenable(result):
        result.then(
            lambda value=None: on_fulfilled(value),
            lambda reason=None: on_rejected(as_exception(reason)),
        )
        return True
    if not inspect.isawaitable(result):
        return False

    if inspect.iscoroutine(result):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            result.close()
            raise
        future = loop.create_task(result)
    else:
        future = asyncio.ensure_future(result)

    def _settled(done: asyncio.Future) -> None:
        if done.cancelled():
            on_rejected(asyncio.CancelledError())
            return
        error = done.exception()
        if error is not None:
            on_rejected(error)
        else:
            on_fulfilled(done.result())

    future.add_done_callback(_settled)
    return True


class FutureThenable:
    """Thenable view over an :class:`asyncio.Future`, also usable with ``await``."""

    def __init__(self, future: asyncio.Future) -> None:
        self._future = future

    def done(self) -> bool:
        return self._future.done()

    def then(
        self,
        on_fulfilled: Callable[[Any], Any] | None = None,
        on_rejected: Callable[[BaseException], Any] | None = None,
    ) -> FutureThenable:
        chained = self._future.get_loop().create_future()

        def _resolve(value: Any = None) -> None:
            if not chained.done():
                chained.set_result(value)

        def _reject(reason: Any = None) -> None:
            if not chained.done():
                chained.set_exception(as_exception(reason))

        def _settle(source: asyncio.Future) -> None:
            if source.cancelled():
                chained.cancel()
                return
            error = source.exception()
            try:
                if error is None:
                    value = on_fulfilled(source.result()) if on_fulfilled else source.result()
                elif on_rejected is not None:
                    value = on_rejected(error)
                else:
                    _reject(error)
                    return
            except Exception as exc:
                _reject(exc)
                return
            if is_thenable(value):
                value.then(_resolve, _reject)
            else:
                _resolve(value)

        self._future.add_done_callback(_settle)
        return FutureThenable(chained)

    def __await__(self) -> Generator[Any, None, Any]:
        return self._future.__await__()

    def __repr__(self) -> str:
        return f"FutureThenable({self._future!r})"


def future_thenable(executor: Executor) -> FutureThenable:
    """Promise factory backed by a future on the running event loop."""
    future = asyncio.get_running_loop().create_future()

    def resolve(value: Any = None) -> None:
        if future.done():
            return
        if is_thenable(value):
            value.then(resolve, reject)
            return
        future.set_result(value)

    def reject(reason: Any = None) -> None:
        if not future.done():
            future.set_exception(as_exception(reason))

    try:
        executor(resolve, reject)
    except Exception as exc:
        reject(exc)
    return FutureThenable(future)
