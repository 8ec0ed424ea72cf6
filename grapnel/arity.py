"""Calling-convention classification for middleware.

Middleware registered with an explicit :class:`Convention` (see :func:`sync`,
:func:`series` and :func:`parallel`) always runs with that convention. Plain
callables fall back to arity inference: the number of positional parameters
the callable declares beyond the hook arguments decides whether it receives
no continuation, ``next``, or ``next`` and ``done``.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any

from grapnel.errors import MiddlewareArityError
from grapnel.models import Convention, MiddlewareEntry

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)

_BY_OFFSET = {
    1: Convention.SERIES,
    2: Convention.PARALLEL,
}


def declared_params(fn: Callable[..., Any]) -> int:
    """Count required positional parameters, stopping at the first default or ``*args``."""
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return 0

    count = 0
    for param in signature.parameters.values():
        if param.kind not in _POSITIONAL or param.default is not inspect.Parameter.empty:
            break
        count += 1
    return count


def classify(entry: MiddlewareEntry, arg_count: int) -> Convention:
    if entry.convention is not None:
        return entry.convention

    declared = declared_params(entry.fn)
    offset = declared - arg_count
    if offset <= 0:
        return Convention.SYNC
    try:
        return _BY_OFFSET[offset]
    except KeyError:
        raise MiddlewareArityError(entry.label, declared, arg_count) from None


def sync(fn: Callable[..., Any]) -> MiddlewareEntry:
    return MiddlewareEntry(fn=fn, convention=Convention.SYNC)


def series(fn: Callable[..., Any]) -> MiddlewareEntry:
    return MiddlewareEntry(fn=fn, convention=Convention.SERIES)


def parallel(fn: Callable[..., Any]) -> MiddlewareEntry:
    return MiddlewareEntry(fn=fn, convention=Convention.PARALLEL)
