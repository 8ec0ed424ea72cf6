"""Compose pre middleware, a wrapped operation and post middleware into one call.

Every flavor runs the same three phases: middleware registered on the pre
hook (with the hook's argument policy applied), the operation itself with the
untouched arguments, then middleware on the post hook. An error in any phase
skips everything after it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from grapnel.arity import series
from grapnel.config import HookOptions
from grapnel.dezalgo import dezalgofy
from grapnel.errors import HookConfigurationError
from grapnel.models import MiddlewareEntry, QualifiedHook
from grapnel.registry import MiddlewareRegistry
from grapnel.runner import Done, raise_unhandled, run_middleware, run_sync_middleware
from grapnel.thenable import subscribe

logger = logging.getLogger(__name__)

Operation = Callable[..., Any]


def split_callback(args: Sequence[Any]) -> tuple[tuple[Any, ...], Callable[..., Any] | None]:
    """Detach a trailing callable from ``args``."""
    if args and callable(args[-1]):
        return tuple(args[:-1]), args[-1]
    return tuple(args), None


class Deferred:
    """Settlement handles captured from a promise factory."""

    def __init__(self, factory: Callable[..., Any]) -> None:
        self.result: Any = None
        self._resolve: Callable[..., Any] | None = None
        self._reject: Callable[..., Any] | None = None
        self.thenable = factory(self._capture)
        if self._resolve is None or self._reject is None:
            raise HookConfigurationError("Promise factory must call its executor synchronously")

    def _capture(self, resolve: Callable[..., Any], reject: Callable[..., Any]) -> None:
        self._resolve = resolve
        self._reject = reject

    def settle(self, error: BaseException | None) -> None:
        if error is not None:
            self._reject(error)
        else:
            self._resolve(self.result)


class HookOrchestrator:
    def __init__(self, registry: MiddlewareRegistry, options: HookOptions) -> None:
        self.registry = registry
        self.options = options

    def middleware_args(self, hook: str | QualifiedHook, args: Sequence[Any]) -> tuple[Any, ...]:
        return self.registry.argument_policy(hook).select(args)

    def _phase(self, qualifier: str, name: str, args: tuple[Any, ...]) -> MiddlewareEntry:
        hook = self.registry.phase(qualifier, name)

        def run_phase(next_: Callable[..., None]) -> None:
            run_middleware(self.registry.list_middleware(hook), self.middleware_args(hook, args), next_)

        return series(run_phase)

    def _run_phases(self, name: str, operation: MiddlewareEntry, args: tuple[Any, ...], done: Done) -> None:
        qualifiers = self.options.qualifiers
        logger.debug("Running hooks around %s", name)
        run_middleware(
            [
                self._phase(qualifiers.pre, name, args),
                operation,
                self._phase(qualifiers.post, name, args),
            ],
            (),
            done,
        )

    def _scheduler(self) -> Callable[..., Any] | None:
        return self.options.scheduler

    def run_callback(self, name: str, fn: Operation, args: Sequence[Any], callback: Callable[..., Any]) -> None:
        """Run the hooks around a callback-style ``fn(*args, callback)``.

        ``callback(error, *results)`` is never invoked before this call returns.
        """
        args = tuple(args)
        results: list[Any] = []
        operation = _callback_operation(fn, args, results)

        def triad(safe_done: Callable[..., None]) -> None:
            self._run_phases(name, operation, args, lambda error: safe_done(error, *results))

        dezalgofy(triad, callback, self._scheduler())

    def run_flexible(self, name: str, fn: Operation, args: Sequence[Any]) -> None:
        """Like :meth:`run_callback`, but the trailing callback is optional.

        Without a callback, errors are raised to whoever happens to drive the
        chain when it fails.
        """
        args, callback = split_callback(args)
        if callback is not None:
            self.run_callback(name, fn, args, callback)
            return
        self._run_phases(name, _callback_operation(fn, args, []), args, raise_unhandled)

    def run_thenable(self, name: str, fn: Operation, args: Sequence[Any]) -> Any:
        """Run the hooks around ``fn`` and return a thenable for its result.

        ``fn`` may return a thenable, an awaitable or a plain value.
        """
        deferred = Deferred(self.options.thenable_factory())
        args = tuple(args)

        def call_operation(next_: Callable[..., None]) -> None:
            def fulfilled(value: Any) -> None:
                deferred.result = value
                next_()

            result = fn(*args)
            if not subscribe(result, fulfilled, next_):
                fulfilled(result)

        self._run_phases(name, series(call_operation), args, deferred.settle)
        return deferred.thenable

    def run_dynamic(self, name: str, fn: Operation, args: Sequence[Any]) -> Any:
        args, callback = split_callback(args)
        if callback is not None:
            self.run_callback(name, fn, args, callback)
            return None
        return self.run_thenable(name, fn, args)

    def run_sync(self, name: str, fn: Operation, args: Sequence[Any]) -> Any:
        qualifiers = self.options.qualifiers
        pre = self.registry.phase(qualifiers.pre, name)
        post = self.registry.phase(qualifiers.post, name)
        run_sync_middleware(self.registry.list_middleware(pre), self.middleware_args(pre, args))
        result = fn(*args)
        run_sync_middleware(self.registry.list_middleware(post), self.middleware_args(post, args))
        return result

    def call_hook(self, hook: str | QualifiedHook, args: Sequence[Any]) -> None:
        """Run one qualified hook's middleware; a trailing callable receives ``callback(error)``."""
        qualified = self.registry.qualify(hook)
        args, callback = split_callback(args)
        middleware = self.registry.list_middleware(qualified)
        hook_args = self.middleware_args(qualified, args)
        if callback is None:
            run_middleware(middleware, hook_args, raise_unhandled)
            return
        dezalgofy(
            lambda safe_done: run_middleware(middleware, hook_args, safe_done),
            callback,
            self._scheduler(),
        )

    def call_sync_hook(self, hook: str | QualifiedHook, args: Sequence[Any]) -> None:
        qualified = self.registry.qualify(hook)
        run_sync_middleware(self.registry.list_middleware(qualified), self.middleware_args(qualified, args))

    def call_thenable_hook(self, hook: str | QualifiedHook, args: Sequence[Any]) -> Any:
        qualified = self.registry.qualify(hook)
        deferred = Deferred(self.options.thenable_factory())
        run_middleware(
            self.registry.list_middleware(qualified),
            self.middleware_args(qualified, args),
            deferred.settle,
        )
        return deferred.thenable


def _callback_operation(fn: Operation, args: tuple[Any, ...], results: list[Any]) -> MiddlewareEntry:
    """Wrap ``fn(*args, callback)`` as a series step that records its results."""

    def call_operation(next_: Callable[..., None]) -> None:
        def operation_done(error: BaseException | None = None, *values: Any) -> None:
            results[:] = values
            next_(error)

        fn(*args, operation_done)

    return series(call_operation)
