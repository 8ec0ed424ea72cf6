"""Sequential middleware execution.

``run_middleware`` runs an ordered list of middleware one at a time. Each
entry advances the sequence by returning (sync), by settling the thenable it
returned, or by calling its ``next`` continuation. Parallel entries also get a
``done`` continuation, and the run does not report success until every
outstanding ``done`` has been called.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from grapnel.arity import classify
from grapnel.models import Convention, MiddlewareEntry
from grapnel.thenable import subscribe

logger = logging.getLogger(__name__)

Done = Callable[[BaseException | None], Any]


def raise_unhandled(error: BaseException | None) -> None:
    """Completion handler used when the caller supplied none."""
    if error is not None:
        raise error


class ExecutionState:
    """Completion book-keeping for a single middleware run."""

    def __init__(self, done: Done) -> None:
        self._done = done
        self._tokens = itertools.count()
        self.position = 0
        self.waiting: set[int] = set()
        self.series_finished = False
        self.finished = False
        self.in_step = False
        self.error: BaseException | None = None

    def wait(self, label: str = "") -> Callable[..., None]:
        """Track a parallel completion and return its one-shot ``done`` continuation."""
        token = next(self._tokens)
        self.waiting.add(token)

        def parallel_done(error: BaseException | None = None) -> None:
            if token not in self.waiting:
                logger.debug("Ignoring repeated done() from %s", label or "parallel middleware")
                return
            self.waiting.discard(token)
            if self.finished:
                return
            if error is not None:
                self.fail(error)
            elif self.series_finished and not self.waiting:
                self._finish(None)

        return parallel_done

    def fail(self, error: BaseException) -> None:
        if self.finished:
            logger.debug("Ignoring error after completion: %r", error)
            return
        if self.error is None:
            self.error = error
        if self.in_step:
            # delivered by the driver once the running step returns
            return
        self._finish(self.error)

    def series_done(self) -> None:
        self.series_finished = True
        if not self.waiting:
            self._finish(None)

    def _finish(self, error: BaseException | None) -> None:
        if self.finished:
            return
        self.finished = True
        if error is not None:
            logger.debug("Middleware run failed: %r", error)
        self._done(error)


class _Continuation:
    """One-shot ``next`` handed to the middleware at ``index``."""

    def __init__(self, run: _SeriesRun, index: int) -> None:
        self._run = run
        self.index = index
        self.called = False

    def __call__(self, error: BaseException | None = None) -> None:
        if self.called:
            logger.debug("Ignoring repeated next() from middleware #%d", self.index)
            return
        self.called = True
        self._run.advance(self.index, error)


class _SeriesRun:
    def __init__(self, entries: Sequence[MiddlewareEntry], args: tuple[Any, ...], state: ExecutionState) -> None:
        self.entries = entries
        self.args = args
        self.state = state
        self._current = -1
        self._advanced = False

    def advance(self, index: int, error: BaseException | None) -> None:
        state = self.state
        if state.finished:
            return
        if error is not None:
            state.fail(error)
            return
        state.position = index + 1
        if state.in_step and self._current == index:
            self._advanced = True
        else:
            self.drive()

    def drive(self) -> None:
        # Steps that advance synchronously are run in this loop rather than
        # recursively, so long synchronous chains keep a flat stack.
        state = self.state
        while not state.finished:
            if state.position >= len(self.entries):
                state.series_done()
                return

            index = state.position
            self._current = index
            self._advanced = False
            state.in_step = True
            try:
                self._invoke(self.entries[index], _Continuation(self, index))
            finally:
                state.in_step = False

            if state.error is not None:
                state.fail(state.error)
                return
            if not self._advanced:
                return

    def _invoke(self, entry: MiddlewareEntry, next_: _Continuation) -> None:
        state = self.state
        args = self.args
        try:
            convention = classify(entry, len(args))
            if convention is Convention.SERIES:
                entry.fn(*args, next_)
            elif convention is Convention.PARALLEL:
                entry.fn(*args, next_, state.wait(entry.label))
            else:
                result = entry.fn(*args)
                if not subscribe(result, lambda _value: next_(), next_):
                    next_()
        except Exception as exc:
            next_.called = True
            state.fail(exc)


def run_middleware(
    middleware: Iterable[MiddlewareEntry],
    args: Sequence[Any] = (),
    done: Done | None = None,
) -> ExecutionState:
    """Run ``middleware`` in order against ``args`` and report to ``done(error)``."""
    state = ExecutionState(done or raise_unhandled)
    _SeriesRun(list(middleware), tuple(args), state).drive()
    return state


def run_sync_middleware(middleware: Iterable[MiddlewareEntry], args: Sequence[Any] = ()) -> None:
    """Call each middleware in order; no continuations are passed and errors propagate."""
    for entry in list(middleware):
        entry.fn(*args)
