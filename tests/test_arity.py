import pytest

from grapnel.arity import classify, declared_params, parallel, series, sync
from grapnel.errors import MiddlewareArityError
from grapnel.models import Convention, MiddlewareEntry


class _Opaque:
    __signature__ = "not a signature"

    def __call__(self, *args):
        return None


def test_declared_params_counts_required_positionals() -> None:
    def nothing():
        pass

    def two(a, b):
        pass

    def with_default(a, b=1):
        pass

    def star(a, *rest, key=None):
        pass

    assert declared_params(nothing) == 0
    assert declared_params(two) == 2
    assert declared_params(with_default) == 1
    assert declared_params(star) == 1
    assert declared_params(lambda x, y, z: None) == 3


def test_declared_params_excludes_bound_self() -> None:
    class Auditor:
        def step(self, doc, next_):
            pass

    assert declared_params(Auditor().step) == 2


def test_declared_params_without_signature_is_zero() -> None:
    assert declared_params(_Opaque()) == 0


def test_classify_by_offset() -> None:
    def plain(doc):
        pass

    def series_style(doc, next_):
        pass

    def parallel_style(doc, next_, done):
        pass

    assert classify(MiddlewareEntry.coerce(plain), 1) is Convention.SYNC
    assert classify(MiddlewareEntry.coerce(series_style), 1) is Convention.SERIES
    assert classify(MiddlewareEntry.coerce(parallel_style), 1) is Convention.PARALLEL
    assert classify(MiddlewareEntry.coerce(plain), 3) is Convention.SYNC


def test_classify_rejects_more_than_two_continuations() -> None:
    def greedy(doc, a, b, c):
        pass

    with pytest.raises(MiddlewareArityError) as exc_info:
        classify(MiddlewareEntry.coerce(greedy), 1)
    assert exc_info.value.declared == 4
    assert exc_info.value.passed == 1


def test_explicit_convention_wins_over_arity() -> None:
    def anything(*args):
        pass

    assert classify(series(anything), 0) is Convention.SERIES
    assert classify(parallel(anything), 5) is Convention.PARALLEL
    assert classify(sync(lambda a, b, c, d: None), 0) is Convention.SYNC


def test_explicit_entries_stay_callable() -> None:
    entry = sync(lambda value: value * 2)
    assert entry(21) == 42
