import asyncio

import pytest

from grapnel import create
from grapnel.errors import HookConfigurationError


class ManualScheduler:
    """Collects deferred completions until the test drains them."""

    def __init__(self) -> None:
        self.pending = []

    def __call__(self, fn, *args) -> None:
        self.pending.append((fn, args))

    def drain(self) -> None:
        while self.pending:
            fn, args = self.pending.pop(0)
            fn(*args)


def _record(outcome):
    return lambda error=None, *values: outcome.append((error, values))


def test_callback_flavor_runs_phases_and_defers_callback() -> None:
    scheduler = ManualScheduler()
    engine = create(options={"scheduler": scheduler})
    log = []
    outcome = []

    def save(doc, callback):
        log.append(("save", doc))
        callback(None, "saved")

    def validate(doc):
        log.append(("pre", doc))

    def notify(doc, next_):
        log.append(("post", doc))
        next_()

    engine.add_hooks(save=save)
    engine.pre("save", validate).post("save", notify)

    engine.save("doc", _record(outcome))
    log.append("returned")

    assert outcome == []
    scheduler.drain()
    assert log == [("pre", "doc"), ("save", "doc"), ("post", "doc"), "returned"]
    assert outcome == [(None, ("saved",))]


def test_callback_flavor_late_completion_is_not_deferred() -> None:
    scheduler = ManualScheduler()
    engine = create(options={"scheduler": scheduler})
    pending = []
    outcome = []

    engine.add_hooks(save=lambda doc, callback: pending.append(callback))
    engine.save("doc", _record(outcome))
    assert outcome == []

    pending[0](None, 1)
    assert outcome == [(None, (1,))]
    assert scheduler.pending == []


def test_callback_flavor_pre_error_skips_operation() -> None:
    scheduler = ManualScheduler()
    engine = create(options={"scheduler": scheduler})
    boom = ValueError("invalid")
    calls = []
    outcome = []

    def reject(doc):
        raise boom

    engine.add_hooks(save=lambda doc, callback: calls.append(doc))
    engine.pre("save", reject)
    engine.save("doc", _record(outcome))
    scheduler.drain()

    assert calls == []
    assert outcome == [(boom, ())]


def test_callback_flavor_operation_error_skips_post() -> None:
    scheduler = ManualScheduler()
    engine = create(options={"scheduler": scheduler})
    boom = RuntimeError("disk full")
    log = []
    outcome = []

    engine.add_hooks(save=lambda doc, callback: callback(boom))
    engine.post("save", lambda doc: log.append("post"))
    engine.save("doc", _record(outcome))
    scheduler.drain()

    assert log == []
    assert outcome == [(boom, ())]


def test_callback_flavor_requires_a_callback() -> None:
    engine = create(options={"scheduler": ManualScheduler()})
    engine.add_hooks(save=lambda doc, callback: callback(None))
    with pytest.raises(HookConfigurationError):
        engine.save("doc")


def test_callback_flavor_without_loop_or_scheduler_fails_before_running() -> None:
    engine = create()
    calls = []
    engine.add_hooks(save=lambda doc, callback: calls.append(doc))
    with pytest.raises(HookConfigurationError):
        engine.save("doc", lambda error=None: None)
    assert calls == []


def test_callback_flavor_uses_running_loop() -> None:
    async def scenario():
        engine = create()
        finished = asyncio.get_running_loop().create_future()
        engine.add_hooks(save=lambda doc, callback: callback(None, doc.upper()))
        engine.save("doc", lambda error, value: finished.set_result((error, value)))
        assert not finished.done()
        return await finished

    assert asyncio.run(scenario()) == (None, "DOC")


def test_parallel_pre_middleware_delays_the_operation() -> None:
    scheduler = ManualScheduler()
    engine = create(options={"scheduler": scheduler})
    pending_done = []
    log = []
    outcome = []

    def audit(doc, next_, done):
        pending_done.append(done)
        next_()

    def save(doc, callback):
        log.append("save")
        callback(None)

    engine.add_hooks(save=save)
    engine.pre("save", audit)
    engine.save("doc", _record(outcome))

    assert log == []
    pending_done[0]()
    assert log == ["save"]
    assert outcome == [(None, ())]


def test_thenable_flavor_resolves_with_operation_result() -> None:
    async def scenario():
        engine = create(options={"create_thenable": "asyncio"})
        log = []

        async def fetch(key):
            log.append("fetch")
            return key.upper()

        engine.add_thenable_hooks(fetch=fetch)
        engine.pre("fetch", lambda key: log.append(("pre", key)))
        engine.post("fetch", lambda key: log.append(("post", key)))
        value = await engine.fetch("doc")
        return value, log

    value, log = asyncio.run(scenario())
    assert value == "DOC"
    assert log == [("pre", "doc"), "fetch", ("post", "doc")]


def test_thenable_flavor_accepts_plain_return_values() -> None:
    async def scenario():
        engine = create(options={"create_thenable": "asyncio"})
        engine.add_thenable_hooks(double=lambda n: n * 2)
        return await engine.double(21)

    assert asyncio.run(scenario()) == 42


def test_thenable_flavor_rejects_on_operation_error() -> None:
    async def scenario():
        engine = create(options={"create_thenable": "asyncio"})
        log = []

        async def fetch(key):
            raise KeyError(key)

        engine.add_thenable_hooks(fetch=fetch)
        engine.post("fetch", lambda key: log.append("post"))
        with pytest.raises(KeyError):
            await engine.fetch("missing")
        return log

    assert asyncio.run(scenario()) == []


def test_thenable_flavor_pre_error_skips_operation() -> None:
    async def scenario():
        engine = create(options={"create_thenable": "asyncio"})
        calls = []

        def deny(key):
            raise PermissionError(key)

        engine.add_thenable_hooks(fetch=lambda key: calls.append(key))
        engine.pre("fetch", deny)
        with pytest.raises(PermissionError):
            await engine.fetch("doc")
        return calls

    assert asyncio.run(scenario()) == []


def test_thenable_flavor_without_factory_fails_before_running() -> None:
    engine = create()
    calls = []
    engine.add_thenable_hooks(fetch=lambda key: calls.append(key))
    with pytest.raises(HookConfigurationError):
        engine.fetch("doc")
    assert calls == []


def test_sync_flavor_returns_operation_result() -> None:
    engine = create()
    log = []
    engine.add_sync_hooks(render=lambda doc: f"<{doc}>")
    engine.pre("render", lambda doc: log.append(("pre", doc)))
    engine.post("render", lambda doc: log.append(("post", doc)))

    assert engine.render("doc") == "<doc>"
    assert log == [("pre", "doc"), ("post", "doc")]


def test_sync_flavor_propagates_errors_and_skips_operation() -> None:
    engine = create()
    calls = []

    def refuse(doc):
        raise ValueError(doc)

    engine.add_sync_hooks(render=lambda doc: calls.append(doc))
    engine.pre("render", refuse)
    with pytest.raises(ValueError):
        engine.render("doc")
    assert calls == []


def test_argument_policies_apply_to_middleware_only() -> None:
    engine = create()
    seen = []

    def record(*args):
        seen.append(args)

    engine.add_sync_hooks(op=lambda a, b, c, d: (a, b, c, d))
    engine.pre("op", record, pass_params=2)
    engine.post("op", record, pass_params=[3, 0])

    assert engine.op(1, 2, 3, 4) == (1, 2, 3, 4)
    assert seen == [(1, 2), (4, 1)]

    engine.unhook("op")
    engine.pre("op", record, pass_params=False)
    seen.clear()
    engine.op(1, 2, 3, 4)
    assert seen == [()]


def _load(key, callback=None):
    if callback is not None:
        callback(None, key * 2)
        return None
    return key * 2


def test_dynamic_flavor_with_callback() -> None:
    scheduler = ManualScheduler()
    engine = create(options={"scheduler": scheduler})
    outcome = []

    engine.add_dynamic_hooks(load=_load)
    assert engine.load("ab", _record(outcome)) is None
    scheduler.drain()
    assert outcome == [(None, ("abab",))]


def test_dynamic_flavor_without_callback_returns_thenable() -> None:
    async def scenario():
        engine = create(options={"create_thenable": "asyncio"})
        engine.add_dynamic_hooks(load=_load)
        return await engine.load("ab")

    assert asyncio.run(scenario()) == "abab"


def test_flexible_flavor_without_callback_raises_synchronously() -> None:
    engine = create()
    calls = []

    def refuse(doc):
        raise ValueError("nope")

    engine.add_flexible_hooks(save=lambda doc, callback: calls.append(doc))
    engine.pre("save", refuse)
    with pytest.raises(ValueError):
        engine.save("doc")
    assert calls == []


def test_flexible_flavor_with_callback_behaves_like_callback_flavor() -> None:
    scheduler = ManualScheduler()
    engine = create(options={"scheduler": scheduler})
    outcome = []

    engine.add_flexible_hooks(save=lambda doc, callback: callback(None, doc))
    engine.save("doc", _record(outcome))
    assert outcome == []
    scheduler.drain()
    assert outcome == [(None, ("doc",))]


def test_call_hook_with_callback_is_deferred() -> None:
    scheduler = ManualScheduler()
    engine = create(options={"scheduler": scheduler}).allow_hooks("save")
    seen = []
    outcome = []

    engine.pre("save", lambda doc: seen.append(doc))
    engine.call_hook("pre:save", "doc", lambda error=None: outcome.append(error))

    assert seen == ["doc"]
    assert outcome == []
    scheduler.drain()
    assert outcome == [None]


def test_call_hook_without_callback_raises() -> None:
    engine = create().allow_hooks("save")

    def refuse(doc):
        raise LookupError(doc)

    engine.pre("save", refuse)
    with pytest.raises(LookupError):
        engine.call_hook("pre:save", "doc")


def test_call_sync_hook_runs_in_order_and_propagates() -> None:
    engine = create().allow_hooks("save")
    seen = []

    def refuse(doc):
        raise ValueError(doc)

    engine.post("save", lambda doc: seen.append(doc))
    engine.call_sync_hook("post:save", "doc")
    assert seen == ["doc"]

    engine.post("save", refuse)
    with pytest.raises(ValueError):
        engine.call_sync_hook("post:save", "again")
    assert seen == ["doc", "again"]


def test_call_thenable_hook_resolves_and_rejects() -> None:
    async def scenario():
        engine = create(options={"create_thenable": "asyncio"}).allow_hooks("save")
        seen = []

        async def audit(doc):
            await asyncio.sleep(0)
            seen.append(doc)

        engine.pre("save", audit)
        assert await engine.call_thenable_hook("pre:save", "doc") is None

        def refuse(doc):
            raise ValueError(doc)

        engine.post("save", refuse)
        with pytest.raises(ValueError):
            await engine.call_thenable_hook("post:save", "doc")
        return seen

    assert asyncio.run(scenario()) == ["doc"]
