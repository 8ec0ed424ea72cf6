"""Public hook engine: registration, removal, wrapping and direct hook calls."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from grapnel.arity import sync
from grapnel.config import HookOptions, PresetRegistry
from grapnel.errors import HookConfigurationError
from grapnel.models import ArgumentPolicy, Convention, Flavor, MiddlewareEntry, QualifiedHook
from grapnel.orchestrator import Deferred, HookOrchestrator, split_callback
from grapnel.registry import MiddlewareRegistry

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def _flatten(items: Iterable[Any]) -> list[Any]:
    flat: list[Any] = []
    for item in items:
        if isinstance(item, (list, tuple)):
            flat.extend(item)
        else:
            flat.append(item)
    return flat


class HookEngine:
    """Hooks for one host object.

    Middleware is registered per qualified hook (``pre:save``, ``post:save``)
    and runs around the operations wrapped with :meth:`add_hooks` and its
    siblings. Wrapped operations are available as attributes of the engine,
    and the configured qualifiers double as registration shortcuts, so an
    engine built with ``qualifiers={"pre": "before"}`` accepts
    ``engine.before("save", fn)``.
    """

    def __init__(
        self,
        options: HookOptions | Mapping[str, Any] | None = None,
        *,
        preset: str | None = None,
        presets: PresetRegistry | None = None,
        host: Any = None,
    ) -> None:
        if isinstance(options, HookOptions) and not preset:
            self.options = options
        else:
            self.options = (presets or PresetRegistry()).resolve(preset, options)
        self.host = host
        self.registry = MiddlewareRegistry(strict=self.options.strict, qualifiers=self.options.qualifiers)
        self.orchestrator = HookOrchestrator(self.registry, self.options)
        self._methods: dict[str, Callable[..., Any]] = {}

    def __getattr__(self, name: str) -> Any:
        methods = self.__dict__.get("_methods", {})
        if name in methods:
            return methods[name]
        options = self.__dict__.get("options")
        if options is not None and name in (options.qualifiers.pre, options.qualifiers.post):
            return functools.partial(self._register_qualified, name)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    @property
    def methods(self) -> dict[str, Callable[..., Any]]:
        return dict(self._methods)

    # registration

    def hook(
        self,
        hook: str | QualifiedHook,
        *middleware: Any,
        pass_params: Any = _UNSET,
        convention: Convention | None = None,
    ) -> Any:
        """Register ``middleware`` on a qualified hook.

        Returns the engine, or a thenable resolving the next time the hook
        fires when no middleware is given.
        """
        qualified = QualifiedHook.parse(hook).require_qualified()
        return self._register(qualified, middleware, pass_params, convention)

    def pre(self, name: str, *middleware: Any, **kwargs: Any) -> Any:
        return self._register_qualified(self.options.qualifiers.pre, name, *middleware, **kwargs)

    def post(self, name: str, *middleware: Any, **kwargs: Any) -> Any:
        return self._register_qualified(self.options.qualifiers.post, name, *middleware, **kwargs)

    def _register_qualified(
        self,
        qualifier: str,
        name: str,
        *middleware: Any,
        pass_params: Any = _UNSET,
        convention: Convention | None = None,
    ) -> Any:
        qualified = QualifiedHook.parse(f"{qualifier}:{name}").require_qualified()
        return self._register(qualified, middleware, pass_params, convention)

    def _register(
        self,
        hook: QualifiedHook,
        middleware: Iterable[Any],
        pass_params: Any,
        convention: Convention | None,
    ) -> Any:
        hook = self.registry.qualify(hook)
        entries = [MiddlewareEntry.coerce(item, convention) for item in _flatten(middleware)]
        policy = None
        if pass_params is not _UNSET:
            try:
                policy = ArgumentPolicy(pass_params=pass_params)
            except ValidationError as exc:
                raise HookConfigurationError(f"Invalid pass_params for {hook}: {pass_params!r}") from exc

        output: Any = self
        if not entries:
            deferred = Deferred(self.options.thenable_factory())

            def fire_once(*args: Any) -> None:
                self.registry.remove(hook, [entry])
                _resolve_first(deferred, *args)

            entry = sync(fire_once)
            entries = [entry]
            output = deferred.thenable
        self.registry.add(hook, entries, policy)
        return output

    def unhook(self, hook: str | QualifiedHook | None = None, *middleware: Any) -> HookEngine:
        """Remove middleware.

        ``unhook()`` clears every hook, ``unhook("save")`` both qualifiers of
        ``save``, ``unhook("pre:save")`` one hook and
        ``unhook("pre:save", fn)`` only ``fn``.
        """
        self.registry.remove(hook, _flatten(middleware))
        return self

    def hookable(self, *hooks: Any) -> bool:
        if not self.options.strict:
            return True
        return all(self.registry.hookable(hook) for hook in _flatten(hooks))

    def allow_hooks(self, *hooks: Any) -> HookEngine:
        for hook in _flatten(hooks):
            if not isinstance(hook, (str, QualifiedHook)):
                raise HookConfigurationError("`allow_hooks` expects (lists of) strings")
            self.registry.allow(hook)
        return self

    def get_middleware(self, hook: str | QualifiedHook) -> list[Callable[..., Any]]:
        return [entry.fn for entry in self.registry.list_middleware(hook)]

    def has_middleware(self, hook: str | QualifiedHook) -> bool:
        return bool(self.registry.list_middleware(hook))

    def get_middleware_args(self, hook: str | QualifiedHook, args: Iterable[Any]) -> tuple[Any, ...]:
        return self.orchestrator.middleware_args(hook, tuple(args))

    # wrapping

    def add_hooks(self, *targets: Any, **methods: Callable[..., Any]) -> HookEngine:
        """Wrap callback-style operations with pre and post hooks.

        ``targets`` are method names looked up on the host (``"save"``,
        ``"pre:remove"``) or mappings of hook to callable.
        """
        return self._install(self._collect(targets, methods), Flavor.CALLBACK)

    add_async_hooks = add_hooks

    def add_flexible_hooks(self, *targets: Any, **methods: Callable[..., Any]) -> HookEngine:
        return self._install(self._collect(targets, methods), Flavor.FLEXIBLE)

    def add_sync_hooks(self, *targets: Any, **methods: Callable[..., Any]) -> HookEngine:
        return self._install(self._collect(targets, methods), Flavor.SYNC)

    def add_thenable_hooks(self, *targets: Any, **methods: Callable[..., Any]) -> HookEngine:
        return self._install(self._collect(targets, methods), Flavor.THENABLE)

    def add_dynamic_hooks(self, *targets: Any, **methods: Callable[..., Any]) -> HookEngine:
        return self._install(self._collect(targets, methods), Flavor.DYNAMIC)

    def method(self, name: str, fn: Callable[..., Any], flavor: Flavor = Flavor.CALLBACK) -> Callable[..., Any]:
        """Return the wrapped ``name`` operation, wrapping ``fn`` on first use."""
        wrapped = self._methods.get(name)
        if wrapped is None:
            wrapped = self._methods[name] = self.wrap(name, fn, flavor)
        return wrapped

    def wrap(self, name: str, fn: Callable[..., Any], flavor: Flavor = Flavor.CALLBACK) -> Callable[..., Any]:
        orchestrator = self.orchestrator
        flavor = Flavor(flavor)

        if flavor is Flavor.CALLBACK:

            def wrapped(*args: Any) -> None:
                args, callback = split_callback(args)
                if callback is None:
                    raise HookConfigurationError("Async methods should receive a callback as a final parameter")
                orchestrator.run_callback(name, fn, args, callback)

        elif flavor is Flavor.FLEXIBLE:

            def wrapped(*args: Any) -> None:
                orchestrator.run_flexible(name, fn, args)

        elif flavor is Flavor.THENABLE:

            def wrapped(*args: Any) -> Any:
                return orchestrator.run_thenable(name, fn, args)

        elif flavor is Flavor.DYNAMIC:

            def wrapped(*args: Any) -> Any:
                return orchestrator.run_dynamic(name, fn, args)

        else:

            def wrapped(*args: Any) -> Any:
                return orchestrator.run_sync(name, fn, args)

        return functools.wraps(fn)(wrapped)

    def _lookup(self, name: str) -> Callable[..., Any] | None:
        if self.host is not None:
            found = getattr(self.host, name, None)
            if callable(found):
                return found
        return self._methods.get(name)

    def _collect(self, targets: Iterable[Any], methods: Mapping[str, Callable[..., Any]]) -> dict[str, Callable[..., Any]]:
        config: dict[str, Callable[..., Any]] = {}
        for target in _flatten(targets):
            if isinstance(target, str):
                parsed = QualifiedHook.parse(target)
                fn = self._lookup(parsed.name or "")
                if fn is None:
                    raise HookConfigurationError(f'Cannot add hooks to undeclared method: "{parsed.name}"')
                config[target] = fn
            elif isinstance(target, Mapping):
                for hook, fn in target.items():
                    config.setdefault(hook, fn)
            else:
                raise HookConfigurationError("`add_hooks` expects (lists of) strings or mappings")
        for hook, fn in methods.items():
            config.setdefault(hook, fn)

        for hook, fn in config.items():
            if not callable(fn):
                raise HookConfigurationError(f"Cannot add hooks to {hook!r}: {type(fn).__name__} is not callable")
        self.allow_hooks(list(config))
        return config

    def _install(self, config: Mapping[str, Callable[..., Any]], flavor: Flavor) -> HookEngine:
        for hook, fn in config.items():
            name = QualifiedHook.parse(hook).name or ""
            self._methods[name] = self.wrap(name, fn, flavor)
            logger.debug("Wrapped %s as a %s hook", name, flavor.value)
        return self

    # calling

    def call_hook(self, hook: str | QualifiedHook, *args: Any) -> HookEngine:
        """Run the middleware of one qualified hook.

        A trailing callable is treated as ``callback(error)`` and is never
        invoked before this call returns.
        """
        self.orchestrator.call_hook(hook, args)
        return self

    call_async_hook = call_hook

    def call_sync_hook(self, hook: str | QualifiedHook, *args: Any) -> HookEngine:
        self.orchestrator.call_sync_hook(hook, args)
        return self

    def call_thenable_hook(self, hook: str | QualifiedHook, *args: Any) -> Any:
        return self.orchestrator.call_thenable_hook(hook, args)


def _resolve_first(deferred: Deferred, *args: Any) -> None:
    deferred.result = args[0] if args else None
    deferred.settle(None)


def create(
    preset: str | None = None,
    options: HookOptions | Mapping[str, Any] | None = None,
    presets: PresetRegistry | None = None,
) -> HookEngine:
    """Build a standalone engine, optionally from a named preset."""
    return HookEngine(options, preset=preset, presets=presets)
