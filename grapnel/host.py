"""Host integration: classes own a hook engine and expose hooked methods.

    class Document(Hookable):
        @hooked
        def save(self, callback):
            ...

    doc = Document()
    doc.hooks.pre("save", validate)
    doc.save(on_saved)
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Mapping
from typing import Any, ClassVar

from grapnel.config import HookOptions, PresetRegistry
from grapnel.engine import HookEngine
from grapnel.models import Flavor


class HookedMethod:
    """Descriptor running the owner's pre and post hooks around a method."""

    def __init__(self, func: Callable[..., Any], flavor: Flavor | str = Flavor.CALLBACK) -> None:
        functools.update_wrapper(self, func)
        self.func = func
        self.flavor = Flavor(flavor)
        self.name = func.__name__

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance.hooks.method(self.name, self.func.__get__(instance, owner), self.flavor)


def hooked(
    func: Callable[..., Any] | None = None,
    *,
    flavor: Flavor | str = Flavor.CALLBACK,
) -> Any:
    """Mark a method of a :class:`Hookable` as hooked.

    Usable bare (``@hooked``, callback flavor) or with a flavor
    (``@hooked(flavor="sync")``).
    """
    if func is None:
        return lambda inner: HookedMethod(inner, flavor)
    return HookedMethod(func, flavor)


def hooked_names(cls: type) -> list[str]:
    names: list[str] = []
    for klass in reversed(cls.__mro__):
        for attr, value in vars(klass).items():
            if isinstance(value, HookedMethod) and attr not in names:
                names.append(attr)
    return names


class Hookable:
    """Base class giving each instance its own :class:`HookEngine` as ``self.hooks``.

    The engine is built on first access from the class-level
    ``hook_options``, ``hook_preset`` and ``hook_presets``; every
    :func:`hooked` method is declared on it.
    """

    hook_options: ClassVar[HookOptions | Mapping[str, Any] | None] = None
    hook_preset: ClassVar[str | None] = None
    hook_presets: ClassVar[PresetRegistry | None] = None

    @property
    def hooks(self) -> HookEngine:
        engine = self.__dict__.get("_hook_engine")
        if engine is None:
            engine = HookEngine(
                self.hook_options,
                preset=self.hook_preset,
                presets=self.hook_presets,
                host=self,
            )
            engine.allow_hooks(hooked_names(type(self)))
            self.__dict__["_hook_engine"] = engine
        return engine
