"""Core domain models for grapnel."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from grapnel.errors import HookConfigurationError


class Convention(str, Enum):
    SYNC = "sync"
    SERIES = "series"
    PARALLEL = "parallel"


class Flavor(str, Enum):
    CALLBACK = "callback"
    THENABLE = "thenable"
    SYNC = "sync"
    DYNAMIC = "dynamic"
    FLEXIBLE = "flexible"


class QualifiedHook(BaseModel):
    """A hook name such as ``pre:save``; bare names carry no ``type``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str | None = None
    name: str | None = None

    @classmethod
    def parse(cls, hook: str | QualifiedHook | None) -> QualifiedHook:
        if isinstance(hook, QualifiedHook):
            return hook
        if hook is not None and not isinstance(hook, str):
            raise HookConfigurationError(f"Hook names must be strings, not {type(hook).__name__}")
        parts = hook.split(":") if hook else []
        return cls(
            type=parts[-2] if len(parts) >= 2 else None,
            name=parts[-1] if parts else None,
        )

    @property
    def qualified(self) -> bool:
        return bool(self.type and self.name)

    def require_qualified(self) -> QualifiedHook:
        if not self.qualified:
            raise HookConfigurationError(
                f'Only qualified hooks are allowed, e.g. "pre:save", not "{self}"'
            )
        return self

    def with_type(self, qualifier: str) -> QualifiedHook:
        return QualifiedHook(type=qualifier, name=self.name)

    def __str__(self) -> str:
        if self.type:
            return f"{self.type}:{self.name or ''}"
        return self.name or ""


class MiddlewareEntry(BaseModel):
    """A registered middleware callable and its optional explicit convention.

    Entries without a convention are classified from their declared
    parameter count each time they run.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    fn: Callable[..., Any]
    convention: Convention | None = None

    @property
    def label(self) -> str:
        return getattr(self.fn, "__qualname__", None) or repr(self.fn)

    @classmethod
    def coerce(cls, item: Any, convention: Convention | None = None) -> MiddlewareEntry:
        if isinstance(item, MiddlewareEntry):
            if convention is not None and item.convention is None:
                return item.model_copy(update={"convention": convention})
            return item
        if not callable(item):
            raise HookConfigurationError(f"Middleware must be callable, got {type(item).__name__}")
        return cls(fn=item, convention=convention)

    def __call__(self, *args: Any) -> Any:
        return self.fn(*args)

    def matches(self, item: Any) -> bool:
        if isinstance(item, MiddlewareEntry):
            return self == item
        return self.fn == item


class ArgumentPolicy(BaseModel):
    """Which of the hook arguments reach pre/post middleware.

    ``True`` forwards everything, ``False`` nothing, an ``int`` the first n
    arguments and a sequence of indices a re-ordered selection.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    pass_params: bool | int | tuple[int, ...] = True

    def select(self, args: Sequence[Any]) -> tuple[Any, ...]:
        passed = self.pass_params
        if passed is True:
            return tuple(args)
        if passed is False:
            return ()
        if isinstance(passed, int):
            return tuple(args[:passed])
        return tuple(_nth(args, index) for index in passed)


def _nth(args: Sequence[Any], index: int) -> Any:
    try:
        return args[index]
    except IndexError:
        return None
