"""Exception types raised by grapnel."""

from __future__ import annotations

from typing import Any


class HookError(Exception):
    """Base class for every error grapnel raises itself."""


class HookConfigurationError(HookError, ValueError):
    """Invalid registration, qualification or engine configuration."""


class StrictModeError(HookConfigurationError):
    def __init__(self, hook: str) -> None:
        super().__init__(f"Hooks for {hook} are not supported.")
        self.hook = hook


class MiddlewareArityError(HookError, TypeError):
    def __init__(self, name: str, declared: int, passed: int) -> None:
        super().__init__(
            f"Middleware {name!r} declares {declared} positional parameters but the hook passes {passed}; "
            "at most two continuation parameters (next, done) are supported"
        )
        self.declared = declared
        self.passed = passed


class ThenableRejectedError(HookError):
    """A thenable rejected with a reason that is not an exception."""

    def __init__(self, reason: Any) -> None:
        super().__init__(f"Thenable rejected with {reason!r}")
        self.reason = reason
