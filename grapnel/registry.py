"""Middleware registry: ordered middleware and argument policy per qualified hook."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from grapnel.config import QualifierConfig
from grapnel.errors import HookConfigurationError, StrictModeError
from grapnel.models import ArgumentPolicy, MiddlewareEntry, QualifiedHook

logger = logging.getLogger(__name__)

_PASS_ALL = ArgumentPolicy()


class MiddlewareRegistry:
    """Declared hooks, their middleware (in insertion order) and argument policies."""

    def __init__(self, strict: bool = True, qualifiers: QualifierConfig | None = None) -> None:
        self.strict = strict
        self.qualifiers = qualifiers or QualifierConfig()
        self._middleware: dict[QualifiedHook, list[MiddlewareEntry]] = {}
        self._policies: dict[QualifiedHook, ArgumentPolicy] = {}

    def qualify(self, hook: str | QualifiedHook) -> QualifiedHook:
        return self._check_type(QualifiedHook.parse(hook).require_qualified())

    def _check_type(self, hook: QualifiedHook) -> QualifiedHook:
        pre, post = self.qualifiers.pre, self.qualifiers.post
        if hook.type not in (pre, post):
            raise HookConfigurationError(
                f'Only "{pre}" and "{post}" types are allowed, not "{hook.type}"'
            )
        return hook

    def phase(self, qualifier: str, name: str) -> QualifiedHook:
        return QualifiedHook(type=qualifier, name=name)

    def expand(self, hook: str | QualifiedHook) -> list[QualifiedHook]:
        """Validate ``hook`` and expand a bare name to its pre and post forms."""
        parsed = QualifiedHook.parse(hook)
        if not parsed.name:
            raise HookConfigurationError(f"Invalid hook name: {hook!r}")
        if parsed.type is None:
            return [parsed.with_type(self.qualifiers.pre), parsed.with_type(self.qualifiers.post)]
        return [self._check_type(parsed)]

    def allow(self, hook: str | QualifiedHook) -> list[QualifiedHook]:
        allowed = self.expand(hook)
        for qualified in allowed:
            self._middleware.setdefault(qualified, [])
        return allowed

    def is_declared(self, hook: str | QualifiedHook) -> bool:
        return self.qualify(hook) in self._middleware

    def hookable(self, hook: str | QualifiedHook) -> bool:
        qualified = self.qualify(hook)
        return not self.strict or qualified in self._middleware

    def add(
        self,
        hook: str | QualifiedHook,
        entries: Iterable[MiddlewareEntry],
        policy: ArgumentPolicy | None = None,
    ) -> None:
        qualified = self.qualify(hook)
        existing = self._middleware.get(qualified)
        if existing is None:
            if self.strict:
                raise StrictModeError(str(qualified))
            existing = []
        added = list(entries)
        self._middleware[qualified] = [*existing, *added]
        if policy is not None:
            self._policies[qualified] = policy
        logger.debug("Registered %d middleware for %s", len(added), qualified)

    def remove(self, hook: str | QualifiedHook | None = None, middleware: Sequence[Any] = ()) -> None:
        parsed = QualifiedHook.parse(hook)
        if parsed.type or middleware:
            qualified = parsed.require_qualified()
            current = self._middleware.get(qualified)
            if current is None:
                return
            if middleware:
                self._middleware[qualified] = [
                    entry for entry in current if not any(entry.matches(item) for item in middleware)
                ]
            else:
                self._middleware[qualified] = []
            logger.debug("Removed middleware from %s", qualified)
        elif parsed.name:
            for qualifier in (self.qualifiers.pre, self.qualifiers.post):
                qualified = self.phase(qualifier, parsed.name)
                if qualified in self._middleware:
                    self._middleware[qualified] = []
            logger.debug("Removed middleware from %s", parsed.name)
        else:
            for qualified in self._middleware:
                self._middleware[qualified] = []
            logger.debug("Removed all middleware")

    def list_middleware(self, hook: str | QualifiedHook) -> list[MiddlewareEntry]:
        return list(self._middleware.get(self.qualify(hook), ()))

    def argument_policy(self, hook: str | QualifiedHook) -> ArgumentPolicy:
        return self._policies.get(self.qualify(hook), _PASS_ALL)

    def hooks(self) -> list[QualifiedHook]:
        return list(self._middleware)
