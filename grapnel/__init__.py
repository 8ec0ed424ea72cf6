"""Pre/post hooks with sync, callback, parallel and thenable middleware."""

from .arity import parallel, series, sync
from .config import HookOptions, PresetRegistry, QualifierConfig, load_presets
from .engine import HookEngine, create
from .errors import (
    HookConfigurationError,
    HookError,
    MiddlewareArityError,
    StrictModeError,
    ThenableRejectedError,
)
from .host import Hookable, hooked
from .models import Convention, Flavor, MiddlewareEntry, QualifiedHook
from .thenable import FutureThenable, future_thenable, is_thenable

__all__ = [
    "Convention",
    "Flavor",
    "FutureThenable",
    "HookConfigurationError",
    "HookEngine",
    "HookError",
    "HookOptions",
    "Hookable",
    "MiddlewareArityError",
    "MiddlewareEntry",
    "PresetRegistry",
    "QualifiedHook",
    "QualifierConfig",
    "StrictModeError",
    "ThenableRejectedError",
    "create",
    "future_thenable",
    "hooked",
    "is_thenable",
    "load_presets",
    "parallel",
    "series",
    "sync",
]
