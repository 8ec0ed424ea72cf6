"""Configuration models, named presets and preset loading for grapnel."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from grapnel.errors import HookConfigurationError
from grapnel.thenable import future_thenable

_THENABLE_FACTORIES: dict[str, Callable[..., Any]] = {
    "asyncio": future_thenable,
}


class QualifierConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    pre: str = "pre"
    post: str = "post"

    @field_validator("pre", "post")
    @classmethod
    def _plain_name(cls, value: str) -> str:
        if not value or ":" in value:
            raise ValueError(f"qualifier must be a non-empty name without ':', got {value!r}")
        return value

    @model_validator(mode="after")
    def _distinct(self) -> QualifierConfig:
        if self.pre == self.post:
            raise ValueError("pre and post qualifiers must differ")
        return self


class HookOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    strict: bool = True
    qualifiers: QualifierConfig = Field(default_factory=QualifierConfig)
    create_thenable: Callable[..., Any] | None = None
    scheduler: Callable[..., Any] | None = None

    @field_validator("create_thenable", mode="before")
    @classmethod
    def _named_factory(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return _THENABLE_FACTORIES[value]
            except KeyError:
                raise ValueError(f"Unknown thenable factory {value!r}") from None
        return value

    def thenable_factory(self) -> Callable[..., Any]:
        if self.create_thenable is None:
            raise HookConfigurationError(
                "Instance not set up for thenable creation, please set `create_thenable`"
            )
        return self.create_thenable


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        elif isinstance(value, Mapping):
            merged[key] = _deep_merge({}, value)
        else:
            merged[key] = value
    return merged


def _as_mapping(options: HookOptions | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(options, HookOptions):
        return options.model_dump(exclude_unset=True)
    return options


class PresetRegistry:
    """Named option presets, owned by whoever builds engines from them.

    Paths are dotted: ``set("example.qualifiers.pre", "before")`` updates a
    single value inside the ``example`` preset.
    """

    def __init__(self, presets: Mapping[str, Any] | None = None) -> None:
        self._presets: dict[str, Any] = _deep_merge({}, presets or {})

    def set(self, path: str, value: Any) -> PresetRegistry:
        *parents, leaf = path.split(".")
        node = self._presets
        for key in parents:
            child = node.get(key)
            if not isinstance(child, dict):
                child = node[key] = {}
            node = child
        if isinstance(value, (HookOptions, Mapping)):
            value = _deep_merge({}, _as_mapping(value))
        node[leaf] = value
        return self

    def get(self, path: str, default: Any = None) -> Any:
        node: Any = self._presets
        for key in path.split("."):
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node

    def names(self) -> list[str]:
        return sorted(self._presets)

    def resolve(
        self,
        name: str | None = None,
        overrides: HookOptions | Mapping[str, Any] | None = None,
    ) -> HookOptions:
        """Build options with precedence overrides > preset ``name`` > defaults."""
        merged: dict[str, Any] = {}
        if name:
            preset = self.get(name)
            if not isinstance(preset, dict):
                raise HookConfigurationError(f"Unknown preset: {name!r}")
            merged = _deep_merge(merged, preset)
        if overrides:
            merged = _deep_merge(merged, _as_mapping(overrides))
        return HookOptions.model_validate(merged)


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text())
    return data or {}


def load_presets(path: str | Path) -> PresetRegistry:
    """Load ``{preset_name: options}`` from a YAML file."""
    data = _load_yaml(Path(path))
    if not isinstance(data, dict):
        raise ValueError(f"YAML at {path} must decode to a mapping of preset names")
    for name, options in data.items():
        if not isinstance(options, dict):
            raise ValueError(f"Preset {name!r} in {path} must be a mapping")
    return PresetRegistry(data)
