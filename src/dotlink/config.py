"""TOML configuration loading for dotlink."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .models import Platform

DEFAULT_CONFIG_FILENAME = "dotlink.toml"
REPO_ENV_VAR = "DOTLINK_REPO"
COMMON_REPO_LOCATIONS = (".dotfiles", "dotfiles", ".config/dotfiles")


class ConfigError(RuntimeError):
    """Raised when a configuration file cannot be parsed or validated."""


def _expand_path(raw: str | os.PathLike[str] | Path, *, base_dir: Path) -> Path:
    """Return an absolute ``Path`` by expanding env vars and user segments."""

    text = str(raw)
    expanded = Path(os.path.expandvars(text)).expanduser()
    if expanded.is_absolute():
        return expanded.resolve(strict=False)
    return (base_dir / expanded).resolve(strict=False)


class Settings(BaseModel):
    """Global configuration options."""

    model_config = ConfigDict(frozen=True)

    repo_dir: Path
    source_dir: Path

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], *, base_dir: Path) -> "Settings":
        source = _expand_path(raw.get("source_dir", "config"), base_dir=base_dir)
        return cls(repo_dir=base_dir, source_dir=source)


class BackupPolicy(BaseModel):
    """Retention thresholds applied by ``dotlink backup clean``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_age_days: float = Field(default=30, ge=0)
    max_count: int = Field(default=5, ge=0)


class SymlinkCondition(BaseModel):
    """Machine predicates gating a link; all given predicates must match."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    platform: Platform | None = None
    hostname: str | None = None


class SymlinkSpec(BaseModel):
    """One configured link, normalized from either accepted TOML shape.

    ``"shell/zshrc" = ".zshrc"`` and
    ``"shell/zshrc" = { target = ".zshrc", when = { platform = "linux" } }``
    both produce this record; only the latter carries a condition.
    """

    model_config = ConfigDict(frozen=True)

    source: Path
    target: Path
    condition: SymlinkCondition | None = None

    @classmethod
    def from_raw(cls, source: str, raw: Any) -> "SymlinkSpec":
        if isinstance(raw, str):
            return cls(source=Path(source), target=Path(raw))

        if not isinstance(raw, Mapping):
            raise ConfigError(f"Symlink '{source}' must map to a target path or a table with a 'target' key")

        unknown = set(raw) - {"target", "when"}
        if unknown:
            raise ConfigError(f"Symlink '{source}' has unknown keys: {', '.join(sorted(unknown))}")

        target = raw.get("target")
        if not isinstance(target, str) or not target:
            raise ConfigError(f"Symlink '{source}' must define a non-empty 'target'")

        when = raw.get("when")
        condition = SymlinkCondition.model_validate(when) if when is not None else None
        return cls(source=Path(source), target=Path(target), condition=condition)


class LinkHooks(BaseModel):
    """Shell commands run around ``dotlink link``; a single string is one command."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    pre_link: tuple[str, ...] = ()
    post_link: tuple[str, ...] = ()

    @field_validator("pre_link", "post_link", mode="before")
    @classmethod
    def _wrap_single_command(cls, value: Any) -> Any:
        if isinstance(value, str):
            return (value,)
        return value


class TemplateSpec(BaseModel):
    """A template copied into home once, never overwritten afterwards."""

    model_config = ConfigDict(frozen=True)

    template: Path
    target: Path


class Config(BaseModel):
    """Fully parsed configuration file."""

    model_config = ConfigDict(frozen=True)

    config_path: Path
    settings: Settings
    backup: BackupPolicy = Field(default_factory=BackupPolicy)
    symlinks: tuple[SymlinkSpec, ...]
    templates: tuple[TemplateSpec, ...] = ()
    hooks: LinkHooks = Field(default_factory=LinkHooks)

    def source_path(self, relative: Path) -> Path:
        """Return the absolute repository path for a spec's ``source``."""

        return self.settings.source_dir / relative


def load_config(path: Path | None = None) -> Config:
    """Load and validate a configuration file.

    Args:
        path: Optional path to the TOML file or its directory. When omitted the
            location is discovered (see ``_resolve_config_path``).
    """

    config_path = _resolve_config_path(path)
    base_dir = config_path.parent

    try:
        with config_path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Configuration file '{config_path}' is not valid TOML: {exc}") from exc

    symlinks_section = data.get("symlinks")
    if not isinstance(symlinks_section, Mapping):
        raise ConfigError("Configuration must define a [symlinks] table")

    templates_section = data.get("templates") or {}
    if not isinstance(templates_section, Mapping):
        raise ConfigError("[templates] must map template paths to target paths")

    try:
        symlinks = tuple(SymlinkSpec.from_raw(source, raw) for source, raw in symlinks_section.items())
        templates = tuple(
            TemplateSpec.model_validate({"template": template, "target": target})
            for template, target in templates_section.items()
        )
        backup = BackupPolicy.model_validate(data.get("backup") or {})
        hooks = LinkHooks.model_validate(data.get("hooks") or {})
        settings = Settings.from_raw(data.get("settings") or {}, base_dir=base_dir)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in '{config_path}':\n{exc}") from exc

    return Config(
        config_path=config_path,
        settings=settings,
        backup=backup,
        symlinks=symlinks,
        templates=templates,
        hooks=hooks,
    )


def _resolve_config_path(path: Path | None) -> Path:
    if path is None:
        path = _discover_config_dir()
    else:
        path = Path(path)

    if not path.exists():
        raise ConfigError(f"Configuration file '{path}' does not exist")
    if path.is_dir():
        candidate = path / DEFAULT_CONFIG_FILENAME
        if not candidate.exists():
            raise ConfigError(f"Expected to find '{DEFAULT_CONFIG_FILENAME}' inside '{path}', but none was located")
        path = candidate

    return path.resolve(strict=False)


def _discover_config_dir() -> Path:
    env_dir = os.environ.get(REPO_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser()

    cwd = Path.cwd()
    if (cwd / DEFAULT_CONFIG_FILENAME).exists():
        return cwd

    home = Path.home()
    for location in COMMON_REPO_LOCATIONS:
        candidate = home / location
        if (candidate / DEFAULT_CONFIG_FILENAME).exists():
            return candidate

    return cwd / DEFAULT_CONFIG_FILENAME
