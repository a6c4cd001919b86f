from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

from utils import fold_name

CONFIG_FILENAME = "abl.toml"

RULE_NAMES = ("unknown_variables", "unknown_functions")


def _as_string_list(value: Any) -> Any:
    """Accept ``"x"`` as shorthand for ``["x"]``."""
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return value
    msg = "expected a string or a list of strings"
    raise ValueError(msg)


StringList = Annotated[list[str] | None, BeforeValidator(_as_string_list)]


class ToggleSection(BaseModel):
    """A section carrying only an ``enabled`` flag."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool | None = Field(default=None, description="Feature toggle")


class RuleSection(BaseModel):
    """Settings of one semantic diagnostic rule."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool | None = Field(default=None, description="Rule toggle")
    exclude: StringList = Field(
        default=None,
        description="Path globs (relative to this file's directory) to skip",
    )
    ignore: StringList = Field(
        default=None,
        description="Names never reported by this rule (case-insensitive)",
    )


class DiagnosticsSection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool | None = Field(default=None, description="Semantic diagnostics")
    unknown_variables: RuleSection | None = None
    unknown_functions: RuleSection | None = None


class ConfigFile(BaseModel):
    """One ``abl.toml`` exactly as written; unset keys stay ``None``."""

    model_config = ConfigDict(extra="forbid")

    inherits: StringList = Field(
        default=None,
        description="Parent config files, merged first in listed order",
    )
    propath: StringList = Field(
        default=None,
        description="Include search roots, appended after inherited entries",
    )
    dumpfile: StringList = Field(
        default=None,
        description="Schema dump files, appended after inherited entries",
    )
    completion: ToggleSection | None = None
    diagnostics: DiagnosticsSection | None = None
    semantic_tokens: ToggleSection | None = None


class ConfigError(Exception):
    """Raised when a config file or its inheritance chain cannot be loaded.

    ``paths`` lists every config file the load read or tried to read before
    it failed, so a caller can keep watching them for a fix.
    """

    def __init__(self, message: str, paths: tuple[Path, ...] = ()) -> None:
        super().__init__(message)
        self.paths = paths


@dataclass(frozen=True)
class OriginPath:
    """A path-bearing config value and the directory of the file that set it."""

    value: str
    origin: Path

    def resolve(self) -> Path:
        path = Path(self.value).expanduser()
        if path.is_absolute():
            return path
        return self.origin / path


@dataclass(frozen=True)
class RuleConfig:
    enabled: bool = True
    exclude: tuple[OriginPath, ...] = ()
    ignore: frozenset[str] = frozenset()


@dataclass(frozen=True)
class EffectiveConfig:
    """The merged configuration of one workspace root."""

    root: Path
    propath: tuple[OriginPath, ...] = ()
    dumpfile: tuple[OriginPath, ...] = ()
    completion_enabled: bool = True
    diagnostics_enabled: bool = True
    semantic_tokens_enabled: bool = True
    unknown_variables: RuleConfig = field(default_factory=RuleConfig)
    unknown_functions: RuleConfig = field(default_factory=RuleConfig)
    sources: tuple[Path, ...] = ()
    config_dirs: tuple[Path, ...] = ()

    @classmethod
    def empty(cls, root: Path) -> EffectiveConfig:
        return cls(root=root, config_dirs=(root,))

    def rule(self, name: str) -> RuleConfig:
        if name not in RULE_NAMES:
            msg = f"Unknown diagnostic rule '{name}'"
            raise KeyError(msg)
        rule: RuleConfig = getattr(self, name)
        return rule


def _read_config_file(path: Path) -> ConfigFile:
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError as e:
        msg = f"Config file not found: {path}"
        raise ConfigError(msg) from e
    except OSError as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e

    try:
        return ConfigFile.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid config in {path}: {e}"
        raise ConfigError(msg) from e


def _resolve_inherited(current: Path, inherited: str) -> Path:
    path = Path(inherited).expanduser()
    if not path.is_absolute():
        path = current.parent / path
    return path.resolve()


class _Merger:
    """Depth-first merge over an ``inherits`` graph.

    A file is merged after all of its parents. A file already merged through
    another branch is skipped; a file that reappears on the chain currently
    being loaded is a cycle.
    """

    def __init__(self) -> None:
        self.merged: set[Path] = set()
        self.seen: list[Path] = []
        self.sources: list[Path] = []
        self.propath: list[OriginPath] = []
        self.dumpfile: list[OriginPath] = []
        self.toggles: dict[str, bool] = {
            "completion": True,
            "diagnostics": True,
            "semantic_tokens": True,
        }
        self.rules: dict[str, RuleConfig] = {name: RuleConfig() for name in RULE_NAMES}

    def visit(self, path: Path, chain: tuple[Path, ...] = ()) -> None:
        if path in chain:
            cycle = " -> ".join(str(p) for p in (*chain, path))
            msg = f"Config inheritance cycle: {cycle}"
            raise ConfigError(msg)
        if path in self.merged:
            return
        if path not in self.seen:
            self.seen.append(path)
        data = _read_config_file(path)
        for inherited in data.inherits or []:
            self.visit(_resolve_inherited(path, inherited), (*chain, path))
        self._apply(path, data)
        self.merged.add(path)
        self.sources.append(path)

    def _apply(self, path: Path, data: ConfigFile) -> None:
        origin = path.parent
        self.propath.extend(OriginPath(v, origin) for v in data.propath or [])
        self.dumpfile.extend(OriginPath(v, origin) for v in data.dumpfile or [])

        for section_name in ("completion", "semantic_tokens"):
            section: ToggleSection | None = getattr(data, section_name)
            if section is not None and section.enabled is not None:
                self.toggles[section_name] = section.enabled

        diagnostics = data.diagnostics
        if diagnostics is None:
            return
        if diagnostics.enabled is not None:
            self.toggles["diagnostics"] = diagnostics.enabled
        for rule_name in RULE_NAMES:
            section = getattr(diagnostics, rule_name)
            if section is not None:
                self.rules[rule_name] = _merge_rule(self.rules[rule_name], section, origin)

    def build(self, root: Path) -> EffectiveConfig:
        config_dirs: list[Path] = []
        for source in self.sources:
            if source.parent not in config_dirs:
                config_dirs.append(source.parent)
        return EffectiveConfig(
            root=root,
            propath=tuple(self.propath),
            dumpfile=tuple(self.dumpfile),
            completion_enabled=self.toggles["completion"],
            diagnostics_enabled=self.toggles["diagnostics"],
            semantic_tokens_enabled=self.toggles["semantic_tokens"],
            unknown_variables=self.rules["unknown_variables"],
            unknown_functions=self.rules["unknown_functions"],
            sources=tuple(self.sources),
            config_dirs=tuple(config_dirs) or (root,),
        )


def _merge_rule(base: RuleConfig, section: RuleSection, origin: Path) -> RuleConfig:
    enabled = base.enabled if section.enabled is None else section.enabled
    exclude = base.exclude
    if section.exclude is not None:
        exclude = tuple(OriginPath(pattern, origin) for pattern in section.exclude)
    ignore = base.ignore
    if section.ignore is not None:
        ignore = frozenset(fold_name(name) for name in section.ignore)
    return RuleConfig(enabled=enabled, exclude=exclude, ignore=ignore)


def load_config_file(path: Path, *, root: Path | None = None) -> EffectiveConfig:
    """Load ``path`` and its whole inheritance chain into one effective config."""
    resolved = path.resolve()
    merger = _Merger()
    try:
        merger.visit(resolved)
    except ConfigError as e:
        raise ConfigError(str(e), tuple(merger.seen)) from e
    return merger.build((root or resolved.parent).resolve())


def load_config(root: Path) -> EffectiveConfig:
    """Load configuration from abl.toml if it exists."""
    config_path = Path(root) / CONFIG_FILENAME

    if not config_path.is_file():
        return EffectiveConfig.empty(Path(root).resolve())

    return load_config_file(config_path, root=Path(root))
