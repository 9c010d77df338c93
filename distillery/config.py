"""Configuration loading, defaults and path resolution."""

from __future__ import annotations

import logging
import os
import re
import sys
import tomllib
from dataclasses import dataclass, field
from typing import Any

import yaml

from distillery.common import LATEST, NAME, WARN

log = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when a configuration file cannot be read or understood."""


def _expect_str(value: Any, key: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigError(f"expected a string for {key!r}, got {type(value).__name__}")
    return value


def _expect_mapping(value: Any, key: str) -> dict:
    if not isinstance(value, dict):
        raise ConfigError(f"expected a mapping for {key!r}, got {type(value).__name__}")
    return value


@dataclass
class Alias:
    """A short name that stands for a source location and version."""

    name: str = ""
    version: str = LATEST
    flags: dict[str, bool] = field(default_factory=dict)

    @staticmethod
    def parse(value: Any) -> Alias:
        """Build an alias from "name[@version]" or from a mapping of its fields."""
        if isinstance(value, str):
            parts = value.split("@")
            version = parts[1] if len(parts) > 1 else LATEST
            return Alias(name=parts[0], version=version)
        if isinstance(value, dict):
            flags = value.get("flags") or {}
            return Alias(
                name=_expect_str(value.get("name"), "name"),
                version=_expect_str(value.get("version"), "version"),
                flags={str(k): bool(v) for k, v in _expect_mapping(flags, "flags").items()},
            )
        raise ConfigError(f"invalid alias value: {value!r}")


def _alias_from_toml(value: Any) -> Alias:
    if isinstance(value, str):
        return Alias(name=value, version=LATEST)
    return Alias.parse(value)


def _default_aliases() -> dict[str, Alias]:
    return {"dist": Alias(name="github/ekristen/distillery", version=LATEST)}


@dataclass
class Provider:
    """A custom provider built on one of the built-in ones."""

    provider: str = ""
    base_url: str = ""


@dataclass
class Settings:
    """Settings that control verification behaviour."""

    checksum_missing: str = ""
    signature_missing: str = ""
    checksum_unknown: str = ""

    def apply_defaults(self) -> None:
        """Fill every unset setting with "warn"."""
        if not self.checksum_missing:
            self.checksum_missing = WARN
        if not self.signature_missing:
            self.signature_missing = WARN
        if not self.checksum_unknown:
            self.checksum_unknown = WARN


@dataclass
class Config:
    """The configuration of the application."""

    path: str = ""
    bin_path: str = ""
    cache_path: str = ""
    default_source: str = ""
    aliases: dict[str, Alias] | None = None
    language: str = ""
    providers: dict[str, Provider] = field(default_factory=dict)
    settings: Settings | None = None

    def load(self, path: str) -> None:
        """Merge a YAML or TOML file into this configuration; a missing file is ignored."""
        try:
            with open(path, "rb") as fh:
                data = fh.read()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise ConfigError(f"unable to read configuration file {path}: {exc}") from exc

        if path.endswith(".yaml"):
            try:
                parsed = yaml.safe_load(data)
            except yaml.YAMLError as exc:
                raise ConfigError(f"invalid YAML configuration: {exc}") from exc
            self._apply(parsed, toml=False)
        elif path.endswith(".toml"):
            try:
                parsed = tomllib.loads(data.decode("utf-8"))
            except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
                raise ConfigError(f"invalid TOML configuration: {exc}") from exc
            self._apply(parsed, toml=True)
        else:
            raise ConfigError("unknown configuration file suffix")

    def _apply(self, data: Any, toml: bool) -> None:
        if data is None:
            return
        data = _expect_mapping(data, "configuration")
        for key in ("path", "bin_path", "cache_path", "default_source", "language"):
            if key in data:
                setattr(self, key, _expect_str(data[key], key))

        if "aliases" in data:
            raw = data["aliases"]
            if raw is None:
                self.aliases = None
            else:
                make = _alias_from_toml if toml else Alias.parse
                self.aliases = {
                    str(short): make(value) for short, value in _expect_mapping(raw, "aliases").items()
                }

        if data.get("providers") is not None:
            self.providers = {
                str(name): Provider(
                    provider=_expect_str(_expect_mapping(value, name).get("provider"), "provider"),
                    base_url=_expect_str(value.get("base_url"), "base_url"),
                )
                for name, value in _expect_mapping(data["providers"], "providers").items()
            }

        if data.get("settings") is not None:
            raw = _expect_mapping(data["settings"], "settings")
            settings = self.settings or Settings()
            if "checksum-missing" in raw:
                settings.checksum_missing = _expect_str(raw["checksum-missing"], "checksum-missing")
            if "signature-missing" in raw:
                settings.signature_missing = _expect_str(raw["signature-missing"], "signature-missing")
            if "checksum-unknown" in raw:
                settings.checksum_unknown = _expect_str(raw["checksum-unknown"], "checksum-unknown")
            self.settings = settings

    def home_dir(self) -> str:
        return process_path(self.path)

    def cache_dir(self) -> str:
        return process_path(os.path.join(self.cache_path, NAME))

    def metadata_dir(self) -> str:
        return process_path(os.path.join(self.cache_path, NAME, "metadata"))

    def downloads_dir(self) -> str:
        return process_path(os.path.join(self.cache_path, NAME, "downloads"))

    def opt_dir(self) -> str:
        return process_path(os.path.join(self.home_dir(), "opt"))

    def aliases_with_default(self) -> dict[str, Alias]:
        """Return the aliases, making sure the "dist" alias is present."""
        if self.aliases is None:
            return _default_aliases()
        if "dist" not in self.aliases:
            self.aliases["dist"] = Alias(name="github/ekristen/distillery", version=LATEST)
        return self.aliases

    def get_alias(self, name: str) -> Alias | None:
        return self.aliases_with_default().get(name)

    def mkdir_all(self) -> None:
        """Create the bin, opt, cache, metadata and downloads directories."""
        for path in (
            self.bin_path,
            self.opt_dir(),
            self.cache_dir(),
            self.metadata_dir(),
            self.downloads_dir(),
        ):
            os.makedirs(path, mode=0o755, exist_ok=True)


def _user_home_dir() -> str:
    key = "USERPROFILE" if sys.platform == "win32" else "HOME"
    home = os.environ.get(key, "")
    if not home:
        raise ConfigError(f"${key} is not defined")
    return home


def _user_cache_dir() -> str:
    if sys.platform == "win32":
        local = os.environ.get("LOCALAPPDATA", "")
        if not local:
            raise ConfigError("%LocalAppData% is not defined")
        return local
    if sys.platform == "darwin":
        return os.path.join(_user_home_dir(), "Library", "Caches")
    xdg = os.environ.get("XDG_CACHE_HOME", "")
    if not xdg:
        return os.path.join(_user_home_dir(), ".cache")
    if not os.path.isabs(xdg):
        raise ConfigError("path in $XDG_CACHE_HOME is relative")
    return xdg


def load_config(path: str) -> Config:
    """Load the configuration file at path and fill in defaults."""
    cfg = Config()
    cfg.load(path)

    if not cfg.language:
        cfg.language = "en"
    if not cfg.default_source:
        cfg.default_source = "github"
    if not cfg.path:
        cfg.path = os.path.join(_user_home_dir(), f".{NAME}")
    if not cfg.cache_path:
        cfg.cache_path = _user_cache_dir()
    if not cfg.bin_path:
        cfg.bin_path = os.path.join(cfg.path, "bin")
    if cfg.settings is None:
        cfg.settings = Settings()
    cfg.settings.apply_defaults()
    return cfg


_ENV_PATTERN = re.compile(r"\$(?:\{([^}]*)\}|([A-Za-z0-9_]+)|([*#$@!?\-0-9]))")


def _expand_env(path: str) -> str:
    def replace(match: re.Match) -> str:
        name = match.group(1) if match.group(1) is not None else match.group(2) or match.group(3)
        return os.environ.get(name, "") if name else ""

    return _ENV_PATTERN.sub(replace, path)


def process_path(path: str) -> str:
    """Expand environment variables and return a clean absolute path with forward slashes."""
    path = _expand_env(path)
    if not os.path.isabs(path):
        path = os.path.abspath(path)
    path = os.path.normpath(path)
    if os.sep == "/" and path.startswith("//"):
        path = "/" + path.lstrip("/")
    return path.replace(os.sep, "/")