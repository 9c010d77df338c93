"""A small client for the Homebrew formulae API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import requests

from distillery.common import APP_VERSION, NAME

log = logging.getLogger(__name__)

FORMULA_URL = "https://formulae.brew.sh/api/formula/{formula}.json"


class HomebrewError(Exception):
    """Raised when a Homebrew request fails or returns data that cannot be decoded."""


def _obj(value: Any) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise HomebrewError(f"expected a JSON object, got {type(value).__name__}")
    return value


def _list(value: Any) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise HomebrewError(f"expected a JSON array, got {type(value).__name__}")
    return list(value)


@dataclass
class Versions:
    stable: str = ""
    head: str = ""
    bottle: bool = False

    @staticmethod
    def from_dict(data: Any) -> Versions:
        data = _obj(data)
        return Versions(
            stable=data.get("stable") or "",
            head=data.get("head") or "",
            bottle=bool(data.get("bottle")),
        )


@dataclass
class StableUrl:
    url: str = ""
    tag: Any = None
    revision: Any = None
    using: Any = None
    checksum: str = ""

    @staticmethod
    def from_dict(data: Any) -> StableUrl:
        data = _obj(data)
        return StableUrl(
            url=data.get("url") or "",
            tag=data.get("tag"),
            revision=data.get("revision"),
            using=data.get("using"),
            checksum=data.get("checksum") or "",
        )


@dataclass
class HeadUrl:
    url: str = ""
    branch: str = ""
    using: Any = None

    @staticmethod
    def from_dict(data: Any) -> HeadUrl:
        data = _obj(data)
        return HeadUrl(
            url=data.get("url") or "",
            branch=data.get("branch") or "",
            using=data.get("using"),
        )


@dataclass
class Urls:
    stable: StableUrl = field(default_factory=StableUrl)
    head: HeadUrl = field(default_factory=HeadUrl)

    @staticmethod
    def from_dict(data: Any) -> Urls:
        data = _obj(data)
        return Urls(
            stable=StableUrl.from_dict(data.get("stable")),
            head=HeadUrl.from_dict(data.get("head")),
        )


@dataclass
class FileVariant:
    cellar: str = ""
    url: str = ""
    sha256: str = ""

    @staticmethod
    def from_dict(data: Any) -> FileVariant:
        data = _obj(data)
        return FileVariant(
            cellar=data.get("cellar") or "",
            url=data.get("url") or "",
            sha256=data.get("sha256") or "",
        )


@dataclass
class BottleStable:
    rebuild: int = 0
    root_url: str = ""
    files: dict[str, FileVariant] = field(default_factory=dict)

    @staticmethod
    def from_dict(data: Any) -> BottleStable:
        data = _obj(data)
        return BottleStable(
            rebuild=data.get("rebuild") or 0,
            root_url=data.get("root_url") or "",
            files={str(k): FileVariant.from_dict(v) for k, v in _obj(data.get("files")).items()},
        )


@dataclass
class Bottle:
    stable: BottleStable = field(default_factory=BottleStable)

    @staticmethod
    def from_dict(data: Any) -> Bottle:
        data = _obj(data)
        return Bottle(stable=BottleStable.from_dict(data.get("stable")))


@dataclass
class Variation:
    build_dependencies: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)

    @staticmethod
    def from_dict(data: Any) -> Variation:
        data = _obj(data)
        return Variation(
            build_dependencies=_list(data.get("build_dependencies")),
            dependencies=_list(data.get("dependencies")),
        )


@dataclass
class Formula:
    """A Homebrew formula as described by the formulae API."""

    name: str = ""
    full_name: str = ""
    tap: str = ""
    oldnames: list[Any] = field(default_factory=list)
    aliases: list[str] = field(default_factory=list)
    versioned_formulae: list[str] = field(default_factory=list)
    desc: str = ""
    license: str = ""
    homepage: str = ""
    versions: Versions = field(default_factory=Versions)
    urls: Urls = field(default_factory=Urls)
    revision: int = 0
    version_scheme: int = 0
    bottle: Bottle = field(default_factory=Bottle)
    pour_bottle_only_if: Any = None
    keg_only: bool = False
    keg_only_reason: Any = None
    options: list[Any] = field(default_factory=list)
    build_dependencies: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    test_dependencies: list[Any] = field(default_factory=list)
    recommended_dependencies: list[Any] = field(default_factory=list)
    optional_dependencies: list[Any] = field(default_factory=list)
    uses_from_macos: list[Any] = field(default_factory=list)
    uses_from_macos_bounds: list[Any] = field(default_factory=list)
    requirements: list[Any] = field(default_factory=list)
    conflicts_with: list[Any] = field(default_factory=list)
    conflicts_with_reasons: list[Any] = field(default_factory=list)
    link_overwrite: list[Any] = field(default_factory=list)
    caveats: Any = None
    installed: list[Any] = field(default_factory=list)
    linked_keg: Any = None
    pinned: bool = False
    outdated: bool = False
    deprecated: bool = False
    deprecation_date: Any = None
    deprecation_reason: Any = None
    disabled: bool = False
    disable_date: Any = None
    disable_reason: Any = None
    post_install_defined: bool = False
    service: Any = None
    tap_git_head: str = ""
    ruby_source_path: str = ""
    ruby_source_checksum: str = ""
    variations: dict[str, Variation] = field(default_factory=dict)
    analytics: dict[str, Any] = field(default_factory=dict)
    generated_date: str = ""

    @staticmethod
    def from_dict(data: Any) -> Formula:
        """Build a formula from its decoded JSON form."""
        data = _obj(data)
        return Formula(
            name=data.get("name") or "",
            full_name=data.get("full_name") or "",
            tap=data.get("tap") or "",
            oldnames=_list(data.get("oldnames")),
            aliases=_list(data.get("aliases")),
            versioned_formulae=_list(data.get("versioned_formulae")),
            desc=data.get("desc") or "",
            license=data.get("license") or "",
            homepage=data.get("homepage") or "",
            versions=Versions.from_dict(data.get("versions")),
            urls=Urls.from_dict(data.get("urls")),
            revision=data.get("revision") or 0,
            version_scheme=data.get("version_scheme") or 0,
            bottle=Bottle.from_dict(data.get("bottle")),
            pour_bottle_only_if=data.get("pour_bottle_only_if"),
            keg_only=bool(data.get("keg_only")),
            keg_only_reason=data.get("keg_only_reason"),
            options=_list(data.get("options")),
            build_dependencies=_list(data.get("build_dependencies")),
            dependencies=_list(data.get("dependencies")),
            test_dependencies=_list(data.get("test_dependencies")),
            recommended_dependencies=_list(data.get("recommended_dependencies")),
            optional_dependencies=_list(data.get("optional_dependencies")),
            uses_from_macos=_list(data.get("uses_from_macos")),
            uses_from_macos_bounds=_list(data.get("uses_from_macos_bounds")),
            requirements=_list(data.get("requirements")),
            conflicts_with=_list(data.get("conflicts_with")),
            conflicts_with_reasons=_list(data.get("conflicts_with_reasons")),
            link_overwrite=_list(data.get("link_overwrite")),
            caveats=data.get("caveats"),
            installed=_list(data.get("installed")),
            linked_keg=data.get("linked_keg"),
            pinned=bool(data.get("pinned")),
            outdated=bool(data.get("outdated")),
            deprecated=bool(data.get("deprecated")),
            deprecation_date=data.get("deprecation_date"),
            deprecation_reason=data.get("deprecation_reason"),
            disabled=bool(data.get("disabled")),
            disable_date=data.get("disable_date"),
            disable_reason=data.get("disable_reason"),
            post_install_defined=bool(data.get("post_install_defined")),
            service=data.get("service"),
            tap_git_head=data.get("tap_git_head") or "",
            ruby_source_path=data.get("ruby_source_path") or "",
            ruby_source_checksum=_obj(data.get("ruby_source_checksum")).get("sha256") or "",
            variations={str(k): Variation.from_dict(v) for k, v in _obj(data.get("variations")).items()},
            analytics=_obj(data.get("analytics")),
            generated_date=data.get("generated_date") or "",
        )


class HomebrewClient:
    """Client for fetching formula descriptions from Homebrew."""

    def __init__(self, session: requests.Session | None = None) -> None:
        self.session = session if session is not None else requests.Session()

    def get_formula(self, formula: str) -> Formula | None:
        """Return the description of the named formula."""
        url = FORMULA_URL.format(formula=formula)
        log.debug("fetching formula: %s", url)
        headers = {"User-Agent": f"{NAME}/{APP_VERSION}"}
        try:
            response = self.session.get(url, headers=headers)
        except requests.RequestException as exc:
            raise HomebrewError(str(exc)) from exc
        if not response.ok:
            raise HomebrewError(f"GET {url} failed with status {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise HomebrewError(f"invalid JSON in response from {url}: {exc}") from exc
        if data is None:
            return None
        return Formula.from_dict(data)