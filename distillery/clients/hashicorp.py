"""A small client for the HashiCorp releases API."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import requests

from distillery.common import APP_VERSION, NAME

API_URL = "https://api.releases.hashicorp.com/v1"


class HashicorpError(Exception):
    """Raised when a HashiCorp releases request fails or cannot be decoded."""


def _obj(value: Any) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise HashicorpError(f"expected a JSON object, got {type(value).__name__}")
    return value


def _parse_time(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise HashicorpError(f"invalid timestamp: {value!r}") from exc


@dataclass
class Build:
    arch: str = ""
    os: str = ""
    unsupported: bool = False
    url: str = ""

    @staticmethod
    def from_dict(data: Any) -> Build:
        data = _obj(data)
        return Build(
            arch=data.get("arch") or "",
            os=data.get("os") or "",
            unsupported=bool(data.get("unsupported")),
            url=data.get("url") or "",
        )


@dataclass
class Status:
    message: str = ""
    state: str = ""

    @staticmethod
    def from_dict(data: Any) -> Status:
        data = _obj(data)
        return Status(message=data.get("message") or "", state=data.get("state") or "")


@dataclass
class Release:
    """A release of a HashiCorp product."""

    builds: list[Build] = field(default_factory=list)
    docker_name_tag: str = ""
    is_prerelease: bool = False
    license_class: str = ""
    name: str = ""
    status: Status = field(default_factory=Status)
    timestamp_created: datetime | None = None
    timestamp_updated: datetime | None = None
    url_blogpost: str = ""
    url_changelog: str = ""
    url_docker_registry_dockerhub: str = ""
    url_docker_registry_ecr: str = ""
    url_license: str = ""
    url_project_website: str = ""
    url_release_notes: str = ""
    url_shasums: str = ""
    url_shasums_signatures: list[str] = field(default_factory=list)
    url_source_repository: str = ""
    version: str = ""

    @staticmethod
    def from_dict(data: Any) -> Release:
        """Build a release from its decoded JSON form."""
        data = _obj(data)
        return Release(
            builds=[Build.from_dict(item) for item in data.get("builds") or []],
            docker_name_tag=data.get("docker_name_tag") or "",
            is_prerelease=bool(data.get("is_prerelease")),
            license_class=data.get("license_class") or "",
            name=data.get("name") or "",
            status=Status.from_dict(data.get("status")),
            timestamp_created=_parse_time(data.get("timestamp_created")),
            timestamp_updated=_parse_time(data.get("timestamp_updated")),
            url_blogpost=data.get("url_blogpost") or "",
            url_changelog=data.get("url_changelog") or "",
            url_docker_registry_dockerhub=data.get("url_docker_registry_dockerhub") or "",
            url_docker_registry_ecr=data.get("url_docker_registry_ecr") or "",
            url_license=data.get("url_license") or "",
            url_project_website=data.get("url_project_website") or "",
            url_release_notes=data.get("url_release_notes") or "",
            url_shasums=data.get("url_shasums") or "",
            url_shasums_signatures=list(data.get("url_shasums_signatures") or []),
            url_source_repository=data.get("url_source_repository") or "",
            version=data.get("version") or "",
        )


@dataclass
class ListReleasesOptions:
    """Options for listing releases; license_class "all" disables the filter."""

    pre_releases: bool = False
    license_class: str = "oss"


class HashicorpClient:
    """Client for the HashiCorp releases API."""

    def __init__(self, session: requests.Session | None = None) -> None:
        self.session = session if session is not None else requests.Session()

    def _get(self, url: str) -> Any:
        headers = {"User-Agent": f"{NAME}/{APP_VERSION}"}
        try:
            response = self.session.get(url, headers=headers)
        except requests.RequestException as exc:
            raise HashicorpError(str(exc)) from exc
        if not response.ok:
            raise HashicorpError(f"GET {url} failed with status {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise HashicorpError(f"invalid JSON in response from {url}: {exc}") from exc

    def list_products(self) -> list[str]:
        """Return the names of all products."""
        data = self._get(f"{API_URL}/products")
        if data is None:
            return []
        if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
            raise HashicorpError("expected a list of product names")
        return data

    def list_releases(self, product: str, options: ListReleasesOptions | None = None) -> list[Release]:
        """Return the releases of a product, without pre-releases unless asked for."""
        options = options if options is not None else ListReleasesOptions()
        query = "" if options.license_class == "all" else f"license_class={options.license_class}"
        data = self._get(f"{API_URL}/releases/{product}?{query}")
        if data is None:
            return []
        if not isinstance(data, list):
            raise HashicorpError("expected a list of releases")
        releases = [Release.from_dict(item) for item in data]
        if not options.pre_releases:
            releases = [release for release in releases if not release.is_prerelease]
        return releases

    def get_version(self, product: str, version: str) -> Release | None:
        """Return one release of a product."""
        data = self._get(f"{API_URL}/releases/{product}/{version}?license_class=oss")
        if data is None:
            return None
        return Release.from_dict(data)