"""A small client for the GitLab releases API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from urllib.parse import quote_plus

import requests

from distillery.common import APP_VERSION, NAME, TRACE

log = logging.getLogger(__name__)

BASE_URL = "https://gitlab.com/api/v4"


class GitLabError(Exception):
    """Raised when a GitLab request fails or returns data that cannot be decoded."""


def _parse_time(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise GitLabError(f"invalid timestamp: {value!r}") from exc


def _obj(value: Any) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise GitLabError(f"expected a JSON object, got {type(value).__name__}")
    return value


@dataclass
class Author:
    id: int = 0
    username: str = ""
    name: str = ""
    state: str = ""
    locked: bool = False
    avatar_url: str = ""
    web_url: str = ""

    @staticmethod
    def from_dict(data: Any) -> Author:
        data = _obj(data)
        return Author(
            id=data.get("id") or 0,
            username=data.get("username") or "",
            name=data.get("name") or "",
            state=data.get("state") or "",
            locked=bool(data.get("locked")),
            avatar_url=data.get("avatar_url") or "",
            web_url=data.get("web_url") or "",
        )


@dataclass
class Commit:
    id: str = ""
    short_id: str = ""
    created_at: datetime | None = None
    parent_ids: list[str] = field(default_factory=list)
    title: str = ""
    message: str = ""
    author_name: str = ""
    author_email: str = ""
    authored_date: datetime | None = None
    committer_name: str = ""
    committer_email: str = ""
    committed_date: datetime | None = None
    trailers: dict = field(default_factory=dict)
    extended_trailers: dict = field(default_factory=dict)
    web_url: str = ""

    @staticmethod
    def from_dict(data: Any) -> Commit:
        data = _obj(data)
        return Commit(
            id=data.get("id") or "",
            short_id=data.get("short_id") or "",
            created_at=_parse_time(data.get("created_at")),
            parent_ids=list(data.get("parent_ids") or []),
            title=data.get("title") or "",
            message=data.get("message") or "",
            author_name=data.get("author_name") or "",
            author_email=data.get("author_email") or "",
            authored_date=_parse_time(data.get("authored_date")),
            committer_name=data.get("committer_name") or "",
            committer_email=data.get("committer_email") or "",
            committed_date=_parse_time(data.get("committed_date")),
            trailers=_obj(data.get("trailers")),
            extended_trailers=_obj(data.get("extended_trailers")),
            web_url=data.get("web_url") or "",
        )


@dataclass
class Source:
    format: str = ""
    url: str = ""

    @staticmethod
    def from_dict(data: Any) -> Source:
        data = _obj(data)
        return Source(format=data.get("format") or "", url=data.get("url") or "")


@dataclass
class Link:
    id: int = 0
    name: str = ""
    url: str = ""
    direct_asset_url: str = ""
    link_type: str = ""

    @staticmethod
    def from_dict(data: Any) -> Link:
        data = _obj(data)
        return Link(
            id=data.get("id") or 0,
            name=data.get("name") or "",
            url=data.get("url") or "",
            direct_asset_url=data.get("direct_asset_url") or "",
            link_type=data.get("link_type") or "",
        )


@dataclass
class Assets:
    count: int = 0
    sources: list[Source] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)

    @staticmethod
    def from_dict(data: Any) -> Assets:
        data = _obj(data)
        return Assets(
            count=data.get("count") or 0,
            sources=[Source.from_dict(item) for item in data.get("sources") or []],
            links=[Link.from_dict(item) for item in data.get("links") or []],
        )


@dataclass
class Evidence:
    sha: str = ""
    filepath: str = ""
    collected_at: datetime | None = None

    @staticmethod
    def from_dict(data: Any) -> Evidence:
        data = _obj(data)
        return Evidence(
            sha=data.get("sha") or "",
            filepath=data.get("filepath") or "",
            collected_at=_parse_time(data.get("collected_at")),
        )


@dataclass
class Release:
    """A GitLab project release."""

    name: str = ""
    tag_name: str = ""
    description: str = ""
    created_at: datetime | None = None
    released_at: datetime | None = None
    upcoming_release: bool = False
    author: Author = field(default_factory=Author)
    commit: Commit = field(default_factory=Commit)
    commit_path: str = ""
    tag_path: str = ""
    assets: Assets | None = None
    evidences: list[Evidence] = field(default_factory=list)

    @staticmethod
    def from_dict(data: Any) -> Release:
        """Build a release from its decoded JSON form."""
        data = _obj(data)
        assets = data.get("assets")
        return Release(
            name=data.get("name") or "",
            tag_name=data.get("tag_name") or "",
            description=data.get("description") or "",
            created_at=_parse_time(data.get("created_at")),
            released_at=_parse_time(data.get("released_at")),
            upcoming_release=bool(data.get("upcoming_release")),
            author=Author.from_dict(data.get("author")),
            commit=Commit.from_dict(data.get("commit")),
            commit_path=data.get("commit_path") or "",
            tag_path=data.get("tag_path") or "",
            assets=Assets.from_dict(assets) if assets is not None else None,
            evidences=[Evidence.from_dict(item) for item in data.get("evidences") or []],
        )


class GitLabClient:
    """Client for listing and fetching releases of a GitLab project."""

    def __init__(
        self,
        session: requests.Session | None = None,
        base_url: str = BASE_URL,
        token: str = "",
    ) -> None:
        self.session = session if session is not None else requests.Session()
        self.base_url = base_url
        self.token = token

    def _get(self, url: str) -> Any:
        log.log(TRACE, "GET %s", url)
        headers = {"User-Agent": f"{NAME}/{APP_VERSION}"}
        if self.token:
            headers["PRIVATE-TOKEN"] = self.token
        try:
            response = self.session.get(url, headers=headers)
        except requests.RequestException as exc:
            raise GitLabError(str(exc)) from exc
        if not response.ok:
            raise GitLabError(f"GET {url} failed with status {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise GitLabError(f"invalid JSON in response from {url}: {exc}") from exc

    def _releases_url(self, slug: str) -> str:
        return f"{self.base_url}/projects/{quote_plus(slug, safe='')}/releases"

    def _release_list(self, url: str) -> list[Release]:
        data = self._get(url)
        if data is None:
            return []
        if not isinstance(data, list):
            raise GitLabError("expected a list of releases")
        return [Release.from_dict(item) for item in data]

    def list_releases(self, slug: str) -> list[Release]:
        """Return all releases of the project."""
        return self._release_list(self._releases_url(slug))

    def get_latest_release(self, slug: str) -> Release:
        """Return the most recent release of the project."""
        releases = self._release_list(f"{self._releases_url(slug)}?per_page=1")
        if not releases:
            raise GitLabError(f"no releases found for {slug}")
        return releases[0]

    def get_release(self, slug: str, version: str) -> Release | None:
        """Return the release with the given tag."""
        url = f"{self._releases_url(slug)}/{quote_plus(version, safe='')}"
        log.debug("%s", url)
        data = self._get(url)
        if data is None:
            return None
        return Release.from_dict(data)