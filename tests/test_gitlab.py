import json
import re

import pytest
import responses

from distillery.clients.gitlab import GitLabClient, GitLabError, Release

ANY_URL = re.compile(r"https://gitlab\.com/api/v4/.*")

RELEASE_V1 = {
    "name": "Release v1.0.0",
    "tag_name": "v1.0.0",
    "description": "first release",
    "created_at": "2024-01-02T03:04:05.123Z",
    "released_at": "2024-01-02T03:04:05.123Z",
    "upcoming_release": False,
    "author": {"id": 1, "username": "someone", "name": "Some One", "state": "active"},
    "commit": {
        "id": "abc123",
        "short_id": "abc",
        "created_at": "2024-01-01T00:00:00.000+00:00",
        "parent_ids": ["def456"],
        "title": "commit",
        "author_email": "someone@example.com",
        "trailers": {},
    },
    "assets": {
        "count": 2,
        "sources": [{"format": "zip", "url": "https://gitlab.example.com/src.zip"}],
        "links": [
            {
                "id": 7,
                "name": "tool-linux-amd64.tar.gz",
                "url": "https://gitlab.example.com/tool.tar.gz",
                "direct_asset_url": "https://gitlab.example.com/direct/tool.tar.gz",
                "link_type": "package",
            }
        ],
    },
    "evidences": [{"sha": "aaa", "filepath": "/evidence.json", "collected_at": "2024-01-02T03:04:05Z"}],
}

RELEASE_V09 = dict(RELEASE_V1, name="Release v0.9.0", tag_name="v0.9.0")


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def test_list_releases(mocked):
    mocked.add(responses.GET, ANY_URL, body=json.dumps([RELEASE_V1, RELEASE_V09]), status=200)
    client = GitLabClient(token="token")
    releases = client.list_releases("owner/repo")
    assert len(releases) == 2
    assert [r.tag_name for r in releases] == ["v1.0.0", "v0.9.0"]
    request = mocked.calls[0].request
    assert request.url == "https://gitlab.com/api/v4/projects/owner%2Frepo/releases"
    assert request.headers["PRIVATE-TOKEN"] == "token"
    assert request.headers["User-Agent"].startswith("distillery/")


def test_get_latest_release(mocked):
    mocked.add(responses.GET, ANY_URL, body=json.dumps([RELEASE_V1]), status=200)
    client = GitLabClient(token="token")
    release = client.get_latest_release("owner/repo")
    assert release.tag_name == "v1.0.0"
    assert mocked.calls[0].request.url.endswith("/releases?per_page=1")


def test_get_release(mocked):
    mocked.add(responses.GET, ANY_URL, body=json.dumps(RELEASE_V1), status=200)
    client = GitLabClient(token="token")
    release = client.get_release("owner/repo", "v1.0.0")
    assert release.tag_name == "v1.0.0"
    assert release.assets.links[0].name == "tool-linux-amd64.tar.gz"
    assert release.commit.parent_ids == ["def456"]
    assert release.created_at.year == 2024
    assert mocked.calls[0].request.url.endswith("/projects/owner%2Frepo/releases/v1.0.0")


def test_no_token_header_without_token(mocked):
    mocked.add(responses.GET, ANY_URL, body="[]", status=200)
    client = GitLabClient()
    assert client.list_releases("owner/repo") == []
    assert "PRIVATE-TOKEN" not in mocked.calls[0].request.headers


def test_custom_base_url(mocked):
    mocked.add(
        responses.GET,
        re.compile(r"https://gitlab\.example\.com/api/v4/.*"),
        body=json.dumps([RELEASE_V1]),
        status=200,
    )
    client = GitLabClient(base_url="https://gitlab.example.com/api/v4")
    assert client.list_releases("group/sub/repo")[0].tag_name == "v1.0.0"
    assert "group%2Fsub%2Frepo" in mocked.calls[0].request.url


def test_latest_release_empty_list(mocked):
    mocked.add(responses.GET, ANY_URL, body="[]", status=200)
    with pytest.raises(GitLabError):
        GitLabClient().get_latest_release("owner/repo")


@pytest.mark.parametrize(
    "call",
    [
        lambda c: c.list_releases("invalid-url-%%"),
        lambda c: c.get_latest_release("invalid-url-%%"),
        lambda c: c.get_release("invalid-url-%%", "v1.0.0"),
    ],
)
def test_invalid_slug_with_empty_body(mocked, call):
    mocked.add(responses.GET, ANY_URL, body="", status=200)
    with pytest.raises(GitLabError):
        call(GitLabClient(token="token"))


@pytest.mark.parametrize(
    "call",
    [
        lambda c: c.list_releases("owner/repo"),
        lambda c: c.get_latest_release("owner/repo"),
        lambda c: c.get_release("owner/repo", "v1.0.0"),
    ],
)
@pytest.mark.parametrize(("body", "status"), [("", 500), ("invalid json", 200)])
def test_errors(mocked, call, body, status):
    mocked.add(responses.GET, ANY_URL, body=body, status=status)
    with pytest.raises(GitLabError):
        call(GitLabClient())


def test_release_from_dict_bad_timestamp():
    with pytest.raises(GitLabError):
        Release.from_dict({"tag_name": "v1", "created_at": "not-a-time"})