import pytest
import requests
import responses
from responses import matchers

from kingfisher.github import (
    RepoSpecifiers,
    RepoType,
    enumerate_repo_urls,
    list_repositories,
)

API = "https://api.github.com"


@pytest.fixture(autouse=True)
def _no_token(monkeypatch):
    monkeypatch.delenv("KF_GITHUB_TOKEN", raising=False)


@pytest.fixture
def mocked():
    with responses.RequestsMock() as rsps:
        yield rsps


def test_is_empty():
    assert RepoSpecifiers().is_empty()
    assert not RepoSpecifiers(user=["alice"]).is_empty()
    assert not RepoSpecifiers(organization=["acme"]).is_empty()
    assert not RepoSpecifiers(all_organizations=True).is_empty()


def test_repo_type_all_filters_sent_for_users_and_orgs(mocked):
    mocked.add(
        responses.GET,
        f"{API}/users/alice/repos",
        json=[{"clone_url": "https://github.com/alice/a.git"}],
        match=[
            matchers.query_param_matcher(
                {"type": "all", "sort": "created", "direction": "desc", "per_page": "100"}
            )
        ],
    )
    mocked.add(
        responses.GET,
        f"{API}/orgs/acme/repos",
        json=[{"clone_url": "https://github.com/acme/b.git"}],
        match=[
            matchers.query_param_matcher(
                {"type": "all", "sort": "created", "direction": "desc", "per_page": "100"}
            )
        ],
    )
    urls = enumerate_repo_urls(
        RepoSpecifiers(user=["alice"], organization=["acme"], repo_filter=RepoType.ALL), API
    )
    assert urls == ["https://github.com/acme/b.git", "https://github.com/alice/a.git"]


def test_user_repos_sorted_and_deduplicated(mocked):
    mocked.add(
        responses.GET,
        f"{API}/users/alice/repos",
        json=[
            {"clone_url": "https://github.com/alice/zeta.git"},
            {"clone_url": "https://github.com/alice/alpha.git"},
            {"clone_url": "https://github.com/alice/zeta.git"},
        ],
        match=[
            matchers.query_param_matcher(
                {"type": "owner", "sort": "created", "direction": "desc", "per_page": "100"}
            )
        ],
    )
    urls = enumerate_repo_urls(
        RepoSpecifiers(user=["alice"], repo_filter=RepoType.SOURCE), API + "/"
    )
    assert urls == [
        "https://github.com/alice/alpha.git",
        "https://github.com/alice/zeta.git",
    ]


def test_follows_pagination_links(mocked):
    mocked.add(
        responses.GET,
        f"{API}/users/alice/repos",
        json=[{"clone_url": "https://github.com/alice/one.git"}],
        headers={"Link": f'<{API}/next-page>; rel="next"'},
    )
    mocked.add(
        responses.GET,
        f"{API}/next-page",
        json=[{"clone_url": "https://github.com/alice/two.git"}],
    )
    urls = enumerate_repo_urls(RepoSpecifiers(user=["alice"]), API)
    assert urls == ["https://github.com/alice/one.git", "https://github.com/alice/two.git"]
    assert len(mocked.calls) == 2


def test_org_repos_use_org_type_and_report_progress(mocked):
    mocked.add(
        responses.GET,
        f"{API}/orgs/acme/repos",
        json=[{"clone_url": "https://github.com/acme/tool.git"}],
        match=[
            matchers.query_param_matcher(
                {"type": "forks", "sort": "created", "direction": "desc", "per_page": "100"}
            )
        ],
    )
    mocked.add(
        responses.GET,
        f"{API}/users/bob/repos",
        json=[{"clone_url": "https://github.com/bob/app.git"}],
    )
    ticks = []
    urls = enumerate_repo_urls(
        RepoSpecifiers(user=["bob"], organization=["acme"], repo_filter=RepoType.FORK),
        API,
        progress=ticks.append,
    )
    assert urls == ["https://github.com/acme/tool.git", "https://github.com/bob/app.git"]
    assert ticks == [1, 1]


def test_all_organizations_lists_orgs_first(mocked):
    mocked.add(responses.GET, f"{API}/organizations", json=[{"login": "acme"}])
    mocked.add(
        responses.GET,
        f"{API}/orgs/acme/repos",
        json=[{"clone_url": "https://github.com/acme/lib.git"}],
    )
    urls = enumerate_repo_urls(RepoSpecifiers(all_organizations=True), API)
    assert urls == ["https://github.com/acme/lib.git"]


def test_custom_api_host_is_used(mocked):
    base = "https://ghe.example.com/api/v3"
    mocked.add(
        responses.GET,
        f"{base}/users/alice/repos",
        json=[{"clone_url": "https://ghe.example.com/alice/x.git"}],
    )
    urls = enumerate_repo_urls(RepoSpecifiers(user=["alice"]), base + "/")
    assert urls == ["https://ghe.example.com/alice/x.git"]


def test_token_from_environment(monkeypatch, mocked):
    monkeypatch.setenv("KF_GITHUB_TOKEN", "token")
    mocked.add(responses.GET, f"{API}/users/alice/repos", json=[])
    assert enumerate_repo_urls(RepoSpecifiers(user=["alice"]), API) == []
    assert mocked.calls[0].request.headers["Authorization"] == "Bearer token"


def test_anonymous_has_no_authorization_header(mocked):
    mocked.add(responses.GET, f"{API}/users/alice/repos", json=[])
    enumerate_repo_urls(RepoSpecifiers(user=["alice"]), API)
    assert "Authorization" not in mocked.calls[0].request.headers


def test_http_error_raises(mocked):
    mocked.add(responses.GET, f"{API}/users/ghost/repos", status=404, json={})
    with pytest.raises(requests.HTTPError):
        enumerate_repo_urls(RepoSpecifiers(user=["ghost"]), API)


def test_list_repositories_prints_urls(capsys, mocked):
    mocked.add(
        responses.GET,
        f"{API}/orgs/acme/repos",
        json=[
            {"clone_url": "https://github.com/acme/b.git"},
            {"clone_url": "https://github.com/acme/a.git"},
        ],
    )
    list_repositories(API, False, False, [], ["acme"], False, RepoType.ALL)
    out = capsys.readouterr().out
    assert out.splitlines() == [
        "https://github.com/acme/a.git",
        "https://github.com/acme/b.git",
    ]