"""Listing repositories through the GitHub REST API."""

from __future__ import annotations

import enum
import os
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, List, Mapping, Optional, TextIO

import requests

DEFAULT_API_URL = "https://api.github.com/"
TOKEN_ENV_VAR = "KF_GITHUB_TOKEN"
USER_AGENT = "kingfisher"
PAGE_SIZE = 100

ProgressCallback = Callable[[int], None]


class RepoType(enum.Enum):
    """Which kinds of repositories to list."""

    ALL = "all"
    SOURCE = "source"
    FORK = "fork"

    @property
    def user_type(self) -> str:
        """The `type` filter used when listing a user's repositories."""
        return {RepoType.ALL: "all", RepoType.SOURCE: "owner", RepoType.FORK: "member"}[self]

    @property
    def org_type(self) -> str:
        """The `type` filter used when listing an organization's repositories."""
        return {RepoType.ALL: "all", RepoType.SOURCE: "sources", RepoType.FORK: "forks"}[self]


@dataclass
class RepoSpecifiers:
    """Which users' and organizations' repositories to list."""

    user: List[str] = field(default_factory=list)
    organization: List[str] = field(default_factory=list)
    all_organizations: bool = False
    repo_filter: RepoType = RepoType.ALL

    def is_empty(self) -> bool:
        return not self.user and not self.organization and not self.all_organizations


class StatusSpinner:
    """A one-line spinner on a terminal stream showing a message and elapsed time."""

    _FRAMES = "|/-\\"

    def __init__(self, enabled: bool, message: str, stream: Optional[TextIO] = None) -> None:
        self.enabled = enabled
        self.message = message
        self.stream = stream if stream is not None else sys.stderr
        self.count = 0
        self._started = time.monotonic()
        self._drawn = False

    def __enter__(self) -> StatusSpinner:
        self._started = time.monotonic()
        self._draw()
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._drawn:
            self.stream.write("\n")
            self.stream.flush()

    def inc(self, n: int = 1) -> None:
        self.count += n
        self._draw()

    def _draw(self) -> None:
        if not self.enabled:
            return
        elapsed = int(time.monotonic() - self._started)
        hours, rest = divmod(elapsed, 3600)
        minutes, seconds = divmod(rest, 60)
        frame = self._FRAMES[self.count % len(self._FRAMES)]
        self.stream.write(
            f"\r{frame} {self.message} [{hours:02d}:{minutes:02d}:{seconds:02d}]"
        )
        self.stream.flush()
        self._drawn = True


def _create_session() -> requests.Session:
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    session.headers["Accept"] = "application/vnd.github+json"
    token = os.environ.get(TOKEN_ENV_VAR, "")
    if token:
        session.headers["Authorization"] = f"Bearer {token}"
    return session


def _paginate(
    session: requests.Session,
    url: str,
    params: Mapping[str, Any],
    verify: bool,
) -> Iterator[Any]:
    next_url: Optional[str] = url
    next_params: Optional[Mapping[str, Any]] = params
    while next_url:
        response = session.get(next_url, params=next_params, verify=verify)
        response.raise_for_status()
        yield from response.json()
        next_url = response.links.get("next", {}).get("url")
        next_params = None


def enumerate_repo_urls(
    repo_specifiers: RepoSpecifiers,
    api_url: str = DEFAULT_API_URL,
    ignore_certs: bool = False,
    progress: Optional[ProgressCallback] = None,
) -> List[str]:
    """Return the sorted, de-duplicated clone URLs of the specified repositories."""
    base = api_url.rstrip("/")
    verify = not ignore_certs
    repo_urls: List[str] = []
    with _create_session() as session:
        for username in repo_specifiers.user:
            params = {
                "type": repo_specifiers.repo_filter.user_type,
                "sort": "created",
                "direction": "desc",
                "per_page": PAGE_SIZE,
            }
            repos = _paginate(session, f"{base}/users/{username}/repos", params, verify)
            repo_urls.extend(repo["clone_url"] for repo in repos)
            if progress is not None:
                progress(1)

        if repo_specifiers.all_organizations:
            orgs = [
                org["login"]
                for org in _paginate(
                    session, f"{base}/organizations", {"per_page": PAGE_SIZE}, verify
                )
            ]
        else:
            orgs = list(repo_specifiers.organization)

        for org_name in orgs:
            params = {
                "type": repo_specifiers.repo_filter.org_type,
                "sort": "created",
                "direction": "desc",
                "per_page": PAGE_SIZE,
            }
            repos = _paginate(session, f"{base}/orgs/{org_name}/repos", params, verify)
            repo_urls.extend(repo["clone_url"] for repo in repos)
            if progress is not None:
                progress(1)

    return sorted(set(repo_urls))


def list_repositories(
    api_url: str,
    ignore_certs: bool,
    progress_enabled: bool,
    users: List[str],
    orgs: List[str],
    all_orgs: bool,
    repo_filter: RepoType,
) -> None:
    """Print the clone URL of every specified repository, one per line."""
    specifiers = RepoSpecifiers(
        user=list(users),
        organization=list(orgs),
        all_organizations=all_orgs,
        repo_filter=repo_filter,
    )
    with StatusSpinner(progress_enabled, "Fetching repositories") as spinner:
        repo_urls = enumerate_repo_urls(specifiers, api_url, ignore_certs, spinner.inc)
    for url in repo_urls:
        print(url)