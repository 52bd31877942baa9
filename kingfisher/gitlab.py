"""Listing repositories through the GitLab REST API."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional
from urllib.parse import urlsplit

import requests

from kingfisher.github import ProgressCallback, StatusSpinner

DEFAULT_API_URL = "https://gitlab.com/"
TOKEN_ENV_VAR = "KF_GITLAB_TOKEN"
USER_AGENT = "kingfisher"


class RepoType(enum.Enum):
    """Which kinds of repositories to list."""

    ALL = "all"
    OWNER = "owner"
    MEMBER = "member"


@dataclass
class RepoSpecifiers:
    """Which users' and groups' repositories to list."""

    user: List[str] = field(default_factory=list)
    group: List[str] = field(default_factory=list)
    all_groups: bool = False
    repo_filter: RepoType = RepoType.ALL

    def is_empty(self) -> bool:
        return not self.user and not self.group and not self.all_groups


class _Client:
    def __init__(self, api_url: str, ignore_certs: bool) -> None:
        try:
            host = urlsplit(api_url).hostname
        except ValueError:
            host = None
        if not host:
            raise ValueError("GitLab URL must contain a host")
        self.base = f"https://{host}/api/v4"
        self.verify = not ignore_certs
        self.session = requests.Session()
        self.session.headers["User-Agent"] = USER_AGENT
        token = os.environ.get(TOKEN_ENV_VAR)
        if token is not None:
            self.session.headers["PRIVATE-TOKEN"] = token

    def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        response = self.session.get(f"{self.base}{path}", params=params, verify=self.verify)
        response.raise_for_status()
        return response.json()

    def close(self) -> None:
        self.session.close()


def enumerate_repo_urls(
    repo_specifiers: RepoSpecifiers,
    api_url: str = DEFAULT_API_URL,
    ignore_certs: bool = False,
    progress: Optional[ProgressCallback] = None,
) -> List[str]:
    """Return the sorted, de-duplicated HTTP clone URLs of the specified repositories."""
    client = _Client(api_url, ignore_certs)
    repo_urls: List[str] = []
    try:
        for username in repo_specifiers.user:
            hits = client.get("/users", {"username": username})
            if not hits:
                raise LookupError(f"GitLab user `{username}` not found")
            user_id = hits[0]["id"]
            projects = client.get(f"/users/{user_id}/projects")
            repo_urls.extend(project["http_url_to_repo"] for project in projects)
            if progress is not None:
                progress(1)

        if repo_specifiers.all_groups:
            groups = client.get("/groups")
        else:
            groups = []
            for name in repo_specifiers.group:
                groups.extend(client.get("/groups", {"search": name}))

        for group in groups:
            projects = client.get(f"/groups/{group['id']}/projects")
            repo_urls.extend(project["http_url_to_repo"] for project in projects)
            if progress is not None:
                progress(1)
    finally:
        client.close()

    return sorted(set(repo_urls))


def list_repositories(
    api_url: str,
    ignore_certs: bool,
    progress_enabled: bool,
    users: List[str],
    groups: List[str],
    all_groups: bool,
    repo_filter: RepoType,
) -> None:
    """Print the clone URL of every specified repository, one per line."""
    specifiers = RepoSpecifiers(
        user=list(users), group=list(groups), all_groups=all_groups, repo_filter=repo_filter
    )
    with StatusSpinner(progress_enabled, "Fetching repositories") as spinner:
        repo_urls = enumerate_repo_urls(specifiers, api_url, ignore_certs, spinner.inc)
    for url in repo_urls:
        print(url)