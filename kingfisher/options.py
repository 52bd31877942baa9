"""Option types shared by the repository-listing and rules commands."""

from __future__ import annotations

import contextlib
import enum
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional, TextIO

from kingfisher import github, gitlab


class _Choice(enum.Enum):
    """An enumeration whose members are chosen by kebab-case name."""

    def __str__(self) -> str:
        return self.value

    @classmethod
    def choices(cls) -> List[str]:
        return [member.value for member in cls]


class GitHubRepoType(_Choice):
    """GitHub repository type filter."""

    ALL = "all"
    SOURCE = "source"
    FORK = "fork"

    @classmethod
    def _missing_(cls, value: object) -> Optional[GitHubRepoType]:
        if value == "forks":
            return cls.FORK
        return None

    def to_repo_type(self) -> github.RepoType:
        return {
            GitHubRepoType.ALL: github.RepoType.ALL,
            GitHubRepoType.SOURCE: github.RepoType.SOURCE,
            GitHubRepoType.FORK: github.RepoType.FORK,
        }[self]


class GitLabRepoType(_Choice):
    """GitLab repository type filter."""

    ALL = "all"
    OWNER = "owner"
    MEMBER = "member"

    def to_repo_type(self) -> gitlab.RepoType:
        return {
            GitLabRepoType.ALL: gitlab.RepoType.ALL,
            GitLabRepoType.OWNER: gitlab.RepoType.OWNER,
            GitLabRepoType.MEMBER: gitlab.RepoType.MEMBER,
        }[self]


class GitCloneMode(_Choice):
    """How to clone Git repositories."""

    BARE = "bare"
    MIRROR = "mirror"


class GitHistoryMode(_Choice):
    """Whether to scan a repository's history."""

    FULL = "full"
    NONE = "none"


class ReportOutputFormat(_Choice):
    """Formats for scan reports."""

    PRETTY = "pretty"
    JSON = "json"
    JSONL = "jsonl"
    BSON = "bson"
    SARIF = "sarif"


class GitHubOutputFormat(_Choice):
    """Formats for repository listings."""

    PRETTY = "pretty"
    JSON = "json"
    JSONL = "jsonl"
    BSON = "bson"
    SARIF = "sarif"


GitLabOutputFormat = GitHubOutputFormat


class RulesListOutputFormat(_Choice):
    """Formats for the rules listing."""

    PRETTY = "pretty"
    JSON = "json"


@dataclass
class OutputArgs:
    """Where output goes and in which format."""

    format: _Choice
    output: Optional[Path] = None

    def has_output(self) -> bool:
        return self.output is not None

    @contextlib.contextmanager
    def open_writer(self) -> Iterator[TextIO]:
        """Yield a text stream for the output file, or standard output."""
        if self.output is None:
            yield sys.stdout
            sys.stdout.flush()
            return
        with open(self.output, "w", encoding="utf-8") as handle:
            yield handle


@dataclass
class GitHubRepoSpecifiers:
    """Options selecting GitHub repositories."""

    user: List[str] = field(default_factory=list)
    organization: List[str] = field(default_factory=list)
    all_organizations: bool = False
    repo_type: GitHubRepoType = GitHubRepoType.SOURCE

    def is_empty(self) -> bool:
        return not self.user and not self.organization and not self.all_organizations


@dataclass
class GitLabRepoSpecifiers:
    """Options selecting GitLab repositories."""

    user: List[str] = field(default_factory=list)
    group: List[str] = field(default_factory=list)
    all_groups: bool = False
    repo_type: GitLabRepoType = GitLabRepoType.ALL

    def is_empty(self) -> bool:
        return not self.user and not self.group and not self.all_groups


@dataclass
class RuleSpecifierArgs:
    """Which rules to load and enable."""

    rules_path: List[Path] = field(default_factory=list)
    rule: List[str] = field(default_factory=lambda: ["all"])
    load_builtins: bool = True