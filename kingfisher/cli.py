"""Command-line arguments: global options, scan inputs and the argument parser."""

from __future__ import annotations

import argparse
import enum
import logging
import math
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, TextIO, Type, TypeVar

from kingfisher.git_url import GitUrl, GitUrlError
from kingfisher.options import (
    GitCloneMode,
    GitHistoryMode,
    GitHubOutputFormat,
    GitHubRepoSpecifiers,
    GitHubRepoType,
    GitLabOutputFormat,
    GitLabRepoSpecifiers,
    GitLabRepoType,
    OutputArgs,
    ReportOutputFormat,
    RuleSpecifierArgs,
    RulesListOutputFormat,
)

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

DEFAULT_GITHUB_API_URL = "https://api.github.com/"
DEFAULT_GITLAB_API_URL = "https://gitlab.com/"
DEFAULT_MAX_FILE_SIZE_MB = 25.0
DEFAULT_RLIMIT_NOFILE = 16384
MIN_EXTRACTION_DEPTH = 1
MAX_EXTRACTION_DEPTH = 25

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=enum.Enum)


class Mode(enum.Enum):
    """Whether a feature is on, off, or decided by the terminal."""

    AUTO = "auto"
    NEVER = "never"
    ALWAYS = "always"

    def __str__(self) -> str:
        return self.value


class ConfidenceLevel(enum.Enum):
    """Minimum confidence level for reported findings."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    def __str__(self) -> str:
        return self.value


@dataclass
class GlobalArgs:
    """Options that apply to every command."""

    verbose: int = 0
    quiet: bool = False
    ignore_certs: bool = False
    self_update: bool = False
    no_update_check: bool = False
    rlimit_nofile: int = DEFAULT_RLIMIT_NOFILE
    color: Mode = Mode.AUTO
    progress: Mode = Mode.AUTO

    def use_color(self, stream: TextIO) -> bool:
        """Should output to `stream` be coloured?"""
        if self.color is Mode.NEVER:
            return False
        if self.color is Mode.ALWAYS:
            return True
        return _is_terminal(stream)

    def use_progress(self) -> bool:
        """Should progress indicators be shown on standard error?"""
        if self.progress is Mode.NEVER:
            return False
        if self.progress is Mode.ALWAYS:
            return True
        return _is_terminal(sys.stderr)

    def log_level(self) -> int:
        """The logging level implied by --quiet and the -v count."""
        if self.quiet or self.verbose == 0:
            return logging.INFO
        if self.verbose == 1:
            return logging.DEBUG
        return TRACE


@dataclass
class ContentFilteringArgs:
    """Options that decide which content is scanned."""

    max_file_size_mb: float = DEFAULT_MAX_FILE_SIZE_MB
    ignore: List[Path] = field(default_factory=list)
    no_extract_archives: bool = False
    extraction_depth: int = 2
    no_binary: bool = False

    def __post_init__(self) -> None:
        if not MIN_EXTRACTION_DEPTH <= self.extraction_depth <= MAX_EXTRACTION_DEPTH:
            raise ValueError(
                f"extraction depth must be between {MIN_EXTRACTION_DEPTH} "
                f"and {MAX_EXTRACTION_DEPTH}"
            )

    def max_file_size_bytes(self) -> Optional[int]:
        """The size limit in bytes; a negative setting falls back to 25 MB."""
        if self.max_file_size_mb < 0.0:
            return int(DEFAULT_MAX_FILE_SIZE_MB) * 1024 * 1024
        return int(self.max_file_size_mb * 1024.0 * 1024.0)


def _is_terminal(stream: object) -> bool:
    isatty = getattr(stream, "isatty", None)
    if isatty is None:
        return False
    try:
        return bool(isatty())
    except (ValueError, OSError):
        return False


def total_ram_gb() -> Optional[float]:
    """Total physical memory in GiB, or None where it cannot be determined."""
    try:
        page_size = os.sysconf("SC_PAGE_SIZE")
        num_pages = os.sysconf("SC_PHYS_PAGES")
    except (AttributeError, ValueError, OSError):
        return None
    if page_size <= 0 or num_pages <= 0:
        return None
    return page_size * num_pages / 1024.0 / 1024.0 / 1024.0


def default_scan_jobs() -> int:
    """Twice the CPU count, capped at about one job per GiB of RAM, at least 1."""
    cpu_count = os.cpu_count() or 1
    desired = cpu_count * 2
    ram_gb = total_ram_gb()
    if ram_gb is None:
        logger.debug("Using %d parallel scan jobs (cpus = %d, ram unknown)", desired, cpu_count)
        return desired
    max_by_ram = math.ceil(ram_gb)
    jobs = max(min(desired, max_by_ram), 1)
    logger.debug(
        "Using %d parallel scan jobs (cpus = %d, desired = %d, ram = %.1f GiB, cap_by_ram = %d)",
        jobs,
        cpu_count,
        desired,
        ram_gb,
        max_by_ram,
    )
    return jobs


# ---------------------------------------------------------------------------
# Argument value converters
# ---------------------------------------------------------------------------


def _enum_type(cls: Type[E]) -> Callable[[str], E]:
    def convert(text: str) -> E:
        try:
            return cls(text)
        except ValueError:
            choices = ", ".join(member.value for member in cls)
            raise argparse.ArgumentTypeError(
                f"invalid value {text!r} (choose from {choices})"
            ) from None

    convert.__name__ = cls.__name__
    return convert


def _bool_value(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise argparse.ArgumentTypeError(f"invalid value {text!r} (expected true or false)")


def _extraction_depth(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer {text!r}") from None
    if not MIN_EXTRACTION_DEPTH <= value <= MAX_EXTRACTION_DEPTH:
        raise argparse.ArgumentTypeError(
            f"{value} is not in {MIN_EXTRACTION_DEPTH}..={MAX_EXTRACTION_DEPTH}"
        )
    return value


def _git_url(text: str) -> GitUrl:
    try:
        return GitUrl.parse(text)
    except GitUrlError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def _non_negative_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer {text!r}") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"{value} must not be negative")
    return value


# ---------------------------------------------------------------------------
# Parser construction
# ---------------------------------------------------------------------------


def _add_global_options(parser: argparse.ArgumentParser, suppress: bool) -> None:
    def default(value: object) -> object:
        return argparse.SUPPRESS if suppress else value

    group = parser.add_argument_group("Global Options")
    group.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=default(0),
        help="Enable verbose output (up to 3 times for more detail)",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=default(False),
        help="Suppress non-error messages and disable progress bars",
    )
    group.add_argument(
        "--ignore-certs",
        action="store_true",
        default=default(False),
        help="Ignore TLS certificate validation",
    )
    group.add_argument(
        "--self-update",
        action="store_true",
        default=default(False),
        help="Update the binary to the latest release",
    )
    group.add_argument(
        "--no-update-check",
        action="store_true",
        default=default(False),
        help="Disable automatic update checks",
    )
    advanced = parser.add_argument_group("Advanced Global Options")
    advanced.add_argument(
        "--rlimit-nofile",
        type=_non_negative_int,
        default=default(DEFAULT_RLIMIT_NOFILE),
        metavar="LIMIT",
        help="Set the rlimit for the number of open files",
    )


def _new_subparser(
    subparsers: argparse._SubParsersAction, name: str, help_text: str, **kwargs: object
) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(name, help=help_text, description=help_text, **kwargs)
    _add_global_options(parser, suppress=True)
    return parser


def _add_output_options(parser: argparse.ArgumentParser, format_cls: Type[E]) -> None:
    group = parser.add_argument_group("Output Options")
    group.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Write output to the specified path (stdout if not given)",
    )
    group.add_argument(
        "-f",
        "--format",
        type=_enum_type(format_cls),
        default=format_cls("pretty"),
        metavar="{" + ",".join(m.value for m in format_cls) + "}",
        help="Output format (defaults to `pretty`)",
    )


def _add_rule_specifier_options(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("Rule Options")
    group.add_argument(
        "--rules-path",
        "--rules",
        dest="rules_path",
        type=Path,
        action="append",
        default=[],
        help="Load additional rules from file(s) or directories",
    )
    group.add_argument(
        "--rule",
        action="append",
        default=None,
        help="Enable the ruleset with the given ID (default: all)",
    )
    group.add_argument(
        "--load-builtins",
        type=_bool_value,
        default=True,
        metavar="{true,false}",
        help="Load built-in rules",
    )


def _add_input_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path_inputs",
        nargs="*",
        type=Path,
        help="Scan this file, directory, or local Git repository",
    )
    group = parser.add_argument_group("Input Options")
    group.add_argument(
        "--git-url",
        type=_git_url,
        action="append",
        default=[],
        help="Clone and scan the Git repository at the given URL",
    )
    group.add_argument("--github-user", action="append", default=[])
    group.add_argument(
        "--github-organization", "--github-org", dest="github_organization",
        action="append", default=[],
    )
    group.add_argument(
        "--all-github-organizations", "--all-github-orgs",
        dest="all_github_organizations", action="store_true", default=False,
        help="Scan repositories from all GitHub organizations (requires --github-api-url)",
    )
    group.add_argument(
        "--github-api-url", "--api-url", dest="github_api_url", default=None,
        help="Use the specified URL for GitHub API access",
    )
    group.add_argument(
        "--github-repo-type", type=_enum_type(GitHubRepoType),
        default=GitHubRepoType.SOURCE,
    )
    group.add_argument("--gitlab-user", action="append", default=[])
    group.add_argument("--gitlab-group", action="append", default=[])
    group.add_argument(
        "--all-gitlab-groups", action="store_true", default=False,
        help="Scan repositories from all GitLab groups (requires --gitlab-api-url)",
    )
    group.add_argument(
        "--gitlab-api-url", default=None,
        help="Use the specified URL for GitLab API access",
    )
    group.add_argument(
        "--gitlab-repo-type", type=_enum_type(GitLabRepoType),
        default=GitLabRepoType.OWNER,
    )
    group.add_argument(
        "--git-clone", "--git-clone-mode", dest="git_clone",
        type=_enum_type(GitCloneMode), default=GitCloneMode.BARE,
    )
    group.add_argument(
        "--git-history", type=_enum_type(GitHistoryMode), default=GitHistoryMode.FULL,
    )
    group.add_argument(
        "--commit-metadata", type=_bool_value, default=True, metavar="{true,false}",
        help="Include Git commit context for findings",
    )
    group.add_argument(
        "--scan-nested-repos", action="store_true", default=True,
        help="Scan nested git repositories",
    )


def _add_content_filtering_options(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("Content Filtering Options")
    group.add_argument(
        "--max-file-size", dest="max_file_size_mb", type=float,
        default=DEFAULT_MAX_FILE_SIZE_MB,
        help="Ignore files larger than the given size in MB",
    )
    group.add_argument(
        "-i", "--ignore", type=Path, action="append", default=[],
        help="Use custom path-based ignore rules from the given file(s)",
    )
    group.add_argument("--no-extract-archives", action="store_true", default=False)
    group.add_argument("--extraction-depth", type=_extraction_depth, default=2)
    group.add_argument("--no-binary", action="store_true", default=False)


def _build_scan_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = _new_subparser(
        subparsers, "scan", "Scan content for secrets and sensitive information"
    )
    parser.set_defaults(command="scan")
    parser.add_argument(
        "-j", "--jobs", dest="num_jobs", type=_non_negative_int,
        default=default_scan_jobs(), help="Number of parallel scanning threads",
    )
    _add_rule_specifier_options(parser)
    _add_input_options(parser)
    _add_content_filtering_options(parser)
    parser.add_argument(
        "-c", "--confidence", type=_enum_type(ConfidenceLevel),
        default=ConfidenceLevel.MEDIUM,
        help="Minimum confidence level for reporting findings",
    )
    parser.add_argument("-n", "--no-validate", action="store_true", default=False)
    parser.add_argument("--only-valid", action="store_true", default=False)
    parser.add_argument("-e", "--min-entropy", type=float, default=None)
    parser.add_argument("--rule-stats", action="store_true", default=False)
    parser.add_argument("--no-dedup", action="store_true", default=False)
    parser.add_argument("--ignore-tests", action="store_true", default=False)
    parser.add_argument("-r", "--redact", action="store_true", default=False)
    parser.add_argument(
        "--git-repo-timeout", type=_non_negative_int, default=1800, metavar="SECONDS"
    )
    _add_output_options(parser, ReportOutputFormat)
    parser.add_argument(
        "--snippet-length", type=_non_negative_int, default=256, metavar="BYTES"
    )


def _build_github_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = _new_subparser(subparsers, "github", "Interact with the GitHub API")
    parser.set_defaults(command="github")
    parser.add_argument("--github-api-url", default=None)
    repos = parser.add_subparsers(dest="github_command", required=True)
    repos_parser = _new_subparser(repos, "repos", "Interact with GitHub repositories")
    repos_parser.add_argument("--github-api-url", default=argparse.SUPPRESS)
    actions = repos_parser.add_subparsers(dest="repos_command", required=True)
    list_parser = _new_subparser(
        actions, "list", "List repositories for a user or organization"
    )
    list_parser.add_argument("--github-api-url", default=argparse.SUPPRESS)
    list_parser.add_argument("--user", "--github-user", dest="user", action="append", default=[])
    list_parser.add_argument(
        "--organization", "--org", "--github-organization", "--github-org",
        dest="organization", action="append", default=[],
    )
    list_parser.add_argument(
        "--all-organizations", "--all-orgs", "--all-github-organizations",
        "--all-github-orgs", dest="all_organizations", action="store_true", default=False,
    )
    list_parser.add_argument(
        "--repo-type", "--github-repo-type", dest="repo_type",
        type=_enum_type(GitHubRepoType), default=GitHubRepoType.SOURCE,
    )
    _add_output_options(list_parser, GitHubOutputFormat)


def _build_gitlab_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = _new_subparser(subparsers, "gitlab", "Interact with the GitLab API")
    parser.set_defaults(command="gitlab")
    parser.add_argument("--gitlab-api-url", default=None)
    repos = parser.add_subparsers(dest="gitlab_command", required=True)
    repos_parser = _new_subparser(repos, "repos", "Interact with GitLab repositories")
    repos_parser.add_argument("--gitlab-api-url", default=argparse.SUPPRESS)
    actions = repos_parser.add_subparsers(dest="repos_command", required=True)
    list_parser = _new_subparser(actions, "list", "List repositories for a user or group")
    list_parser.add_argument("--gitlab-api-url", default=argparse.SUPPRESS)
    list_parser.add_argument("--user", "--gitlab-user", dest="user", action="append", default=[])
    list_parser.add_argument(
        "--group", "--gitlab-group", dest="group", action="append", default=[]
    )
    list_parser.add_argument(
        "--all-groups", "--all-gitlab-groups", dest="all_groups",
        action="store_true", default=False,
    )
    list_parser.add_argument(
        "--repo-type", "--gitlab-repo-type", dest="repo_type",
        type=_enum_type(GitLabRepoType), default=GitLabRepoType.ALL,
    )
    _add_output_options(list_parser, GitLabOutputFormat)


def _build_rules_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = _new_subparser(subparsers, "rules", "Manage rules", aliases=["rule"])
    parser.set_defaults(command="rules")
    actions = parser.add_subparsers(dest="rules_command", required=True)
    check = _new_subparser(actions, "check", "Check rules for problems")
    check.add_argument(
        "-W", "--warnings-as-errors", action="store_true", default=False,
        help="Treat warnings as errors",
    )
    _add_rule_specifier_options(check)
    list_parser = _new_subparser(actions, "list", "List available rules")
    _add_rule_specifier_options(list_parser)
    _add_output_options(list_parser, RulesListOutputFormat)


def build_parser() -> argparse.ArgumentParser:
    """Build the parser for the whole command line."""
    parser = argparse.ArgumentParser(
        prog="kingfisher",
        description="Detect and validate secrets across files and full Git history",
    )
    _add_global_options(parser, suppress=False)
    subparsers = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")
    _build_scan_parser(subparsers)
    _build_github_parser(subparsers)
    _build_gitlab_parser(subparsers)
    _build_rules_parser(subparsers)
    return parser


# ---------------------------------------------------------------------------
# Post-processing
# ---------------------------------------------------------------------------


def _rule_specifiers(ns: argparse.Namespace) -> RuleSpecifierArgs:
    return RuleSpecifierArgs(
        rules_path=list(ns.rules_path),
        rule=list(ns.rule) if ns.rule else ["all"],
        load_builtins=ns.load_builtins,
    )


def _finish_scan(parser: argparse.ArgumentParser, ns: argparse.Namespace) -> None:
    has_other_input = any(
        (
            ns.github_user,
            ns.github_organization,
            ns.gitlab_user,
            ns.gitlab_group,
            ns.git_url,
            ns.all_github_organizations,
            ns.all_gitlab_groups,
        )
    )
    if not ns.path_inputs and not has_other_input:
        parser.error("scan: at least one path input or repository source is required")
    if ns.all_github_organizations and ns.github_api_url is None:
        parser.error("scan: --all-github-organizations requires --github-api-url")
    if ns.all_gitlab_groups and ns.gitlab_api_url is None:
        parser.error("scan: --all-gitlab-groups requires --gitlab-api-url")
    if ns.github_api_url is None:
        ns.github_api_url = DEFAULT_GITHUB_API_URL
    if ns.gitlab_api_url is None:
        ns.gitlab_api_url = DEFAULT_GITLAB_API_URL
    ns.rules = _rule_specifiers(ns)
    ns.content_filtering_args = ContentFilteringArgs(
        max_file_size_mb=ns.max_file_size_mb,
        ignore=list(ns.ignore),
        no_extract_archives=ns.no_extract_archives,
        extraction_depth=ns.extraction_depth,
        no_binary=ns.no_binary,
    )
    ns.output_args = OutputArgs(format=ns.format, output=ns.output)


def _finish_github(parser: argparse.ArgumentParser, ns: argparse.Namespace) -> None:
    if ns.all_organizations and ns.github_api_url is None:
        parser.error("github: --all-organizations requires --github-api-url")
    if ns.github_api_url is None:
        ns.github_api_url = DEFAULT_GITHUB_API_URL
    ns.repo_specifiers = GitHubRepoSpecifiers(
        user=list(ns.user),
        organization=list(ns.organization),
        all_organizations=ns.all_organizations,
        repo_type=ns.repo_type,
    )
    ns.output_args = OutputArgs(format=ns.format, output=ns.output)


def _finish_gitlab(parser: argparse.ArgumentParser, ns: argparse.Namespace) -> None:
    if ns.all_groups and ns.gitlab_api_url is None:
        parser.error("gitlab: --all-groups requires --gitlab-api-url")
    if ns.gitlab_api_url is None:
        ns.gitlab_api_url = DEFAULT_GITLAB_API_URL
    ns.repo_specifiers = GitLabRepoSpecifiers(
        user=list(ns.user),
        group=list(ns.group),
        all_groups=ns.all_groups,
        repo_type=ns.repo_type,
    )
    ns.output_args = OutputArgs(format=ns.format, output=ns.output)


def _finish_rules(ns: argparse.Namespace) -> None:
    ns.rules = _rule_specifiers(ns)
    if ns.rules_command == "list":
        ns.output_args = OutputArgs(format=ns.format, output=ns.output)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse the command line.

    The result carries a `global_args` `GlobalArgs`; NO_COLOR in the
    environment turns colour off and --quiet turns progress off.
    """
    parser = build_parser()
    ns = parser.parse_args(argv)

    if ns.command == "scan":
        _finish_scan(parser, ns)
    elif ns.command == "github":
        _finish_github(parser, ns)
    elif ns.command == "gitlab":
        _finish_gitlab(parser, ns)
    else:
        _finish_rules(ns)

    global_args = GlobalArgs(
        verbose=ns.verbose,
        quiet=ns.quiet,
        ignore_certs=ns.ignore_certs,
        self_update=ns.self_update,
        no_update_check=ns.no_update_check,
        rlimit_nofile=ns.rlimit_nofile,
    )
    if "NO_COLOR" in os.environ:
        global_args.color = Mode.NEVER
    if global_args.quiet:
        global_args.progress = Mode.NEVER
    ns.global_args = global_args
    return ns