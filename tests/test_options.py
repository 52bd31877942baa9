import pytest

from kingfisher import github, gitlab
from kingfisher.options import (
    GitCloneMode,
    GitHistoryMode,
    GitHubOutputFormat,
    GitHubRepoSpecifiers,
    GitHubRepoType,
    GitLabRepoSpecifiers,
    GitLabRepoType,
    OutputArgs,
    ReportOutputFormat,
    RuleSpecifierArgs,
    RulesListOutputFormat,
)


def test_choice_round_trip_through_string():
    for cls in (
        GitHubRepoType,
        GitLabRepoType,
        GitCloneMode,
        GitHistoryMode,
        ReportOutputFormat,
        GitHubOutputFormat,
        RulesListOutputFormat,
    ):
        for member in cls:
            assert cls(str(member)) is member


def test_github_repo_type_forks_alias():
    assert GitHubRepoType("forks") is GitHubRepoType.FORK
    with pytest.raises(ValueError):
        GitHubRepoType("mirror")


def test_github_repo_type_conversion():
    assert GitHubRepoType.ALL.to_repo_type() is github.RepoType.ALL
    assert GitHubRepoType.SOURCE.to_repo_type() is github.RepoType.SOURCE
    assert GitHubRepoType.FORK.to_repo_type() is github.RepoType.FORK


def test_gitlab_repo_type_conversion():
    assert GitLabRepoType.ALL.to_repo_type() is gitlab.RepoType.ALL
    assert GitLabRepoType.OWNER.to_repo_type() is gitlab.RepoType.OWNER
    assert GitLabRepoType.MEMBER.to_repo_type() is gitlab.RepoType.MEMBER


def test_kebab_case_display():
    assert str(ReportOutputFormat.JSONL) == "jsonl"
    assert str(GitCloneMode.BARE) == "bare"
    assert RulesListOutputFormat.choices() == ["pretty", "json"]


def test_github_specifiers_is_empty():
    assert GitHubRepoSpecifiers().is_empty()
    assert GitHubRepoSpecifiers().repo_type is GitHubRepoType.SOURCE
    assert not GitHubRepoSpecifiers(organization=["acme"]).is_empty()
    assert not GitHubRepoSpecifiers(all_organizations=True).is_empty()


def test_gitlab_specifiers_is_empty():
    assert GitLabRepoSpecifiers().is_empty()
    assert GitLabRepoSpecifiers().repo_type is GitLabRepoType.ALL
    assert not GitLabRepoSpecifiers(user=["alice"]).is_empty()
    assert not GitLabRepoSpecifiers(all_groups=True).is_empty()


def test_rule_specifier_defaults_are_independent():
    first = RuleSpecifierArgs()
    second = RuleSpecifierArgs()
    first.rule.append("extra")
    assert second.rule == ["all"]
    assert second.load_builtins is True


def test_output_args_writes_file(tmp_path):
    target = tmp_path / "out.txt"
    args = OutputArgs(format=GitHubOutputFormat.PRETTY, output=target)
    assert args.has_output()
    with args.open_writer() as writer:
        writer.write("hello\n")
    assert target.read_text(encoding="utf-8") == "hello\n"


def test_output_args_defaults_to_stdout(capsys):
    args = OutputArgs(format=ReportOutputFormat.JSON)
    assert not args.has_output()
    with args.open_writer() as writer:
        writer.write("to stdout\n")
    assert capsys.readouterr().out == "to stdout\n"