# kingfisher

Building blocks for a scanner that looks for secrets in files and Git history.

## What is in the package

- `kingfisher.content_type`: `ContentInspector` tells text from binary
  (`inspect`, returning a `ContentType`) and guesses a MIME type from a file
  extension, whether bytes are UTF-8, and a programming language from the
  extension or from markers in the content. `inspect(data)` classifies with
  the default thresholds (more than 4 NUL bytes, or more than 30% control
  characters other than tab, CR and LF, means binary).
- `kingfisher.guesser`: `Guesser.guess(data, path=None)` returns a `Guess`
  with `path_guess()`, `essence_str()`, `content_guess()` and
  `get_param("charset")`.
- `kingfisher.bstring_table`: `BStringTable` interns byte strings into one
  buffer and hands out `Symbol`s; `resolve(symbol)` gives the bytes back.
- `kingfisher.git_url`: `GitUrl.parse` accepts only `https` URLs with a host
  and no credentials, query or fragment, normalises `.` and `..` segments,
  and raises `GitUrlError` otherwise. `to_path()` maps the URL to a relative
  path `https/<host>[:port]/<segments>`.
- `kingfisher.git_metadata_graph`: `GitMetadataGraph` holds commits and
  parent-to-child edges. `get_repo_metadata(repo_index, read_tree)` walks
  them in topological order and returns, for every commit, a
  `CommitBlobMetadata` naming the blobs it introduced and the paths they were
  first seen at. Objects are indexed by a `RepositoryIndex`; trees are read
  through a callable you supply that returns `TreeEntry` values. A cycle
  raises `CommitCycleError`.
- `kingfisher.github` and `kingfisher.gitlab`: `enumerate_repo_urls` lists
  the sorted, de-duplicated clone URLs of the repositories of users and
  organisations (GitHub) or users and groups (GitLab);
  `list_repositories` prints them, with an optional spinner on standard
  error.
- `kingfisher.options`: option types such as `GitHubRepoType`,
  `GitLabRepoType`, `OutputArgs`, `RuleSpecifierArgs` and the output format
  enumerations.
- `kingfisher.cli`: `build_parser()` and `parse_args(argv=None)` for the
  `scan`, `github repos list`, `gitlab repos list`, `rules check` and
  `rules list` command lines, plus `GlobalArgs`, `ContentFilteringArgs`,
  `Mode`, `ConfidenceLevel` and `default_scan_jobs()`.

## Examples

Inspect content:

```python
from kingfisher.content_type import ContentInspector, ContentType

inspector = ContentInspector()
inspector.inspect(b"Hello\nWorld") is ContentType.TEXT   # True
inspector.guess_language("main.rs", b"")                 # 'Rust'
inspector.guess_mime_type("notes.md")                    # 'text/plain'
```

Guess what a file is:

```python
from kingfisher.guesser import Guesser

guess = Guesser().guess(b"Hello World", "test.rs")
guess.path_guess()             # 'application/octet-stream'
guess.content_guess()          # 'Rust'
guess.get_param("charset")     # 'UTF-8'
```

Check a repository URL before cloning:

```python
from kingfisher.git_url import GitUrl, GitUrlError

url = GitUrl.parse("https://example.com/team/project.git")
str(url)         # 'https://example.com/team/project.git'
url.to_path()    # relative path https/example.com/team/project.git

try:
    GitUrl.parse("http://example.com/project.git")
except GitUrlError as err:
    print(err)
```

Find the blobs a commit introduced:

```python
from kingfisher.git_metadata_graph import (
    EntryKind, GitMetadataGraph, ObjectKind, RepositoryIndex, TreeEntry,
)

index = RepositoryIndex([
    ("c1", ObjectKind.COMMIT), ("t1", ObjectKind.TREE), ("b1", ObjectKind.BLOB),
])
graph = GitMetadataGraph()
graph.get_commit_idx("c1", index.get_tree_index("t1"))
trees = {"t1": [TreeEntry(EntryKind.BLOB, "b1", b"README")]}

result = graph.get_repo_metadata(index, lambda oid: trees[oid])
result[0].introduced_blobs     # (('b1', b'README'),)
```

List repositories on a GitHub server:

```python
from kingfisher import github

specifiers = github.RepoSpecifiers(user=["someone"], repo_filter=github.RepoType.SOURCE)
for clone_url in github.enumerate_repo_urls(specifiers, "https://api.example.com/"):
    print(clone_url)
```

An access token is read from `KF_GITHUB_TOKEN` or `KF_GITLAB_TOKEN` when
set; without one, only public repositories are listed.

Parse a command line:

```python
from kingfisher.cli import parse_args

ns = parse_args(["scan", "some/dir", "--confidence", "high"])
ns.command                  # 'scan'
ns.global_args.log_level()  # logging.INFO
```

`parse_args` sets colour to `Mode.NEVER` when `NO_COLOR` is in the
environment and progress to `Mode.NEVER` with `--quiet`.

## What it does not do

The package has no scanning engine: it carries no detection rules, does not
match secrets in content, does not validate findings, does not clone
repositories and does not read Git object databases itself (the commit graph
walk is fed by the caller). `kingfisher.cli` parses command lines but does
not run them, and the package installs no command.

## Requirements

Python 3.10 or later. The only dependency outside the standard library is
`requests`, used to talk to the GitHub and GitLab APIs.