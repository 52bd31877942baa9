"""Commit graph traversal that finds which blobs each commit introduces."""

from __future__ import annotations

import enum
import heapq
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Set, Tuple

from kingfisher.bstring_table import BStringTable, Symbol

logger = logging.getLogger(__name__)

ObjectId = Hashable
IntroducedBlobs = List[Tuple[ObjectId, bytes]]

_MAX_INDEX = 2**32 - 1


class ObjectKind(enum.Enum):
    """The kind of a Git object."""

    COMMIT = "commit"
    TREE = "tree"
    BLOB = "blob"
    TAG = "tag"


class EntryKind(enum.Enum):
    """The kind of an entry inside a Git tree."""

    TREE = "tree"
    BLOB = "blob"
    BLOB_EXECUTABLE = "blob-executable"
    LINK = "link"
    COMMIT = "commit"


@dataclass(frozen=True)
class TreeEntry:
    """One entry of a Git tree: its kind, object id and file name."""

    mode: EntryKind
    oid: ObjectId
    filename: bytes


class CommitCycleError(RuntimeError):
    """Raised when the commit graph cannot be traversed topologically."""


class ObjectIdBimap:
    """A two-way mapping between object ids and dense integer indexes."""

    def __init__(self) -> None:
        self._oid_to_idx: Dict[ObjectId, int] = {}
        self._idx_to_oid: List[ObjectId] = []

    def insert(self, oid: ObjectId) -> None:
        """Assign the next index to `oid` unless it already has one."""
        if oid in self._oid_to_idx:
            return
        idx = len(self._idx_to_oid)
        if idx > _MAX_INDEX:
            raise OverflowError("too many objects for 32-bit indexes")
        self._idx_to_oid.append(oid)
        self._oid_to_idx[oid] = idx

    def get_oid(self, idx: int) -> Optional[ObjectId]:
        """Return the object id at `idx`, or None."""
        if 0 <= idx < len(self._idx_to_oid):
            return self._idx_to_oid[idx]
        return None

    def get_idx(self, oid: ObjectId) -> Optional[int]:
        """Return the index of `oid`, or None."""
        return self._oid_to_idx.get(oid)

    def oids(self) -> List[ObjectId]:
        """Return all object ids in index order."""
        return list(self._idx_to_oid)

    def __len__(self) -> int:
        return len(self._idx_to_oid)


@dataclass
class SeenObjectSet:
    """Tree and blob indexes already seen along a path through history."""

    seen_trees: Set[int] = field(default_factory=set)
    seen_blobs: Set[int] = field(default_factory=set)

    @staticmethod
    def _insert(target: Set[int], idx: int) -> bool:
        if not 0 <= idx <= _MAX_INDEX:
            raise OverflowError(f"object index {idx} out of range")
        if idx in target:
            return False
        target.add(idx)
        return True

    def insert_tree(self, idx: int) -> bool:
        """Mark a tree as seen; True if it was not seen before."""
        return self._insert(self.seen_trees, idx)

    def insert_blob(self, idx: int) -> bool:
        """Mark a blob as seen; True if it was not seen before."""
        return self._insert(self.seen_blobs, idx)

    def contains_blob(self, idx: int) -> bool:
        """Has this blob been seen?"""
        return idx in self.seen_blobs

    def union_update(self, other: SeenObjectSet) -> None:
        """Add everything seen in `other`."""
        self.seen_blobs |= other.seen_blobs
        self.seen_trees |= other.seen_trees

    def copy(self) -> SeenObjectSet:
        """Return an independent copy."""
        return SeenObjectSet(set(self.seen_trees), set(self.seen_blobs))


class RepositoryIndex:
    """Dense indexes for every object of a repository, grouped by kind."""

    def __init__(self, objects: Iterable[Tuple[ObjectId, ObjectKind]] = ()) -> None:
        self._maps = {kind: ObjectIdBimap() for kind in ObjectKind}
        for oid, kind in objects:
            self._maps[ObjectKind(kind)].insert(oid)

    def num_commits(self) -> int:
        return len(self._maps[ObjectKind.COMMIT])

    def num_blobs(self) -> int:
        return len(self._maps[ObjectKind.BLOB])

    def num_trees(self) -> int:
        return len(self._maps[ObjectKind.TREE])

    def num_tags(self) -> int:
        return len(self._maps[ObjectKind.TAG])

    def num_objects(self) -> int:
        return self.num_commits() + self.num_blobs() + self.num_tags() + self.num_trees()

    def get_tree_oid(self, idx: int) -> Optional[ObjectId]:
        return self._maps[ObjectKind.TREE].get_oid(idx)

    def get_tree_index(self, oid: ObjectId) -> Optional[int]:
        return self._maps[ObjectKind.TREE].get_idx(oid)

    def get_blob_index(self, oid: ObjectId) -> Optional[int]:
        return self._maps[ObjectKind.BLOB].get_idx(oid)

    def blobs(self) -> List[ObjectId]:
        """All blob ids in index order."""
        return self._maps[ObjectKind.BLOB].oids()

    def commits(self) -> List[ObjectId]:
        """All commit ids in index order."""
        return self._maps[ObjectKind.COMMIT].oids()


@dataclass
class CommitNode:
    """A commit in the graph and the index of its root tree, if known."""

    oid: ObjectId
    tree_idx: Optional[int] = None


@dataclass(frozen=True)
class CommitBlobMetadata:
    """The blobs a commit introduces, each with the path it first appears at."""

    commit_oid: ObjectId
    introduced_blobs: Tuple[Tuple[ObjectId, bytes], ...]


ReadTree = Callable[[ObjectId], Iterable[TreeEntry]]


class GitMetadataGraph:
    """A directed graph of commits, with edges from parent to child."""

    def __init__(self) -> None:
        self._oid_to_idx: Dict[ObjectId, int] = {}
        self._nodes: List[CommitNode] = []
        self._edges: List[Tuple[int, int]] = []
        self._outgoing: List[List[int]] = []
        self._incoming: List[List[int]] = []

    def __len__(self) -> int:
        return len(self._nodes)

    def get_commit_metadata(self, idx: int) -> CommitNode:
        """Return the node at `idx`."""
        return self._nodes[idx]

    def get_commit_idx(self, oid: ObjectId, tree_idx: Optional[int] = None) -> int:
        """Return the node index for `oid`, adding it if new; records `tree_idx` if given."""
        idx = self._oid_to_idx.get(oid)
        if idx is not None:
            if tree_idx is not None:
                self._nodes[idx].tree_idx = tree_idx
            return idx
        idx = len(self._nodes)
        self._nodes.append(CommitNode(oid, tree_idx))
        self._outgoing.append([])
        self._incoming.append([])
        self._oid_to_idx[oid] = idx
        return idx

    def add_commit_edge(self, parent_idx: int, child_idx: int) -> int:
        """Add an edge from parent to child and return its index."""
        for idx in (parent_idx, child_idx):
            if not 0 <= idx < len(self._nodes):
                raise IndexError(f"no commit node {idx}")
        edge = len(self._edges)
        self._edges.append((parent_idx, child_idx))
        self._outgoing[parent_idx].append(edge)
        self._incoming[child_idx].append(edge)
        return edge

    def _push(self, heap: List[Tuple[int, int]], idx: int) -> None:
        # Fewest children first; among equals the highest node index first.
        heapq.heappush(heap, (len(self._outgoing[idx]), -idx))

    def get_repo_metadata(
        self, repo_index: RepositoryIndex, read_tree: ReadTree
    ) -> List[CommitBlobMetadata]:
        """Walk history from the roots and find the blobs each commit introduces.

        `read_tree` maps a tree id to its entries; trees it cannot read
        (LookupError, OSError, ValueError) are skipped.
        """
        started = time.monotonic()
        num_commits = len(self._nodes)
        seen_sets: List[Optional[SeenObjectSet]] = [None] * num_commits
        introduced: List[IntroducedBlobs] = [[] for _ in range(num_commits)]
        visited_edges: Set[int] = set()
        visited_commits: Set[int] = set()
        heap: List[Tuple[int, int]] = []
        symbols = BStringTable()
        stats = {"trees": 0, "blobs": 0}

        for idx in range(num_commits):
            if not self._incoming[idx]:
                self._push(heap, idx)
                seen_sets[idx] = SeenObjectSet()

        num_visited = 0
        while heap:
            _, neg_idx = heapq.heappop(heap)
            commit_idx = -neg_idx
            if commit_idx in visited_commits:
                logger.warning("found duplicate commit node %d", commit_idx)
                continue
            visited_commits.add(commit_idx)
            num_visited += 1
            seen = seen_sets[commit_idx]
            seen_sets[commit_idx] = None
            if seen is None:
                seen = SeenObjectSet()

            node = self._nodes[commit_idx]
            if node.tree_idx is not None:
                if seen.insert_tree(node.tree_idx):
                    tree_oid = repo_index.get_tree_oid(node.tree_idx)
                    if tree_oid is None:
                        raise IndexError(f"no tree at index {node.tree_idx}")
                    _visit_tree(
                        read_tree,
                        symbols,
                        repo_index,
                        stats,
                        seen,
                        introduced[commit_idx],
                        [((), tree_oid)],
                    )
            else:
                logger.debug(
                    "No tree index for %s; blob metadata may be incomplete", node.oid
                )

            out_edges = list(reversed(self._outgoing[commit_idx]))
            for position, edge in enumerate(out_edges):
                if edge in visited_edges:
                    logger.debug("Edge %d visited more than once", edge)
                    continue
                visited_edges.add(edge)
                child_idx = self._edges[edge][1]
                child_seen = seen_sets[child_idx]
                if child_seen is not None:
                    child_seen.union_update(seen)
                elif position == len(out_edges) - 1:
                    seen_sets[child_idx] = seen
                else:
                    seen_sets[child_idx] = seen.copy()
                if all(e in visited_edges for e in self._incoming[child_idx]):
                    self._push(heap, child_idx)

        if len(visited_edges) != len(self._edges):
            raise CommitCycleError(
                "Topological traversal failed: a commit cycle was detected"
            )

        logger.debug(
            "%d commits visited; introduced %d trees and %d blobs; %.6fs",
            num_visited,
            stats["trees"],
            stats["blobs"],
            time.monotonic() - started,
        )
        return [
            CommitBlobMetadata(node.oid, tuple(blobs))
            for node, blobs in zip(self._nodes, introduced)
        ]


def _visit_tree(
    read_tree: ReadTree,
    symbols: BStringTable,
    repo_index: RepositoryIndex,
    stats: Dict[str, int],
    seen: SeenObjectSet,
    introduced: IntroducedBlobs,
    worklist: List[Tuple[Tuple[Symbol, ...], ObjectId]],
) -> None:
    encountered: List[int] = []
    while worklist:
        name_path, tree_oid = worklist.pop()
        try:
            entries = list(read_tree(tree_oid))
        except (LookupError, OSError, ValueError) as exc:
            logger.debug("Failed to find tree %s: %s", tree_oid, exc)
            continue
        stats["trees"] += 1
        for entry in entries:
            if entry.mode in (EntryKind.LINK, EntryKind.COMMIT):
                continue
            if entry.mode is EntryKind.TREE:
                child_idx = repo_index.get_tree_index(entry.oid)
                if child_idx is None:
                    logger.debug("No index for %s in tree %s", entry.oid, tree_oid)
                    continue
                if seen.insert_tree(child_idx):
                    new_path = name_path + (symbols.get_or_intern(entry.filename),)
                    worklist.append((new_path, entry.oid))
            else:
                child_idx = repo_index.get_blob_index(entry.oid)
                if child_idx is None:
                    logger.debug("No blob index for %s in tree %s", entry.oid, tree_oid)
                    continue
                if not seen.contains_blob(child_idx):
                    encountered.append(child_idx)
                    stats["blobs"] += 1
                    new_path = name_path + (symbols.get_or_intern(entry.filename),)
                    path = b"/".join(symbols.resolve(s) for s in new_path)
                    introduced.append((entry.oid, path))
    for idx in encountered:
        seen.insert_blob(idx)