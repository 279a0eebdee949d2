"""GroupNode dataclass and path helpers for the group tree.

A group path is the ``/``-joined chain of ancestor names down to and
including the group's own name. The root group has the empty path.
"""

from __future__ import annotations

from dataclasses import dataclass

ROOT_PATH = ""
ROOT_NAME = "Root"
SEPARATOR = "/"


@dataclass(frozen=True)
class GroupNode:
    """A single group in the tree arena.

    Attributes:
        id: Stable identifier (UUID string), preserved across renames/moves.
        name: Display name, also the last segment of ``path``.
        path: Full ``/``-joined path; ``""`` for the root.
        parent_id: Id of the parent node, ``None`` for the root.
        children: Ordered ids of the direct subgroups.
    """

    id: str
    name: str
    path: str
    parent_id: str | None = None
    children: tuple[str, ...] = ()

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


def join_path(parent_path: str, name: str) -> str:
    """Path of a child called ``name`` under ``parent_path``."""
    return f"{parent_path}{SEPARATOR}{name}" if parent_path else name


def parent_path(path: str) -> str:
    return path.rpartition(SEPARATOR)[0]


def is_within(path: str, prefix: str) -> bool:
    """True if ``path`` equals ``prefix`` or lies strictly under it."""
    if prefix == ROOT_PATH:
        return True
    return path == prefix or path.startswith(prefix + SEPARATOR)


def replace_prefix(path: str, old_prefix: str, new_prefix: str) -> str:
    """Rewrite ``path`` so that ``old_prefix`` becomes ``new_prefix``.

    ``path`` must satisfy ``is_within(path, old_prefix)``.
    """
    if path == old_prefix:
        return new_prefix
    return join_path(new_prefix, path[len(old_prefix) + 1:])


def split_path(path: str) -> list[str]:
    return path.split(SEPARATOR) if path else []
