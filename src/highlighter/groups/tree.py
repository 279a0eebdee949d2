"""PathTree — immutable, path-addressed group hierarchy.

Nodes live in a flat arena keyed by id; each node keeps its parent id and
the ordered ids of its children. Every edit returns a new PathTree that
shares untouched nodes with the old one, so a snapshot held by a caller is
never mutated. An edit either succeeds completely or raises before any new
tree is built.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator, Mapping

from loguru import logger

from highlighter.errors import ConflictError, InvalidMoveError, InvalidNameError
from highlighter.groups.node import (
    ROOT_NAME,
    ROOT_PATH,
    SEPARATOR,
    GroupNode,
    join_path,
    replace_prefix,
    split_path,
)


def _new_id() -> str:
    return str(uuid.uuid4())


def validate_group_name(name: str) -> str:
    """Return ``name`` if usable as a path segment, else raise InvalidNameError."""
    if not isinstance(name, str) or not name.strip():
        raise InvalidNameError("Group name must not be empty")
    if SEPARATOR in name:
        raise InvalidNameError(f"Group name must not contain '{SEPARATOR}': {name!r}")
    return name


class PathTree:
    """Hierarchical namespace of GroupNodes addressed by path."""

    __slots__ = ("_nodes", "_root_id", "_by_path")

    def __init__(self, nodes: Mapping[str, GroupNode], root_id: str) -> None:
        self._nodes: dict[str, GroupNode] = dict(nodes)
        self._root_id = root_id
        self._by_path: dict[str, str] = {n.path: n.id for n in self._nodes.values()}

    # ------------------------------------------------------------------
    # Construction / serialization
    # ------------------------------------------------------------------

    @classmethod
    def empty(cls, root_name: str = ROOT_NAME, root_id: str | None = None) -> PathTree:
        root = GroupNode(id=root_id or _new_id(), name=root_name, path=ROOT_PATH)
        return cls({root.id: root}, root.id)

    @classmethod
    def from_forest(cls, forest: list[dict] | None) -> PathTree:
        """Build a tree from the nested ``{id, name, path, subgroups}`` form.

        A forest holding a single node with path ``""`` is taken as the
        root. Any other top-level node is attached under a root (the one
        found in the forest, or a synthesized ``Root``). Paths are
        recomputed from names; a node whose path duplicates an existing
        one is merged into it.
        """
        forest = list(forest or [])
        root_dicts = [g for g in forest if g.get("path", None) == ROOT_PATH]
        others = [g for g in forest if g.get("path", None) != ROOT_PATH]

        if root_dicts:
            first = root_dicts[0]
            root = GroupNode(
                id=str(first.get("id") or _new_id()),
                name=first.get("name") or ROOT_NAME,
                path=ROOT_PATH,
            )
        else:
            root = GroupNode(id=_new_id(), name=ROOT_NAME, path=ROOT_PATH)

        nodes: dict[str, GroupNode] = {root.id: root}
        by_path: dict[str, str] = {ROOT_PATH: root.id}

        def attach(parent_id: str, data: dict) -> None:
            name = str(data.get("name", "")).strip() or None
            if name is None:
                logger.warning(f"Skipping unnamed group under {nodes[parent_id].path!r}")
                return
            parent = nodes[parent_id]
            path = join_path(parent.path, name)
            node_id = by_path.get(path)
            if node_id is None:
                node_id = str(data.get("id") or _new_id())
                if node_id in nodes:
                    node_id = _new_id()
                nodes[node_id] = GroupNode(id=node_id, name=name, path=path, parent_id=parent_id)
                nodes[parent_id] = GroupNode(
                    id=parent.id,
                    name=parent.name,
                    path=parent.path,
                    parent_id=parent.parent_id,
                    children=parent.children + (node_id,),
                )
                by_path[path] = node_id
            for sub in data.get("subgroups") or []:
                attach(node_id, sub)

        for data in root_dicts:
            for sub in data.get("subgroups") or []:
                attach(root.id, sub)
        for data in others:
            attach(root.id, data)

        return cls(nodes, root.id)

    def to_forest(self) -> list[dict]:
        """Nested ``[{id, name, path, subgroups}]`` form with the root on top."""

        def dump(node_id: str) -> dict:
            node = self._nodes[node_id]
            return {
                "id": node.id,
                "name": node.name,
                "path": node.path,
                "subgroups": [dump(child) for child in node.children],
            }

        return [dump(self._root_id)]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def root(self) -> GroupNode:
        return self._nodes[self._root_id]

    def get(self, node_id: str) -> GroupNode | None:
        return self._nodes.get(node_id)

    def find_by_path(self, path: str) -> GroupNode | None:
        """Look up a group by path; ``""`` resolves to the root."""
        node_id = self._by_path.get(path)
        return self._nodes[node_id] if node_id is not None else None

    def subgroups(self, path: str) -> list[GroupNode]:
        node = self.find_by_path(path)
        if node is None:
            return []
        return [self._nodes[c] for c in node.children]

    def walk(self, path: str = ROOT_PATH) -> Iterator[GroupNode]:
        """Yield the group at ``path`` and all its descendants, pre-order."""
        node = self.find_by_path(path)
        if node is None:
            return
        stack = [node.id]
        while stack:
            current = self._nodes[stack.pop()]
            yield current
            stack.extend(reversed(current.children))

    def paths(self) -> set[str]:
        return set(self._by_path)

    def __contains__(self, path: object) -> bool:
        return path in self._by_path

    def __len__(self) -> int:
        return len(self._nodes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PathTree):
            return NotImplemented
        return self._root_id == other._root_id and self._nodes == other._nodes

    def __repr__(self) -> str:
        return f"PathTree({len(self._nodes)} groups)"

    # ------------------------------------------------------------------
    # Structural edits (each returns a new tree)
    # ------------------------------------------------------------------

    def add_group(self, parent_path: str, name: str) -> tuple[PathTree, GroupNode]:
        """Append a new subgroup ``name`` under ``parent_path``.

        Missing ancestors of ``parent_path`` are created first.

        Raises:
            InvalidNameError: If ``name`` is empty or contains ``/``.
            ConflictError: If a sibling already has ``name``.
        """
        validate_group_name(name)
        tree = self.ensure_path(parent_path)
        parent = tree.find_by_path(parent_path)
        path = join_path(parent.path, name)
        if path in tree._by_path:
            raise ConflictError(f"Group {name!r} already exists under {parent_path!r}")

        node = GroupNode(id=_new_id(), name=name, path=path, parent_id=parent.id)
        nodes = dict(tree._nodes)
        nodes[node.id] = node
        nodes[parent.id] = _with_children(parent, parent.children + (node.id,))
        logger.debug(f"Group added: {path!r}")
        return PathTree(nodes, tree._root_id), node

    def ensure_path(self, path: str) -> PathTree:
        """Create every missing group along ``path``; no-op if it exists."""
        if path in self._by_path:
            return self
        segments = split_path(path)
        for segment in segments:
            validate_group_name(segment)

        nodes = dict(self._nodes)
        by_path = dict(self._by_path)
        parent = nodes[self._root_id]
        for segment in segments:
            child_path = join_path(parent.path, segment)
            child_id = by_path.get(child_path)
            if child_id is None:
                child = GroupNode(id=_new_id(), name=segment, path=child_path, parent_id=parent.id)
                nodes[child.id] = child
                nodes[parent.id] = _with_children(parent, parent.children + (child.id,))
                by_path[child_path] = child.id
                logger.debug(f"Group created for path: {child_path!r}")
                parent = child
            else:
                parent = nodes[child_id]
        return PathTree(nodes, self._root_id)

    def rename_group(self, path: str, new_name: str) -> PathTree:
        """Rename the group at ``path``, cascading the new prefix to descendants.

        Renaming the root only changes its display name.

        Raises:
            InvalidNameError: If ``new_name`` is not a valid segment.
            ConflictError: If a sibling already has ``new_name``.
        """
        validate_group_name(new_name)
        node = self.find_by_path(path)
        if node is None:
            logger.debug(f"Rename ignored, no group at {path!r}")
            return self
        if node.name == new_name:
            return self

        nodes = dict(self._nodes)
        if node.is_root:
            nodes[node.id] = GroupNode(node.id, new_name, node.path, node.parent_id, node.children)
            return PathTree(nodes, self._root_id)

        parent = self._nodes[node.parent_id]
        new_path = join_path(parent.path, new_name)
        if new_path in self._by_path:
            raise ConflictError(f"Group {new_name!r} already exists under {parent.path!r}")

        self._rewrite_subtree(nodes, node.id, path, new_path)
        renamed = nodes[node.id]
        nodes[node.id] = GroupNode(renamed.id, new_name, renamed.path, renamed.parent_id, renamed.children)
        return PathTree(nodes, self._root_id)

    def remove_group(self, path: str) -> PathTree:
        """Remove the group at ``path`` together with its whole subtree.

        Raises:
            InvalidMoveError: If ``path`` is the root.
        """
        node = self.find_by_path(path)
        if node is None:
            logger.debug(f"Remove ignored, no group at {path!r}")
            return self
        if node.is_root:
            raise InvalidMoveError("The root group cannot be removed")

        doomed = {n.id for n in self.walk(path)}
        nodes = {k: v for k, v in self._nodes.items() if k not in doomed}
        parent = nodes[node.parent_id]
        nodes[parent.id] = _with_children(parent, tuple(c for c in parent.children if c != node.id))
        logger.debug(f"Group removed: {path!r} ({len(doomed)} nodes)")
        return PathTree(nodes, self._root_id)

    def move_group(self, source_path: str, dest_parent_path: str) -> PathTree:
        """Re-attach the group at ``source_path`` under ``dest_parent_path``.

        Raises:
            InvalidMoveError: If the destination is the source itself or lies
                inside its subtree, or if the source is the root.
            ConflictError: If the destination already has a child with the
                moved group's name.
        """
        if source_path == ROOT_PATH:
            raise InvalidMoveError("The root group cannot be moved")
        if dest_parent_path == source_path or dest_parent_path.startswith(source_path + SEPARATOR):
            raise InvalidMoveError(
                f"Cannot move {source_path!r} into itself or its descendant {dest_parent_path!r}"
            )

        node = self.find_by_path(source_path)
        dest = self.find_by_path(dest_parent_path)
        if node is None or dest is None:
            logger.debug(f"Move ignored: {source_path!r} -> {dest_parent_path!r}")
            return self
        if node.parent_id == dest.id:
            return self

        new_path = join_path(dest.path, node.name)
        if new_path in self._by_path:
            raise ConflictError(f"Group {node.name!r} already exists under {dest_parent_path!r}")

        nodes = dict(self._nodes)
        old_parent = nodes[node.parent_id]
        nodes[old_parent.id] = _with_children(
            old_parent, tuple(c for c in old_parent.children if c != node.id)
        )
        dest = nodes[dest.id]
        nodes[dest.id] = _with_children(dest, dest.children + (node.id,))
        self._rewrite_subtree(nodes, node.id, source_path, new_path)
        moved = nodes[node.id]
        nodes[node.id] = GroupNode(moved.id, moved.name, moved.path, dest.id, moved.children)
        return PathTree(nodes, self._root_id)

    def _rewrite_subtree(
        self, nodes: dict[str, GroupNode], node_id: str, old_prefix: str, new_prefix: str
    ) -> None:
        stack = [node_id]
        while stack:
            current = nodes[stack.pop()]
            nodes[current.id] = GroupNode(
                current.id,
                current.name,
                replace_prefix(current.path, old_prefix, new_prefix),
                current.parent_id,
                current.children,
            )
            stack.extend(current.children)


def _with_children(node: GroupNode, children: tuple[str, ...]) -> GroupNode:
    return GroupNode(node.id, node.name, node.path, node.parent_id, children)
