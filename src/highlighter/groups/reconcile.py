"""Orphan reconciliation — recreate groups implied by layer paths."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from loguru import logger

from highlighter.errors import InvalidNameError
from highlighter.groups.tree import PathTree


class HasPath(Protocol):
    path: str


def orphan_paths(layers: Iterable[HasPath], tree: PathTree) -> list[str]:
    """Distinct layer paths with no matching group, in first-seen order."""
    seen: list[str] = []
    for layer in layers:
        if layer.path not in tree and layer.path not in seen:
            seen.append(layer.path)
    return seen


def reconcile(layers: Iterable[HasPath], tree: PathTree) -> PathTree:
    """Return ``tree`` extended so every layer path resolves to a group.

    Missing ancestor chains are created under the root. Running it on an
    already-consistent tree returns the same tree object.
    """
    for path in orphan_paths(layers, tree):
        try:
            tree = tree.ensure_path(path)
        except InvalidNameError as e:
            logger.warning(f"Cannot reconcile layer path {path!r}: {e}")
            continue
        logger.info(f"Reconciled orphan layer path: {path!r}")
    return tree
