"""Group tree — path-addressed hierarchy that layers declare membership in."""

from highlighter.groups.node import ROOT_NAME, ROOT_PATH, GroupNode, join_path
from highlighter.groups.reconcile import orphan_paths, reconcile
from highlighter.groups.tree import PathTree, validate_group_name

__all__ = [
    "GroupNode",
    "PathTree",
    "ROOT_NAME",
    "ROOT_PATH",
    "join_path",
    "orphan_paths",
    "reconcile",
    "validate_group_name",
]
