"""Tests for cross-structure edits: rename/move/remove cascades and drag-and-drop."""

import pytest

from highlighter import commands, reorg
from highlighter.commands import apply
from highlighter.errors import ConflictError, InvalidMoveError
from highlighter.reorg import DragKind, DropRequest
from highlighter.state import WorkspaceState


def _state(*layers: tuple[int, str]) -> WorkspaceState:
    """State with one layer per ``(id, path)``, groups reconciled from paths."""
    data = [{"id": layer_id, "name": f"L{layer_id}", "path": path} for layer_id, path in layers]
    return WorkspaceState.from_dicts(data, None)


def _paths(state: WorkspaceState) -> dict:
    return {layer.id: layer.path for layer in state.layers}


@pytest.mark.unit
class TestRenameCascade:
    def test_layers_follow_renamed_group(self):
        """Groups A, A/B with layer L at A/B; rename A to Z moves L to Z/B."""
        state = _state((1, "A/B"))
        state = reorg.rename_group(state, "A", "Z")
        assert _paths(state) == {1: "Z/B"}
        assert "Z" in state.tree and "Z/B" in state.tree
        assert "A" not in state.tree

    def test_only_matching_prefix_rewritten(self):
        state = _state((1, "A"), (2, "AB"), (3, "A/C"))
        state = reorg.rename_group(state, "A", "Z")
        assert _paths(state) == {1: "Z", 2: "AB", 3: "Z/C"}

    def test_conflict_leaves_state(self):
        state = _state((1, "A"), (2, "B"))
        with pytest.raises(ConflictError):
            reorg.rename_group(state, "A", "B")
        assert _paths(state) == {1: "A", 2: "B"}

    def test_root_rename_keeps_layer_paths(self):
        state = _state((1, "A"))
        renamed = reorg.rename_group(state, "", "World")
        assert renamed.tree.root.name == "World"
        assert _paths(renamed) == {1: "A"}


@pytest.mark.unit
class TestRemoveOrphans:
    def test_layers_kept_as_orphans(self):
        """Removing A keeps L at A/B; L shows under root until the next load."""
        state = _state((1, "A/B"), (2, ""))
        state = reorg.remove_group(state, "A")
        assert _paths(state) == {1: "A/B", 2: ""}
        assert "A" not in state.tree
        assert [layer.id for layer in state.orphans()] == [1]
        assert [layer.id for layer in state.layers_in_group("")] == [1, 2]
        assert state.effective_path(state.layers.get_layer(1)) == ""

    def test_reload_recreates_chain(self):
        state = reorg.remove_group(_state((1, "A/B")), "A")
        data = state.to_dicts()
        reloaded = WorkspaceState.from_dicts(data["layers"], data["groups"])
        assert "A" in reloaded.tree and "A/B" in reloaded.tree
        assert reloaded.orphans() == []

    def test_remove_root_rejected(self):
        with pytest.raises(InvalidMoveError):
            reorg.remove_group(_state((1, "A")), "")


@pytest.mark.unit
class TestMoveGroup:
    def test_layers_follow_moved_group(self):
        state = _state((1, "A/X"), (2, "B"))
        state = reorg.move_group(state, "A", "B")
        assert _paths(state) == {1: "B/A/X", 2: "B"}
        assert "B/A/X" in state.tree

    def test_into_descendant_rejected(self):
        state = _state((1, "A/B"))
        with pytest.raises(InvalidMoveError):
            reorg.move_group(state, "A", "A/B")

    def test_noop_returns_same_state(self):
        state = _state((1, "A/B"))
        assert reorg.move_group(state, "A/B", "A") is state


@pytest.mark.unit
class TestMoveLayer:
    def test_insert_before_index_within_group(self):
        state = _state((1, "G"), (2, "H"), (3, "G"), (4, ""))
        state = reorg.move_layer(state, 4, "G", 1)
        assert [layer.id for layer in state.layers] == [1, 2, 4, 3]
        assert state.layers.get_layer(4).path == "G"

    def test_index_past_end_goes_after_last(self):
        state = _state((1, "G"), (2, "G"), (3, "H"), (4, ""))
        state = reorg.move_layer(state, 4, "G", 10)
        assert [layer.id for layer in state.layers] == [1, 2, 4, 3]

    def test_empty_destination_appends(self):
        state = _state((1, "G"), (2, ""))
        state = reorg.move_layer(state, 1, "New", 0)
        assert [layer.id for layer in state.layers] == [2, 1]
        assert "New" in state.tree

    def test_unknown_layer_is_noop(self):
        state = _state((1, "G"))
        assert reorg.move_layer(state, 99, "G", 0) is state


@pytest.mark.unit
class TestDrop:
    def test_group_onto_group(self):
        state = _state((1, "A"), (2, "B"))
        state = reorg.drop(state, DropRequest(DragKind.GROUP, "A", "B"))
        assert "B/A" in state.tree
        assert _paths(state)[1] == "B/A"

    def test_layer_onto_group_appends(self):
        state = _state((1, "A"), (2, "B"), (3, "A"))
        state = reorg.drop(state, DropRequest(DragKind.LAYER, 2, "A"))
        assert [layer.id for layer in state.layers] == [1, 3, 2]
        assert _paths(state)[2] == "A"

    def test_layer_onto_group_at_index(self):
        state = _state((1, "A"), (2, "B"), (3, "A"))
        state = reorg.drop(state, DropRequest(DragKind.LAYER, 2, "A", 0))
        assert [layer.id for layer in state.layers] == [2, 1, 3]


@pytest.mark.unit
class TestCommands:
    def test_apply_add_group(self):
        state = apply(WorkspaceState(), commands.AddGroup("", "Europe"))
        assert "Europe" in state.tree

    def test_apply_add_layer_reconciles(self):
        state = apply(WorkspaceState(), commands.AddLayer("Cities", "Europe/France", layer_id=7))
        assert state.layers.get_layer(7).path == "Europe/France"
        assert "Europe/France" in state.tree

    def test_noop_returns_same_object(self):
        state = _state((1, "A"))
        assert apply(state, commands.RemoveLayer(99)) is state
        assert apply(state, commands.RemoveGroup("missing")) is state

    def test_error_leaves_state(self):
        state = _state((1, "A"), (2, "B"))
        with pytest.raises(ConflictError):
            apply(state, commands.RenameGroup("A", "B"))
        assert "A" in state.tree

    def test_unknown_command(self):
        with pytest.raises(TypeError):
            apply(WorkspaceState(), object())
