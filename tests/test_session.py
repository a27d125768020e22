import pytest

from semcanvas import EditorSession, Graph, InteractionMode, LinkType, Node, PersistenceError, SnapshotStore
from semcanvas.layout import CANVAS_PADDING, LAYER_GAP


def _no(message: str) -> bool:
    return False


class BrokenBackend:
    """Backend whose every access fails."""

    def get(self, key):
        raise PersistenceError("disk on fire")

    def set(self, key, value):
        raise PersistenceError("disk on fire")


def test_initial_graph_is_seeded_as_baseline(scenario_session: EditorSession, scenario_graph: Graph) -> None:
    assert len(scenario_session.history) == 1
    assert scenario_session.history.current.same_as(scenario_graph)
    assert not scenario_session.can_undo


def test_first_edit_on_empty_canvas_is_undoable(session: EditorSession) -> None:
    session.add_node("F1", "latent")

    assert session.undo().same_as(Graph())
    assert session.graph.nodes == ()


def test_blank_label_is_ignored(session: EditorSession) -> None:
    assert session.add_node("   ") is None
    assert len(session.history) == 1


def test_undo_restores_state_before_each_edit(session: EditorSession) -> None:
    states = [session.graph]
    f1 = session.add_node("F1", "latent")
    states.append(session.graph)
    x1 = session.add_node("x1", "observed")
    states.append(session.graph)
    session.add_link(f1.id, x1.id, "directed")
    states.append(session.graph)
    session.move_node(x1.id, 10, 10)
    states.append(session.graph)

    for expected in reversed(states[:-1]):
        assert session.undo().same_as(expected)
        assert session.graph.same_as(expected)

    for expected in states[1:]:
        assert session.redo().same_as(expected)


def test_undo_redo_do_not_record(scenario_session: EditorSession) -> None:
    scenario_session.move_node("a", 1, 1)
    scenario_session.move_node("a", 2, 2)
    before = len(scenario_session.history)

    scenario_session.undo()
    scenario_session.undo()
    scenario_session.redo()

    assert len(scenario_session.history) == before
    assert scenario_session.history.index == 1


def test_drag_back_to_start_records_nothing(scenario_session: EditorSession) -> None:
    # latent anchor (50, 25) maps drop (150, 125) onto the original (100, 100)
    assert scenario_session.drop_node("a", 150, 125) is False
    assert len(scenario_session.history) == 1


def test_undo_clears_selection_and_pending_link(scenario_session: EditorSession) -> None:
    scenario_session.move_node("a", 1, 1)
    scenario_session.click_node("b")
    assert scenario_session.interaction.selected_node_id == "b"

    scenario_session.undo()

    assert not scenario_session.interaction.has_selection


def test_link_gesture_through_session(scenario_session: EditorSession) -> None:
    scenario_session.set_mode(InteractionMode.LINK)
    scenario_session.set_link_type(LinkType.COVARIANCE)

    assert scenario_session.click_node("b") is False
    assert scenario_session.click_node("c") is True
    assert len(scenario_session.links) == 3
    assert len(scenario_session.history) == 2


def test_scenario_delete_node_a(scenario_session: EditorSession) -> None:
    scenario_session.click_node("a")
    assert scenario_session.delete_selected() is True

    assert scenario_session.links == ()
    assert [n.id for n in scenario_session.nodes] == ["b", "c"]

    scenario_session.undo()
    assert len(scenario_session.links) == 2


def test_declined_delete_keeps_graph(scenario_session: EditorSession) -> None:
    scenario_session.click_link(0)

    assert scenario_session.delete_selected(confirm=_no) is False
    assert len(scenario_session.links) == 2
    assert len(scenario_session.history) == 1


def test_auto_layout_is_one_history_entry(scenario_session: EditorSession) -> None:
    assert scenario_session.auto_layout() is True

    assert len(scenario_session.history) == 2
    assert scenario_session.graph.get_node("b").x == CANVAS_PADDING + LAYER_GAP

    # Second run changes nothing
    assert scenario_session.auto_layout() is False
    assert len(scenario_session.history) == 2


def test_auto_layout_on_empty_canvas(session: EditorSession) -> None:
    assert session.auto_layout() is False


def test_change_callbacks_fire_only_on_real_changes(scenario_session: EditorSession) -> None:
    seen = []
    scenario_session.on_change(lambda graph: seen.append(len(graph.nodes)))

    scenario_session.click_node("a")
    scenario_session.move_node("zz", 1, 1)
    scenario_session.move_node("a", 5, 5)
    scenario_session.undo()

    assert seen == [3, 3]


def test_failing_callback_does_not_abort_edit(scenario_session: EditorSession) -> None:
    def explode(graph):
        raise RuntimeError("boom")

    scenario_session.on_change(explode)

    assert scenario_session.move_node("a", 5, 5) is True
    assert scenario_session.graph.get_node("a").x == 5


def test_history_stays_bounded(session: EditorSession) -> None:
    node = session.add_node("F1")
    for i in range(50):
        session.move_node(node.id, i, i)

    assert len(session.history) == 20


def test_save_and_load_resets_history(scenario_session: EditorSession) -> None:
    model_id = scenario_session.save_model("baseline")
    scenario_session.move_node("a", 1, 1)
    scenario_session.move_node("a", 2, 2)

    assert scenario_session.load_model(model_id) is True

    assert scenario_session.graph.get_node("a").x == 100
    assert len(scenario_session.history) == 1
    assert not scenario_session.can_undo


def test_declined_load_keeps_canvas(scenario_session: EditorSession) -> None:
    model_id = scenario_session.save_model("baseline")
    scenario_session.move_node("a", 1, 1)

    assert scenario_session.load_model(model_id, confirm=_no) is False
    assert scenario_session.graph.get_node("a").x == 1
    assert scenario_session.can_undo


def test_load_unknown_id(scenario_session: EditorSession) -> None:
    assert scenario_session.load_model("nope") is False


def test_default_save_names(session: EditorSession) -> None:
    session.save_model()
    session.save_model()

    assert [m.name for m in session.list_saved_models()] == ["Model 1", "Model 2"]


def test_delete_saved_model(scenario_session: EditorSession) -> None:
    model_id = scenario_session.save_model("one")

    assert scenario_session.delete_saved_model(model_id, confirm=_no) is False
    assert scenario_session.delete_saved_model(model_id) is True
    assert scenario_session.list_saved_models() == []


def test_new_model(scenario_session: EditorSession) -> None:
    assert scenario_session.new_model(confirm=_no) is False
    assert len(scenario_session.nodes) == 3

    assert scenario_session.new_model() is True
    assert scenario_session.graph.same_as(Graph())
    assert len(scenario_session.history) == 1


def test_persistence_errors_stay_at_the_boundary(scenario_graph: Graph) -> None:
    session = EditorSession(graph=scenario_graph, store=SnapshotStore(BrokenBackend()))

    assert session.save_model("x") is None
    assert session.list_saved_models() == []
    assert session.load_model("x") is False
    assert session.delete_saved_model("x") is False
    assert session.graph.same_as(scenario_graph)


def test_without_store_persistence_is_unavailable(scenario_graph: Graph) -> None:
    session = EditorSession(graph=scenario_graph)

    assert session.save_model("x") is None
    assert session.list_saved_models() == []


@pytest.mark.parametrize("dark", [False, True])
def test_notation_follows_graph(scenario_session: EditorSession, dark: bool) -> None:
    text = scenario_session.notation(dark_mode=dark)

    assert "a --> b" in text
    assert ("color:#fff" in text) is dark


def test_get_state(scenario_session: EditorSession) -> None:
    state = scenario_session.get_state()

    assert len(state["model"]["nodes"]) == 3
    assert state["interaction"]["mode"] == "move"
    assert state["history"]["length"] == 1
    assert state["can_undo"] is False


def test_replace_graph_keeps_node_ids_unique(session: EditorSession) -> None:
    session.replace_graph(Graph(nodes=[Node(id="a"), Node(id="a", x=5)]))

    assert [n.id for n in session.nodes] == ["a"]
    assert session.graph.get_node("a").x == 100
