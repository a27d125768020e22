"""
Editor Session - one explicit record of everything an open editor owns.

This module implements:
- The live graph, replaced wholesale on every accepted edit
- Snapshot-based undo/redo through HistoryEngine
- The interaction state machine (modes, pending link, selection)
- Named snapshots through an optional SnapshotStore
- Change callbacks for real-time sync and the notation view

Every change goes through `_commit`, tagged with an EditOrigin, so
history capture happens exactly once per settled edit and never for
undo/redo replays.
"""

import logging
import random
from typing import Callable, Optional

from .history import HISTORY_LIMIT, EditOrigin, HistoryEngine
from .interaction import Confirm, InteractionMode, InteractionState
from .layout import structural_layout
from .models import Graph, LinkType, Node, NodeType
from .notation import to_mermaid
from .persistence import PersistenceError, SavedModel, SnapshotStore
from .validation import IssueSeverity, ValidationIssue, validate_graph

logger = logging.getLogger(__name__)


def always_confirm(message: str) -> bool:
    return True


class EditorSession:
    """
    Owns one editor's graph, history, interaction state and collaborators.

    The history works via snapshots:
    - The initial graph is recorded as the baseline entry
    - Each accepted user edit records the resulting graph
    - Undo/redo replace the graph with a stored snapshot without recording
    - Loading a saved model or starting a new one restarts the history
    """

    def __init__(
        self,
        graph: Optional[Graph] = None,
        store: Optional[SnapshotStore] = None,
        confirm: Optional[Confirm] = None,
        rng: Optional[random.Random] = None,
        history_limit: int = HISTORY_LIMIT,
    ):
        self._graph = graph if graph is not None else Graph()
        self._history = HistoryEngine(capacity=history_limit)
        self._interaction = InteractionState()
        self._store = store
        self._confirm = confirm or always_confirm
        self._rng = rng
        self._on_change_callbacks: list[Callable[[Graph], None]] = []

        self._history.seed(self._graph)

    # --- Properties ---

    @property
    def graph(self) -> Graph:
        return self._graph

    @property
    def nodes(self) -> tuple[Node, ...]:
        return self._graph.nodes

    @property
    def links(self):
        return self._graph.links

    @property
    def history(self) -> HistoryEngine:
        return self._history

    @property
    def interaction(self) -> InteractionState:
        return self._interaction

    @property
    def store(self) -> Optional[SnapshotStore]:
        return self._store

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    # --- Change Callbacks ---

    def on_change(self, callback: Callable[[Graph], None]):
        """Register a callback invoked with the new graph after every change."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        for callback in self._on_change_callbacks:
            try:
                callback(self._graph)
            except Exception:
                logger.exception("Change callback %r failed", callback)

    # --- Commit path ---

    def _commit(self, graph: Graph, origin: EditOrigin = EditOrigin.USER_EDIT) -> bool:
        """
        Make `graph` the live graph and settle history for it.

        Returns True if the graph value changed.
        """
        changed = not graph.same_as(self._graph)
        self._graph = graph

        if origin == EditOrigin.USER_EDIT:
            self._history.record(graph)
        elif origin == EditOrigin.RESET:
            self._history.reset(graph)

        if changed:
            self._notify_change()
        return changed

    def _resolve_confirm(self, confirm: Optional[Confirm]) -> Confirm:
        return confirm or self._confirm

    # --- Graph edits ---

    def add_node(self, label: str, node_type: str = NodeType.LATENT.value) -> Optional[Node]:
        """Add a variable with the given label. Blank labels are ignored."""
        if not label or not label.strip():
            return None
        graph, node = self._graph.add_node(label, NodeType(node_type), rng=self._rng)
        self._commit(graph)
        return node

    def add_link(self, source: str, target: str, link_type: str = LinkType.DIRECTED.value) -> bool:
        """Add a link directly, bypassing the two-click gesture."""
        graph, added = self._graph.add_link(source, target, LinkType(link_type))
        if added:
            self._commit(graph)
        return added

    def move_node(self, node_id: str, x: float, y: float) -> bool:
        """Move a node to an absolute top-left position."""
        return self._commit(self._graph.move_node(node_id, x, y))

    def replace_graph(self, graph: Graph) -> bool:
        """Replace the whole graph as a single undoable edit."""
        self._interaction.reset()
        return self._commit(graph)

    def auto_layout(self) -> bool:
        """Arrange nodes by model structure; one history entry per run."""
        if not self._graph.nodes:
            return False
        nodes = structural_layout(list(self._graph.nodes), list(self._graph.links))
        return self._commit(self._graph.replace_nodes(nodes))

    # --- Interaction ---

    def set_mode(self, mode: InteractionMode):
        self._interaction.set_mode(mode)

    def set_link_type(self, link_type: LinkType):
        self._interaction.set_link_type(link_type)

    def click_node(self, node_id: str) -> bool:
        """Route a node click through the state machine. True if the graph changed."""
        return self._commit(self._interaction.click_node(self._graph, node_id))

    def click_link(self, index: int):
        self._interaction.click_link(index)

    def click_canvas(self):
        self._interaction.click_canvas()

    def pointer_move(self, x: float, y: float):
        self._interaction.pointer_move(x, y)

    def drop_node(self, node_id: str, drop_x: float, drop_y: float) -> bool:
        """Finish a drag at a canvas-local drop point."""
        return self._commit(self._interaction.drop_node(self._graph, node_id, drop_x, drop_y))

    def delete_selected(self, confirm: Optional[Confirm] = None) -> bool:
        """Delete the current selection after confirmation."""
        graph = self._interaction.delete_selected(self._graph, self._resolve_confirm(confirm))
        return self._commit(graph)

    # --- Undo/Redo ---

    def undo(self) -> Optional[Graph]:
        """Undo the last edit. Returns the restored graph or None."""
        snapshot = self._history.undo()
        if snapshot is None:
            return None
        self._interaction.reset()
        self._commit(snapshot, EditOrigin.HISTORY_REPLAY)
        return snapshot

    def redo(self) -> Optional[Graph]:
        """Redo the last undone edit. Returns the restored graph or None."""
        snapshot = self._history.redo()
        if snapshot is None:
            return None
        self._interaction.reset()
        self._commit(snapshot, EditOrigin.HISTORY_REPLAY)
        return snapshot

    # --- Model lifecycle ---

    def new_model(self, confirm: Optional[Confirm] = None) -> bool:
        """Discard the canvas and start an empty model with fresh history."""
        if not self._resolve_confirm(confirm)("Start a new model? Unsaved changes will be lost."):
            return False
        self._interaction.reset()
        self._commit(Graph(), EditOrigin.RESET)
        return True

    def list_saved_models(self) -> list[SavedModel]:
        if self._store is None:
            return []
        try:
            return self._store.list()
        except PersistenceError as e:
            logger.error("Could not list saved models: %s", e)
            return []

    def save_model(self, name: Optional[str] = None) -> Optional[str]:
        """Save the current graph under `name` (default `Model <n+1>`). Returns its id."""
        if self._store is None:
            return None
        try:
            if not name:
                name = f"Model {len(self._store.list()) + 1}"
            return self._store.save(name, self._graph)
        except PersistenceError as e:
            logger.error("Could not save model %r: %s", name, e)
            return None

    def load_model(self, model_id: str, confirm: Optional[Confirm] = None) -> bool:
        """Replace the canvas with a saved model; history restarts at it."""
        if self._store is None:
            return False
        try:
            model = self._store.get(model_id)
        except PersistenceError as e:
            logger.error("Could not load model %s: %s", model_id, e)
            return False
        if model is None:
            return False

        if not self._resolve_confirm(confirm)(f'Load "{model.name}"? Current canvas will be replaced.'):
            return False

        graph = model.graph
        for issue in validate_graph(graph):
            if issue.severity != IssueSeverity.INFO:
                logger.warning("Loaded model %s: %s", model_id, issue.message)

        self._interaction.reset()
        self._commit(graph, EditOrigin.RESET)
        return True

    def delete_saved_model(self, model_id: str, confirm: Optional[Confirm] = None) -> bool:
        if self._store is None:
            return False
        if not self._resolve_confirm(confirm)("Are you sure you want to delete this saved file?"):
            return False
        try:
            return self._store.delete(model_id)
        except PersistenceError as e:
            logger.error("Could not delete model %s: %s", model_id, e)
            return False

    # --- Views ---

    def notation(self, dark_mode: bool = False) -> str:
        """Mermaid code for the current graph."""
        return to_mermaid(self._graph, dark_mode=dark_mode)

    def validate(self) -> list[ValidationIssue]:
        return validate_graph(self._graph)

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        return {
            "model": self._graph.to_json_dict(),
            "interaction": self._interaction.to_dict(),
            "history": self._history.get_state(),
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
        }
