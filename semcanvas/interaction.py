"""
Interaction state machine for the canvas.

Tracks the transient, never-persisted editing state:
- Move mode vs. Link mode
- The pending link source and its preview endpoint while a link is drawn
- The current selection (one node or one link, never both)

Transitions that change the graph take the current Graph and return the
resulting one; committing it to history is the caller's job.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .models import Graph, LinkType, NodeType

logger = logging.getLogger(__name__)

# Confirmation callable: receives the question, returns True to proceed
Confirm = Callable[[str], bool]

# Drag anchor offsets: the drop point sits at the shape's top-centre area
LATENT_ANCHOR_X = 50     # Half of the 100-wide latent ellipse
OBSERVED_ANCHOR_X = 60   # Half of the 120-wide observed box
ANCHOR_Y = 25


class InteractionMode(str, Enum):
    """What a click on a node does."""
    MOVE = "move"
    LINK = "link"


def anchor_offset(node_type: str) -> tuple[float, float]:
    """Offset from a node's top-left corner to the point a drag holds it by."""
    if node_type == NodeType.LATENT:
        return LATENT_ANCHOR_X, ANCHOR_Y
    return OBSERVED_ANCHOR_X, ANCHOR_Y


@dataclass
class InteractionState:
    """Transient editor state; not part of the graph or its history."""
    mode: InteractionMode = InteractionMode.MOVE
    link_type: LinkType = LinkType.DIRECTED
    pending_source: Optional[str] = None
    preview_end: Optional[tuple[float, float]] = None
    selected_node_id: Optional[str] = None
    selected_link_index: Optional[int] = None

    # --- Mode switches ---

    def set_mode(self, mode: InteractionMode):
        """Switch modes. Any link being drawn is cancelled."""
        self.mode = InteractionMode(mode)
        self.cancel_pending()

    def set_link_type(self, link_type: LinkType):
        self.link_type = LinkType(link_type)

    def cancel_pending(self):
        self.pending_source = None
        self.preview_end = None

    # --- Selection ---

    def clear_selection(self):
        self.selected_node_id = None
        self.selected_link_index = None

    def select_node(self, node_id: str):
        self.selected_node_id = node_id
        self.selected_link_index = None

    def select_link(self, index: int):
        self.selected_link_index = index
        self.selected_node_id = None

    @property
    def has_selection(self) -> bool:
        return self.selected_node_id is not None or self.selected_link_index is not None

    # --- Pointer events ---

    def click_node(self, graph: Graph, node_id: str) -> Graph:
        """
        Handle a click on a node.

        In Link mode the first click picks the source, a second click on
        the same node cancels, and a click on another node makes one
        attempt at adding the link. In Move mode the node is selected.
        """
        if self.mode != InteractionMode.LINK:
            self.select_node(node_id)
            return graph

        if self.pending_source is None:
            self.pending_source = node_id
            return graph

        source = self.pending_source
        self.cancel_pending()
        if source == node_id:
            return graph

        new_graph, added = graph.add_link(source, node_id, self.link_type)
        if not added:
            logger.debug("Link gesture %s -> %s dropped", source, node_id)
        return new_graph

    def click_link(self, index: int):
        """Select a link by its index in the link sequence."""
        self.select_link(index)

    def click_canvas(self):
        """A click on empty canvas clears the selection."""
        self.clear_selection()

    def pointer_move(self, x: float, y: float):
        """Track the preview endpoint while a link is pending."""
        if self.mode == InteractionMode.LINK and self.pending_source is not None:
            self.preview_end = (x, y)

    def drop_node(self, graph: Graph, node_id: str, drop_x: float, drop_y: float) -> Graph:
        """
        Finish a drag at canvas-local point (drop_x, drop_y).

        The node's new top-left corner is the drop point minus the
        anchor offset of its shape. Ignored outside Move mode.
        """
        if self.mode != InteractionMode.MOVE:
            return graph

        node = graph.get_node(node_id)
        if node is None:
            return graph

        dx, dy = anchor_offset(node.type)
        return graph.move_node(node_id, drop_x - dx, drop_y - dy)

    # --- Deletion ---

    def delete_selected(self, graph: Graph, confirm: Confirm) -> Graph:
        """
        Delete the selected node (with its links) or the selected link.

        Nothing changes if nothing is selected or `confirm` declines.
        """
        if self.selected_node_id is not None:
            node = graph.get_node(self.selected_node_id)
            label = node.label if node else self.selected_node_id
            if not confirm(f'Delete variable "{label}"?'):
                return graph
            new_graph = graph.remove_node(self.selected_node_id)
            self.clear_selection()
            return new_graph

        if self.selected_link_index is not None:
            if not confirm("Delete this link?"):
                return graph
            new_graph = graph.remove_link_at(self.selected_link_index)
            self.clear_selection()
            return new_graph

        return graph

    def reset(self):
        """Drop selection and any pending link; keeps mode and link type."""
        self.clear_selection()
        self.cancel_pending()

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "mode": InteractionMode(self.mode).value,
            "link_type": LinkType(self.link_type).value,
            "pending_source": self.pending_source,
            "preview_end": list(self.preview_end) if self.preview_end else None,
            "selected_node_id": self.selected_node_id,
            "selected_link_index": self.selected_link_index,
        }
