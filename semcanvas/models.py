"""
Core data models for structural model diagrams.

These models define the canonical schema of the editing core:
- Nodes are latent or observed variables placed on the canvas
- Links connect two node ids and are either directed or covariance
- A Graph is an immutable (nodes, links) pair; it doubles as the snapshot
  type stored by the history engine

Field Naming Convention:
- Links use `source` and `target`
- For backward compatibility, `from`/`to` are accepted on input and converted

All models are frozen. Mutation primitives on Graph never touch the
receiver; they return a new Graph (or the same one when the edit is
rejected), so a Graph handed out earlier can never change underneath
its holder.
"""

import logging
import random
import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)

# Initial placement of freshly added nodes, before jitter
NEW_NODE_ORIGIN = 100.0
NEW_NODE_JITTER = 50.0


class NodeType(str, Enum):
    """Kinds of variables in a structural model."""
    LATENT = "latent"
    OBSERVED = "observed"


class LinkType(str, Enum):
    """Kinds of relationships between two variables."""
    DIRECTED = "directed"        # Regression path, source -> target
    COVARIANCE = "covariance"    # Symmetric, source <-> target


def generate_node_id() -> str:
    """Generate a unique node ID."""
    return f"n{uuid.uuid4().hex[:8]}"


def _convert_legacy_endpoints(data: Any) -> Any:
    """Convert legacy 'from'/'to' fields to 'source'/'target'."""
    if isinstance(data, dict):
        data = dict(data)
        if 'from' in data and 'source' not in data:
            data['source'] = data.pop('from')
        if 'to' in data and 'target' not in data:
            data['target'] = data.pop('to')
    return data


class Node(BaseModel):
    """A variable on the canvas. `x`/`y` is the top-left corner."""
    model_config = ConfigDict(frozen=True, use_enum_values=True, validate_default=True)

    id: str = Field(default_factory=generate_node_id)
    label: str = ""
    type: NodeType = NodeType.LATENT
    x: float = NEW_NODE_ORIGIN
    y: float = NEW_NODE_ORIGIN

    @property
    def is_latent(self) -> bool:
        return self.type == NodeType.LATENT

    @property
    def is_observed(self) -> bool:
        return self.type == NodeType.OBSERVED

    def moved_to(self, x: float, y: float) -> "Node":
        """Return a copy of this node at a new position."""
        return self.model_copy(update={"x": float(x), "y": float(y)})


class Link(BaseModel):
    """
    A relationship between two nodes.

    Links have no identity of their own; within a graph they are
    addressed by their position in the link sequence.
    """
    model_config = ConfigDict(frozen=True, use_enum_values=True, validate_default=True)

    source: str
    target: str
    type: LinkType = LinkType.DIRECTED

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        return _convert_legacy_endpoints(data)

    def touches(self, node_id: str) -> bool:
        """True if either endpoint is `node_id`."""
        return self.source == node_id or self.target == node_id

    def connects(self, source: str, target: str, link_type: str) -> bool:
        """
        True if this link makes a new (source, target, link_type) link redundant.

        A directed link is redundant only with the same ordered pair.
        A covariance link is symmetric, so the reversed pair counts too.
        """
        if self.source == source and self.target == target:
            return True
        return (
            link_type == LinkType.COVARIANCE
            and self.source == target
            and self.target == source
        )

    def other_end(self, node_id: str) -> Optional[str]:
        """Return the endpoint opposite to `node_id`, or None if not incident."""
        if self.source == node_id:
            return self.target
        if self.target == node_id:
            return self.source
        return None


def _raw_id(item: Any) -> Optional[str]:
    if isinstance(item, BaseModel):
        return getattr(item, "id", None)
    if isinstance(item, dict):
        return item.get("id")
    return None


def _raw_endpoints(item: Any) -> tuple[Optional[str], Optional[str]]:
    if isinstance(item, Link):
        return item.source, item.target
    if isinstance(item, dict):
        item = _convert_legacy_endpoints(item)
        return item.get("source"), item.get("target")
    return None, None


class Graph(BaseModel):
    """
    The complete editable state: an ordered node sequence and an ordered
    link sequence.

    This is what the history engine stores, what gets saved to the
    snapshot store, and what the layout engine reads.
    """
    model_config = ConfigDict(frozen=True)

    nodes: tuple[Node, ...] = ()
    links: tuple[Link, ...] = ()

    @model_validator(mode='before')
    @classmethod
    def drop_duplicate_nodes(cls, data: Any) -> Any:
        """Node ids are unique; later nodes reusing an id are dropped."""
        if not isinstance(data, dict) or not data.get("nodes"):
            return data

        seen: set = set()
        kept = []
        for node in data["nodes"]:
            node_id = _raw_id(node)
            if node_id is not None and node_id in seen:
                logger.warning("Dropping node with duplicate id %s", node_id)
                continue
            seen.add(node_id)
            kept.append(node)

        return {**data, "nodes": kept}

    @model_validator(mode='before')
    @classmethod
    def drop_dangling_links(cls, data: Any) -> Any:
        """Drop links whose endpoints are not in the node set."""
        if not isinstance(data, dict) or "links" not in data:
            return data

        nodes = data.get("nodes") or ()
        node_ids = {_raw_id(n) for n in nodes}
        kept = []
        for link in data["links"] or ():
            source, target = _raw_endpoints(link)
            if source in node_ids and target in node_ids:
                kept.append(link)
            else:
                logger.warning("Dropping dangling link %s -> %s", source, target)

        return {**data, "links": kept}

    # --- Queries ---

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a node by ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def node_ids(self) -> set[str]:
        return {n.id for n in self.nodes}

    def has_link(self, source: str, target: str, link_type: str) -> bool:
        """True if adding (source, target, link_type) would duplicate an existing link."""
        return any(link.connects(source, target, link_type) for link in self.links)

    def incident_links(self, node_id: str) -> list[Link]:
        """All links with `node_id` as either endpoint."""
        return [link for link in self.links if link.touches(node_id)]

    def same_as(self, other: Optional["Graph"]) -> bool:
        """Structural (deep value) equality."""
        if other is None:
            return False
        return self.model_dump() == other.model_dump()

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return self.model_dump(mode="json")

    @classmethod
    def from_json_dict(cls, data: dict) -> "Graph":
        """Create a Graph from a JSON dict (handles legacy link fields)."""
        return cls(
            nodes=[Node(**n) for n in data.get("nodes", [])],
            links=[Link(**link) for link in data.get("links", [])],
        )

    # --- Mutation primitives (return new graphs) ---

    def add_node(
        self,
        label: str,
        node_type: str = NodeType.LATENT.value,
        rng: Optional[random.Random] = None,
    ) -> tuple["Graph", Node]:
        """
        Append a new node near the canvas origin.

        A small random offset keeps successively added nodes from
        landing exactly on top of each other.
        """
        rng = rng or random
        node = Node(
            label=label,
            type=node_type,
            x=NEW_NODE_ORIGIN + rng.random() * NEW_NODE_JITTER,
            y=NEW_NODE_ORIGIN + rng.random() * NEW_NODE_JITTER,
        )
        return self.model_copy(update={"nodes": self.nodes + (node,)}), node

    def remove_node(self, node_id: str) -> "Graph":
        """Remove a node and every link incident to it."""
        if self.get_node(node_id) is None:
            logger.debug("remove_node: unknown node %s", node_id)
            return self

        return self.model_copy(update={
            "nodes": tuple(n for n in self.nodes if n.id != node_id),
            "links": tuple(link for link in self.links if not link.touches(node_id)),
        })

    def add_link(
        self,
        source: str,
        target: str,
        link_type: str = LinkType.DIRECTED.value,
    ) -> tuple["Graph", bool]:
        """
        Append a link between two existing nodes.

        Returns the new graph and True, or this graph and False if the
        link is a self-link, references an unknown node, or duplicates
        an existing link.
        """
        if source == target:
            logger.debug("add_link: rejected self-link on %s", source)
            return self, False

        ids = self.node_ids()
        if source not in ids or target not in ids:
            logger.debug("add_link: unknown endpoint %s -> %s", source, target)
            return self, False

        if self.has_link(source, target, link_type):
            logger.debug("add_link: duplicate %s link %s -> %s", link_type, source, target)
            return self, False

        link = Link(source=source, target=target, type=link_type)
        return self.model_copy(update={"links": self.links + (link,)}), True

    def remove_link_at(self, index: int) -> "Graph":
        """Remove the link at `index` in the link sequence."""
        if not 0 <= index < len(self.links):
            logger.debug("remove_link_at: index %s out of range", index)
            return self

        return self.model_copy(update={
            "links": self.links[:index] + self.links[index + 1:],
        })

    def move_node(self, node_id: str, x: float, y: float) -> "Graph":
        """Reposition a node (top-left corner)."""
        if self.get_node(node_id) is None:
            logger.debug("move_node: unknown node %s", node_id)
            return self

        return self.model_copy(update={
            "nodes": tuple(n.moved_to(x, y) if n.id == node_id else n for n in self.nodes),
        })

    def replace_nodes(self, nodes: list[Node]) -> "Graph":
        """
        Replace the whole node sequence.

        Links are re-validated against the new node set, so any link
        whose endpoint disappeared is dropped.
        """
        return Graph(nodes=tuple(nodes), links=self.links)


# --- API Request/Response Models ---

class CreateNodeRequest(BaseModel):
    """Request to create a new node."""
    label: str
    type: NodeType = NodeType.LATENT


class MoveNodeRequest(BaseModel):
    """Request to move a node to an absolute top-left position."""
    x: float
    y: float


class DropNodeRequest(BaseModel):
    """Request to finish a drag at a canvas-local drop point."""
    x: float
    y: float


class CreateLinkRequest(BaseModel):
    """Request to create a new link."""
    source: str = ""
    target: str = ""
    type: LinkType = LinkType.DIRECTED

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        return _convert_legacy_endpoints(data)


class ReplaceGraphRequest(BaseModel):
    """Request to replace the whole graph."""
    nodes: list[Node] = Field(default_factory=list)
    links: list[Link] = Field(default_factory=list)


class SaveModelRequest(BaseModel):
    """Request to save the current graph under a name."""
    name: Optional[str] = None
