"""
Structural layout for SEM-style diagrams.

Arranges latent variables in two columns by their role in the model and
hangs each latent's observed indicators in a row underneath it:
- Exogenous latents (no directed path from another latent) on the left
- Endogenous latents (targeted by another latent) on the right
- Observed variables centred below every latent they are linked to

The layout is a pure function: it returns a new node list and never
modifies its inputs. Nodes it has no rule for keep their position.
"""

from collections import defaultdict
from typing import TYPE_CHECKING, Iterable

from .models import LinkType, NodeType

if TYPE_CHECKING:
    from .models import Link, Node


# Layout parameters
CANVAS_PADDING = 100     # Left/top margin of the latent columns
LAYER_GAP = 350          # Horizontal gap between the exogenous and endogenous columns
NODE_GAP = 180           # Vertical gap between latents in a column
OBSERVED_GAP = 100       # Horizontal gap between observed variables in a row
OBSERVED_OFFSET = 120    # Vertical offset of an observed row below its latent


def classify_latents(
    latents: list["Node"],
    links: Iterable["Link"],
) -> tuple[list["Node"], list["Node"]]:
    """
    Split latents into (exogenous, endogenous), preserving node order.

    A latent is endogenous if some directed link from a different latent
    targets it.
    """
    latent_ids = {n.id for n in latents}

    # Index directed latent -> latent links by target
    latent_parents: dict[str, set[str]] = defaultdict(set)
    for link in links:
        if (
            link.type == LinkType.DIRECTED
            and link.source in latent_ids
            and link.target in latent_ids
            and link.source != link.target
        ):
            latent_parents[link.target].add(link.source)

    exogenous = [n for n in latents if not latent_parents.get(n.id)]
    endogenous = [n for n in latents if latent_parents.get(n.id)]
    return exogenous, endogenous


def connected_observed(
    latent_id: str,
    observed_ids: set[str],
    links: Iterable["Link"],
) -> list[str]:
    """Observed node ids linked to `latent_id` in either direction, first-seen order, no repeats."""
    found: list[str] = []
    for link in links:
        other = link.other_end(latent_id)
        if other in observed_ids and other not in found:
            found.append(other)
    return found


def structural_layout(
    nodes: list["Node"],
    links: list["Link"],
    padding: float = CANVAS_PADDING,
    layer_gap: float = LAYER_GAP,
    node_gap: float = NODE_GAP,
    observed_gap: float = OBSERVED_GAP,
    observed_offset: float = OBSERVED_OFFSET,
) -> list["Node"]:
    """
    Compute new positions for a structural model.

    Args:
        nodes: Current nodes, in display order
        links: Current links
        padding: X of the exogenous column and Y of the first latent
        layer_gap: Horizontal distance from the exogenous to the endogenous column
        node_gap: Vertical distance between latents in a column
        observed_gap: Horizontal distance between observed variables in a row
        observed_offset: Vertical distance from a latent to its observed row

    Returns:
        A new list of nodes in the same order; unplaced nodes are unchanged
    """
    nodes = list(nodes)
    links = list(links)

    latents = [n for n in nodes if n.type == NodeType.LATENT]
    observed = [n for n in nodes if n.type == NodeType.OBSERVED]
    if not latents and not observed:
        return nodes

    positions: dict[str, tuple[float, float]] = {}

    exogenous, endogenous = classify_latents(latents, links)

    # Exogenous column
    for i, node in enumerate(exogenous):
        positions[node.id] = (padding, padding + i * node_gap)

    # Endogenous column, centred against a taller exogenous column
    endo_start_y = padding
    if len(endogenous) < len(exogenous):
        exo_height = len(exogenous) * node_gap
        endo_height = len(endogenous) * node_gap
        endo_start_y += (exo_height - endo_height) / 2

    for i, node in enumerate(endogenous):
        positions[node.id] = (padding + layer_gap, endo_start_y + i * node_gap)

    # Observed rows under each latent
    observed_ids = {n.id for n in observed}
    for latent in latents:
        row = connected_observed(latent.id, observed_ids, links)
        if not row:
            continue

        latent_x, latent_y = positions[latent.id]
        start_x = latent_x - (len(row) - 1) * observed_gap / 2
        for i, obs_id in enumerate(row):
            positions[obs_id] = (start_x + i * observed_gap, latent_y + observed_offset)

    return [
        n.moved_to(*positions[n.id]) if n.id in positions else n
        for n in nodes
    ]
