"""
Mermaid export for the read-only diagram view.

Latent variables render as circles, observed variables as boxes;
directed links use `-->` and covariances the bidirectional `<-->`.
"""

from typing import TYPE_CHECKING

from .models import LinkType, NodeType

if TYPE_CHECKING:
    from .models import Graph


LIGHT_CLASSES = (
    "classDef latent fill:#fff,stroke:#333,stroke-width:2px,rx:50,ry:50;",
    "classDef observed fill:#f0f9ff,stroke:#0891b2,stroke-width:1px,rx:0,ry:0;",
)

DARK_CLASSES = (
    "classDef latent fill:#1e293b,stroke:#e2e8f0,stroke-width:2px,rx:50,ry:50,color:#fff;",
    "classDef observed fill:#0f172a,stroke:#06b6d4,stroke-width:1px,rx:0,ry:0,color:#fff;",
)


def sanitize_label(text: str) -> str:
    """Replace characters that break Mermaid node syntax."""
    text = text.replace('"', "'").replace("\n", " ")
    for opening in "([{":
        text = text.replace(opening, "‹")
    for closing in ")]}":
        text = text.replace(closing, "›")
    return text.strip()


def mermaid_arrow(link_type: str) -> str:
    if link_type == LinkType.COVARIANCE:
        return "<-->"
    return "-->"


def to_mermaid(graph: "Graph", dark_mode: bool = False) -> str:
    """
    Generate Mermaid flowchart code for a graph.

    Args:
        graph: The graph to export
        dark_mode: Use the dark palette for node classes

    Returns:
        Mermaid diagram as a string, newline terminated
    """
    lines = ["graph LR"]
    lines.extend(DARK_CLASSES if dark_mode else LIGHT_CLASSES)

    for node in graph.nodes:
        label = sanitize_label(node.label) or node.id
        if node.type == NodeType.LATENT:
            shape = f"(({label}))"
        else:
            shape = f"[{label}]"
        lines.append(f"{node.id}{shape}:::{node.type}")

    for link in graph.links:
        lines.append(f"{link.source} {mermaid_arrow(link.type)} {link.target}")

    return "\n".join(lines) + "\n"
