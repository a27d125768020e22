"""
Model validation - Check structural models for integrity issues.

Used by the backend and the CLI to report problems in the current graph,
and by the session to log what a loaded snapshot looks like.
"""

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .models import LinkType

if TYPE_CHECKING:
    from .models import Graph


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Invalid state, must be fixed
    WARNING = "warning"  # Potential problem, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a graph."""
    severity: IssueSeverity
    message: str
    node_id: str | None = None
    link_index: int | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.node_id:
            result["node_id"] = self.node_id
        if self.link_index is not None:
            result["link_index"] = self.link_index
        return result


def validate_graph(graph: "Graph") -> list[ValidationIssue]:
    """
    Validate a graph and return a list of issues.

    Checks for:
    - Empty graph - INFO
    - Node ids used more than once - ERROR
    - Isolated nodes (no links) - WARNING
    - Blank labels - WARNING
    - Link endpoints that are not in the node set - ERROR
    - Self-links - WARNING
    - Duplicate links (reversed pairs count for covariance) - WARNING
    """
    issues: list[ValidationIssue] = []

    nodes = graph.nodes
    links = graph.links
    node_ids = {n.id for n in nodes}

    if not nodes:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Model has no variables"
        ))
        return issues

    counts = Counter(n.id for n in nodes)
    for node_id, count in counts.items():
        if count > 1:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Duplicate variable id: {node_id} (used {count} times)",
                node_id=node_id
            ))

    connected: set[str] = set()
    for link in links:
        connected.add(link.source)
        connected.add(link.target)

    isolated = [n for n in nodes if n.id not in connected]
    if isolated:
        names = ", ".join(f"{n.label or '?'} ({n.id})" for n in isolated)
        issues.append(ValidationIssue(
            severity=IssueSeverity.WARNING,
            message=f"Isolated variables (no links): {names}"
        ))

    for node in nodes:
        if not node.label.strip():
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Variable has an empty label",
                node_id=node.id
            ))

    for i, link in enumerate(links):
        for end in (link.source, link.target):
            if end not in node_ids:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Link references non-existent variable: {end}",
                    link_index=i
                ))

        if link.source == link.target:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Self-link (variable points to itself)",
                node_id=link.source,
                link_index=i
            ))

    # Directed links are keyed by ordered pair, covariances by unordered pair
    seen: set[tuple] = set()
    for i, link in enumerate(links):
        if link.type == LinkType.COVARIANCE:
            key = (LinkType.COVARIANCE.value, frozenset((link.source, link.target)))
        else:
            key = (LinkType.DIRECTED.value, link.source, link.target)
        if key in seen:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Duplicate {link.type} link from {link.source} to {link.target}",
                link_index=i
            ))
        else:
            seen.add(key)

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Returns:
        Dictionary with counts by severity
    """
    errors = len([i for i in issues if i.severity == IssueSeverity.ERROR])
    return {
        "total": len(issues),
        "errors": errors,
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": errors == 0
    }
