"""
semcanvas - Editing core for structural model diagrams.

Latent and observed variables joined by directed or covariance links,
with bounded undo/redo, a two-mode interaction state machine and a
structural auto-layout. The backend API, the MCP tools and the CLI all
drive the same EditorSession.
"""

from .models import (
    # Enums
    NodeType,
    LinkType,
    # Core models
    Node,
    Link,
    Graph,
    # Request models (for API)
    CreateNodeRequest,
    MoveNodeRequest,
    DropNodeRequest,
    CreateLinkRequest,
    ReplaceGraphRequest,
    SaveModelRequest,
)

from .history import HistoryEngine, EditOrigin, HISTORY_LIMIT
from .interaction import InteractionMode, InteractionState, Confirm
from .layout import structural_layout, classify_latents
from .notation import to_mermaid
from .persistence import (
    SnapshotStore,
    SavedModel,
    MemoryBackend,
    JsonFileBackend,
    PersistenceError,
)
from .session import EditorSession
from .validation import validate_graph, validation_summary, ValidationIssue, IssueSeverity

__all__ = [
    # Enums
    "NodeType",
    "LinkType",
    # Models
    "Node",
    "Link",
    "Graph",
    # Request models
    "CreateNodeRequest",
    "MoveNodeRequest",
    "DropNodeRequest",
    "CreateLinkRequest",
    "ReplaceGraphRequest",
    "SaveModelRequest",
    # History
    "HistoryEngine",
    "EditOrigin",
    "HISTORY_LIMIT",
    # Interaction
    "InteractionMode",
    "InteractionState",
    "Confirm",
    # Layout
    "structural_layout",
    "classify_latents",
    # Notation
    "to_mermaid",
    # Persistence
    "SnapshotStore",
    "SavedModel",
    "MemoryBackend",
    "JsonFileBackend",
    "PersistenceError",
    # Session
    "EditorSession",
    # Validation
    "validate_graph",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
]
