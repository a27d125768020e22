#!/usr/bin/env python3
"""
semcanvas MCP Server

Provides MCP tools for AI agents to build structural models on the canvas.
All changes are immediately reflected in the frontend via WebSocket updates.
"""

import json
import os
from typing import Optional

import httpx
from mcp.server.fastmcp import FastMCP

# Backend API URL
API_BASE = os.environ.get("SEMCANVAS_API", "http://127.0.0.1:8765/api")

# Create MCP server
mcp = FastMCP("semcanvas")


# --- HTTP Client Helper ---

def api_request(method: str, endpoint: str, **kwargs) -> dict:
    """Make a request to the semcanvas backend."""
    url = f"{API_BASE}{endpoint}"
    with httpx.Client(timeout=30.0) as client:
        response = client.request(
            method,
            url,
            json=kwargs.get("json"),
            params=kwargs.get("params"),
        )

        if response.status_code >= 400:
            error = response.json().get("detail", "Unknown error")
            raise RuntimeError(f"API error: {error}")

        if response.headers.get("content-type", "").startswith("text/plain"):
            return {"success": True, "text": response.text}
        return response.json()


def _dump(result: dict) -> str:
    return json.dumps(result, indent=2)


# ============================================================================
# MODEL INSPECTION
# ============================================================================

@mcp.tool()
def model_get_current() -> str:
    """
    Get the full current model state.

    Returns all variables, links, the interaction state and the undo/redo
    position. Use this to understand the model before making changes.
    """
    return _dump(api_request("GET", "/model"))


@mcp.tool()
def model_mermaid(dark: bool = False) -> str:
    """
    Get the current model as Mermaid flowchart code.

    Args:
        dark: Use the dark palette
    """
    return api_request("GET", "/model/mermaid", params={"dark": dark})["text"]


@mcp.tool()
def model_validate() -> str:
    """
    Check the model for structural issues.

    Reports isolated variables, blank labels, self-links, duplicate links
    and links to missing variables.
    """
    return _dump(api_request("GET", "/model/validate"))


@mcp.tool()
def model_new() -> str:
    """Discard the canvas and start an empty model."""
    return _dump(api_request("POST", "/model/new", params={"confirm": True}))


# ============================================================================
# VARIABLES AND LINKS
# ============================================================================

@mcp.tool()
def model_add_variable(label: str, node_type: str = "latent") -> str:
    """
    Add a variable to the canvas.

    Args:
        label: Display name of the variable
        node_type: "latent" (factor, drawn as a circle) or "observed" (indicator, drawn as a box)

    Returns the created variable with its generated ID.
    """
    return _dump(api_request("POST", "/nodes", json={"label": label, "type": node_type}))


@mcp.tool()
def model_move_variable(node_id: str, x: float, y: float) -> str:
    """
    Move a variable so its top-left corner sits at (x, y).

    Args:
        node_id: ID of the variable
        x: New X coordinate
        y: New Y coordinate
    """
    return _dump(api_request("POST", f"/nodes/{node_id}/move", json={"x": x, "y": y}))


@mcp.tool()
def model_delete_variable(node_id: str) -> str:
    """
    Remove a variable and every link attached to it.

    Args:
        node_id: ID of the variable to delete
    """
    return _dump(api_request("DELETE", f"/nodes/{node_id}", params={"confirm": True}))


@mcp.tool()
def model_add_link(source: str, target: str, link_type: str = "directed") -> str:
    """
    Connect two variables.

    Args:
        source: ID of the source variable
        target: ID of the target variable
        link_type: "directed" (regression path) or "covariance" (two-headed)

    Duplicate links (either direction for covariances) and self-links are refused.
    """
    return _dump(api_request("POST", "/links", json={
        "source": source,
        "target": target,
        "type": link_type
    }))


@mcp.tool()
def model_delete_link(index: int) -> str:
    """
    Remove a link by its position in the model's link list.

    Args:
        index: Zero-based index into `links` from model_get_current
    """
    return _dump(api_request("DELETE", f"/links/{index}", params={"confirm": True}))


# ============================================================================
# LAYOUT AND HISTORY
# ============================================================================

@mcp.tool()
def model_auto_layout() -> str:
    """
    Arrange the model structurally.

    Exogenous latents go in a left column, endogenous latents in a right
    column, and each latent's observed indicators in a row beneath it.
    """
    return _dump(api_request("POST", "/layout/auto"))


@mcp.tool()
def model_undo() -> str:
    """Undo the last change."""
    return _dump(api_request("POST", "/undo"))


@mcp.tool()
def model_redo() -> str:
    """Redo the last undone change."""
    return _dump(api_request("POST", "/redo"))


# ============================================================================
# SAVED MODELS
# ============================================================================

@mcp.tool()
def model_save(name: Optional[str] = None) -> str:
    """
    Save the current model under a name.

    Args:
        name: Name for the saved model (defaults to "Model <n>")
    """
    return _dump(api_request("POST", "/snapshots", json={"name": name}))


@mcp.tool()
def model_list_saved() -> str:
    """List saved models with their IDs, names and sizes."""
    return _dump(api_request("GET", "/snapshots"))


@mcp.tool()
def model_load(model_id: str) -> str:
    """
    Replace the canvas with a saved model. Undo history restarts there.

    Args:
        model_id: ID from model_list_saved
    """
    return _dump(api_request("POST", f"/snapshots/{model_id}/load", params={"confirm": True}))


@mcp.tool()
def model_delete_saved(model_id: str) -> str:
    """
    Delete a saved model.

    Args:
        model_id: ID from model_list_saved
    """
    return _dump(api_request("DELETE", f"/snapshots/{model_id}", params={"confirm": True}))


if __name__ == "__main__":
    mcp.run()
