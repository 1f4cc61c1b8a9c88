#!/usr/bin/env python3
"""
flowbridge MCP Server

Provides MCP tools for AI agents to import, export and lay out application
models. Every tool forwards to the flowbridge HTTP API, which must be running
(see `flowbridge serve`).
"""

import json
import os
from typing import Optional

import httpx
from mcp.server.fastmcp import FastMCP

# Backend API URL
API_BASE = os.environ.get("FLOWBRIDGE_API_BASE", "http://127.0.0.1:8765/api")

# Create MCP server
mcp = FastMCP("flowbridge")


# --- HTTP Client Helper ---

def api_request(method: str, endpoint: str, **kwargs) -> dict:
    """Make a request to the flowbridge backend."""
    url = f"{API_BASE}{endpoint}"
    with httpx.Client(timeout=30.0) as client:
        if method == "GET":
            response = client.get(url, params=kwargs.get("params"))
        elif method == "POST":
            response = client.post(url, json=kwargs.get("json"))
        else:
            raise ValueError(f"Unknown method: {method}")

        if response.status_code >= 400:
            error = response.json().get("detail", "Unknown error")
            raise RuntimeError(f"API error: {error}")

        return response.json()


@mcp.tool()
def health() -> str:
    """
    Check that the flowbridge backend is reachable.

    Returns the backend status and version.
    """
    result = api_request("GET", "/health")
    return json.dumps(result, indent=2)


# ============================================================================
# CONVERSION TOOLS
# ============================================================================

@mcp.tool()
def model_import(document: str, owner_id: str = "") -> str:
    """
    Import entities and logic actions from clipboard markup.

    Args:
        document: The markup text (a <ClipboardData> document or any fragment
            containing Entity / ServerAction / ClientAction / ServiceAction)
        owner_id: Module ID to stamp on the imported entities and actions

    Returns the imported entities, actions, and the ids of actions whose
    flow has links to missing nodes.
    """
    result = api_request("POST", "/import", json={"document": document, "owner_id": owner_id})
    return json.dumps(result, indent=2)


@mcp.tool()
def model_export(entities: Optional[list[dict]] = None, actions: Optional[list[dict]] = None) -> str:
    """
    Export entities and logic actions as clipboard markup.

    Args:
        entities: Entities as returned by model_import
        actions: Logic actions as returned by model_import

    Returns the markup document text.
    """
    result = api_request("POST", "/export", json={
        "entities": entities or [],
        "actions": actions or [],
    })
    return result["document"]


# ============================================================================
# LAYOUT TOOLS
# ============================================================================

@mcp.tool()
def layout_flow(nodes: list[dict], edges: Optional[list[dict]] = None) -> str:
    """
    Compute top-to-bottom positions for a flow graph.

    Args:
        nodes: Flow nodes (at least "id" and "type")
        edges: Flow edges ("source", "target", optional "label")

    Returns a mapping of node id to {x, y} (top-left corner).
    """
    result = api_request("POST", "/layout/flow", json={"nodes": nodes, "edges": edges or []})
    return json.dumps(result, indent=2)


@mcp.tool()
def layout_entities(entities: list[dict]) -> str:
    """
    Compute an entity diagram layout.

    Relationships are inferred from attribute names: an attribute "CustomerId"
    links the entity named "Customer" to the entity holding the attribute.

    Args:
        entities: Entities with their attributes

    Returns positions per entity id and the inferred relationships.
    """
    result = api_request("POST", "/layout/entities", json={"entities": entities})
    return json.dumps(result, indent=2)


# ============================================================================
# ANALYSIS TOOLS
# ============================================================================

@mcp.tool()
def validate_flow(nodes: list[dict], edges: Optional[list[dict]] = None) -> str:
    """
    Check a flow graph for structural issues.

    Reports links to missing nodes, duplicate node ids, self-links and
    duplicate links. Does not judge whether the logic itself is sound.

    Args:
        nodes: Flow nodes
        edges: Flow edges

    Returns the issues and a summary with counts by severity.
    """
    result = api_request("POST", "/validate/flow", json={"nodes": nodes, "edges": edges or []})
    return json.dumps(result, indent=2)


# ============================================================================
# MAIN
# ============================================================================

def main():
    mcp.run()


if __name__ == "__main__":
    main()
