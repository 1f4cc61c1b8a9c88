"""
flowbridge core - Model, markup conversion and layout.

This module provides the functionality shared by the backend API, the CLI
and the MCP tools, so every surface converts and lays out the same way.
"""

from .errors import FlowBridgeError, ParseError, LayoutFailure

from .models import (
    # Enums
    DataType,
    ActionKind,
    FlowNodeType,
    # Schema models
    Attribute,
    Entity,
    Variable,
    # Flow models
    Assignment,
    EmptyPayload,
    ConditionPayload,
    AssignPayload,
    CallActionPayload,
    SwitchPayload,
    CommentPayload,
    RaiseExceptionPayload,
    SqlPayload,
    JavaScriptPayload,
    MessagePayload,
    FlowNode,
    FlowEdge,
    FlowGraph,
    LogicAction,
    ImportResult,
    # Layout models
    Position,
    LayoutNode,
    LayoutEdge,
    Relationship,
    EntityGraphLayout,
)

from .types import map_external_type, to_external_type
from .importer import import_document
from .exporter import export_document
from .layout import layout, layout_flow, layout_action, layout_entity_graph, infer_relationships
from .validation import validate_flow_graph, validation_summary, ValidationIssue, IssueSeverity

__all__ = [
    # Errors
    "FlowBridgeError",
    "ParseError",
    "LayoutFailure",
    # Enums
    "DataType",
    "ActionKind",
    "FlowNodeType",
    # Models
    "Attribute",
    "Entity",
    "Variable",
    "Assignment",
    "EmptyPayload",
    "ConditionPayload",
    "AssignPayload",
    "CallActionPayload",
    "SwitchPayload",
    "CommentPayload",
    "RaiseExceptionPayload",
    "SqlPayload",
    "JavaScriptPayload",
    "MessagePayload",
    "FlowNode",
    "FlowEdge",
    "FlowGraph",
    "LogicAction",
    "ImportResult",
    "Position",
    "LayoutNode",
    "LayoutEdge",
    "Relationship",
    "EntityGraphLayout",
    # Conversion
    "map_external_type",
    "to_external_type",
    "import_document",
    "export_document",
    # Layout
    "layout",
    "layout_flow",
    "layout_action",
    "layout_entity_graph",
    "infer_relationships",
    # Validation
    "validate_flow_graph",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
]
