"""
Document importer - Build the typed model from clipboard markup.

The importer is a schema-driven visitor over the MarkupNode tree:
- A single generic walk descends the tree at any depth
- Labels found in ROOT_EXTRACTORS are handed to their typed extraction
  function and are not descended into
- Every other label is ignored (but its children are still visited)

Flow nodes are built the same way: FLOW_NODE_TAGS lists the tags to look for
inside a flow container, and PAYLOAD_EXTRACTORS maps a tag to the function
that builds its payload variant.
"""

import logging
from typing import Callable

from pydantic import BaseModel

from .markup import MarkupNode, parse_markup
from .models import (
    ActionKind,
    Assignment,
    AssignPayload,
    Attribute,
    CallActionPayload,
    CommentPayload,
    ConditionPayload,
    DataType,
    Entity,
    FlowEdge,
    FlowGraph,
    FlowNode,
    FlowNodeType,
    ImportResult,
    JavaScriptPayload,
    LogicAction,
    MessagePayload,
    RaiseExceptionPayload,
    SqlPayload,
    SwitchPayload,
    Variable,
    generate_id,
    payload_class_for,
)
from .types import map_external_type

logger = logging.getLogger(__name__)


DEFAULT_ENTITY_NAME = "Unknown"
DEFAULT_ACTION_NAME = "NewAction"
SQL_PLACEHOLDER = "-- SQL query"
JAVASCRIPT_PLACEHOLDER = "// JavaScript code"

ACTION_KIND_BY_LABEL: dict[str, ActionKind] = {
    "ServerAction": ActionKind.SERVER,
    "ClientAction": ActionKind.CLIENT,
    "ServiceAction": ActionKind.SERVICE,
}

# Tags looked up inside a flow container, in extraction order.
FLOW_NODE_TAGS: list[str] = [t.value for t in FlowNodeType]


# --- Payload Extraction ---

def _condition_payload(node: MarkupNode) -> ConditionPayload:
    condition = node.child("Condition")
    if condition is not None and condition.text:
        return ConditionPayload(condition=condition.text)
    return ConditionPayload(condition=node.attr("Condition"))


def _assign_payload(node: MarkupNode) -> AssignPayload:
    return AssignPayload(assignments=[
        Assignment(variable=a.attr("Variable"), value=a.attr("Value"))
        for a in node.children("Assignment")
    ])


def _call_action_payload(node: MarkupNode) -> CallActionPayload:
    # Preference: nested <Action Name>, ActionName attribute, the node's own name
    action = node.child("Action")
    name = action.attr("Name") if action is not None else ""
    return CallActionPayload(action_name=name or node.attr("ActionName") or node.attr("Name"))


def _switch_payload(node: MarkupNode) -> SwitchPayload:
    return SwitchPayload(
        variable=node.attr("Variable"),
        cases=[case.attr("Condition") for case in node.children("Case")],
    )


def _comment_payload(node: MarkupNode) -> CommentPayload:
    return CommentPayload(text=node.attr("Text"))


def _raise_exception_payload(node: MarkupNode) -> RaiseExceptionPayload:
    return RaiseExceptionPayload(
        exception=node.attr("Exception") or node.attr("Name"),
        message=node.attr("ExceptionMessage"),
    )


def _sql_payload(node: MarkupNode) -> SqlPayload:
    query = node.attr("SQL") or node.attr("CommandText") or node.attr("Name")
    return SqlPayload(query=query or SQL_PLACEHOLDER)


def _javascript_payload(node: MarkupNode) -> JavaScriptPayload:
    return JavaScriptPayload(code=node.attr("Script") or node.attr("Code") or JAVASCRIPT_PLACEHOLDER)


def _message_payload(node: MarkupNode) -> MessagePayload:
    return MessagePayload(message=node.attr("Message"), msg_type=node.attr("Type", "Info"))


PAYLOAD_EXTRACTORS: dict[str, Callable[[MarkupNode], BaseModel]] = {
    FlowNodeType.IF.value: _condition_payload,
    FlowNodeType.ASSIGN.value: _assign_payload,
    FlowNodeType.EXECUTE_SERVER_ACTION.value: _call_action_payload,
    FlowNodeType.RUN_SERVER_ACTION.value: _call_action_payload,
    FlowNodeType.RUN_CLIENT_ACTION.value: _call_action_payload,
    FlowNodeType.SWITCH.value: _switch_payload,
    FlowNodeType.COMMENT.value: _comment_payload,
    FlowNodeType.RAISE_EXCEPTION.value: _raise_exception_payload,
    FlowNodeType.SQL.value: _sql_payload,
    FlowNodeType.JAVASCRIPT.value: _javascript_payload,
    FlowNodeType.MESSAGE.value: _message_payload,
}


# --- Model Extraction ---

def _parse_length(raw: str, data_type: DataType) -> int | None:
    """Length only counts for Text; anything non-numeric is dropped."""
    if data_type != DataType.TEXT or not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _extract_attribute(node: MarkupNode) -> Attribute:
    data_type = map_external_type(node.attr("Type"))
    return Attribute(
        name=node.attr("Name"),
        data_type=data_type,
        length=_parse_length(node.attr("Length"), data_type),
        is_mandatory=node.flag("IsMandatory"),
        is_identifier=node.flag("IsIdentifier"),
    )


def _extract_entity(node: MarkupNode, owner_id: str, result: ImportResult) -> None:
    attributes: list[Attribute] = []
    for container in node.children("Attributes"):
        attributes.extend(_extract_attribute(a) for a in container.children("EntityAttribute"))

    result.entities.append(Entity(
        module_id=owner_id,
        name=node.attr("Name", DEFAULT_ENTITY_NAME),
        description=node.attr("Description"),
        is_static=node.flag("IsStatic"),
        is_public=node.flag("IsPublic"),
        attributes=attributes,
    ))


def _extract_variable(node: MarkupNode) -> Variable:
    # The list flag is not exposed at this level of the markup
    return Variable(
        name=node.attr("Name"),
        data_type=map_external_type(node.attr("Type")),
        is_list=False,
        is_mandatory=node.flag("IsMandatory"),
        description=node.attr("Description") or None,
    )


def _collect(node: MarkupNode, label: str, container_label: str) -> list[MarkupNode]:
    """Occurrences of `label` directly on `node` or inside its containers."""
    found = node.children(label)
    for container in node.children(container_label):
        found.extend(container.children(label))
    return found


def _extract_flow_node(tag: str, node: MarkupNode) -> FlowNode:
    name = node.attr("Name")
    extractor = PAYLOAD_EXTRACTORS.get(tag)
    payload = extractor(node) if extractor else payload_class_for(tag)()
    return FlowNode(
        id=name or generate_id(),
        type=tag,
        label=node.attr("Label") or name or tag,
        x=0,
        y=0,
        payload=payload,
    )


def _extract_flow(container: MarkupNode) -> FlowGraph:
    nodes = [
        _extract_flow_node(tag, item)
        for tag in FLOW_NODE_TAGS
        for item in container.children(tag)
    ]
    edges = [
        FlowEdge(
            source=link.attr("Source"),
            target=link.attr("Target"),
            label=link.attr("Label"),
        )
        for link in container.children("Link")
    ]
    return FlowGraph(nodes=nodes, edges=edges)


def _extract_action(node: MarkupNode, owner_id: str, result: ImportResult) -> None:
    # Flow objects usually sit in <Flow>, but older exports put them on the action
    container = node.child("Flow") or node
    flow = _extract_flow(container)

    action = LogicAction(
        module_id=owner_id,
        name=node.attr("Name", DEFAULT_ACTION_NAME),
        kind=ACTION_KIND_BY_LABEL.get(node.label, ActionKind.SERVER),
        description=node.attr("Description"),
        is_function=node.flag("IsFunction"),
        is_public=node.flag("IsPublic"),
        inputs=[_extract_variable(p) for p in _collect(node, "InputParameter", "Parameters")],
        outputs=[_extract_variable(p) for p in _collect(node, "OutputParameter", "Parameters")],
        local_variables=[_extract_variable(v) for v in _collect(node, "Variable", "Variables")],
        flow_summary=f"Imported logic with {len(flow.nodes)} nodes.",
        flow=flow,
    )

    dangling = flow.dangling_edges()
    if dangling:
        logger.warning(
            "Action %r has %d link(s) with missing endpoints; graph is incomplete",
            action.name, len(dangling),
        )
        result.incomplete_actions.append(action.id)

    result.actions.append(action)


ROOT_EXTRACTORS: dict[str, Callable[[MarkupNode, str, ImportResult], None]] = {
    "Entity": _extract_entity,
    "ServerAction": _extract_action,
    "ClientAction": _extract_action,
    "ServiceAction": _extract_action,
}


def _visit(node: MarkupNode, owner_id: str, result: ImportResult) -> None:
    """Dispatch on label; descend only into labels nobody extracts."""
    extractor = ROOT_EXTRACTORS.get(node.label)
    if extractor is not None:
        extractor(node, owner_id, result)
        return

    for child in node.walk_children():
        _visit(child, owner_id, result)


def import_document(document: str, owner_id: str = "") -> ImportResult:
    """
    Import entities and logic actions from a clipboard markup document.

    A well-formed document with nothing recognizable is a successful, empty
    import. Flow graphs with links to missing nodes are kept as-is and
    listed in `incomplete_actions`.

    Args:
        document: The markup text
        owner_id: Module that will own the imported entities and actions

    Returns:
        ImportResult with entities and actions in document order

    Raises:
        ParseError: If the document is not well-formed
    """
    root = parse_markup(document)

    result = ImportResult()
    _visit(root, owner_id, result)

    logger.debug(
        "Imported %d entities and %d actions for owner %r",
        len(result.entities), len(result.actions), owner_id,
    )
    return result
