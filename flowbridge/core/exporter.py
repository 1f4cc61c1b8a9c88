"""
Document exporter - Serialize the model back into clipboard markup.

Output shape:
- <ClipboardData> root
- One <Entity> per entity with an <Attributes> block
- One <ServerAction|ClientAction|ServiceAction> per action with parameters,
  local variables and a <Flow> block of node elements followed by <Link>s

Export is total: any model value produces a well-formed document.
"""

import re
from typing import Callable, Iterable
from xml.sax.saxutils import escape as _sax_escape

from pydantic import BaseModel

from .models import (
    ActionKind,
    AssignPayload,
    CallActionPayload,
    CommentPayload,
    ConditionPayload,
    DataType,
    Entity,
    FlowEdge,
    FlowNode,
    JavaScriptPayload,
    LogicAction,
    MessagePayload,
    RaiseExceptionPayload,
    SqlPayload,
    SwitchPayload,
    Variable,
)
from .types import to_external_type


ROOT_TAG = "ClipboardData"
INDENT = "  "

ACTION_TAG_BY_KIND: dict[ActionKind, str] = {
    ActionKind.SERVER: "ServerAction",
    ActionKind.CLIENT: "ClientAction",
    ActionKind.SERVICE: "ServiceAction",
}

# Whitespace as character references, so attribute values keep line breaks on re-import
_QUOTE_ENTITIES = {'"': "&quot;", "'": "&apos;", "\n": "&#10;", "\r": "&#13;", "\t": "&#9;"}
_INVALID_NAME_CHARS = re.compile(r"[^A-Za-z0-9_.\-]")
# Characters outside the XML 1.0 Char production
_INVALID_XML_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")

# Labels the importer reads structurally inside a flow container
RESERVED_FLOW_TAGS = frozenset({"Link", "Flow", "Condition", "Assignment", "Case", "Action"})


def escape(value) -> str:
    """Escape the five reserved markup characters and drop unencodable ones. None becomes ''."""
    if value is None:
        return ""
    return _sax_escape(_INVALID_XML_CHARS.sub("", str(value)), _QUOTE_ENTITIES)


def _bool(value: bool) -> str:
    return "true" if value else "false"


def _attrs(pairs: Iterable[tuple[str, object]]) -> str:
    """Render name="value" pairs; pairs with a None value are skipped."""
    rendered = []
    for name, value in pairs:
        if value is None:
            continue
        if isinstance(value, bool):
            value = _bool(value)
        rendered.append(f'{name}="{escape(value)}"')
    return " ".join(rendered)


def _element(tag: str, pairs: Iterable[tuple[str, object]], depth: int) -> str:
    """A self-closing element on its own line."""
    attrs = _attrs(pairs)
    return f"{INDENT * depth}<{tag} {attrs} />" if attrs else f"{INDENT * depth}<{tag} />"


# --- Entities ---

def _entity_lines(entity: Entity) -> list[str]:
    lines = [
        f"{INDENT}<Entity {_attrs([('Name', entity.name), ('Description', entity.description), ('IsPublic', entity.is_public), ('IsStatic', entity.is_static)])}>",
        f"{INDENT * 2}<Attributes>",
    ]
    for attr in entity.attributes:
        length = attr.length if attr.data_type == DataType.TEXT and attr.length else None
        lines.append(_element("EntityAttribute", [
            ("Name", attr.name),
            ("Type", to_external_type(attr.data_type)),
            ("IsMandatory", attr.is_mandatory),
            ("IsIdentifier", attr.is_identifier),
            ("Length", length),
        ], depth=3))
    lines.append(f"{INDENT * 2}</Attributes>")
    lines.append(f"{INDENT}</Entity>")
    return lines


# --- Flow Nodes ---

def _node_identity(node: FlowNode) -> list[tuple[str, object]]:
    """Name is what links reference; Label only when it carries extra text."""
    pairs: list[tuple[str, object]] = [("Name", node.id)]
    if node.label and node.label != node.id:
        pairs.append(("Label", node.label))
    return pairs


def _tag_for(node_type: str) -> str:
    """Node type as an element name; characters XML names cannot hold are dropped."""
    tag = _INVALID_NAME_CHARS.sub("", node_type)
    if not tag or not (tag[0].isalpha() or tag[0] == "_") or tag in RESERVED_FLOW_TAGS:
        tag = f"Node{tag}"
    return tag


def _open_close(node: FlowNode, pairs: list[tuple[str, object]], inner: list[str]) -> list[str]:
    pad = INDENT * 3
    tag = _tag_for(node.type)
    if not inner:
        return [_element(tag, pairs, depth=3)]
    return [f"{pad}<{tag} {_attrs(pairs)}>", *inner, f"{pad}</{tag}>"]


def _if_lines(node: FlowNode, payload: ConditionPayload) -> list[str]:
    inner = [f"{INDENT * 4}<Condition>{escape(payload.condition)}</Condition>"]
    return _open_close(node, _node_identity(node), inner)


def _assign_lines(node: FlowNode, payload: AssignPayload) -> list[str]:
    inner = [
        _element("Assignment", [("Variable", a.variable), ("Value", a.value)], depth=4)
        for a in payload.assignments
    ]
    return _open_close(node, _node_identity(node), inner)


def _call_action_lines(node: FlowNode, payload: CallActionPayload) -> list[str]:
    inner = [_element("Action", [("Name", payload.action_name)], depth=4)]
    return _open_close(node, _node_identity(node), inner)


def _switch_lines(node: FlowNode, payload: SwitchPayload) -> list[str]:
    pairs = _node_identity(node) + [("Variable", payload.variable)]
    inner = [_element("Case", [("Condition", case)], depth=4) for case in payload.cases]
    return _open_close(node, pairs, inner)


def _comment_lines(node: FlowNode, payload: CommentPayload) -> list[str]:
    return _open_close(node, _node_identity(node) + [("Text", payload.text)], [])


def _raise_exception_lines(node: FlowNode, payload: RaiseExceptionPayload) -> list[str]:
    pairs = _node_identity(node) + [
        ("Exception", payload.exception),
        ("ExceptionMessage", payload.message),
    ]
    return _open_close(node, pairs, [])


def _sql_lines(node: FlowNode, payload: SqlPayload) -> list[str]:
    return _open_close(node, _node_identity(node) + [("SQL", payload.query)], [])


def _javascript_lines(node: FlowNode, payload: JavaScriptPayload) -> list[str]:
    return _open_close(node, _node_identity(node) + [("Code", payload.code)], [])


def _message_lines(node: FlowNode, payload: MessagePayload) -> list[str]:
    pairs = _node_identity(node) + [("Message", payload.message), ("Type", payload.msg_type)]
    return _open_close(node, pairs, [])


# Payload variant -> element writer. Anything else is written with its name only.
NODE_WRITERS: dict[type[BaseModel], Callable[[FlowNode, BaseModel], list[str]]] = {
    ConditionPayload: _if_lines,
    AssignPayload: _assign_lines,
    CallActionPayload: _call_action_lines,
    SwitchPayload: _switch_lines,
    CommentPayload: _comment_lines,
    RaiseExceptionPayload: _raise_exception_lines,
    SqlPayload: _sql_lines,
    JavaScriptPayload: _javascript_lines,
    MessagePayload: _message_lines,
}


def _node_lines(node: FlowNode) -> list[str]:
    writer = NODE_WRITERS.get(type(node.payload))
    if writer is None:
        return _open_close(node, _node_identity(node), [])
    return writer(node, node.payload)


def _link_line(edge: FlowEdge) -> str:
    # Label is always written, even when empty
    return f'{INDENT * 3}<Link Source="{escape(edge.source)}" Target="{escape(edge.target)}" Label="{escape(edge.label)}" />'


# --- Actions ---

def _variable_line(tag: str, variable: Variable) -> str:
    return _element(tag, [
        ("Name", variable.name),
        ("Type", to_external_type(variable.data_type)),
        ("IsMandatory", variable.is_mandatory),
        ("Description", variable.description or None),
    ], depth=2)


def _action_lines(action: LogicAction) -> list[str]:
    tag = ACTION_TAG_BY_KIND.get(action.kind, "ServerAction")
    header = _attrs([
        ("Name", action.name),
        ("Description", action.description),
        ("IsPublic", action.is_public),
        ("IsFunction", action.is_function),
    ])
    lines = [f"{INDENT}<{tag} {header}>"]
    lines.extend(_variable_line("InputParameter", p) for p in action.inputs)
    lines.extend(_variable_line("OutputParameter", p) for p in action.outputs)
    lines.extend(_variable_line("Variable", v) for v in action.local_variables)

    lines.append(f"{INDENT * 2}<Flow>")
    for node in action.flow.nodes:
        lines.extend(_node_lines(node))
    lines.extend(_link_line(edge) for edge in action.flow.edges)
    lines.append(f"{INDENT * 2}</Flow>")

    lines.append(f"{INDENT}</{tag}>")
    return lines


def export_document(entities: list[Entity], actions: list[LogicAction]) -> str:
    """
    Serialize entities and actions into a clipboard markup document.

    Args:
        entities: Entities to write, in order
        actions: Logic actions to write, in order

    Returns:
        The markup text
    """
    lines = [f"<{ROOT_TAG}>"]
    for entity in entities:
        lines.extend(_entity_lines(entity))
    for action in actions:
        lines.extend(_action_lines(action))
    lines.append(f"</{ROOT_TAG}>")
    return "\n".join(lines) + "\n"
