"""
Core data models for the application model and its flow graphs.

These models define the canonical schema shared by the importer, exporter
and layout engine:
- Entities with ordered attributes
- Logic actions with parameters, local variables and an owned flow graph
- Flow nodes whose payload is a tagged union keyed by the node type
- Layout inputs and outputs (sizes, positions, inferred relationships)

Payload Convention:
- Every payload variant carries a literal `kind` discriminator
- The node `type` decides which variant is legal (see PAYLOAD_BY_TYPE)
- A node constructed without a payload gets the empty variant for its type
"""

import uuid
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator


class DataType(str, Enum):
    """Closed set of internal data types."""
    TEXT = "Text"
    INTEGER = "Integer"
    LONG_INTEGER = "LongInteger"
    DECIMAL = "Decimal"
    BOOLEAN = "Boolean"
    DATETIME = "DateTime"
    DATE = "Date"
    BINARY = "Binary"
    IDENTIFIER = "Identifier"
    RECORD = "Record"
    LIST = "List"


class ActionKind(str, Enum):
    """Where a logic action runs."""
    SERVER = "Server"
    SERVICE = "Service"
    CLIENT = "Client"


class FlowNodeType(str, Enum):
    """Flow node type tags the converter understands.

    FlowNode.type is an open string; unknown tags are carried with an
    empty payload.
    """
    START = "Start"
    END = "End"
    ASSIGN = "Assign"
    IF = "If"
    SWITCH = "Switch"
    EXECUTE_SERVER_ACTION = "ExecuteServerAction"
    RUN_SERVER_ACTION = "RunServerAction"
    RUN_CLIENT_ACTION = "RunClientAction"
    AGGREGATE = "Aggregate"
    SQL = "SQL"
    JAVASCRIPT = "JavaScript"
    FOR_EACH = "ForEach"
    COMMENT = "Comment"
    RAISE_EXCEPTION = "RaiseException"
    MESSAGE = "Message"
    DOWNLOAD = "Download"
    DESTINATION = "Destination"


def generate_id() -> str:
    """Generate a globally unique identifier."""
    return str(uuid.uuid4())


# --- Schema Models ---

class Attribute(BaseModel):
    """A column of an entity."""
    id: str = Field(default_factory=generate_id)
    name: str
    data_type: DataType = DataType.TEXT
    length: Optional[int] = None  # Only meaningful for Text
    is_mandatory: bool = False
    is_identifier: bool = False


class Entity(BaseModel):
    """A record schema owned by a module."""
    id: str = Field(default_factory=generate_id)
    module_id: str = ""
    name: str = "Unknown"
    description: str = ""
    is_static: bool = False
    is_public: bool = False
    attributes: list[Attribute] = Field(default_factory=list)


class Variable(BaseModel):
    """An action parameter or flow-local variable."""
    id: str = Field(default_factory=generate_id)
    name: str
    data_type: DataType = DataType.TEXT
    is_list: bool = False
    is_mandatory: bool = False
    description: Optional[str] = None


# --- Flow Node Payloads ---

class EmptyPayload(BaseModel):
    """Payload for nodes that carry nothing beyond identity."""
    kind: Literal["empty"] = "empty"


class ConditionPayload(BaseModel):
    kind: Literal["condition"] = "condition"
    condition: str = ""


class Assignment(BaseModel):
    """One `variable = value` line of an Assign node."""
    variable: str = ""
    value: str = ""


class AssignPayload(BaseModel):
    kind: Literal["assign"] = "assign"
    assignments: list[Assignment] = Field(default_factory=list)


class CallActionPayload(BaseModel):
    kind: Literal["call_action"] = "call_action"
    action_name: str = ""


class SwitchPayload(BaseModel):
    kind: Literal["switch"] = "switch"
    variable: str = ""
    cases: list[str] = Field(default_factory=list)


class CommentPayload(BaseModel):
    kind: Literal["comment"] = "comment"
    text: str = ""


class RaiseExceptionPayload(BaseModel):
    kind: Literal["raise_exception"] = "raise_exception"
    exception: str = ""
    message: str = ""


class SqlPayload(BaseModel):
    kind: Literal["sql"] = "sql"
    query: str = ""


class JavaScriptPayload(BaseModel):
    kind: Literal["javascript"] = "javascript"
    code: str = ""


class MessagePayload(BaseModel):
    kind: Literal["message"] = "message"
    message: str = ""
    msg_type: str = "Info"


Payload = Annotated[
    Union[
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
    ],
    Field(discriminator="kind"),
]

# Node type tag -> the only payload variant legal for it.
# Types not listed here (Start, End, Aggregate, unknown tags, ...) use EmptyPayload.
PAYLOAD_BY_TYPE: dict[str, type[BaseModel]] = {
    FlowNodeType.IF.value: ConditionPayload,
    FlowNodeType.ASSIGN.value: AssignPayload,
    FlowNodeType.EXECUTE_SERVER_ACTION.value: CallActionPayload,
    FlowNodeType.RUN_SERVER_ACTION.value: CallActionPayload,
    FlowNodeType.RUN_CLIENT_ACTION.value: CallActionPayload,
    FlowNodeType.SWITCH.value: SwitchPayload,
    FlowNodeType.COMMENT.value: CommentPayload,
    FlowNodeType.RAISE_EXCEPTION.value: RaiseExceptionPayload,
    FlowNodeType.SQL.value: SqlPayload,
    FlowNodeType.JAVASCRIPT.value: JavaScriptPayload,
    FlowNodeType.MESSAGE.value: MessagePayload,
}


def payload_class_for(node_type: str) -> type[BaseModel]:
    """Get the payload variant a node type must carry."""
    return PAYLOAD_BY_TYPE.get(node_type, EmptyPayload)


# --- Flow Graph Models ---

class FlowNode(BaseModel):
    """A step of a logic action's flow."""
    id: str = Field(default_factory=generate_id)
    type: str = FlowNodeType.START.value
    label: str = ""
    x: float = 0
    y: float = 0
    payload: Payload = Field(default_factory=EmptyPayload)

    @field_validator('type', mode='before')
    @classmethod
    def unwrap_type_enum(cls, value: Any) -> Any:
        """Accept FlowNodeType members as well as plain tags."""
        if isinstance(value, Enum):
            return value.value
        return value

    @model_validator(mode='before')
    @classmethod
    def default_payload(cls, data: Any) -> Any:
        """Fill a missing payload (or its `kind`) from the node type."""
        if not isinstance(data, dict):
            return data
        node_type = data.get('type', FlowNodeType.START.value)
        if isinstance(node_type, Enum):
            node_type = node_type.value
        payload_cls = payload_class_for(node_type)
        payload = data.get('payload')
        if payload is None:
            data = {**data, 'payload': payload_cls()}
        elif isinstance(payload, dict) and 'kind' not in payload:
            kind = payload_cls.model_fields['kind'].default
            data = {**data, 'payload': {**payload, 'kind': kind}}
        return data

    @model_validator(mode='after')
    def check_payload_matches_type(self) -> "FlowNode":
        """Reject payloads that belong to another node type."""
        expected = payload_class_for(self.type)
        if not isinstance(self.payload, expected):
            raise ValueError(
                f"Node type {self.type!r} requires a {expected.__name__}, "
                f"got {type(self.payload).__name__}"
            )
        return self


class FlowEdge(BaseModel):
    """A directed connection between two flow nodes."""
    id: str = Field(default_factory=generate_id)
    source: str
    target: str
    label: str = ""  # "True"/"False" for branches, or a switch case value


class FlowGraph(BaseModel):
    """
    The flow owned by one logic action.

    Directed, possibly cyclic (loops back to a ForEach) and possibly
    disconnected. Edges may reference missing nodes; such a graph is
    accepted but reported as incomplete.
    """
    nodes: list[FlowNode] = Field(default_factory=list)
    edges: list[FlowEdge] = Field(default_factory=list)

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        """Get a node by ID (O(n))."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def dangling_edges(self) -> list[FlowEdge]:
        """Edges whose source or target is not a node of this graph."""
        node_ids = {n.id for n in self.nodes}
        return [
            e for e in self.edges
            if e.source not in node_ids or e.target not in node_ids
        ]

    @property
    def is_complete(self) -> bool:
        """True if every edge endpoint references a node in the graph."""
        return not self.dangling_edges()


class LogicAction(BaseModel):
    """A procedural action with its parameters and flow."""
    id: str = Field(default_factory=generate_id)
    module_id: str = ""
    name: str = "NewAction"
    kind: ActionKind = ActionKind.SERVER
    description: str = ""
    is_function: bool = False
    is_public: bool = False
    inputs: list[Variable] = Field(default_factory=list)
    outputs: list[Variable] = Field(default_factory=list)
    local_variables: list[Variable] = Field(default_factory=list)
    flow_summary: str = ""
    flow: FlowGraph = Field(default_factory=FlowGraph)


class ImportResult(BaseModel):
    """Everything recovered from one document."""
    entities: list[Entity] = Field(default_factory=list)
    actions: list[LogicAction] = Field(default_factory=list)
    incomplete_actions: list[str] = Field(default_factory=list)  # action ids

    @property
    def is_empty(self) -> bool:
        return not self.entities and not self.actions


# --- Layout Models ---

class Position(BaseModel):
    """Top-left anchor of a laid out node."""
    x: float = 0
    y: float = 0


class LayoutNode(BaseModel):
    """A node as seen by the layout engine: identity and size only."""
    id: str
    width: float = 100
    height: float = 60


class LayoutEdge(BaseModel):
    """A directed edge as seen by the layout engine."""
    source: str
    target: str


class Relationship(BaseModel):
    """An entity-to-entity edge inferred from an `<Entity>Id` attribute."""
    id: str
    source: str  # referenced entity id
    target: str  # owning entity id
    attribute: str


class EntityGraphLayout(BaseModel):
    """Positions for an entity diagram plus the edges that shaped it."""
    positions: dict[str, Position] = Field(default_factory=dict)
    relationships: list[Relationship] = Field(default_factory=list)


# --- API Request/Response Models ---

class ImportRequest(BaseModel):
    """Request to import a markup document."""
    document: str
    owner_id: str = ""


class ExportRequest(BaseModel):
    """Request to export entities and actions to markup."""
    entities: list[Entity] = Field(default_factory=list)
    actions: list[LogicAction] = Field(default_factory=list)


class FlowGraphRequest(BaseModel):
    """Request carrying a bare flow graph (layout or validation)."""
    nodes: list[FlowNode] = Field(default_factory=list)
    edges: list[FlowEdge] = Field(default_factory=list)


class ActionLayoutRequest(BaseModel):
    """Request to lay out the flow of one action."""
    action: LogicAction


class EntityLayoutRequest(BaseModel):
    """Request to lay out an entity diagram."""
    entities: list[Entity] = Field(default_factory=list)
