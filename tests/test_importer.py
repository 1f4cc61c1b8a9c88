import uuid

import pytest
from lxml import etree

from flowbridge.core import (
    ActionKind,
    AssignPayload,
    CallActionPayload,
    ConditionPayload,
    DataType,
    EmptyPayload,
    MessagePayload,
    ParseError,
    import_document,
)


def _wrap(body: str) -> str:
    return f"<ClipboardData>{body}</ClipboardData>"


def _single_flow_node(node_xml: str):
    result = import_document(_wrap(f'<ServerAction Name="A"><Flow>{node_xml}</Flow></ServerAction>'))
    nodes = result.actions[0].flow.nodes
    assert len(nodes) == 1
    return nodes[0]


class TestEntities:
    """Entity and attribute extraction."""

    def test_entities_found_at_any_depth(self, sample_document):
        result = import_document(sample_document, "module-1")
        assert [e.name for e in result.entities] == ["Customer", "Order"]
        assert all(e.module_id == "module-1" for e in result.entities)

    def test_entity_fields(self, sample_document):
        customer = import_document(sample_document).entities[0]
        assert customer.description == "People who buy"
        assert customer.is_public is True
        assert customer.is_static is False

    def test_attributes(self, sample_document):
        customer = import_document(sample_document).entities[0]
        attrs = {a.name: a for a in customer.attributes}

        assert [a.name for a in customer.attributes] == ["Id", "Name", "Phone", "Age"]
        assert attrs["Id"].data_type == DataType.LONG_INTEGER
        assert attrs["Id"].is_identifier is True
        assert attrs["Id"].is_mandatory is True
        assert attrs["Name"].data_type == DataType.TEXT
        assert attrs["Name"].length == 100
        assert attrs["Phone"].data_type == DataType.TEXT
        assert attrs["Phone"].length == 20

    def test_length_only_kept_for_text(self, sample_document):
        customer = import_document(sample_document).entities[0]
        age = next(a for a in customer.attributes if a.name == "Age")
        assert age.data_type == DataType.INTEGER
        assert age.length is None

    def test_non_numeric_length_is_dropped(self):
        doc = _wrap('<Entity Name="E"><Attributes><EntityAttribute Name="N" Type="Text" Length="long" /></Attributes></Entity>')
        assert import_document(doc).entities[0].attributes[0].length is None

    def test_boolean_literal_is_case_sensitive(self, sample_document):
        customer, order = import_document(sample_document).entities
        assert customer.is_public is True   # IsPublic="true"
        assert order.is_public is False     # IsPublic="True"

    def test_defaults(self):
        entity = import_document(_wrap("<Entity />")).entities[0]
        assert entity.name == "Unknown"
        assert entity.description == ""
        assert entity.attributes == []
        assert entity.is_public is False

    def test_root_element_can_be_an_entity(self):
        result = import_document('<Entity Name="Solo" />')
        assert [e.name for e in result.entities] == ["Solo"]


class TestActions:
    """Action header, parameters and kind."""

    def test_action_kinds(self):
        doc = _wrap('<ServerAction Name="S" /><ClientAction Name="C" /><ServiceAction Name="V" />')
        kinds = {a.name: a.kind for a in import_document(doc).actions}
        assert kinds == {"S": ActionKind.SERVER, "C": ActionKind.CLIENT, "V": ActionKind.SERVICE}

    def test_action_fields(self, sample_document):
        action = import_document(sample_document, "m").actions[0]
        assert action.name == "PlaceOrder"
        assert action.description == "Creates an order"
        assert action.is_public is True
        assert action.is_function is False
        assert action.module_id == "m"
        assert action.flow_summary == "Imported logic with 5 nodes."

    def test_parameters(self, sample_document):
        action = import_document(sample_document).actions[0]
        assert [(v.name, v.data_type) for v in action.inputs] == [
            ("CustomerId", DataType.LONG_INTEGER),
            ("Amount", DataType.DECIMAL),
        ]
        assert action.inputs[0].is_mandatory is True
        assert [v.name for v in action.outputs] == ["OrderId"]
        assert all(v.is_list is False for v in action.inputs + action.outputs)

    def test_parameters_inside_container(self):
        doc = _wrap(
            '<ServerAction Name="A"><Parameters>'
            '<InputParameter Name="In" Type="Boolean" Description="flag" />'
            '<OutputParameter Name="Out" Type="Date" />'
            '</Parameters></ServerAction>'
        )
        action = import_document(doc).actions[0]
        assert action.inputs[0].name == "In"
        assert action.inputs[0].data_type == DataType.BOOLEAN
        assert action.inputs[0].description == "flag"
        assert action.outputs[0].data_type == DataType.DATE

    def test_local_variables(self):
        doc = _wrap(
            '<ServerAction Name="A"><Variable Name="Count" Type="Integer" />'
            '<Variables><Variable Name="Label" Type="Text" /></Variables></ServerAction>'
        )
        action = import_document(doc).actions[0]
        assert [v.name for v in action.local_variables] == ["Count", "Label"]

    def test_action_defaults(self):
        action = import_document(_wrap("<ServerAction />")).actions[0]
        assert action.name == "NewAction"
        assert action.kind == ActionKind.SERVER
        assert action.flow.nodes == []
        assert action.flow.edges == []


class TestFlow:
    """Flow nodes, payloads and links."""

    def test_nodes_use_declared_names_as_ids(self, sample_document):
        flow = import_document(sample_document).actions[0].flow
        assert {n.id for n in flow.nodes} == {"Start", "IsBig", "SetTotals", "CreateOrder", "End"}
        assert all(n.x == 0 and n.y == 0 for n in flow.nodes)

    def test_if_condition(self, sample_document):
        node = import_document(sample_document).actions[0].flow.get_node("IsBig")
        assert node.type == "If"
        assert node.payload == ConditionPayload(condition="Amount > 100")

    def test_assign_keeps_order(self, sample_document):
        node = import_document(sample_document).actions[0].flow.get_node("SetTotals")
        assert isinstance(node.payload, AssignPayload)
        assert [(a.variable, a.value) for a in node.payload.assignments] == [
            ("Total", "Amount"),
            ("Discount", "0.1"),
        ]

    def test_execute_action_prefers_nested_action(self, sample_document):
        node = import_document(sample_document).actions[0].flow.get_node("CreateOrder")
        assert node.payload == CallActionPayload(action_name="Order_Create")

    def test_call_action_name_fallbacks(self):
        node = _single_flow_node('<RunClientAction Name="Run1" ActionName="Refresh" />')
        assert node.payload.action_name == "Refresh"

        node = _single_flow_node('<RunServerAction Name="Run2" />')
        assert node.payload.action_name == "Run2"

    def test_switch_cases(self):
        node = _single_flow_node(
            '<Switch Name="Sw" Variable="Status">'
            '<Case Condition="Status = 1" /><Case Condition="Status = 2" /></Switch>'
        )
        assert node.payload.cases == ["Status = 1", "Status = 2"]
        assert node.payload.variable == "Status"

    def test_comment_text(self):
        assert _single_flow_node('<Comment Name="C" Text="note" />').payload.text == "note"
        assert _single_flow_node('<Comment Name="C" />').payload.text == ""

    def test_raise_exception(self):
        node = _single_flow_node('<RaiseException Name="Fail" ExceptionMessage="boom" />')
        assert node.payload.exception == "Fail"
        assert node.payload.message == "boom"

        node = _single_flow_node('<RaiseException Name="Fail" Exception="NotFound" />')
        assert node.payload.exception == "NotFound"
        assert node.payload.message == ""

    def test_sql_query_fallbacks(self):
        assert _single_flow_node('<SQL Name="Q" SQL="SELECT 1" />').payload.query == "SELECT 1"
        assert _single_flow_node('<SQL Name="Q" CommandText="SELECT 2" />').payload.query == "SELECT 2"
        assert _single_flow_node('<SQL Name="Q" />').payload.query == "Q"
        assert _single_flow_node("<SQL />").payload.query == "-- SQL query"

    def test_javascript_code_fallbacks(self):
        assert _single_flow_node('<JavaScript Name="J" Script="a()" Code="b()" />').payload.code == "a()"
        assert _single_flow_node('<JavaScript Name="J" Code="b()" />').payload.code == "b()"
        assert _single_flow_node('<JavaScript Name="J" />').payload.code == "// JavaScript code"

    def test_message_defaults_to_info(self, sample_document):
        action = import_document(sample_document).actions[1]
        node = action.flow.get_node("Greet")
        assert node.payload == MessagePayload(message="Hello", msg_type="Info")

    @pytest.mark.parametrize("tag", ["Start", "End", "Aggregate", "ForEach", "Download", "Destination"])
    def test_identity_only_nodes(self, tag):
        node = _single_flow_node(f'<{tag} Name="N" />')
        assert node.type == tag
        assert isinstance(node.payload, EmptyPayload)

    def test_unnamed_node_gets_fresh_id(self):
        node = _single_flow_node("<Aggregate />")
        assert uuid.UUID(node.id)
        assert node.label == "Aggregate"

    def test_links(self, sample_document):
        edges = import_document(sample_document).actions[0].flow.edges
        assert [(e.source, e.target, e.label) for e in edges] == [
            ("Start", "IsBig", ""),
            ("IsBig", "SetTotals", "True"),
            ("IsBig", "CreateOrder", "False"),
            ("SetTotals", "CreateOrder", ""),
            ("CreateOrder", "End", ""),
        ]
        assert len({e.id for e in edges}) == len(edges)

    def test_flow_falls_back_to_action_node(self, sample_document):
        action = import_document(sample_document).actions[1]
        assert action.kind == ActionKind.CLIENT
        assert {n.id for n in action.flow.nodes} == {"Begin", "Greet"}
        assert [(e.source, e.target) for e in action.flow.edges] == [("Begin", "Greet")]

    def test_unknown_elements_are_ignored(self):
        node = _single_flow_node('<Start Name="S"><Decoration Color="red" /></Start><Widget />')
        assert node.id == "S"


class TestStructure:
    """Completeness flags and failure semantics."""

    def test_valid_graph_is_complete(self, sample_document):
        result = import_document(sample_document)
        assert result.incomplete_actions == []
        assert all(a.flow.is_complete for a in result.actions)

    def test_dangling_link_is_flagged(self):
        doc = _wrap(
            '<ServerAction Name="A"><Flow><Start Name="S" />'
            '<Link Source="S" Target="Ghost" /></Flow></ServerAction>'
        )
        result = import_document(doc)
        action = result.actions[0]

        assert action.flow.is_complete is False
        assert result.incomplete_actions == [action.id]
        assert [e.target for e in action.flow.dangling_edges()] == ["Ghost"]

    def test_empty_document_is_not_an_error(self):
        result = import_document("<ClipboardData><Something /></ClipboardData>")
        assert result.entities == []
        assert result.actions == []
        assert result.is_empty

    def test_malformed_document_raises(self):
        with pytest.raises(ParseError) as exc_info:
            import_document("<ClipboardData><Entity Name='x'></ClipboardData>")
        assert isinstance(exc_info.value.__cause__, etree.XMLSyntaxError)


def test_import_with_latin1_declaration():
    doc = '<?xml version="1.0" encoding="ISO-8859-1"?><ClipboardData><Entity Name="Café" /></ClipboardData>'
    assert import_document(doc).entities[0].name == "Café"


def test_import_with_lone_surrogate_raises_parse_error():
    with pytest.raises(ParseError):
        import_document('<ClipboardData><Entity Name="\ud800" /></ClipboardData>')
