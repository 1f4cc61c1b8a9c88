from flowbridge.core import (
    FlowEdge,
    FlowGraph,
    FlowNode,
    IssueSeverity,
    ValidationIssue,
    validate_flow_graph,
    validation_summary,
)


def _severities(issues):
    return [i.severity for i in issues]


def test_valid_graph_has_no_issues(branching_action):
    issues = validate_flow_graph(branching_action.flow)
    assert issues == []
    assert validation_summary(issues)["valid"] is True


def test_empty_graph_is_info():
    issues = validate_flow_graph(FlowGraph())
    assert _severities(issues) == [IssueSeverity.INFO]
    summary = validation_summary(issues)
    assert summary["info"] == 1
    assert summary["valid"] is True


def test_edges_without_nodes():
    graph = FlowGraph(edges=[FlowEdge(source="a", target="b")])
    issues = validate_flow_graph(graph)
    assert _severities(issues) == [IssueSeverity.INFO, IssueSeverity.ERROR, IssueSeverity.ERROR]


def test_dangling_edge_is_error():
    edge = FlowEdge(source="a", target="ghost")
    graph = FlowGraph(nodes=[FlowNode(id="a")], edges=[edge])
    issues = validate_flow_graph(graph)

    assert len(issues) == 1
    assert issues[0].severity == IssueSeverity.ERROR
    assert issues[0].edge_id == edge.id
    assert "ghost" in issues[0].message
    assert validation_summary(issues)["valid"] is False


def test_duplicate_node_ids_is_error():
    graph = FlowGraph(nodes=[FlowNode(id="a"), FlowNode(id="a", type="End")])
    issues = validate_flow_graph(graph)
    assert _severities(issues) == [IssueSeverity.ERROR]
    assert issues[0].node_id == "a"


def test_self_edge_is_warning():
    graph = FlowGraph(nodes=[FlowNode(id="loop", type="ForEach")],
                      edges=[FlowEdge(source="loop", target="loop")])
    issues = validate_flow_graph(graph)
    assert _severities(issues) == [IssueSeverity.WARNING]
    assert issues[0].node_id == "loop"


def test_duplicate_edge_is_warning_only_with_same_label():
    nodes = [FlowNode(id="a", type="If", payload={"condition": "x"}), FlowNode(id="b", type="End")]
    graph = FlowGraph(nodes=nodes, edges=[
        FlowEdge(source="a", target="b", label="True"),
        FlowEdge(source="a", target="b", label="False"),
        FlowEdge(source="a", target="b", label="True"),
    ])
    issues = validate_flow_graph(graph)
    assert _severities(issues) == [IssueSeverity.WARNING]
    assert issues[0].edge_id == graph.edges[2].id


def test_summary_counts():
    issues = [
        ValidationIssue(severity=IssueSeverity.ERROR, message="e"),
        ValidationIssue(severity=IssueSeverity.WARNING, message="w1"),
        ValidationIssue(severity=IssueSeverity.WARNING, message="w2"),
        ValidationIssue(severity=IssueSeverity.INFO, message="i"),
    ]
    assert validation_summary(issues) == {
        "total": 4,
        "errors": 1,
        "warnings": 2,
        "info": 1,
        "valid": False,
    }


def test_issue_to_dict():
    issue = ValidationIssue(severity=IssueSeverity.ERROR, message="boom", edge_id="e1")
    assert issue.to_dict() == {"type": "error", "message": "boom", "edge_id": "e1"}
