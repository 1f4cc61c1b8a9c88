"""
Layered layout for flow graphs and entity diagrams.

The hierarchical layout runs top-to-bottom in three phases:
- Rank: longest-path layering, with loop back-edges ignored
- Order: barycenter sweeps to reduce edge crossings within each rank
- Place: stack ranks vertically, pack nodes horizontally, center each rank

Layout never mutates caller objects: positions come back as a fresh dict
(or, for layout_action, on a copy of the action). An inconsistent graph never
raises; everything is placed at the origin instead.
"""

import logging
import math
from collections import defaultdict, deque

from .errors import LayoutFailure
from .models import (
    Entity,
    EntityGraphLayout,
    FlowEdge,
    FlowNode,
    LayoutEdge,
    LayoutNode,
    LogicAction,
    Position,
    Relationship,
)

logger = logging.getLogger(__name__)


# Default layout parameters
DEFAULT_NODE_GAP = 50
DEFAULT_RANK_GAP = 50
DEFAULT_ORDERING_PASSES = 4

# Flow nodes have a fixed nominal size
FLOW_NODE_WIDTH = 100
FLOW_NODE_HEIGHT = 60

# Entity nodes grow with their attribute list
ENTITY_NODE_WIDTH = 256
ENTITY_HEADER_HEIGHT = 45
ENTITY_ROW_HEIGHT = 30
ENTITY_NODE_GAP = 80
ENTITY_RANK_GAP = 100

RELATIONSHIP_SUFFIX = "Id"


def identity_layout(nodes: list[LayoutNode]) -> dict[str, Position]:
    """Every node at the origin."""
    return {node.id: Position(x=0, y=0) for node in nodes}


def _check_graph(nodes: list[LayoutNode], edges: list[LayoutEdge]) -> None:
    """Raise LayoutFailure for anything the phases below cannot handle."""
    seen: set[str] = set()
    for node in nodes:
        if node.id in seen:
            raise LayoutFailure(f"Duplicate node id: {node.id}")
        seen.add(node.id)
        for size in (node.width, node.height):
            if not math.isfinite(size) or size < 0:
                raise LayoutFailure(f"Invalid size for node {node.id}: {node.width}x{node.height}")

    for edge in edges:
        if edge.source not in seen:
            raise LayoutFailure(f"Edge references non-existent source node: {edge.source}")
        if edge.target not in seen:
            raise LayoutFailure(f"Edge references non-existent target node: {edge.target}")


# --- Ranking ---

def find_back_edges(node_ids: list[str], edges: list[LayoutEdge]) -> set[int]:
    """
    Find loop-closing edges with a depth-first traversal.

    Traversal starts from source nodes (no incoming edges) in input order,
    then from any node not reached yet, also in input order. An edge into a
    node that is still on the traversal path closes a cycle.

    Args:
        node_ids: Node IDs in input order
        edges: Edges in input order

    Returns:
        Indexes (into `edges`) of the back-edges
    """
    children: dict[str, list[tuple[int, str]]] = {nid: [] for nid in node_ids}
    has_parent: set[str] = set()
    for index, edge in enumerate(edges):
        children[edge.source].append((index, edge.target))
        has_parent.add(edge.target)

    # 0 = unvisited, 1 = on the current path, 2 = finished
    state: dict[str, int] = {nid: 0 for nid in node_ids}
    back_edges: set[int] = set()

    roots = [nid for nid in node_ids if nid not in has_parent]
    for start in roots + node_ids:
        if state[start] != 0:
            continue

        state[start] = 1
        stack: list[tuple[str, int]] = [(start, 0)]
        while stack:
            current, child_index = stack[-1]
            if child_index >= len(children[current]):
                state[current] = 2
                stack.pop()
                continue

            stack[-1] = (current, child_index + 1)
            edge_index, target = children[current][child_index]
            if state[target] == 1:
                back_edges.add(edge_index)
            elif state[target] == 0:
                state[target] = 1
                stack.append((target, 0))

    return back_edges


def assign_ranks(node_ids: list[str], edges: list[LayoutEdge]) -> dict[str, int]:
    """
    Assign each node its longest-path distance from a source node.

    Back-edges (see find_back_edges) do not influence ranks. Nodes without
    edges land on rank 0.

    Args:
        node_ids: Node IDs in input order
        edges: Edges whose endpoints are all in `node_ids`

    Returns:
        Dictionary mapping node_id to rank
    """
    back_edges = find_back_edges(node_ids, edges)

    successors: dict[str, list[str]] = {nid: [] for nid in node_ids}
    in_degree: dict[str, int] = {nid: 0 for nid in node_ids}
    for index, edge in enumerate(edges):
        if index in back_edges:
            continue
        successors[edge.source].append(edge.target)
        in_degree[edge.target] += 1

    ranks: dict[str, int] = {nid: 0 for nid in node_ids}
    queue = deque(nid for nid in node_ids if in_degree[nid] == 0)
    processed = 0

    while queue:
        current = queue.popleft()
        processed += 1
        for child in successors[current]:
            ranks[child] = max(ranks[child], ranks[current] + 1)
            in_degree[child] -= 1
            if in_degree[child] == 0:
                queue.append(child)

    if processed != len(node_ids):
        raise LayoutFailure("Cycle left after removing back-edges")

    return ranks


# --- Ordering ---

def _forward_pairs(edges: list[LayoutEdge], ranks: dict[str, int]) -> list[tuple[str, str]]:
    """Edges as (upper, lower) pairs; edges within one rank are dropped."""
    pairs = []
    for edge in edges:
        if ranks[edge.source] < ranks[edge.target]:
            pairs.append((edge.source, edge.target))
        elif ranks[edge.source] > ranks[edge.target]:
            pairs.append((edge.target, edge.source))
    return pairs


def count_crossings(layers: list[list[str]], pairs: list[tuple[str, str]]) -> int:
    """
    Count crossing edge pairs.

    Two edges cross when they span the same pair of ranks and their endpoints
    are in opposite order on the two ranks.

    Args:
        layers: Node IDs per rank, in display order
        pairs: Edges as (upper node, lower node)

    Returns:
        Number of crossing edge pairs
    """
    rank_of: dict[str, int] = {}
    index_of: dict[str, int] = {}
    for rank, layer in enumerate(layers):
        for index, nid in enumerate(layer):
            rank_of[nid] = rank
            index_of[nid] = index

    by_span: dict[tuple[int, int], list[tuple[int, int]]] = defaultdict(list)
    for upper, lower in pairs:
        by_span[(rank_of[upper], rank_of[lower])].append((index_of[upper], index_of[lower]))

    crossings = 0
    for spans in by_span.values():
        for i, (u1, l1) in enumerate(spans):
            for u2, l2 in spans[i + 1:]:
                if (u1 - u2) * (l1 - l2) < 0:
                    crossings += 1
    return crossings


def _sweep(
    layers: list[list[str]],
    neighbors: dict[str, list[str]],
    rank_range: range,
) -> None:
    """Reorder the given ranks by the barycenter of each node's neighbors."""
    index_of = {nid: i for layer in layers for i, nid in enumerate(layer)}

    for rank in rank_range:
        layer = layers[rank]
        keyed = []
        for index, nid in enumerate(layer):
            linked = neighbors[nid]
            if linked:
                barycenter = sum(index_of[n] for n in linked) / len(linked)
            else:
                # No neighbors this way: hold the current slot
                barycenter = float(index)
            keyed.append((barycenter, index, nid))

        keyed.sort()
        layers[rank] = [nid for _, _, nid in keyed]
        for i, nid in enumerate(layers[rank]):
            index_of[nid] = i


def order_ranks(
    node_ids: list[str],
    ranks: dict[str, int],
    edges: list[LayoutEdge],
    passes: int = DEFAULT_ORDERING_PASSES,
) -> list[list[str]]:
    """
    Order the nodes of every rank to reduce edge crossings.

    Starts from input order, then alternates downward and upward barycenter
    sweeps until the order is stable or `passes` sweeps have run. The order
    with the fewest crossings seen is returned.

    Args:
        node_ids: Node IDs in input order
        ranks: Rank per node (from assign_ranks)
        edges: Edges of the graph
        passes: Maximum number of sweeps

    Returns:
        List of ranks, each a list of node IDs in display order
    """
    rank_count = max(ranks.values(), default=-1) + 1
    layers: list[list[str]] = [[] for _ in range(rank_count)]
    for nid in node_ids:
        layers[ranks[nid]].append(nid)

    pairs = _forward_pairs(edges, ranks)
    upper_neighbors: dict[str, list[str]] = {nid: [] for nid in node_ids}
    lower_neighbors: dict[str, list[str]] = {nid: [] for nid in node_ids}
    for upper, lower in pairs:
        upper_neighbors[lower].append(upper)
        lower_neighbors[upper].append(lower)

    best = [list(layer) for layer in layers]
    best_crossings = count_crossings(layers, pairs)

    for sweep in range(passes):
        if best_crossings == 0:
            break

        previous = [list(layer) for layer in layers]
        if sweep % 2 == 0:
            _sweep(layers, upper_neighbors, range(1, rank_count))
        else:
            _sweep(layers, lower_neighbors, range(rank_count - 2, -1, -1))

        crossings = count_crossings(layers, pairs)
        if crossings < best_crossings:
            best = [list(layer) for layer in layers]
            best_crossings = crossings

        if layers == previous:
            break

    return best


# --- Placement ---

def place_layers(
    layers: list[list[str]],
    sizes: dict[str, tuple[float, float]],
    node_gap: float = DEFAULT_NODE_GAP,
    rank_gap: float = DEFAULT_RANK_GAP,
) -> dict[str, Position]:
    """
    Turn ordered ranks into top-left coordinates.

    Each rank sits below the tallest node of the rank above plus `rank_gap`.
    Nodes in a rank are packed left to right with `node_gap` between them,
    and every rank is centered against the widest one.

    Args:
        layers: Node IDs per rank, in display order
        sizes: (width, height) per node
        node_gap: Horizontal space between neighbors in a rank
        rank_gap: Vertical space between ranks

    Returns:
        Dictionary mapping node_id to Position
    """
    rank_widths = [
        sum(sizes[nid][0] for nid in layer) + node_gap * max(len(layer) - 1, 0)
        for layer in layers
    ]
    widest = max(rank_widths, default=0)

    positions: dict[str, Position] = {}
    y = 0.0
    for layer, rank_width in zip(layers, rank_widths):
        x = (widest - rank_width) / 2
        for nid in layer:
            positions[nid] = Position(x=x, y=y)
            x += sizes[nid][0] + node_gap
        y += max((sizes[nid][1] for nid in layer), default=0) + rank_gap

    return positions


def layout(
    nodes: list[LayoutNode],
    edges: list[LayoutEdge],
    node_gap: float = DEFAULT_NODE_GAP,
    rank_gap: float = DEFAULT_RANK_GAP,
    passes: int = DEFAULT_ORDERING_PASSES,
) -> dict[str, Position]:
    """
    Compute a layered top-to-bottom layout.

    Deterministic for the same node and edge ordering. Never raises: on an
    inconsistent graph (unknown edge endpoints, duplicate ids, bad sizes)
    every node is placed at the origin.

    Args:
        nodes: Nodes with their sizes
        edges: Directed edges between them
        node_gap: Horizontal space between nodes of a rank
        rank_gap: Vertical space between ranks
        passes: Maximum barycenter sweeps

    Returns:
        Dictionary mapping node_id to its top-left Position
    """
    if not nodes:
        return {}

    try:
        _check_graph(nodes, edges)
        node_ids = [n.id for n in nodes]
        sizes = {n.id: (n.width, n.height) for n in nodes}

        ranks = assign_ranks(node_ids, edges)
        layers = order_ranks(node_ids, ranks, edges, passes=passes)
        positions = place_layers(layers, sizes, node_gap=node_gap, rank_gap=rank_gap)

        for position in positions.values():
            if not (math.isfinite(position.x) and math.isfinite(position.y)):
                raise LayoutFailure("Non-finite coordinate")
    except (LayoutFailure, ArithmeticError, KeyError) as e:
        logger.warning("Layout failed, using identity layout: %s", e)
        return identity_layout(nodes)

    return positions


# --- Flow Graphs ---

def layout_flow(
    nodes: list[FlowNode],
    edges: list[FlowEdge],
    node_width: float = FLOW_NODE_WIDTH,
    node_height: float = FLOW_NODE_HEIGHT,
    node_gap: float = DEFAULT_NODE_GAP,
    rank_gap: float = DEFAULT_RANK_GAP,
    passes: int = DEFAULT_ORDERING_PASSES,
) -> dict[str, Position]:
    """Lay out a flow graph using the nominal flow node size."""
    layout_nodes = [LayoutNode(id=n.id, width=node_width, height=node_height) for n in nodes]
    layout_edges = [LayoutEdge(source=e.source, target=e.target) for e in edges]
    return layout(layout_nodes, layout_edges, node_gap=node_gap, rank_gap=rank_gap, passes=passes)


def layout_action(action: LogicAction, **options) -> LogicAction:
    """
    Return a copy of `action` with its flow nodes positioned.

    Args:
        action: The action to lay out (left untouched)
        **options: Passed through to layout_flow

    Returns:
        A deep copy of the action with updated node x/y
    """
    positions = layout_flow(action.flow.nodes, action.flow.edges, **options)
    positioned = action.model_copy(deep=True)
    for node in positioned.flow.nodes:
        position = positions.get(node.id)
        if position is not None:
            node.x = position.x
            node.y = position.y
    return positioned


# --- Entity Diagrams ---

def entity_size(
    entity: Entity,
    width: float = ENTITY_NODE_WIDTH,
    header_height: float = ENTITY_HEADER_HEIGHT,
    row_height: float = ENTITY_ROW_HEIGHT,
) -> tuple[float, float]:
    """Rendered size of an entity box: fixed width, one row per attribute."""
    return width, header_height + len(entity.attributes) * row_height


def infer_relationships(entities: list[Entity]) -> list[Relationship]:
    """
    Infer entity relationships from attribute names.

    An attribute named `<Name>Id` on entity A, where another entity is named
    `<Name>`, yields an edge from that entity to A. This is a naming
    heuristic, not a declared foreign key: it misses differently named keys
    and can invent links from coincidental names.

    Args:
        entities: Entities of one diagram

    Returns:
        List of Relationship edges (referenced entity -> owning entity)
    """
    relationships: list[Relationship] = []

    for owner in entities:
        for attr in owner.attributes:
            if not attr.name.endswith(RELATIONSHIP_SUFFIX):
                continue
            referenced_name = attr.name[:-len(RELATIONSHIP_SUFFIX)]
            if not referenced_name:
                continue

            referenced = next((e for e in entities if e.name == referenced_name), None)
            if referenced is None:
                continue

            relationships.append(Relationship(
                id=f"{owner.id}-{referenced.id}",
                source=referenced.id,
                target=owner.id,
                attribute=attr.name,
            ))

    return relationships


def layout_entity_graph(
    entities: list[Entity],
    width: float = ENTITY_NODE_WIDTH,
    header_height: float = ENTITY_HEADER_HEIGHT,
    row_height: float = ENTITY_ROW_HEIGHT,
    node_gap: float = ENTITY_NODE_GAP,
    rank_gap: float = ENTITY_RANK_GAP,
    passes: int = DEFAULT_ORDERING_PASSES,
) -> EntityGraphLayout:
    """
    Lay out an entity diagram.

    Relationships are inferred first (see infer_relationships) and used as
    the edges of the layered layout.

    Args:
        entities: Entities to place
        width: Entity box width
        header_height: Height of the entity title bar
        row_height: Height per attribute row
        node_gap: Horizontal space between entities of a rank
        rank_gap: Vertical space between ranks
        passes: Maximum barycenter sweeps

    Returns:
        EntityGraphLayout with positions and the inferred relationships
    """
    relationships = infer_relationships(entities)

    layout_nodes = []
    for entity in entities:
        w, h = entity_size(entity, width=width, header_height=header_height, row_height=row_height)
        layout_nodes.append(LayoutNode(id=entity.id, width=w, height=h))
    layout_edges = [LayoutEdge(source=r.source, target=r.target) for r in relationships]

    positions = layout(layout_nodes, layout_edges, node_gap=node_gap, rank_gap=rank_gap, passes=passes)
    return EntityGraphLayout(positions=positions, relationships=relationships)
