"""
Generic labeled tree for the clipboard markup dialect.

The dialect is XML but its shape is only loosely documented: the same label
can appear once or many times, nested at varying depths. Parsing happens in
two steps:

1. lxml turns the text into an element tree (entities and network access off)
2. The element tree becomes a MarkupNode tree, where labels listed in
   MANY_LABELS are always stored as sequences and every other label is stored
   as a single node unless it actually repeats

Extraction code only ever goes through MarkupNode.child() / children(), so the
singular-vs-plural question is answered once, here.
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

from lxml import etree

from .errors import ParseError


# Labels that always materialize as a sequence, even with a single occurrence.
MANY_LABELS: frozenset[str] = frozenset({
    # Entities and their attributes
    "Entity",
    "EntityAttribute",
    # Actions of every kind
    "ServerAction",
    "ClientAction",
    "ServiceAction",
    # Parameters and variables
    "InputParameter",
    "OutputParameter",
    "Variable",
    # Flow wiring and node details
    "Link",
    "Assignment",
    "Case",
})

BOOLEAN_TRUE = "true"


@dataclass
class MarkupNode:
    """One labeled element with its attributes, text and grouped children."""
    label: str
    attributes: dict[str, str] = field(default_factory=dict)
    text: str = ""
    fields: dict[str, Union["MarkupNode", list["MarkupNode"]]] = field(default_factory=dict)
    elements: list["MarkupNode"] = field(default_factory=list, repr=False)  # document order

    def attr(self, name: str, default: str = "") -> str:
        """Get an attribute value, or `default` when absent or empty."""
        value = self.attributes.get(name)
        return value if value else default

    def flag(self, name: str) -> bool:
        """Boolean attribute: only the exact literal "true" is true."""
        return self.attributes.get(name) == BOOLEAN_TRUE

    def has(self, label: str) -> bool:
        return label in self.fields

    def child(self, label: str) -> Optional["MarkupNode"]:
        """Get the (first) child with this label, if any."""
        value = self.fields.get(label)
        if isinstance(value, list):
            return value[0] if value else None
        return value

    def children(self, label: str) -> list["MarkupNode"]:
        """Get every child with this label, in document order."""
        value = self.fields.get(label)
        if value is None:
            return []
        if isinstance(value, list):
            return list(value)
        return [value]

    def walk_children(self) -> Iterator["MarkupNode"]:
        """Iterate over all direct children in document order."""
        yield from self.elements


def _local_name(element) -> str:
    """Element label without any namespace."""
    return etree.QName(element).localname


def _build_node(element) -> MarkupNode:
    node = MarkupNode(
        label=_local_name(element),
        attributes={etree.QName(k).localname: v for k, v in element.attrib.items()},
        text=(element.text or "").strip(),
    )

    for child in element:
        # Comments and processing instructions have a non-string tag
        if not isinstance(child.tag, str):
            continue

        child_node = _build_node(child)
        node.elements.append(child_node)
        label = child_node.label
        existing = node.fields.get(label)

        if label in MANY_LABELS:
            node.fields.setdefault(label, []).append(child_node)
        elif existing is None:
            node.fields[label] = child_node
        elif isinstance(existing, list):
            existing.append(child_node)
        else:
            # A singular label that repeats becomes a sequence
            node.fields[label] = [existing, child_node]

    return node


def parse_markup(document: str) -> MarkupNode:
    """
    Parse raw markup text into a MarkupNode tree.

    Args:
        document: The markup text

    Returns:
        The root MarkupNode

    Raises:
        ParseError: If the text is not a string or not well-formed
    """
    if not isinstance(document, str):
        raise ParseError(f"Expected markup text, got {type(document).__name__}")
    if not document.strip():
        raise ParseError("Document is empty")

    # The text is already decoded; any declared encoding is overridden
    parser = etree.XMLParser(
        encoding="utf-8",
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
        remove_pis=True,
    )
    try:
        root = etree.fromstring(document.encode("utf-8"), parser)
    except UnicodeEncodeError as e:
        raise ParseError(f"Document contains unencodable characters: {e}") from e
    except etree.XMLSyntaxError as e:
        raise ParseError(f"Document is not well-formed: {e}") from e

    return _build_node(root)
