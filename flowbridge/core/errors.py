"""Error hierarchy for the converter and layout engine."""
from __future__ import annotations


class FlowBridgeError(Exception):
    """Base for all flowbridge errors."""


class ParseError(FlowBridgeError):
    """The document is not well-formed markup.

    The underlying parser error, when there is one, is chained as ``__cause__``.
    """


class LayoutFailure(FlowBridgeError):
    """Inconsistent graph handed to the layout engine.

    Never escapes the layout engine: callers get the identity layout instead.
    """
