#!/usr/bin/env python3
"""flowbridge CLI - import, export, lay out and validate application models."""

import argparse
import json
import logging
import sys

from pydantic import ValidationError

from flowbridge.config import settings
from flowbridge.core import (
    FlowGraph,
    ParseError,
    export_document,
    import_document,
    layout_entity_graph,
    layout_flow,
    validate_flow_graph,
    validation_summary,
)
from flowbridge.core.models import EntityLayoutRequest, ExportRequest, FlowGraphRequest


def _json_out(data, code=0):
    print(json.dumps(data))
    sys.exit(code)


def _error_out(message):
    _json_out({"status": "error", "error": message}, code=1)


def _read_text(path):
    """Read a file, or stdin for '-'."""
    if path == "-":
        return sys.stdin.read()
    try:
        with open(path, encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        _error_out(f"Cannot read {path}: {e}")


def _read_model(path, model_cls):
    """Read a JSON file and validate it against a request model."""
    text = _read_text(path)
    try:
        return model_cls.model_validate_json(text)
    except ValidationError as e:
        _error_out(f"Invalid input in {path}: {e}")


# ── Conversion ───────────────────────────────────────────────────────────────

def cmd_import(args):
    try:
        result = import_document(_read_text(args.file), args.owner_id)
    except ParseError as e:
        _error_out(str(e))
    _json_out({
        "status": "ok",
        "entities": [e.model_dump(mode="json") for e in result.entities],
        "actions": [a.model_dump(mode="json") for a in result.actions],
        "incomplete_actions": result.incomplete_actions,
    })


def cmd_export(args):
    request = _read_model(args.file, ExportRequest)
    sys.stdout.write(export_document(request.entities, request.actions))
    sys.exit(0)


# ── Layout ───────────────────────────────────────────────────────────────────

def cmd_layout_flow(args):
    request = _read_model(args.file, FlowGraphRequest)
    positions = layout_flow(request.nodes, request.edges, **settings.flow_layout_options())
    _json_out({
        "status": "ok",
        "positions": {nid: p.model_dump() for nid, p in positions.items()},
    })


def cmd_layout_entities(args):
    request = _read_model(args.file, EntityLayoutRequest)
    result = layout_entity_graph(request.entities, **settings.entity_layout_options())
    _json_out({
        "status": "ok",
        "positions": {eid: p.model_dump() for eid, p in result.positions.items()},
        "relationships": [r.model_dump() for r in result.relationships],
    })


# ── Analysis ─────────────────────────────────────────────────────────────────

def cmd_validate(args):
    request = _read_model(args.file, FlowGraphRequest)
    issues = validate_flow_graph(FlowGraph(nodes=request.nodes, edges=request.edges))
    _json_out({
        "status": "ok",
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues),
    })


# ── Service ──────────────────────────────────────────────────────────────────

def cmd_serve(args):
    import uvicorn
    uvicorn.run(
        "flowbridge.backend.main:app",
        host=args.host or settings.API_HOST,
        port=args.port or settings.API_PORT,
    )


def main(argv=None):
    parser = argparse.ArgumentParser(description="flowbridge model converter")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    sub = parser.add_subparsers(dest="command", required=True)

    # Conversion
    p = sub.add_parser("import", help="Import a markup document to JSON")
    p.add_argument("file", help="Markup file, or - for stdin")
    p.add_argument("--owner-id", default="")

    p = sub.add_parser("export", help="Export a JSON model to markup")
    p.add_argument("file", help='JSON file with "entities" and "actions"')

    # Layout
    p = sub.add_parser("layout-flow", help="Lay out a flow graph")
    p.add_argument("file", help='JSON file with "nodes" and "edges"')

    p = sub.add_parser("layout-entities", help="Lay out an entity diagram")
    p.add_argument("file", help='JSON file with "entities"')

    # Analysis
    p = sub.add_parser("validate", help="Check a flow graph for structural issues")
    p.add_argument("file", help='JSON file with "nodes" and "edges"')

    # Service
    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default=None)
    p.add_argument("--port", type=int, default=None)

    args = parser.parse_args(argv)

    # Logs go to stderr so stdout stays machine readable
    logging.basicConfig(level=args.log_level.upper(), stream=sys.stderr)

    cmd_map = {
        "import": cmd_import,
        "export": cmd_export,
        "layout-flow": cmd_layout_flow,
        "layout-entities": cmd_layout_entities,
        "validate": cmd_validate,
        "serve": cmd_serve,
    }
    cmd_map[args.command](args)


if __name__ == "__main__":
    main()
