"""
flowbridge Backend - FastAPI Application

This is the HTTP entry point for the converter and layout engine.
It provides:
- Markup import/export of entities and logic actions
- Layered layout of flow graphs, single actions and entity diagrams
- Structural validation of flow graphs
- CORS configuration for a local editing frontend

Every route is stateless: the request carries the whole model, the response
carries the result. Storage belongs to the caller.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from flowbridge import __version__
from flowbridge.config import settings
from flowbridge.core import (
    FlowGraph,
    ParseError,
    export_document,
    import_document,
    layout_action,
    layout_entity_graph,
    layout_flow,
    validate_flow_graph,
    validation_summary,
)
from flowbridge.core.models import (
    ActionLayoutRequest,
    EntityLayoutRequest,
    ExportRequest,
    FlowGraphRequest,
    ImportRequest,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup/shutdown tasks."""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("flowbridge API %s starting", __version__)
    yield
    logger.info("flowbridge API shutting down")


# --- FastAPI App ---

app = FastAPI(
    title="flowbridge API",
    description="Convert low-code application models to and from clipboard markup, and lay them out",
    version=__version__,
    lifespan=lifespan
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


# --- Markup Conversion ---

@app.post("/api/import")
async def import_markup(request: ImportRequest):
    """
    Import entities and logic actions from a markup document.

    An empty result is still a success; callers decide whether "nothing
    found" is worth showing.
    """
    try:
        result = import_document(request.document, request.owner_id)
    except ParseError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": True,
        "entities": [e.model_dump(mode="json") for e in result.entities],
        "actions": [a.model_dump(mode="json") for a in result.actions],
        "incomplete_actions": result.incomplete_actions,
    }


@app.post("/api/export")
async def export_markup(request: ExportRequest):
    """Export entities and logic actions as a markup document."""
    document = export_document(request.entities, request.actions)
    return {"success": True, "document": document}


# --- Layout ---

@app.post("/api/layout/flow")
async def layout_flow_graph(request: FlowGraphRequest):
    """Compute node positions for a flow graph."""
    positions = layout_flow(request.nodes, request.edges, **settings.flow_layout_options())
    return {
        "success": True,
        "positions": {nid: p.model_dump() for nid, p in positions.items()},
    }


@app.post("/api/layout/action")
async def layout_logic_action(request: ActionLayoutRequest):
    """Return the action with its flow nodes positioned."""
    action = layout_action(request.action, **settings.flow_layout_options())
    return {"success": True, "action": action.model_dump(mode="json")}


@app.post("/api/layout/entities")
async def layout_entities(request: EntityLayoutRequest):
    """Compute an entity diagram layout, including inferred relationships."""
    result = layout_entity_graph(request.entities, **settings.entity_layout_options())
    return {
        "success": True,
        "positions": {eid: p.model_dump() for eid, p in result.positions.items()},
        "relationships": [r.model_dump() for r in result.relationships],
    }


# --- Validation ---

@app.post("/api/validate/flow")
async def validate_flow(request: FlowGraphRequest):
    """
    Validate a flow graph for structural issues.

    Returns a list of issues (errors, warnings, info) and a summary.
    """
    graph = FlowGraph(nodes=request.nodes, edges=request.edges)
    issues = validate_flow_graph(graph)

    return {
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues),
    }


# --- Run with uvicorn ---

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
