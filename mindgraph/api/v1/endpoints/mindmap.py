import asyncio
import json
import logging
from typing import Any, AsyncIterator, List

from fastapi import APIRouter, Body, HTTPException
from fastapi.responses import StreamingResponse

from mindgraph.core.config import settings
from mindgraph.graph.builder import build_mind_map_graph
from mindgraph.graph.sidebar import reconstruct_sidebar
from mindgraph.schemas.mindmap import (
    CanonicalGraph,
    MindMapBuildRequest,
    MindMapGenerateRequest,
    SidebarTopic,
)
from mindgraph.services.ai_service import generate_mindmap, generate_mindmap_stream

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mindmap", tags=["Mind Map"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

GENERATION_ERRORS = (
    (asyncio.TimeoutError, 504),
    (ValueError, 422),
    (RuntimeError, 503),
)


async def _as_sse(events: AsyncIterator[str]):
    """Frame each JSON event as an SSE `data:` line and finish with [DONE]."""
    try:
        async for event in events:
            yield f"data: {event}\n\n"
    except Exception as e:
        logger.error(f"[MINDMAP] SSE stream broke: {e}")
        yield f"data: {json.dumps({'type': 'error', 'message': str(e)})}\n\n"
    yield "data: [DONE]\n\n"


def _graph_response(result: Any) -> Any:
    if isinstance(result, CanonicalGraph):
        return result.model_dump(by_alias=True)
    return result


@router.post("/build")
async def build_mindmap(request: MindMapBuildRequest):
    """
    Normalise an already generated raw mind map into a canonical graph.
    Input that does not look like a mind map is echoed back unchanged.
    """
    return _graph_response(build_mind_map_graph(request.raw, request.subject_name))


@router.post("/sidebar", response_model=List[SidebarTopic])
async def build_sidebar(graph: Any = Body(default=None)):
    """Two-level topic/subtopic navigation for a graph. Unusable graphs give []."""
    return reconstruct_sidebar(graph)


@router.post("/generate")
async def create_mindmap(request: MindMapGenerateRequest):
    """Generate a mind map for a subject with the configured AI providers."""
    subject = request.subject_name.strip()
    if not subject:
        raise HTTPException(status_code=400, detail="Subject name is required.")

    try:
        result = await asyncio.wait_for(
            generate_mindmap(subject, request.prompt),
            timeout=settings.AI_TIMEOUT_SECONDS,
        )
    except (asyncio.TimeoutError, ValueError, RuntimeError) as e:
        status = next(code for kind, code in GENERATION_ERRORS if isinstance(e, kind))
        if isinstance(e, asyncio.TimeoutError):
            detail = f"AI processing timed out after {settings.AI_TIMEOUT_SECONDS}s."
        else:
            detail = str(e)
        logger.warning(f"[MINDMAP] '{subject}' failed with {status}: {detail}")
        raise HTTPException(status_code=status, detail=detail)

    return _graph_response(result)


@router.post("/generate/stream")
async def create_mindmap_stream(request: MindMapGenerateRequest):
    """Same as /generate, streamed as Server-Sent Events."""
    subject = request.subject_name.strip()
    if not subject:
        raise HTTPException(status_code=400, detail="Subject name is required.")

    events = generate_mindmap_stream(subject, request.prompt)
    return StreamingResponse(_as_sse(events), media_type="text/event-stream", headers=SSE_HEADERS)
