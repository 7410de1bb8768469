"""FastAPI endpoints for the LexAid API.

POST /chat - send a message in a session conversation
POST /chat/stream - same, streaming the reply via SSE
GET /history/{session_id} - fetch the session transcript
DELETE /history/{session_id} - clear the session transcript
POST /documents/analyze, /documents/risk, /documents/generate, /research - one-shot workflows
POST /extract - extract text from an uploaded file
POST /export - return text as a downloadable file
GET /health - component health check
"""

import json
import re
import time

import structlog
from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from fastapi.responses import PlainTextResponse, StreamingResponse

from lexaid.api.schemas import (
    ChatRequest,
    ChatResponse,
    DocumentRequest,
    ExportRequest,
    ExtractResponse,
    GenerateRequest,
    HistoryResponse,
    ResearchRequest,
    RiskScoreModel,
    WorkflowResponse,
)
from lexaid.core.conversation import ConversationController
from lexaid.core.extraction import ExtractionError
from lexaid.core.guardrails import OutputGuard
from lexaid.workflows.documents import (
    AnalysisWorkflow,
    GenerationWorkflow,
    InputError,
    ResearchWorkflow,
    RiskWorkflow,
    WorkflowBusyError,
    WorkflowResult,
)

logger = structlog.get_logger(__name__)

router = APIRouter()

_BUSY_DETAIL = "A response is still being generated for this session. Please wait."
_UNAVAILABLE_DETAIL = "Language model not available. Configure the LLM API key in .env and restart."

_export_guard = OutputGuard()


def _client(req: Request):
    client = req.app.state.client
    if client is None:
        raise HTTPException(status_code=503, detail=_UNAVAILABLE_DETAIL)
    return client


def _session(req: Request, request: ChatRequest) -> ConversationController:
    """Resolve the session conversation and validate the message before submitting."""
    if not request.message.strip():
        raise HTTPException(status_code=422, detail="Message is empty.")

    if req.app.state.sessions is None:
        raise HTTPException(status_code=503, detail=_UNAVAILABLE_DETAIL)

    controller = req.app.state.sessions.get_or_create(request.session_id)
    if controller.busy:
        raise HTTPException(status_code=409, detail=_BUSY_DETAIL)
    if request.document_text is not None:
        controller.document_text = request.document_text or None
    return controller


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, req: Request):
    """Append the user message, get a completion, append the reply."""
    start = time.monotonic()
    logger.info("chat.request", session_id=request.session_id, msg_len=len(request.message))

    controller = _session(req, request)
    generation = controller.transcript.generation
    message = await controller.submit(request.message)
    if message is None:
        if controller.transcript.generation != generation:
            # Session was cleared while the reply was pending.
            logger.info("chat.discarded", session_id=request.session_id)
            return ChatResponse(session_id=request.session_id, text="", ok=False, discarded=True,
                                latency_ms=int((time.monotonic() - start) * 1000))
        raise HTTPException(status_code=409, detail=_BUSY_DETAIL)

    latency_ms = int((time.monotonic() - start) * 1000)
    logger.info("chat.response", session_id=request.session_id, latency_ms=latency_ms,
                ok=controller.last_ok)
    return ChatResponse(
        session_id=request.session_id,
        text=message.content,
        ok=bool(controller.last_ok),
        latency_ms=latency_ms,
    )


@router.post("/chat/stream")
async def chat_stream(request: ChatRequest, req: Request):
    """Same as /chat but streams reply chunks as server-sent events."""
    logger.info("chat_stream.request", session_id=request.session_id, msg_len=len(request.message))
    controller = _session(req, request)

    async def generate_events():
        yield f"data: {json.dumps({'type': 'start', 'content': 'Thinking...'})}\n\n"
        async for event in controller.submit_stream(request.message):
            if event.type == "chunk":
                yield f"data: {json.dumps({'type': 'chunk', 'content': event.content})}\n\n"
            elif event.type == "final":
                yield f"data: {json.dumps({'type': 'final_text', 'content': event.content, 'ok': bool(controller.last_ok)})}\n\n"
            elif event.type == "rejected":
                yield f"data: {json.dumps({'type': 'rejected', 'content': _BUSY_DETAIL})}\n\n"
            else:
                yield f"data: {json.dumps({'type': 'discarded'})}\n\n"

    return StreamingResponse(generate_events(), media_type="text/event-stream")


@router.get("/history/{session_id}", response_model=HistoryResponse)
def history(session_id: str, req: Request):
    """Return the session transcript, oldest first."""
    sessions = req.app.state.sessions
    controller = sessions.get(session_id) if sessions is not None else None
    messages = list(controller.messages) if controller else []
    return HistoryResponse(session_id=session_id, messages=messages)


@router.delete("/history/{session_id}", response_model=HistoryResponse)
def clear_history(session_id: str, req: Request):
    """Empty the session transcript. A pending reply for it will be dropped."""
    sessions = req.app.state.sessions
    controller = sessions.get(session_id) if sessions is not None else None
    if controller:
        controller.clear()
    return HistoryResponse(session_id=session_id, messages=[])


async def _run_workflow(name: str, run) -> WorkflowResponse:
    """Await a workflow coroutine and translate its outcome to HTTP."""
    start = time.monotonic()
    try:
        result: WorkflowResult = await run
    except InputError as e:
        raise HTTPException(status_code=422, detail={"title": e.title, "description": e.description})
    except WorkflowBusyError:
        raise HTTPException(status_code=409, detail="This request is already being processed.")

    if not result.ok:
        raise HTTPException(status_code=502, detail=result.notification.model_dump())

    latency_ms = int((time.monotonic() - start) * 1000)
    logger.info("workflow.response", workflow=name, latency_ms=latency_ms)

    score = None
    if result.risk_score is not None:
        score = RiskScoreModel(value=result.risk_score.value, parsed=result.risk_score.parsed)
    return WorkflowResponse(
        text=result.text,
        filename=result.filename,
        notification=result.notification,
        risk_score=score,
        risk_level=result.risk_level,
        latency_ms=latency_ms,
    )


@router.post("/documents/analyze", response_model=WorkflowResponse)
async def analyze_document(request: DocumentRequest, req: Request):
    workflow = AnalysisWorkflow(_client(req))
    return await _run_workflow("analysis", workflow.run(request.document_text))


@router.post("/documents/risk", response_model=WorkflowResponse)
async def assess_risk(request: DocumentRequest, req: Request):
    workflow = RiskWorkflow(_client(req))
    return await _run_workflow("risk", workflow.run(request.document_text))


@router.post("/documents/generate", response_model=WorkflowResponse)
async def generate_document(request: GenerateRequest, req: Request):
    workflow = GenerationWorkflow(_client(req))
    return await _run_workflow("generation", workflow.run(request.document_type, request.fields))


@router.post("/research", response_model=WorkflowResponse)
async def research(request: ResearchRequest, req: Request):
    workflow = ResearchWorkflow(_client(req))
    return await _run_workflow(
        "research",
        workflow.run(request.query, request.jurisdiction, request.state, request.timeframe),
    )


@router.post("/extract", response_model=ExtractResponse)
async def extract(req: Request, file: UploadFile = File(...)):
    """Extract plain text from an uploaded document."""
    data = await file.read()
    filename = file.filename or "upload"
    try:
        text = req.app.state.extraction.extract(filename, data, file.content_type)
    except ExtractionError as e:
        raise HTTPException(status_code=422, detail={"title": e.title, "description": e.description})
    return ExtractResponse(filename=filename, text=text)


@router.post("/export")
def export(request: ExportRequest):
    """Return text as a plain-text file download."""
    filename = re.sub(r"[^A-Za-z0-9._-]", "_", request.filename)
    content, _ = _export_guard.check(request.content)
    return PlainTextResponse(
        content,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/health")
def health(req: Request):
    """Check health of backend components."""
    client = req.app.state.client
    components = {
        "llm": "ok" if client is not None and client.is_healthy() else "error",
    }
    status = "healthy" if all(v == "ok" for v in components.values()) else "degraded"
    return {
        "status": status,
        "components": components,
        "sessions": len(req.app.state.sessions) if req.app.state.sessions is not None else 0,
    }


@router.get("/")
@router.head("/")
def root_health():
    """Basic root health check for deployment platforms."""
    return {"status": "ok", "service": "lexaid-api"}
