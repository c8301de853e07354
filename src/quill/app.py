from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import __version__
from .agent import AgentOrchestrator, AgentRequest
from .analyzer import DocumentAnalyzer
from .apply import apply_modifications
from .blocks import blocks_to_text
from .config import get_config
from .db import get_db
from .diff import compute_diff
from .errors import NotFoundError, QuillError, ValidationError, record_error
from .instructions import ChatMessage
from .logging_setup import configure_logging
from .models import (
    AIAssistRequest,
    AIModifyRequest,
    AIModifyResponse,
    AnalyzeRequest,
    ApplyModificationsRequest,
    ApplyModificationsResponse,
    HealthResponse,
    RestructureRequest,
    RestructureResponse,
    RollbackRequest,
    SaveVersionRequest,
    VersionHistoryResponse,
    VersionSummary,
)
from .modifications import Modification
from .modify import ModifyPipeline, ModifyRequest
from .providers import LLMProvider, get_provider
from .providers.base import LLMError
from .quality import QualityAnalyzer
from .restructure import TEMPLATES, RestructuringEngine
from .search import TavilyClient
from .suggestions import SuggestionEngine
from .tools import analyze_readability, check_seo
from .versions import PostVersion, VersionStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    """Lifespan context for startup/shutdown."""
    configure_logging()
    get_db().migrate()
    yield


app = FastAPI(
    title="Quill Assist",
    version=__version__,
    description="AI-assisted editing for block-structured blog posts and stories.",
    lifespan=lifespan,
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:  # noqa: ARG001
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: ARG001
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"error": f"Invalid request: {field}: {message}" if field else f"Invalid request: {message}"},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:  # noqa: ARG001
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception in request %s %s", request.method, request.url.path)
    record_error(
        source="quill",
        operation="fastapi_request",
        exc=exc,
        context={"method": request.method, "path": request.url.path},
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "details": str(exc) if isinstance(exc, QuillError) else None,
        },
    )


# -----------------------------------------------------------------------------
# Dependencies (overridable in tests via app.dependency_overrides)
# -----------------------------------------------------------------------------

_orchestrator: AgentOrchestrator | None = None


def optional_provider() -> LLMProvider | None:
    """The configured LLM, or None when it cannot be constructed."""
    try:
        return get_provider()
    except LLMError as e:
        logger.warning("LLM provider unavailable, rule-based fallback only: %s", e)
        return None


def get_search_client() -> TavilyClient:
    return TavilyClient()


def get_version_store() -> VersionStore:
    return VersionStore(max_versions=get_config().storage.max_versions)


def get_modify_pipeline(
    provider: LLMProvider | None = Depends(optional_provider),
    search: TavilyClient = Depends(get_search_client),
) -> ModifyPipeline:
    llm = get_config().llm
    return ModifyPipeline(provider, search, timeout_seconds=llm.timeout, temperature=llm.temperature)


def get_orchestrator() -> AgentOrchestrator:
    """Shared so the structure and style caches survive across requests."""
    global _orchestrator
    if _orchestrator is None:
        llm = get_config().llm
        _orchestrator = AgentOrchestrator(
            get_provider(),
            TavilyClient(),
            versions=get_version_store(),
            timeout_seconds=llm.timeout,
            temperature=llm.temperature,
        )
    return _orchestrator


def optional_orchestrator() -> AgentOrchestrator | None:
    try:
        return get_orchestrator()
    except LLMError as e:
        logger.warning("Agent pipeline unavailable: %s", e)
        return None


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    config = get_config()
    return HealthResponse(
        version=__version__,
        llm_provider=config.llm.provider,
        search_enabled=TavilyClient().enabled,
    )


def _run_modify(body: AIModifyRequest, pipeline: ModifyPipeline, variant: str) -> AIModifyResponse:
    request = ModifyRequest(
        post_id=body.post_id,
        instruction=body.instruction,
        title=body.current_title or "Untitled",
        content=body.current_content,
        history=[ChatMessage(role=m.role, content=m.content) for m in body.messages],
        variant="stories" if variant == "stories" else "blog",
    )
    result = pipeline.run(request)
    logger.info(
        "ai-modify (%s) post=%s: %d modifications, fallback=%s",
        variant,
        body.post_id,
        len(result.modifications),
        result.used_fallback,
    )
    return AIModifyResponse(**result.to_dict())


@app.post("/blog/ai-modify", response_model=AIModifyResponse)
def blog_ai_modify(
    body: AIModifyRequest, pipeline: ModifyPipeline = Depends(get_modify_pipeline)
) -> AIModifyResponse:
    return _run_modify(body, pipeline, "blog")


@app.post("/stories/ai-modify", response_model=AIModifyResponse)
def stories_ai_modify(
    body: AIModifyRequest, pipeline: ModifyPipeline = Depends(get_modify_pipeline)
) -> AIModifyResponse:
    return _run_modify(body, pipeline, "stories")


@app.post("/blog/ai-assist", response_model=None)
def blog_ai_assist(
    body: AIAssistRequest, orchestrator: AgentOrchestrator | None = Depends(optional_orchestrator)
) -> JSONResponse | dict:
    if orchestrator is None:
        return JSONResponse(
            status_code=503,
            content={"error": "No AI provider configured", "requires_setup": True},
        )
    response = orchestrator.execute(
        AgentRequest(
            message=body.message,
            post_id=body.post_id,
            content=body.current_content,
            title=body.current_title,
            user_id=body.user_id,
            conversation_id=body.conversation_id,
        )
    )
    return response.to_dict()


@app.post("/blog/analyze")
def blog_analyze(body: AnalyzeRequest) -> dict:
    structure = DocumentAnalyzer().analyze(body.content)
    return {
        "structure": structure.to_dict(),
        "quality": QualityAnalyzer().analyze(body.content, body.title).to_dict(),
        "suggestions": [s.to_dict() for s in SuggestionEngine().analyze(body.content)],
        "seo": check_seo(body.content, body.title).to_dict(),
        "readability": analyze_readability(blocks_to_text(body.content)).to_dict(),
    }


@app.post("/blog/apply-modifications", response_model=ApplyModificationsResponse)
def blog_apply_modifications(body: ApplyModificationsRequest) -> ApplyModificationsResponse:
    modifications = [Modification.from_dict(m) for m in body.modifications]
    result = apply_modifications(
        body.content, body.title, modifications, highlight=body.highlight
    )
    return ApplyModificationsResponse(
        blocks=result.blocks,
        title=result.title,
        applied=[m.to_dict() for m in result.applied],
        skipped=[m.to_dict() for m in result.skipped],
        diff=compute_diff(body.content, result.blocks).to_dict(),
    )


@app.post("/blog/restructure", response_model=RestructureResponse)
def blog_restructure(body: RestructureRequest) -> RestructureResponse:
    if body.template not in TEMPLATES:
        raise ValidationError(f"Unknown template: {body.template}. Expected one of {', '.join(TEMPLATES)}")
    blocks = RestructuringEngine().restructure(body.content, body.template)
    return RestructureResponse(
        template=body.template,
        blocks=blocks,
        diff=compute_diff(body.content, blocks).to_dict(),
    )


def _summary(version: PostVersion, *, include_content: bool = False) -> VersionSummary:
    return VersionSummary(**version.to_dict(include_content=include_content))


def _version_of_post(store: VersionStore, post_id: str, version_id: str) -> PostVersion:
    version = store.get_version(version_id)
    if version.post_id != post_id:
        raise NotFoundError(f"Version {version_id} does not belong to post {post_id}")
    return version


@app.post("/blog/{post_id}/versions", response_model=VersionSummary)
def save_version(
    post_id: str, body: SaveVersionRequest, store: VersionStore = Depends(get_version_store)
) -> VersionSummary:
    version = store.save_version(
        post_id,
        body.user_id,
        body.title,
        body.content,
        trigger=body.trigger,
        description=body.description,
    )
    return _summary(version)


@app.get("/blog/{post_id}/versions", response_model=VersionHistoryResponse)
def version_history(
    post_id: str, limit: int = 50, store: VersionStore = Depends(get_version_store)
) -> VersionHistoryResponse:
    versions = store.get_version_history(post_id, limit=max(1, min(limit, 200)))
    return VersionHistoryResponse(post_id=post_id, versions=[_summary(v) for v in versions])


@app.get("/blog/{post_id}/versions/compare")
def compare_versions(
    post_id: str, v1: str, v2: str, store: VersionStore = Depends(get_version_store)
) -> dict:
    _version_of_post(store, post_id, v1)
    _version_of_post(store, post_id, v2)
    return store.compare_versions(v1, v2).to_dict()


@app.get("/blog/{post_id}/versions/{version_id}", response_model=VersionSummary)
def get_version(
    post_id: str, version_id: str, store: VersionStore = Depends(get_version_store)
) -> VersionSummary:
    return _summary(_version_of_post(store, post_id, version_id), include_content=True)


@app.post("/blog/{post_id}/versions/{version_id}/rollback", response_model=VersionSummary)
def rollback_version(
    post_id: str,
    version_id: str,
    body: RollbackRequest | None = None,
    store: VersionStore = Depends(get_version_store),
) -> VersionSummary:
    _version_of_post(store, post_id, version_id)
    restored = store.rollback_to_version(version_id, user_id=body.user_id if body else None)
    return _summary(restored, include_content=True)
