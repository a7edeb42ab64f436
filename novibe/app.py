from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Generator

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session

from novibe import repositories, services
from novibe.auth import CurrentUser, get_current_user, require_tier
from novibe.config import get_settings
from novibe.credits import CreditLedger
from novibe.db import init_db, session_generator
from novibe.errors import NoVibeError, ProviderUnavailable
from novibe.llm import LLMClient, MockLLMClient, create_llm_client
from novibe.reports import export_document
from novibe.schemas import (
    AdminCreditGrant,
    AnalyzeRequest,
    CreditBalanceOut,
    DashboardStatsOut,
    DocumentOut,
    FrankensteinRequest,
    GenerateDocumentRequest,
    HackathonAnalyzeRequest,
    IdeaCreate,
    IdeaOut,
    IdeaUpdate,
    TransactionOut,
    TTSRequest,
)

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    app.state.llm_client = None
    app.state.llm_error = None
    try:
        app.state.llm_client = create_llm_client()
    except ProviderUnavailable as exc:
        # keep serving non-AI endpoints; AI endpoints report the misconfiguration
        log.error("AI provider unavailable: %s", exc.message)
        app.state.llm_error = exc
    yield


app = FastAPI(
    title="No Vibe No Code",
    version="0.1.0",
    description=(
        "AI analysis of startup ideas and hackathon projects with credit-based metering. "
        "All endpoints except /health require a bearer token from the auth provider."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Analysis", "description": "Credit-gated AI analyses and idea generation."},
        {"name": "Ideas", "description": "Saved ideas and their generated documents."},
        {"name": "Documents", "description": "Stored analyses, reports and plans."},
        {"name": "Credits", "description": "Credit balance and transaction history."},
        {"name": "Admin", "description": "Administrative operations (admin tier only)."},
        {"name": "Stats", "description": "Per-user dashboard statistics."},
    ],
)


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


@app.exception_handler(NoVibeError)
async def novibe_error_handler(request: Request, exc: NoVibeError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        message = str(first.get("msg", message)).removeprefix("Value error, ")
    body = {
        "success": False,
        "error": {"message": message, "code": "VALIDATION_ERROR"},
        "details": {"errors": [
            {"loc": [str(p) for p in e.get("loc", ())], "msg": e.get("msg", "")} for e in errors
        ]},
    }
    return JSONResponse(status_code=400, content=body)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    body = {"success": False, "error": {"message": "Internal server error", "code": "INTERNAL_ERROR"}}
    return JSONResponse(status_code=500, content=body)


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def db_session() -> Generator[Session, None, None]:
    yield from session_generator()


def get_llm_client(request: Request) -> LLMClient | MockLLMClient:
    client = getattr(request.app.state, "llm_client", None)
    if client is None:
        raise getattr(request.app.state, "llm_error", None) or ProviderUnavailable("AI provider is not configured")
    return client


def get_ledger(session: Session = Depends(db_session)) -> CreditLedger:
    return CreditLedger(session, get_settings())


def get_pipeline(
    session: Session = Depends(db_session),
    llm: LLMClient | MockLLMClient = Depends(get_llm_client),
    ledger: CreditLedger = Depends(get_ledger),
) -> services.AnalysisPipeline:
    return services.AnalysisPipeline(session, llm, ledger, get_settings())


def _tier(ledger: CreditLedger, user: CurrentUser) -> str:
    return ledger.ensure_profile(user.user_id, user.tier).tier


# ---------------------------------------------------------------------------
# Routes: Health
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Stats"], summary="Liveness probe")
async def health(request: Request):
    client = getattr(request.app.state, "llm_client", None)
    return {
        "status": "ok",
        "mockMode": isinstance(client, MockLLMClient),
        "providerConfigured": client is not None,
    }


# ---------------------------------------------------------------------------
# Routes: Analysis
# ---------------------------------------------------------------------------


@app.post("/analyze", tags=["Analysis"], summary="Analyze a startup idea (1 credit)")
async def analyze(
    body: AnalyzeRequest,
    user: CurrentUser = Depends(get_current_user),
    pipeline: services.AnalysisPipeline = Depends(get_pipeline),
):
    return await pipeline.analyze_idea(user, body.idea, body.locale, body.idea_id)


@app.post("/hackathon/analyze", tags=["Analysis"], summary="Analyze a hackathon project (1 credit)")
async def analyze_hackathon(
    body: HackathonAnalyzeRequest,
    user: CurrentUser = Depends(get_current_user),
    pipeline: services.AnalysisPipeline = Depends(get_pipeline),
):
    return await pipeline.analyze_hackathon(user, body.submission, body.locale, body.idea_id)


@app.post("/doctor-frankenstein/generate", tags=["Analysis"],
          summary="Combine technologies into a new idea (paid tiers, 1 credit)")
async def doctor_frankenstein(
    body: FrankensteinRequest,
    user: CurrentUser = Depends(get_current_user),
    pipeline: services.AnalysisPipeline = Depends(get_pipeline),
):
    return await pipeline.generate_frankenstein(user, body.elements, body.mode, body.language)


@app.post("/tts", tags=["Analysis"], summary="Synthesize speech from text (free)")
async def text_to_speech(
    body: TTSRequest,
    user: CurrentUser = Depends(get_current_user),
    pipeline: services.AnalysisPipeline = Depends(get_pipeline),
):
    return await pipeline.synthesize_speech(user, body.text, body.locale, body.document_id)


# ---------------------------------------------------------------------------
# Routes: Credits
# ---------------------------------------------------------------------------


@app.get("/credits/balance", response_model=CreditBalanceOut, tags=["Credits"],
         summary="Current credit balance and tier")
async def credit_balance(
    user: CurrentUser = Depends(get_current_user), ledger: CreditLedger = Depends(get_ledger),
):
    ledger.ensure_profile(user.user_id, user.tier)
    return ledger.get_balance(user.user_id)


@app.get("/credits/transactions", response_model=list[TransactionOut], tags=["Credits"],
         summary="Credit history, newest first")
async def credit_transactions(
    limit: int = Query(50, ge=1, le=500),
    user: CurrentUser = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_ledger),
):
    return ledger.list_transactions(user.user_id, limit)


@app.post("/admin/credits", response_model=CreditBalanceOut, tags=["Admin"],
          summary="Grant or remove credits for a user")
async def admin_credits(
    body: AdminCreditGrant,
    user: CurrentUser = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_ledger),
):
    require_tier(_tier(ledger, user), ("admin",), "Admin access required")
    return ledger.add_credits(body.user_id, body.amount, body.description, admin_user_id=user.user_id)


# ---------------------------------------------------------------------------
# Routes: Ideas
# ---------------------------------------------------------------------------


@app.get("/ideas", response_model=list[IdeaOut], tags=["Ideas"], summary="List your ideas")
async def list_ideas(
    status: str | None = Query(None, description="idea, in_progress, completed or archived"),
    source: str | None = Query(None, description="manual or frankenstein"),
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(db_session),
):
    ideas = repositories.list_ideas(session, user.user_id, status=status, source=source)
    counts = repositories.count_documents_by_idea(session, user.user_id)
    return [repositories.idea_summary(i, counts.get(i.id, 0)) for i in ideas]


@app.post("/ideas", response_model=IdeaOut, status_code=201, tags=["Ideas"], summary="Save an idea")
async def create_idea(
    body: IdeaCreate, user: CurrentUser = Depends(get_current_user), session: Session = Depends(db_session),
):
    idea = repositories.save_idea(session, user.user_id, body.idea_text, notes=body.notes, tags=body.tags)
    return repositories.idea_summary(idea, 0)


@app.get("/ideas/{idea_id}", response_model=IdeaOut, tags=["Ideas"], summary="Get one idea")
async def get_idea(
    idea_id: str, user: CurrentUser = Depends(get_current_user), session: Session = Depends(db_session),
):
    return repositories.idea_summary(repositories.find_idea_by_id(session, idea_id, user.user_id))


@app.patch("/ideas/{idea_id}", response_model=IdeaOut, tags=["Ideas"],
           summary="Update status, notes or tags (idea text is immutable)")
async def update_idea(
    idea_id: str, body: IdeaUpdate,
    user: CurrentUser = Depends(get_current_user), session: Session = Depends(db_session),
):
    idea = repositories.update_idea(session, idea_id, user.user_id, body.model_dump())
    return repositories.idea_summary(idea)


@app.delete("/ideas/{idea_id}", tags=["Ideas"], summary="Delete an idea and its documents")
async def delete_idea(
    idea_id: str, user: CurrentUser = Depends(get_current_user), session: Session = Depends(db_session),
):
    repositories.delete_idea(session, idea_id, user.user_id)
    return {"ok": True}


@app.get("/ideas/{idea_id}/documents", response_model=list[DocumentOut], tags=["Ideas", "Documents"],
         summary="List documents generated for an idea")
async def list_idea_documents(
    idea_id: str,
    document_type: str | None = Query(None, alias="documentType"),
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(db_session),
):
    docs = repositories.list_documents(session, idea_id, user.user_id, document_type)
    return [repositories.document_summary(d) for d in docs]


@app.post("/ideas/{idea_id}/documents/generate", tags=["Ideas", "Documents"],
          summary="Generate a PRD, technical design, architecture or roadmap (1 credit)")
async def generate_idea_document(
    idea_id: str,
    body: GenerateDocumentRequest,
    user: CurrentUser = Depends(get_current_user),
    pipeline: services.AnalysisPipeline = Depends(get_pipeline),
):
    return await pipeline.generate_document(user, idea_id, body.document_type, body.locale)


# ---------------------------------------------------------------------------
# Routes: Documents
# ---------------------------------------------------------------------------


@app.get("/documents/{document_id}", response_model=DocumentOut, tags=["Documents"],
         summary="Get one document")
async def get_document(
    document_id: str, user: CurrentUser = Depends(get_current_user), session: Session = Depends(db_session),
):
    return repositories.document_summary(repositories.find_document(session, document_id, user.user_id))


@app.delete("/documents/{document_id}", tags=["Documents"],
            summary="Delete a document (its idea is kept)")
async def delete_document(
    document_id: str, user: CurrentUser = Depends(get_current_user), session: Session = Depends(db_session),
):
    repositories.delete_document(session, document_id, user.user_id)
    return {"ok": True}


@app.get("/documents/{document_id}/export", response_class=PlainTextResponse, tags=["Documents"],
         summary="Export a document as a markdown or plain-text report")
async def export_document_route(
    document_id: str,
    format: str = Query("md", pattern="^(md|txt)$"),
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(db_session),
):
    doc = repositories.find_document(session, document_id, user.user_id)
    content = repositories.document_summary(doc)["content"]
    media_type = "text/markdown" if format == "md" else "text/plain"
    return PlainTextResponse(
        export_document(doc.document_type, content, format),
        media_type=f"{media_type}; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{doc.document_type}-{doc.id}.{format}"'},
    )


# ---------------------------------------------------------------------------
# Routes: Stats
# ---------------------------------------------------------------------------


@app.get("/dashboard/stats", response_model=DashboardStatsOut, tags=["Stats"],
         summary="Idea, document and credit counts for the dashboard")
async def dashboard_stats(
    user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(db_session),
    ledger: CreditLedger = Depends(get_ledger),
):
    ledger.ensure_profile(user.user_id, user.tier)
    return services.compute_dashboard_stats(session, ledger, user.user_id)


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run("novibe.app:app", host="127.0.0.1", port=8001, reload=False)


if __name__ == "__main__":
    main()
