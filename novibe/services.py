"""Request orchestrator shared by the HTTP API and the MCP server.

Every billable operation walks the same sequence of stages::

    AUTHENTICATING -> CREDIT_CHECK -> BUILDING_PROMPT -> CALLING_PROVIDER
        -> PARSING -> PERSISTING -> DEDUCTING -> RESPONDING

Any failure moves the run to ERROR and re-raises a ``NoVibeError``. Two
failures are tolerated after a successful analysis: a persistence failure
(the analysis is still returned, without ids and without a charge) and a
deduction failure (the user is not charged). Both are logged.
"""
from __future__ import annotations

import base64
import logging
import re
from collections import Counter
from contextlib import contextmanager
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Generator

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from novibe import repositories
from novibe.auth import CurrentUser
from novibe.config import Settings, get_settings
from novibe.credits import CreditCheck, CreditLedger
from novibe.errors import (
    AccessDenied,
    AuthenticationRequired,
    EmptyResponse,
    NoVibeError,
    PersistenceError,
    ProviderError,
    ProviderUnavailable,
    ValidationError,
)
from novibe.llm import LLMClient, MockLLMClient, RawResponse
from novibe.models import GENERATED_DOCUMENT_TYPES, Document, Idea
from novibe.parser import parse_analysis, parse_frankenstein_idea, parse_hackathon_analysis
from novibe.prompts import (
    build_document_prompt,
    build_frankenstein_prompt,
    build_hackathon_prompt,
    build_startup_prompt,
)
from novibe.schemas import FrankensteinElement, ProjectSubmission
from novibe.utils import json_parse, new_id, normalize_locale

log = logging.getLogger(__name__)

TTS_MAX_CHARS = 5000
PAID_TIERS = ("paid", "admin")

_MARKDOWN_FENCE_RE = re.compile(r"^```(?:markdown|md)?\s*\n([\s\S]*?)\n?```\s*$", re.IGNORECASE)


class Stage(str, Enum):
    AUTHENTICATING = "authenticating"
    CREDIT_CHECK = "credit_check"
    BUILDING_PROMPT = "building_prompt"
    CALLING_PROVIDER = "calling_provider"
    PARSING = "parsing"
    PERSISTING = "persisting"
    DEDUCTING = "deducting"
    RESPONDING = "responding"
    ERROR = "error"


class PipelineRun:
    """Tracks one request through the stages."""

    def __init__(self, operation: str, user_id: str, failure_message: str):
        self.operation = operation
        self.user_id = user_id
        self.failure_message = failure_message
        self.operation_id = new_id()
        self.stage = Stage.AUTHENTICATING
        self.history: list[Stage] = [Stage.AUTHENTICATING]
        self.persisted = True

    def advance(self, stage: Stage) -> None:
        log.debug("%s op=%s: %s -> %s", self.operation, self.operation_id, self.stage.value, stage.value)
        self.stage = stage
        self.history.append(stage)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class AnalysisPipeline:
    """Credit-gated AI pipeline. All collaborators are injected."""

    def __init__(
        self,
        session: Session,
        llm: LLMClient | MockLLMClient,
        ledger: CreditLedger | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.llm = llm
        self.settings = settings or get_settings()
        self.ledger = ledger or CreditLedger(session, self.settings)
        self.last_run: PipelineRun | None = None

    # -- stage helpers --------------------------------------------------------

    @contextmanager
    def _run(self, operation: str, user: CurrentUser, failure_message: str) -> Generator[PipelineRun, None, None]:
        run = PipelineRun(operation, user.user_id, failure_message)
        self.last_run = run
        try:
            if not user.user_id:
                raise AuthenticationRequired()
            yield run
        except NoVibeError as exc:
            log.warning("%s failed at %s (op=%s, user=%s): %s [%s] %s",
                        operation, run.stage.value, run.operation_id, user.user_id, exc.message, exc.code,
                        getattr(exc, "reason", ""))
            run.advance(Stage.ERROR)
            raise
        except SQLAlchemyError as exc:
            self.session.rollback()
            log.error("%s failed at %s (op=%s, user=%s): database error: %s",
                      operation, run.stage.value, run.operation_id, user.user_id, exc)
            run.advance(Stage.ERROR)
            raise PersistenceError(run.failure_message) from exc

    def _check_credits(self, run: PipelineRun, user: CurrentUser) -> CreditCheck:
        run.advance(Stage.CREDIT_CHECK)
        self.ledger.ensure_profile(user.user_id, user.tier)
        return self.ledger.require_credits(user.user_id)

    async def _call_provider(
        self, run: PipelineRun, prompt: str, task: str, modality: str = "text",
    ) -> RawResponse:
        run.advance(Stage.CALLING_PROVIDER)
        try:
            return await self.llm.generate(prompt, modality=modality, task=task)
        except ProviderError as exc:
            log.error("Provider error during %s (op=%s): %s", run.operation, run.operation_id, exc.message)
            raise ProviderError(run.failure_message, retryable=exc.retryable) from exc
        except (EmptyResponse, ProviderUnavailable) as exc:
            log.error("Provider failure during %s (op=%s): %s", run.operation, run.operation_id, exc.message)
            raise type(exc)(run.failure_message) from exc
        except NoVibeError:
            raise
        except Exception as exc:
            log.error("Unexpected provider failure during %s (op=%s)", run.operation, run.operation_id,
                      exc_info=True)
            raise ProviderError(run.failure_message) from exc

    def _persist_analysis(
        self, run: PipelineRun, user: CurrentUser, idea_text: str, existing: Idea | None,
        document_type: str, content: dict[str, Any],
    ) -> dict[str, str | None]:
        """Save the idea (when new) and the document. Failures are logged, not raised."""
        run.advance(Stage.PERSISTING)
        ids: dict[str, str | None] = {"ideaId": existing.id if existing else None, "documentId": None}
        try:
            idea = existing or repositories.save_idea(self.session, user.user_id, idea_text)
            ids["ideaId"] = idea.id
            doc = repositories.save_document(self.session, idea, document_type, content)
            ids["documentId"] = doc.id
        except SQLAlchemyError as exc:
            self.session.rollback()
            run.persisted = False
            err = PersistenceError(f"Failed to save {document_type}")
            log.error("%s (op=%s, user=%s): %s", err.message, run.operation_id, user.user_id, exc)
        return ids

    def _deduct(self, run: PipelineRun, user: CurrentUser, analysis_type: str) -> int | None:
        """Charge one credit. A failure here never fails the response."""
        run.advance(Stage.DEDUCTING)
        if not run.persisted:
            log.warning("Not charging %s for %s (op=%s): result was not saved",
                        user.user_id, analysis_type, run.operation_id)
            return None
        try:
            return self.ledger.deduct_credit(user.user_id, run.operation_id, analysis_type).new_balance
        except NoVibeError as exc:
            log.warning("Credit deduction failed for %s (op=%s): %s", user.user_id, run.operation_id, exc.message)
        except SQLAlchemyError as exc:
            self.session.rollback()
            log.error("Credit deduction failed for %s (op=%s): %s", user.user_id, run.operation_id, exc)
        return None

    def mock_status(self) -> dict[str, Any]:
        if isinstance(self.llm, MockLLMClient):
            return self.llm.mock_status()
        return {"mockMode": False, "scenario": None, "timestamp": datetime.now(UTC).isoformat()}

    def _respond(self, run: PipelineRun, data: Any, **meta: Any) -> dict[str, Any]:
        run.advance(Stage.RESPONDING)
        return {
            "success": True,
            "data": data,
            "meta": {**self.mock_status(), "operationId": run.operation_id, **meta},
        }

    # -- operations -----------------------------------------------------------

    async def analyze_idea(
        self, user: CurrentUser, idea: str, locale: str = "en", idea_id: str | None = None,
    ) -> dict[str, Any]:
        """Startup viability analysis of free-form idea text."""
        locale = normalize_locale(locale)
        with self._run("analyze_idea", user, "Failed to analyze idea") as run:
            idea = (idea or "").strip()
            if not idea:
                raise ValidationError("Idea is required")
            self._check_credits(run, user)
            existing = repositories.find_idea_by_id(self.session, idea_id, user.user_id) if idea_id else None

            run.advance(Stage.BUILDING_PROMPT)
            prompt = build_startup_prompt(idea, locale)
            raw = await self._call_provider(run, prompt, task="analysis")

            run.advance(Stage.PARSING)
            data = parse_analysis(raw.text).model_dump(by_alias=True)

            ids = self._persist_analysis(run, user, idea, existing, "startup_analysis", {
                "analysis": data, "idea": idea, "locale": locale, "model": raw.model,
            })
            balance = self._deduct(run, user, "startup_analysis")
            return self._respond(run, data, **ids, creditsRemaining=balance)

    async def analyze_hackathon(
        self, user: CurrentUser, submission: ProjectSubmission, locale: str = "en",
        idea_id: str | None = None,
    ) -> dict[str, Any]:
        locale = normalize_locale(locale)
        with self._run("analyze_hackathon", user, "Failed to analyze hackathon project") as run:
            self._check_credits(run, user)
            existing = repositories.find_idea_by_id(self.session, idea_id, user.user_id) if idea_id else None

            run.advance(Stage.BUILDING_PROMPT)
            prompt = build_hackathon_prompt(submission, locale)
            raw = await self._call_provider(run, prompt, task="hackathon")

            run.advance(Stage.PARSING)
            data = parse_hackathon_analysis(raw.text).model_dump(by_alias=True)

            ids = self._persist_analysis(run, user, submission.description, existing, "hackathon_analysis", {
                "analysis": data, "submission": submission.model_dump(by_alias=True),
                "locale": locale, "model": raw.model,
            })
            balance = self._deduct(run, user, "hackathon_analysis")
            return self._respond(run, data, **ids, creditsRemaining=balance)

    async def generate_frankenstein(
        self, user: CurrentUser, elements: list[FrankensteinElement], mode: str, language: str = "en",
    ) -> dict[str, Any]:
        """Combine technologies into a new idea. Paid and admin tiers only."""
        language = "es" if language == "es" else "en"
        with self._run("generate_frankenstein", user, "Failed to generate Frankenstein idea") as run:
            if not elements:
                raise ValidationError("Elements array is required")
            if mode not in ("companies", "aws"):
                raise ValidationError("Mode must be 'companies' or 'aws'")
            run.advance(Stage.CREDIT_CHECK)
            profile = self.ledger.ensure_profile(user.user_id, user.tier)
            if profile.tier not in PAID_TIERS:
                raise AccessDenied("Doctor Frankenstein is available on paid plans only")
            self.ledger.require_credits(user.user_id)

            run.advance(Stage.BUILDING_PROMPT)
            prompt = build_frankenstein_prompt(elements, mode, language)
            raw = await self._call_provider(run, prompt, task="frankenstein")

            run.advance(Stage.PARSING)
            result = parse_frankenstein_idea(raw.text)
            result.language = language
            data = result.model_dump()

            run.advance(Stage.PERSISTING)
            idea_id = None
            try:
                idea = repositories.save_idea(
                    self.session, user.user_id,
                    f"{result.idea_title}\n\n{result.idea_description}",
                    source="frankenstein", notes=result.summary,
                    tags=[e.name for e in elements],
                )
                idea_id = idea.id
            except SQLAlchemyError as exc:
                self.session.rollback()
                run.persisted = False
                log.error("Failed to save Frankenstein idea (op=%s): %s", run.operation_id, exc)

            balance = self._deduct(run, user, "frankenstein")
            return self._respond(run, data, ideaId=idea_id, creditsRemaining=balance)

    async def generate_document(
        self, user: CurrentUser, idea_id: str, document_type: str, locale: str = "en",
    ) -> dict[str, Any]:
        """Write a PRD, technical design, architecture or roadmap for a saved idea."""
        locale = normalize_locale(locale)
        with self._run("generate_document", user, "Failed to generate document") as run:
            if document_type not in GENERATED_DOCUMENT_TYPES:
                raise ValidationError(f"Unsupported document type: {document_type!r}")
            self._check_credits(run, user)
            idea = repositories.find_idea_by_id(self.session, idea_id, user.user_id)

            run.advance(Stage.BUILDING_PROMPT)
            context = document_context(repositories.list_documents(self.session, idea.id, user.user_id))
            prompt = build_document_prompt(document_type, idea.idea_text, context, locale)
            raw = await self._call_provider(run, prompt, task="document")

            run.advance(Stage.PARSING)
            markdown = strip_markdown_fence(raw.text)
            if not markdown:
                raise EmptyResponse(run.failure_message)
            data = {"documentType": document_type, "markdown": markdown}

            ids = self._persist_analysis(run, user, idea.idea_text, idea, document_type, {
                "markdown": markdown, "locale": locale, "model": raw.model,
            })
            balance = self._deduct(run, user, document_type)
            return self._respond(run, data, **ids, creditsRemaining=balance)

    async def synthesize_speech(
        self, user: CurrentUser, text: str, locale: str = "en", document_id: str | None = None,
    ) -> dict[str, Any]:
        """Text to speech. Not billable; optionally stores the audio on a document."""
        with self._run("synthesize_speech", user, "Failed to generate audio") as run:
            text = (text or "").strip()
            if not text:
                raise ValidationError("Text is required")
            if len(text) > TTS_MAX_CHARS:
                raise ValidationError(f"Text exceeds the {TTS_MAX_CHARS} character limit")
            doc = repositories.find_document(self.session, document_id, user.user_id) if document_id else None

            run.advance(Stage.BUILDING_PROMPT)
            raw = await self._call_provider(run, text, task="speech", modality="audio")
            audio = base64.b64encode(raw.audio or b"").decode("ascii")

            if doc is not None:
                run.advance(Stage.PERSISTING)
                try:
                    repositories.attach_audio(self.session, doc.id, user.user_id, audio)
                except SQLAlchemyError as exc:
                    self.session.rollback()
                    log.error("Failed to store audio on document %s: %s", doc.id, exc)
            return self._respond(run, {"audio": audio, "mimeType": raw.mime_type, "locale": normalize_locale(locale)})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def strip_markdown_fence(text: str) -> str:
    text = (text or "").strip()
    m = _MARKDOWN_FENCE_RE.match(text)
    return m.group(1).strip() if m else text


def document_context(documents: list[Document]) -> dict[str, Any]:
    """Scores, feedback and earlier plan documents used to ground a new document."""
    context: dict[str, Any] = {"documents": {}}
    for doc in documents:  # oldest first, so later documents win
        content = json_parse(doc.content_json, {})
        if doc.document_type == "startup_analysis":
            analysis = content.get("analysis") or {}
            context["analysis_scores"] = {
                c.get("name"): c.get("score") for c in analysis.get("scoringRubric") or []
            }
            context["analysis_feedback"] = analysis.get("viabilitySummary", "")
        elif doc.document_type == "hackathon_analysis":
            analysis = content.get("analysis") or {}
            criteria = (analysis.get("criteriaAnalysis") or {}).get("scores") or []
            context.setdefault("analysis_scores", {c.get("name"): c.get("score") for c in criteria})
            context.setdefault("analysis_feedback", analysis.get("viabilitySummary", ""))
        elif doc.document_type in GENERATED_DOCUMENT_TYPES:
            context["documents"][doc.document_type] = content.get("markdown", "")
    return context


def compute_dashboard_stats(session: Session, ledger: CreditLedger, user_id: str) -> dict[str, Any]:
    ideas = session.execute(select(Idea).where(Idea.user_id == user_id)).scalars().all()
    doc_types = session.execute(
        select(Document.document_type).where(Document.user_id == user_id)
    ).scalars().all()
    by_status: Counter[str] = Counter(i.project_status for i in ideas)
    by_source: Counter[str] = Counter(i.source for i in ideas)
    by_type: Counter[str] = Counter(doc_types)
    balance = ledger.get_balance(user_id)
    return {
        "total_ideas": len(ideas), "total_documents": len(doc_types),
        "ideas_by_status": dict(by_status), "ideas_by_source": dict(by_source),
        "documents_by_type": dict(by_type),
        "credits": balance["credits"], "tier": balance["tier"],
    }
