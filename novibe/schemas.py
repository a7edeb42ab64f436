"""Pydantic schemas: AI analysis payloads, request bodies and API responses.

Analysis payloads use camelCase on the wire (that is the shape the prompts ask
the model for), while Python code uses snake_case attribute names.
"""
from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from novibe.utils import normalize_locale

HackathonCategory = Literal["resurrection", "frankenstein", "skeleton-crew", "costume-contest"]
RUBRIC_SIZE = 5


def compute_final_score(scores: list[float]) -> float:
    """Mean of the scores rounded half-up to one decimal place."""
    if not scores:
        return 0.0
    mean = sum(Decimal(str(s)) for s in scores) / Decimal(len(scores))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _clamp(value: Any, low: float, high: float) -> float:
    """Clamp a numeric score into range. Missing or non-numeric scores are rejected."""
    if value is None or isinstance(value, bool):
        raise ValueError("score must be a number")
    try:
        num = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"score must be a number, got {value!r}") from exc
    if math.isnan(num):
        raise ValueError("score must be a number, got NaN")
    return max(low, min(high, num))


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Startup analysis
# ---------------------------------------------------------------------------


class ScoreCriterion(CamelModel):
    name: str
    score: float
    justification: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, v: Any) -> float:
        return _clamp(v, 1.0, 5.0)


class SWOTAnalysis(CamelModel):
    strengths: list[str] = []
    weaknesses: list[str] = []
    opportunities: list[str] = []
    threats: list[str] = []


class MarketTrend(CamelModel):
    trend: str
    impact: str = ""


class Competitor(CamelModel):
    name: str
    description: str = ""
    strengths: list[str] = []
    weaknesses: list[str] = []
    source_link: str | None = None


class MonetizationStrategy(CamelModel):
    name: str
    description: str = ""


class FounderQuestion(CamelModel):
    question: str
    ask: str = ""
    why: str = ""
    source: str = ""
    analysis: str = ""


class ImprovementSuggestion(CamelModel):
    title: str
    description: str | None = None
    snippet: str | None = None


class NextStep(CamelModel):
    title: str
    description: str = ""


class Analysis(CamelModel):
    detailed_summary: str
    founder_questions: list[FounderQuestion] = []
    swot_analysis: SWOTAnalysis = Field(default_factory=SWOTAnalysis)
    current_market_trends: list[MarketTrend] = []
    scoring_rubric: list[ScoreCriterion] = Field(min_length=RUBRIC_SIZE, max_length=RUBRIC_SIZE)
    competitors: list[Competitor] = []
    monetization_strategies: list[MonetizationStrategy] = []
    improvement_suggestions: list[ImprovementSuggestion] = []
    next_steps: list[NextStep] = []
    final_score: float = 0.0
    final_score_explanation: str = ""
    viability_summary: str

    @model_validator(mode="after")
    def recompute_final_score(self) -> Analysis:
        self.final_score = compute_final_score([c.score for c in self.scoring_rubric])
        return self


# ---------------------------------------------------------------------------
# Hackathon analysis
# ---------------------------------------------------------------------------


class CategoryEvaluation(CamelModel):
    category: str
    fit_score: float
    explanation: str = ""
    improvement_suggestions: list[str] = []

    @field_validator("fit_score", mode="before")
    @classmethod
    def clamp_fit(cls, v: Any) -> float:
        return _clamp(v, 1.0, 10.0)


class CategoryAnalysis(CamelModel):
    evaluations: list[CategoryEvaluation] = []
    best_match: str = ""
    best_match_reason: str = ""


class SubScore(CamelModel):
    score: float
    explanation: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, v: Any) -> float:
        return _clamp(v, 1.0, 5.0)


class CriteriaScore(ScoreCriterion):
    sub_scores: dict[str, SubScore] = {}


class CriteriaAnalysis(CamelModel):
    scores: list[CriteriaScore] = Field(min_length=1)
    final_score: float = 0.0
    final_score_explanation: str = ""

    @model_validator(mode="after")
    def recompute_final_score(self) -> CriteriaAnalysis:
        self.final_score = compute_final_score([c.score for c in self.scores])
        return self


class HackathonAdvice(CamelModel):
    category_optimization: list[str] = []
    kiro_integration_tips: list[str] = []
    competition_strategy: list[str] = []


class HackathonAnalysis(CamelModel):
    detailed_summary: str
    category_analysis: CategoryAnalysis = Field(default_factory=CategoryAnalysis)
    criteria_analysis: CriteriaAnalysis
    competitors: list[Competitor] = []
    improvement_suggestions: list[ImprovementSuggestion] = []
    next_steps: list[NextStep] = []
    hackathon_specific_advice: HackathonAdvice = Field(default_factory=HackathonAdvice)
    final_score: float = 0.0
    final_score_explanation: str = ""
    viability_summary: str = ""

    @model_validator(mode="after")
    def sync_final_score(self) -> HackathonAnalysis:
        self.final_score = self.criteria_analysis.final_score
        if not self.final_score_explanation:
            self.final_score_explanation = self.criteria_analysis.final_score_explanation
        return self


# ---------------------------------------------------------------------------
# Doctor Frankenstein
# ---------------------------------------------------------------------------


class FrankensteinIdea(BaseModel):
    idea_title: str
    idea_description: str
    summary: str = ""
    language: str = "en"


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class _LocaleMixin(CamelModel):
    locale: str = "en"

    @field_validator("locale", mode="before")
    @classmethod
    def normalize(cls, v: Any) -> str:
        return normalize_locale(v if isinstance(v, str) else None)


class AnalyzeRequest(_LocaleMixin):
    idea: str
    idea_id: str | None = None

    @field_validator("idea")
    @classmethod
    def idea_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Idea is required")
        return v


class SupportingMaterials(CamelModel):
    screenshots: list[str] = []
    demo_link: str | None = None
    additional_notes: str | None = None


class ProjectSubmission(CamelModel):
    description: str
    selected_category: HackathonCategory
    kiro_usage: str = ""
    supporting_materials: SupportingMaterials | None = None

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Project description is required")
        return v


class HackathonAnalyzeRequest(_LocaleMixin):
    submission: ProjectSubmission
    idea_id: str | None = None


class FrankensteinElement(BaseModel):
    name: str
    description: str | None = None


class FrankensteinRequest(BaseModel):
    elements: list[FrankensteinElement]
    mode: Literal["companies", "aws"]
    language: str = "en"

    @field_validator("elements")
    @classmethod
    def elements_required(cls, v: list[FrankensteinElement]) -> list[FrankensteinElement]:
        if not v:
            raise ValueError("Elements array is required")
        return v

    @field_validator("language", mode="before")
    @classmethod
    def normalize_language(cls, v: Any) -> str:
        return "es" if v == "es" else "en"


class TTSRequest(_LocaleMixin):
    text: str
    document_id: str | None = None


class GenerateDocumentRequest(_LocaleMixin):
    document_type: Literal["prd", "technical_design", "architecture", "roadmap"]


class IdeaCreate(CamelModel):
    idea_text: str
    notes: str = ""
    tags: list[str] = []

    @field_validator("idea_text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Idea text is required")
        return v


class IdeaUpdate(CamelModel):
    project_status: Literal["idea", "in_progress", "completed", "archived"] | None = None
    notes: str | None = None
    tags: list[str] | None = None


class AdminCreditGrant(CamelModel):
    user_id: str
    amount: int
    description: str = ""

    @field_validator("amount")
    @classmethod
    def amount_nonzero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("amount must be non-zero")
        return v


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class IdeaOut(CamelModel):
    id: str
    idea_text: str
    source: str
    project_status: str
    notes: str
    tags: list[str] = []
    document_count: int = 0
    created_at: str | None = None
    updated_at: str | None = None


class DocumentOut(CamelModel):
    id: str
    idea_id: str
    document_type: str
    content: dict[str, Any] = {}
    has_audio: bool = False
    created_at: str | None = None


class CreditBalanceOut(CamelModel):
    credits: int
    tier: str


class TransactionOut(CamelModel):
    id: int
    amount: int
    type: str
    description: str
    operation_id: str | None = None
    metadata: dict[str, Any] = {}
    timestamp: str | None = None


class DashboardStatsOut(CamelModel):
    total_ideas: int
    total_documents: int
    ideas_by_status: dict[str, int]
    ideas_by_source: dict[str, int]
    documents_by_type: dict[str, int]
    credits: int
    tier: str
