"""Render stored analyses as markdown or plain-text reports.

The plain-text variant without the improvement section (``for_tts=True``) is
what gets sent to speech synthesis.
"""
from __future__ import annotations

from typing import Any

from novibe.errors import ValidationError
from novibe.models import GENERATED_DOCUMENT_TYPES
from novibe.schemas import Analysis, HackathonAnalysis
from novibe.utils import normalize_locale

REPORT_FORMATS = ("md", "txt")

LABELS: dict[str, dict[str, str]] = {
    "en": {
        "final_score": "Final Score",
        "verdict": "Viability Verdict",
        "summary": "Detailed Summary",
        "rubric": "Scoring Rubric",
        "criterion": "Criterion",
        "score": "Score",
        "justification": "Justification",
        "checklist": "Founder's Checklist",
        "why": "Why it matters:",
        "source": "Source",
        "swot": "SWOT Analysis",
        "strengths": "Strengths",
        "weaknesses": "Weaknesses",
        "opportunities": "Opportunities",
        "threats": "Threats",
        "trends": "Current Market Trends",
        "competitors": "Competitors",
        "monetization": "Monetization Strategies",
        "improvements": "Improvement Suggestions",
        "next_steps": "Next Steps",
        "category_fit": "Category Fit",
        "best_match": "Best Match",
        "criteria": "Judging Criteria",
        "advice": "Hackathon Advice",
        "category_optimization": "Category Optimization",
        "kiro_tips": "Kiro Integration Tips",
        "competition_strategy": "Competition Strategy",
    },
    "es": {
        "final_score": "Puntuación Final",
        "verdict": "Veredicto de Viabilidad",
        "summary": "Resumen Detallado",
        "rubric": "Rúbrica de Puntuación",
        "criterion": "Criterio",
        "score": "Puntuación",
        "justification": "Justificación",
        "checklist": "Lista de Verificación del Fundador",
        "why": "Por qué importa:",
        "source": "Fuente",
        "swot": "Análisis FODA",
        "strengths": "Fortalezas",
        "weaknesses": "Debilidades",
        "opportunities": "Oportunidades",
        "threats": "Amenazas",
        "trends": "Tendencias Actuales del Mercado",
        "competitors": "Competidores",
        "monetization": "Estrategias de Monetización",
        "improvements": "Sugerencias de Mejora",
        "next_steps": "Próximos Pasos",
        "category_fit": "Ajuste por Categoría",
        "best_match": "Mejor Categoría",
        "criteria": "Criterios de Evaluación",
        "advice": "Consejos para el Hackathon",
        "category_optimization": "Optimización de Categoría",
        "kiro_tips": "Consejos de Integración con Kiro",
        "competition_strategy": "Estrategia de Competencia",
    },
}

CRITERION_LABELS_ES = {
    "Market Demand": "Demanda del Mercado",
    "Market Size": "Tamaño del Mercado",
    "Uniqueness": "Singularidad",
    "Scalability": "Escalabilidad",
    "Potential Profitability": "Rentabilidad Potencial",
}


class _Writer:
    """Accumulates report text with format-specific markup."""

    def __init__(self, fmt: str):
        if fmt not in REPORT_FORMATS:
            raise ValidationError(f"Unsupported report format: {fmt!r}")
        self.md = fmt == "md"
        self.parts: list[str] = []

    def h1(self, text: str) -> None:
        self.parts.append(f"# {text}\n\n" if self.md else f"\n\n====== {text.upper()} ======\n\n")

    def h2(self, text: str) -> None:
        self.parts.append(f"## {text}\n\n" if self.md else f"\n--- {text} ---\n\n")

    def h3(self, text: str) -> None:
        self.parts.append(f"### {text}\n\n" if self.md else f"{text}\n")

    def bold(self, text: str) -> str:
        return f"**{text}**" if self.md else text

    def italic(self, text: str) -> str:
        return f"*{text}*" if self.md else text

    def link(self, text: str, url: str) -> str:
        return f"[{text}]({url})" if self.md else f"{text} ({url})"

    def item(self, text: str) -> None:
        self.parts.append(f"* {text}\n" if self.md else f"- {text}\n")

    def quote(self, text: str) -> None:
        self.parts.append(f"> {text}\n\n" if self.md else f'  "{text}"\n\n')

    def para(self, text: str) -> None:
        self.parts.append(f"{text}\n\n")

    def line(self, text: str = "") -> None:
        self.parts.append(f"{text}\n")

    def items(self, values: list[str]) -> None:
        for value in values:
            self.item(value)
        self.line()

    def text(self) -> str:
        return "".join(self.parts)


def _criterion_label(name: str, locale: str) -> str:
    return CRITERION_LABELS_ES.get(name, name) if locale == "es" else name


def _write_common_tail(w: _Writer, labels: dict[str, str], analysis, for_tts: bool) -> None:
    if not for_tts:
        w.h2(labels["improvements"])
        for suggestion in analysis.improvement_suggestions:
            w.line(w.bold(suggestion.title))
            w.para(suggestion.description or suggestion.snippet or "")
    w.h2(labels["next_steps"])
    for idx, step in enumerate(analysis.next_steps, start=1):
        w.line(f"{idx}. {w.bold(step.title)}")
        w.para(step.description)


def _write_competitors(w: _Writer, labels: dict[str, str], competitors) -> None:
    w.h2(labels["competitors"])
    for competitor in competitors:
        name = w.link(competitor.name, competitor.source_link) if competitor.source_link else competitor.name
        w.h3(name)
        w.para(competitor.description)
        w.line(f"{w.bold(labels['strengths'])}:")
        w.items(competitor.strengths)
        w.line(f"{w.bold(labels['weaknesses'])}:")
        w.items(competitor.weaknesses)


def generate_report(analysis: Analysis, locale: str, fmt: str = "md", for_tts: bool = False) -> str:
    """Startup analysis report: score, summary, rubric, checklist, SWOT, trends,
    competitors, monetization, improvements (omitted for TTS) and next steps."""
    locale = normalize_locale(locale)
    labels = LABELS[locale]
    w = _Writer(fmt)

    w.h1(labels["final_score"])
    w.para(f"{w.bold(labels['verdict'])}: {analysis.final_score:.1f}/5")
    w.para(analysis.viability_summary)
    if analysis.final_score_explanation:
        w.para(w.italic(analysis.final_score_explanation))

    w.h2(labels["summary"])
    w.para(analysis.detailed_summary)

    w.h2(labels["rubric"])
    if w.md:
        w.line(f"| {labels['criterion']} | {labels['score']} | {labels['justification']} |")
        w.line("|---|:---:|---|")
        for c in analysis.scoring_rubric:
            justification = c.justification.replace("\n", " ")
            w.line(f"| {_criterion_label(c.name, locale)} | {c.score:.1f}/5 | {justification} |")
        w.line()
    else:
        for c in analysis.scoring_rubric:
            w.line(f"{_criterion_label(c.name, locale)} - {c.score:.1f}/5")
            w.para(c.justification)

    w.h2(labels["checklist"])
    for idx, q in enumerate(analysis.founder_questions, start=1):
        w.h3(f"{idx}. {q.question}")
        w.quote(q.ask)
        w.para(q.analysis)
        w.line(f"{w.bold(labels['why'])} {q.why}")
        w.para(w.italic(f"{labels['source']}: {q.source}"))

    w.h2(labels["swot"])
    swot = analysis.swot_analysis
    for key, values in (("strengths", swot.strengths), ("weaknesses", swot.weaknesses),
                        ("opportunities", swot.opportunities), ("threats", swot.threats)):
        w.h3(labels[key])
        w.items(values)

    w.h2(labels["trends"])
    for trend in analysis.current_market_trends:
        w.line(w.bold(trend.trend))
        w.para(trend.impact)

    _write_competitors(w, labels, analysis.competitors)

    w.h2(labels["monetization"])
    for strategy in analysis.monetization_strategies:
        w.line(w.bold(strategy.name))
        w.para(strategy.description)

    _write_common_tail(w, labels, analysis, for_tts)
    return w.text()


def generate_hackathon_report(
    analysis: HackathonAnalysis, locale: str, fmt: str = "md", for_tts: bool = False,
) -> str:
    locale = normalize_locale(locale)
    labels = LABELS[locale]
    w = _Writer(fmt)

    w.h1(labels["final_score"])
    w.para(f"{w.bold(labels['verdict'])}: {analysis.final_score:.1f}/5")
    if analysis.viability_summary:
        w.para(analysis.viability_summary)
    if analysis.final_score_explanation:
        w.para(w.italic(analysis.final_score_explanation))

    w.h2(labels["summary"])
    w.para(analysis.detailed_summary)

    w.h2(labels["category_fit"])
    cat = analysis.category_analysis
    if cat.best_match:
        w.para(f"{w.bold(labels['best_match'])}: {cat.best_match}. {cat.best_match_reason}".rstrip())
    for ev in cat.evaluations:
        w.h3(f"{ev.category} ({ev.fit_score:.1f}/10)")
        w.para(ev.explanation)
        w.items(ev.improvement_suggestions)

    w.h2(labels["criteria"])
    for score in analysis.criteria_analysis.scores:
        w.h3(f"{score.name} - {score.score:.1f}/5")
        w.para(score.justification)
        for sub_name, sub in score.sub_scores.items():
            w.item(f"{sub_name}: {sub.score:.1f}/5. {sub.explanation}".rstrip())
        if score.sub_scores:
            w.line()

    _write_competitors(w, labels, analysis.competitors)

    w.h2(labels["advice"])
    advice = analysis.hackathon_specific_advice
    for key, values in (("category_optimization", advice.category_optimization),
                        ("kiro_tips", advice.kiro_integration_tips),
                        ("competition_strategy", advice.competition_strategy)):
        w.h3(labels[key])
        w.items(values)

    _write_common_tail(w, labels, analysis, for_tts)
    return w.text()


def export_document(document_type: str, content: dict[str, Any], fmt: str = "md") -> str:
    """Render any stored document. Generated plan documents are already markdown."""
    locale = content.get("locale", "en")
    if document_type == "startup_analysis":
        return generate_report(Analysis.model_validate(content["analysis"]), locale, fmt)
    if document_type == "hackathon_analysis":
        return generate_hackathon_report(HackathonAnalysis.model_validate(content["analysis"]), locale, fmt)
    if document_type in GENERATED_DOCUMENT_TYPES:
        if fmt not in REPORT_FORMATS:
            raise ValidationError(f"Unsupported report format: {fmt!r}")
        return content.get("markdown", "")
    raise ValidationError(f"Documents of type {document_type!r} cannot be exported")
