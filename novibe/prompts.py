"""Prompt builders for every AI operation.

All builders are pure: the same submission and locale always produce the same
prompt string. Each prompt carries an explicit language directive and a fixed
JSON (or markdown) output description so the reply can be parsed.
"""
from __future__ import annotations

import json
from typing import Any

from novibe.schemas import FrankensteinElement, ProjectSubmission
from novibe.utils import normalize_locale

# ---------------------------------------------------------------------------
# Shared fragments
# ---------------------------------------------------------------------------

LANGUAGE_DIRECTIVES = {
    "en": "VERY IMPORTANT: Your entire response, including all text in the JSON values, must be in English.",
    "es": "MUY IMPORTANTE: Tu respuesta completa, incluyendo todo el texto en los valores JSON, debe estar en español.",
}

MARKDOWN_LANGUAGE_DIRECTIVES = {
    "en": "VERY IMPORTANT: Write the entire document in English.",
    "es": "MUY IMPORTANTE: Escribe el documento completo en español.",
}

JSON_FORMAT_RULES = """\
CRITICAL FORMATTING INSTRUCTIONS:
- Your response must START with { and END with }
- Do NOT include any explanatory text before or after the JSON
- Do NOT wrap the JSON in markdown code blocks or backticks
- Ensure all strings are properly escaped
- Ensure all numeric values are actual numbers, not strings
"""

# (name, guiding question). Names are never translated: the parser and the
# report exporter rely on them.
RUBRIC_CRITERIA: list[tuple[str, str]] = [
    ("Market Demand", "How strong is the need for this product/service?"),
    ("Market Size", "How large is the total addressable market for this idea?"),
    ("Uniqueness", "How differentiated is the idea from existing solutions?"),
    ("Scalability", "What is the potential for growth?"),
    ("Potential Profitability", "How viable are the monetization strategies?"),
]

FOUNDER_CHECKLIST: list[dict[str, str]] = [
    {"question": "What's the specific problem?",
     "ask": "Describe the last time this happened to a real customer.",
     "why": "clear, recent examples separate real problems from hypothetical ones.",
     "source": "The Mom Test / Steve Blank"},
    {"question": "Who is the paying customer (first 1–3)?",
     "ask": "Who will pay, exactly: company size, role, geography?",
     "why": "knowing the exact first customer makes go-to-market and pricing realistic.",
     "source": "Y Combinator"},
    {"question": "How bad is the problem (urgency & frequency)?",
     "ask": "How often does this pain occur and what do they do today?",
     "why": "frequent, painful problems are easier to monetize and validate.",
     "source": "Medium"},
    {"question": "Evidence of willingness to pay / early signals",
     "ask": "Do you have pilot customers, paid signups, LOIs, or people who promised to pay?",
     "why": "paying customers or signed pilots are far stronger than surveys.",
     "source": "cbinsights.com"},
    {"question": "How will you acquire customers (repeatable channel)?",
     "ask": "What channels will you use and what's the expected CAC?",
     "why": "without a reachable acquisition channel unit economics often fail later.",
     "source": "WIRED"},
    {"question": "Unit economics & pricing clarity",
     "ask": "What will you charge, what's gross margin, LTV/CAC back-of-envelope?",
     "why": "early rough math exposes impossible businesses fast.",
     "source": "Lean Startup Co."},
    {"question": "Competition and differentiation",
     "ask": "Who are direct substitutes and how could they copy you?",
     "why": "even good ideas die if they're trivially copyable and have no defensibility.",
     "source": "cbinsights.com"},
    {"question": "Founders / team fit",
     "ask": "What experience do you and your cofounders have that's relevant?",
     "why": "execution matters; many failures trace back to team issues.",
     "source": "cbinsights.com"},
    {"question": "Top 3 risks and mitigations",
     "ask": "Name the three biggest things that could kill this and what you'll do first to address them.",
     "why": "a founder who can name mitigations shows substance and planning.",
     "source": "Steve Blank"},
    {"question": "Immediate experiment / next step",
     "ask": "What can you do in 2–6 weeks to prove/disprove the riskiest assumption?",
     "why": "Lean Startup + customer development emphasize fast experiments (MVPs, landing pages, pilots).",
     "source": "Lean Startup Co."},
]

HACKATHON_CATEGORIES: dict[str, tuple[str, str]] = {
    "resurrection": ("Resurrection", "Reviving obsolete technology with modern innovations"),
    "frankenstein": ("Frankenstein", "Integration of seemingly incompatible technologies"),
    "skeleton-crew": ("Skeleton Crew", "Flexible foundation with multiple use cases"),
    "costume-contest": ("Costume Contest", "UI polish and spooky design elements"),
}

# criterion -> sub-criteria
HACKATHON_CRITERIA: dict[str, tuple[str, ...]] = {
    "Potential Value": ("Market Uniqueness", "UI Intuitiveness", "Scalability"),
    "Implementation": ("Kiro Features Variety", "Depth of Understanding", "Strategic Integration"),
    "Quality and Design": ("Creativity", "Originality", "Polish"),
}

# ---------------------------------------------------------------------------
# Startup idea analysis
# ---------------------------------------------------------------------------

STARTUP_PROMPT = """\
=== ROLE CONTEXT ===
You are an experienced startup analyst with 15 years of experience evaluating \
early-stage ventures. You give evidence-based, balanced and actionable feedback \
that helps founders make informed decisions.

{language}

=== ACCURACY ===
Never invent competitor names, statistics, market data or sources. When you \
lack recent data say so explicitly, and label educated guesses as such. Cite \
specific elements of the idea as evidence for every score.

=== MATURITY AND TONE ===
Judge the idea's stage before analyzing it. A NAPKIN idea (1-3 vague sentences) \
gets an encouraging mentor; reframe founder questions as "what good looks like" \
statements. An EARLY idea (some research) gets a supportive coach. A VALIDATED \
idea (metrics, traction) gets a direct advisor.

=== REASONING ===
For each rubric criterion work through: evidence, comparison with similar ideas, \
score (1-5), justification, improvement.

{format_rules}
Idea: "{idea}"

Criteria for the Scoring Rubric (score from 1 to 5, where 1 is poor and 5 is excellent):
{criteria}

Respond with ONLY a JSON object with these keys:

1. "detailedSummary": comprehensive summary of potential, strengths, weaknesses and key challenges.
2. "founderQuestions": one entry per Founder's Checklist item below, copying \
"question", "ask", "why" and "source" exactly and adding your "analysis".
3. "swotAnalysis": {{"strengths": [...], "weaknesses": [...], "opportunities": [...], "threats": [...]}} with 3-5 bullets each.
4. "currentMarketTrends": 3-5 objects {{"trend": str, "impact": str}}; cite sources as markdown links inside "impact".
5. "scoringRubric": one object {{"name": str, "score": number, "justification": str}} per criterion. \
The "name" MUST be one of the exact English strings: {criteria_names}. Do not translate them.
6. "competitors": 3-5 objects {{"name": str, "description": str, "strengths": [str], "weaknesses": [str], "sourceLink": str|null}}.
7. "monetizationStrategies": 3-5 objects {{"name": str, "description": str}}.
8. "improvementSuggestions": 2-3 objects {{"title": str, "description": str}} tied to the weaknesses you found.
9. "nextSteps": 3-5 objects {{"title": str, "description": str}}.
10. "finalScore": the average of all scoringRubric scores, rounded to one decimal place.
11. "finalScoreExplanation": how each criterion contributes to the final score.
12. "viabilitySummary": brief verdict referencing the final score.

--- Founder's Checklist ---
{checklist}
"""


def _format_checklist() -> str:
    lines = []
    for idx, item in enumerate(FOUNDER_CHECKLIST, start=1):
        lines.append(
            f'{idx}. question: "{item["question"]}"\n'
            f'   ask: "{item["ask"]}"\n'
            f'   why: "{item["why"]}"\n'
            f'   source: "{item["source"]}"'
        )
    return "\n\n".join(lines)


def build_startup_prompt(idea: str, locale: str) -> str:
    """Prompt for the 12-field startup viability analysis."""
    locale = normalize_locale(locale)
    return STARTUP_PROMPT.format(
        language=LANGUAGE_DIRECTIVES[locale],
        format_rules=JSON_FORMAT_RULES,
        idea=idea.strip(),
        criteria="\n".join(f"- {name}: {question}" for name, question in RUBRIC_CRITERIA),
        criteria_names=", ".join(f'"{name}"' for name, _ in RUBRIC_CRITERIA),
        checklist=_format_checklist(),
    )


# ---------------------------------------------------------------------------
# Hackathon project analysis
# ---------------------------------------------------------------------------

HACKATHON_PROMPT = """\
You are a world-class hackathon judge and technical evaluator for the Kiroween \
competition. Analyze the submission against every category and judging criterion.

{language}

Your entire response MUST be a single valid JSON object. No text before or after it.

PROJECT SUBMISSION:
Description: "{description}"
Selected Category: "{category}" ({category_description})
Kiro Usage: "{kiro_usage}"{extras}

KIROWEEN CATEGORIES:
{categories}

JUDGING CRITERIA (each scored 1-5):
{criteria}

{format_rules}
JSON structure:
{{
  "categoryAnalysis": {{
    "evaluations": [{{"category": "<category id>", "fitScore": <1-10>, "explanation": str, "improvementSuggestions": [str]}}],
    "bestMatch": "<category id>",
    "bestMatchReason": str
  }},
  "criteriaAnalysis": {{
    "scores": [{{"name": "<criterion>", "score": <1-5>, "justification": str,
                "subScores": {{"<sub-criterion>": {{"score": <1-5>, "explanation": str}}}}}}],
    "finalScore": <average of criteria scores, one decimal>,
    "finalScoreExplanation": str
  }},
  "detailedSummary": str,
  "viabilitySummary": str,
  "competitors": [{{"name": str, "description": str, "strengths": [str], "weaknesses": [str], "sourceLink": str}}],
  "improvementSuggestions": [{{"title": str, "description": str}}],
  "nextSteps": [{{"title": str, "description": str}}],
  "hackathonSpecificAdvice": {{"categoryOptimization": [str], "kiroIntegrationTips": [str], "competitionStrategy": [str]}},
  "finalScore": <same as criteriaAnalysis.finalScore>,
  "finalScoreExplanation": str
}}

Evaluate all 4 categories (fit 1-10: 8-10 excellent, 6-7 good, 4-5 moderate, \
2-3 limited, 1 none) and all 3 criteria (1 poor to 5 exceptional). Be \
constructive but honest, with feedback the team can act on within the hackathon timeline.
"""


def build_hackathon_prompt(submission: ProjectSubmission, locale: str) -> str:
    locale = normalize_locale(locale)
    name, description = HACKATHON_CATEGORIES[submission.selected_category]
    extras = ""
    materials = submission.supporting_materials
    if materials is not None:
        if materials.demo_link:
            extras += f"\nDemo Link: {materials.demo_link}"
        if materials.additional_notes:
            extras += f"\nAdditional Notes: {materials.additional_notes}"
    return HACKATHON_PROMPT.format(
        language=LANGUAGE_DIRECTIVES[locale],
        description=submission.description,
        category=submission.selected_category,
        category_description=description,
        kiro_usage=submission.kiro_usage,
        extras=extras,
        categories="\n".join(
            f"{i}. {label} ({key}): {desc}"
            for i, (key, (label, desc)) in enumerate(HACKATHON_CATEGORIES.items(), start=1)
        ),
        criteria="\n".join(
            f"{i}. {crit}: {', '.join(subs)}"
            for i, (crit, subs) in enumerate(HACKATHON_CRITERIA.items(), start=1)
        ),
        format_rules=JSON_FORMAT_RULES,
    )


# ---------------------------------------------------------------------------
# Doctor Frankenstein
# ---------------------------------------------------------------------------

FRANKENSTEIN_MODE_FOCUS = {
    ("aws", "en"): "focus more on infrastructure, cloud scalability, and developer productivity",
    ("aws", "es"): "enfócate más en infraestructura, escalabilidad en la nube y productividad del desarrollador",
    ("companies", "en"): "focus more on product synergy, market potential, and user experience",
    ("companies", "es"): "enfócate más en sinergia de productos, potencial de mercado y experiencia del usuario",
}

FRANKENSTEIN_PROMPT = """\
=== ROLE DEFINITION ===
You are Doctor Frankenstein, a creative mad scientist of startup ideas. You \
stitch seemingly incompatible technologies into one app that turns out to be \
unexpectedly powerful.

{language}

=== QUALITY CRITERIA ===
1. SYNERGY: the combination must be more powerful than its mismatched parts.
2. SPECIFICITY: a concrete problem, solution and target user, never a generic platform.
3. FEASIBILITY: buildable with today's technology within a hackathon timeframe.
4. CREATIVITY: celebrate the surprising pairing and show the creative bridge.

Never invent capabilities a technology does not have. Use qualified language \
and acknowledge technical challenges honestly.

=== CONTEXT ===
Mode: {mode_label}
{mode_focus}

Technologies to combine:
{elements}

{format_rules}
Generate your idea in this JSON format:
{{
  "idea_title": "Creative and concise name of the new concept",
  "idea_description": "2-4 paragraphs: what it is, the problem it solves and how the technologies work together",
  "summary": "50-75 words on viability, creative potential and key value proposition",
  "language": "{locale}"
}}
"""


def format_elements(elements: list[FrankensteinElement]) -> str:
    return ", ".join(f"{e.name} ({e.description})" if e.description else e.name for e in elements)


def build_frankenstein_prompt(elements: list[FrankensteinElement], mode: str, locale: str) -> str:
    locale = normalize_locale(locale)
    return FRANKENSTEIN_PROMPT.format(
        language=LANGUAGE_DIRECTIVES[locale],
        mode_label="AWS Services" if mode == "aws" else "Tech Companies",
        mode_focus=FRANKENSTEIN_MODE_FOCUS[(mode, locale)],
        elements=format_elements(elements),
        format_rules=JSON_FORMAT_RULES,
        locale=locale,
    )


# ---------------------------------------------------------------------------
# Project documents (PRD, technical design, architecture, roadmap)
# ---------------------------------------------------------------------------

DOCUMENT_ROLES = {
    "prd": "an expert product manager who writes clear, actionable Product Requirements Documents",
    "technical_design": "a senior software architect who writes pragmatic technical design documents",
    "architecture": "a principal systems architect who documents system architecture for engineering teams",
    "roadmap": "a seasoned startup operator who turns product plans into realistic delivery roadmaps",
}

DOCUMENT_SECTIONS: dict[str, tuple[str, ...]] = {
    "prd": (
        "Problem Statement", "Target Users & Personas", "User Stories (MoSCoW prioritized)",
        "Features & Requirements (P0/P1/P2 with acceptance criteria)", "Success Metrics",
        "Out of Scope", "Assumptions & Dependencies",
    ),
    "technical_design": (
        "Architecture Overview", "Technology Stack (with rationale)", "Data Models",
        "API Design", "Security Considerations", "Scalability & Performance",
        "Testing Strategy", "Deployment & Operations",
    ),
    "architecture": (
        "System Context", "Component Breakdown", "Data Flow", "Integration Points",
        "Infrastructure & Hosting", "Reliability & Observability", "Architecture Decisions & Trade-offs",
    ),
    "roadmap": (
        "MVP Definition", "Milestones (with target timeframes)", "Feature Prioritization",
        "Dependencies & Sequencing", "Resource Needs", "Risks & Mitigations",
        "Success Criteria per Milestone",
    ),
}

DOCUMENT_TITLES = {
    "prd": "Product Requirements Document (PRD)",
    "technical_design": "Technical Design Document",
    "architecture": "Architecture Document",
    "roadmap": "Product Roadmap",
}

DOCUMENT_PROMPT = """\
=== ROLE CONTEXT ===
You are {role}.

{language}

=== TASK ===
Write a {title} for the following startup idea.

IDEA:
{idea}{context}

=== OUTPUT FORMAT ===
Markdown with exactly these level-2 sections, in order:
{sections}

Be specific and concrete. Ground everything in the user problem, use the \
context above to stay consistent with earlier documents, and balance ambition \
with a realistic MVP scope. Output only the markdown document.
"""


def build_document_prompt(
    document_type: str, idea_text: str, context: dict[str, Any] | None, locale: str,
) -> str:
    """Prompt for a markdown project document.

    *context* may hold ``analysis_scores`` (criterion -> score),
    ``analysis_feedback`` (str) and ``documents`` (document_type -> markdown of
    previously generated documents).
    """
    locale = normalize_locale(locale)
    context = context or {}
    parts: list[str] = []
    if context.get("analysis_scores"):
        parts.append("ANALYSIS SCORES:\n" + json.dumps(context["analysis_scores"], indent=2))
    if context.get("analysis_feedback"):
        parts.append("ANALYSIS FEEDBACK:\n" + context["analysis_feedback"])
    for doc_type, markdown in (context.get("documents") or {}).items():
        if doc_type != document_type and markdown:
            parts.append(f"EXISTING {DOCUMENT_TITLES.get(doc_type, doc_type).upper()}:\n{markdown}")
    return DOCUMENT_PROMPT.format(
        role=DOCUMENT_ROLES[document_type],
        language=MARKDOWN_LANGUAGE_DIRECTIVES[locale],
        title=DOCUMENT_TITLES[document_type],
        idea=idea_text.strip(),
        context="".join(f"\n\n{p}" for p in parts),
        sections="\n".join(f"## {i}. {s}" for i, s in enumerate(DOCUMENT_SECTIONS[document_type], start=1)),
    )


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


def build_prompt(submission: str | ProjectSubmission, locale: str) -> str:
    """Build the analysis prompt for an idea string or a hackathon submission."""
    if isinstance(submission, ProjectSubmission):
        return build_hackathon_prompt(submission, locale)
    return build_startup_prompt(submission, locale)
