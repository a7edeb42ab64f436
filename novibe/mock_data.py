"""Canned provider replies used by MockLLMClient (MOCK_MODE=true) and the tests."""
from __future__ import annotations

import json

MOCK_SCENARIOS = ("success", "api_error", "timeout", "rate_limit", "invalid_response", "empty_response")

MOCK_ANALYSIS: dict = {
    "detailedSummary": (
        "An AI recipe app that turns whatever is in the fridge into a weekly meal plan. "
        "Demand is clear and the category is crowded, so differentiation rests on pantry "
        "awareness and grocery integration."
    ),
    "founderQuestions": [
        {
            "question": "What's the specific problem?",
            "ask": "Describe the last time this happened to a real customer.",
            "why": "clear, recent examples separate real problems from hypothetical ones.",
            "source": "The Mom Test / Steve Blank",
            "analysis": "Food waste and decision fatigue at dinner time are frequent and easy to observe.",
        },
        {
            "question": "Who is the paying customer (first 1–3)?",
            "ask": "Who will pay, exactly: company size, role, geography?",
            "why": "knowing the exact first customer makes go-to-market and pricing realistic.",
            "source": "Y Combinator",
            "analysis": "Busy parents in urban households are the most likely first subscribers.",
        },
    ],
    "swotAnalysis": {
        "strengths": ["Clear everyday use case", "Low cost to prototype"],
        "weaknesses": ["Crowded category", "Needs accurate pantry data"],
        "opportunities": ["Grocery delivery partnerships", "Dietary niche plans"],
        "threats": ["Large recipe platforms adding AI", "Low willingness to pay"],
    },
    "currentMarketTrends": [
        {"trend": "Generative AI in consumer apps", "impact": "Raises expectations for personalized plans."},
        {"trend": "Rising grocery prices", "impact": "Makes waste reduction a stronger selling point."},
    ],
    "scoringRubric": [
        {"name": "Market Demand", "score": 4, "justification": "Meal planning is a recurring pain."},
        {"name": "Market Size", "score": 3, "justification": "Large but fragmented consumer market."},
        {"name": "Uniqueness", "score": 5, "justification": "Pantry-first planning is rare."},
        {"name": "Scalability", "score": 2, "justification": "Recipe quality needs human curation."},
        {"name": "Potential Profitability", "score": 4, "justification": "Subscriptions plus affiliate revenue."},
    ],
    "competitors": [
        {
            "name": "Mealime",
            "description": "Meal planning app with grocery lists.",
            "strengths": ["Polished UX"],
            "weaknesses": ["No pantry awareness"],
            "sourceLink": "https://www.mealime.com",
        },
    ],
    "monetizationStrategies": [
        {"name": "Freemium subscription", "description": "Unlimited plans and nutrition tracking for paid users."},
        {"name": "Grocery affiliate", "description": "Commission on ingredients ordered through partners."},
    ],
    "improvementSuggestions": [
        {"title": "Narrow the niche", "description": "Start with one dietary segment to stand out."},
    ],
    "nextSteps": [
        {"title": "Landing page test", "description": "Measure sign-up intent with a two-week ad campaign."},
        {"title": "Concierge MVP", "description": "Plan meals manually for ten households."},
    ],
    "finalScore": 3.6,
    "finalScoreExplanation": "Average of the five rubric scores: (4 + 3 + 5 + 2 + 4) / 5 = 3.6.",
    "viabilitySummary": "A viable idea (3.6/5) whose success depends on out-executing established planners.",
}

MOCK_HACKATHON_ANALYSIS: dict = {
    "categoryAnalysis": {
        "evaluations": [
            {"category": "resurrection", "fitScore": 4, "explanation": "Little legacy tech involved.",
             "improvementSuggestions": ["Revive a retro protocol"]},
            {"category": "frankenstein", "fitScore": 8, "explanation": "Combines unlikely technologies.",
             "improvementSuggestions": ["Highlight the stitching layer"]},
            {"category": "skeleton-crew", "fitScore": 6, "explanation": "Reusable core.",
             "improvementSuggestions": ["Ship a second use case"]},
            {"category": "costume-contest", "fitScore": 5, "explanation": "Basic UI polish.",
             "improvementSuggestions": ["Add spooky theming"]},
        ],
        "bestMatch": "frankenstein",
        "bestMatchReason": "The project stitches together technologies that rarely meet.",
    },
    "criteriaAnalysis": {
        "scores": [
            {"name": "Potential Value", "score": 4, "justification": "Clear niche value.",
             "subScores": {"Market Uniqueness": {"score": 4, "explanation": "Few alternatives."}}},
            {"name": "Implementation", "score": 3, "justification": "Uses specs and hooks.",
             "subScores": {"Kiro Features Variety": {"score": 3, "explanation": "Two features used."}}},
            {"name": "Quality and Design", "score": 4, "justification": "Creative and polished.",
             "subScores": {"Polish": {"score": 4, "explanation": "Consistent styling."}}},
        ],
        "finalScore": 3.7,
        "finalScoreExplanation": "Average of Potential Value (4), Implementation (3) and Quality and Design (4).",
    },
    "detailedSummary": "A hackathon entry with a strong Frankenstein angle and room to deepen Kiro usage.",
    "viabilitySummary": "Competitive in the Frankenstein category.",
    "competitors": [],
    "improvementSuggestions": [{"title": "Deeper agent hooks", "description": "Automate tests with hooks."}],
    "nextSteps": [{"title": "Record the demo", "description": "Show the stitched flow end to end."}],
    "hackathonSpecificAdvice": {
        "categoryOptimization": ["Lead the pitch with the unlikely combination"],
        "kiroIntegrationTips": ["Use steering docs for consistent code"],
        "competitionStrategy": ["Keep the demo under three minutes"],
    },
    "finalScore": 3.7,
    "finalScoreExplanation": "Strong value and design, average implementation depth.",
}

MOCK_FRANKENSTEIN_IDEA: dict = {
    "idea_title": "Spoken Ledger",
    "idea_description": (
        "A voice-first interface that lets small vendors record sales on a shared ledger by "
        "talking to their phone. Speech recognition turns short sentences into signed entries."
    ),
    "summary": "Stitching voice recognition onto a ledger makes bookkeeping accessible to people who never type.",
    "language": "en",
}

MOCK_DOCUMENT_MARKDOWN = """\
# {title}

## 1. Overview
Mock document generated without contacting an AI provider.

## 2. Details
- First point
- Second point
"""

# Minimal WAV header followed by silence.
MOCK_AUDIO = b"RIFF$\x00\x00\x00WAVEfmt \x10\x00\x00\x00\x01\x00\x01\x00@\x1f\x00\x00\x80>\x00\x00\x02\x00\x10\x00data\x00\x00\x00\x00"

INVALID_RESPONSE_TEXT = (
    "I'm sorry, but I can't provide a structured analysis for this idea right now. "
    "Please try rephrasing your submission."
)


def fenced(payload: dict) -> str:
    """Wrap a payload the way models often reply: prose around a fenced JSON block."""
    return f"Here is the analysis you asked for:\n```json\n{json.dumps(payload, indent=2)}\n```\nGood luck!"
