from __future__ import annotations

from novibe.prompts import (
    DOCUMENT_SECTIONS,
    FOUNDER_CHECKLIST,
    LANGUAGE_DIRECTIVES,
    RUBRIC_CRITERIA,
    build_document_prompt,
    build_frankenstein_prompt,
    build_hackathon_prompt,
    build_prompt,
    build_startup_prompt,
)
from novibe.schemas import FrankensteinElement, ProjectSubmission, SupportingMaterials


def _submission(**overrides) -> ProjectSubmission:
    data = {
        "description": "A haunted IDE that resurrects COBOL programs",
        "selected_category": "resurrection",
        "kiro_usage": "Specs and agent hooks",
    }
    data.update(overrides)
    return ProjectSubmission(**data)


class TestStartupPrompt:
    def test_deterministic(self):
        assert build_startup_prompt("An AI recipe app", "en") == build_startup_prompt("An AI recipe app", "en")

    def test_contains_idea_and_all_criteria(self):
        prompt = build_startup_prompt("  An AI recipe app  ", "en")
        assert 'Idea: "An AI recipe app"' in prompt
        for name, _ in RUBRIC_CRITERIA:
            assert f'"{name}"' in prompt

    def test_checklist_copied_verbatim(self):
        prompt = build_startup_prompt("x", "en")
        for item in FOUNDER_CHECKLIST:
            assert item["question"] in prompt
            assert item["source"] in prompt

    def test_language_directive(self):
        assert LANGUAGE_DIRECTIVES["en"] in build_startup_prompt("x", "en")
        spanish = build_startup_prompt("x", "es")
        assert LANGUAGE_DIRECTIVES["es"] in spanish
        assert LANGUAGE_DIRECTIVES["en"] not in spanish

    def test_unknown_locale_falls_back_to_english(self):
        assert build_startup_prompt("x", "fr") == build_startup_prompt("x", "en")
        assert build_startup_prompt("x", "es-MX") == build_startup_prompt("x", "es")

    def test_criterion_names_not_translated(self):
        spanish = build_startup_prompt("x", "es")
        assert '"Market Demand"' in spanish
        assert "Do not translate them" in spanish


class TestHackathonPrompt:
    def test_contains_submission(self):
        prompt = build_hackathon_prompt(_submission(), "en")
        assert "A haunted IDE that resurrects COBOL programs" in prompt
        assert 'Selected Category: "resurrection"' in prompt
        assert "Specs and agent hooks" in prompt
        for category in ("resurrection", "frankenstein", "skeleton-crew", "costume-contest"):
            assert f"({category})" in prompt

    def test_supporting_materials(self):
        materials = SupportingMaterials(demo_link="https://demo.example", additional_notes="Built in 48h")
        prompt = build_hackathon_prompt(_submission(supporting_materials=materials), "en")
        assert "Demo Link: https://demo.example" in prompt
        assert "Additional Notes: Built in 48h" in prompt

    def test_spanish_directive(self):
        assert LANGUAGE_DIRECTIVES["es"] in build_hackathon_prompt(_submission(), "es")

    def test_dispatcher(self):
        submission = _submission()
        assert build_prompt(submission, "en") == build_hackathon_prompt(submission, "en")
        assert build_prompt("An idea", "es") == build_startup_prompt("An idea", "es")


class TestFrankensteinPrompt:
    def test_elements_and_mode(self):
        elements = [
            FrankensteinElement(name="Lambda", description="serverless functions"),
            FrankensteinElement(name="Polly"),
        ]
        prompt = build_frankenstein_prompt(elements, "aws", "en")
        assert "Lambda (serverless functions), Polly" in prompt
        assert "Mode: AWS Services" in prompt
        assert "cloud scalability" in prompt
        assert '"language": "en"' in prompt

    def test_companies_mode_in_spanish(self):
        prompt = build_frankenstein_prompt([FrankensteinElement(name="Stripe")], "companies", "es")
        assert "Mode: Tech Companies" in prompt
        assert "sinergia de productos" in prompt
        assert '"language": "es"' in prompt


class TestDocumentPrompt:
    def test_sections_in_order(self):
        prompt = build_document_prompt("prd", "An AI recipe app", None, "en")
        assert "Write a Product Requirements Document (PRD) for the following startup idea." in prompt
        positions = [prompt.index(section) for section in DOCUMENT_SECTIONS["prd"]]
        assert positions == sorted(positions)

    def test_context_included(self):
        context = {
            "analysis_scores": {"Market Demand": 4},
            "analysis_feedback": "Promising but crowded.",
            "documents": {"prd": "# PRD body", "roadmap": "# Old roadmap"},
        }
        prompt = build_document_prompt("roadmap", "An AI recipe app", context, "en")
        assert '"Market Demand": 4' in prompt
        assert "Promising but crowded." in prompt
        assert "EXISTING PRODUCT REQUIREMENTS DOCUMENT (PRD):\n# PRD body" in prompt
        # the document being regenerated is not fed back as context
        assert "# Old roadmap" not in prompt

    def test_spanish_markdown_directive(self):
        prompt = build_document_prompt("architecture", "x", {}, "es")
        assert "Escribe el documento completo en español." in prompt
