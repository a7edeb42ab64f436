"""Extract and validate JSON objects from free-form LLM replies.

The extraction heuristic: take the inner content of the first fenced code
block if there is one, then slice from the first ``{`` to the last ``}``.
Prose that itself contains braces around the JSON can make this over-capture;
in that case JSON decoding fails and the reply is reported as malformed.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from novibe.errors import MalformedResponse
from novibe.schemas import Analysis, FrankensteinIdea, HackathonAnalysis

log = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)

ModelT = TypeVar("ModelT", bound=BaseModel)


def extract_json_text(raw_text: str) -> str:
    """Return the candidate JSON object text from an LLM reply."""
    text = raw_text or ""
    m = _FENCE_RE.search(text)
    if m:
        text = m.group(1)
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise MalformedResponse("no JSON object found in model reply")
    return text[start:end + 1]


def parse_json_object(raw_text: str) -> dict[str, Any]:
    candidate = extract_json_text(raw_text)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        log.warning("Model reply is not valid JSON: %s", candidate[:200])
        raise MalformedResponse(f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedResponse("model reply JSON is not an object")
    return data


def _validate(model: type[ModelT], raw_text: str) -> ModelT:
    data = parse_json_object(raw_text)
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        log.warning("Model reply failed %s validation: %s", model.__name__, exc)
        raise MalformedResponse(f"{model.__name__} validation failed: {exc}") from exc


def parse_analysis(raw_text: str) -> Analysis:
    """Parse a startup analysis. ``finalScore`` is recomputed from the rubric."""
    return _validate(Analysis, raw_text)


def parse_hackathon_analysis(raw_text: str) -> HackathonAnalysis:
    return _validate(HackathonAnalysis, raw_text)


def parse_frankenstein_idea(raw_text: str) -> FrankensteinIdea:
    return _validate(FrankensteinIdea, raw_text)
