"""Small helpers shared by the models, repositories and pipeline."""
from __future__ import annotations

import json
import uuid
from typing import Any


def json_parse(value: str | None, default: Any) -> Any:
    """Decode a JSON text column; *default* when it is empty or corrupt."""
    if not value:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return default


def new_id() -> str:
    return str(uuid.uuid4())


def normalize_locale(locale: str | None) -> str:
    """Only English and Spanish are supported; anything else falls back to English."""
    return "es" if (locale or "").strip().lower().startswith("es") else "en"
