"""User-scoped persistence for ideas and documents.

Every lookup filters on ``user_id``; a row owned by someone else is reported
exactly like a missing row (``NotFound``).
"""
from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from novibe.errors import NotFound
from novibe.models import Document, Idea
from novibe.utils import json_parse

log = logging.getLogger(__name__)

IDEA_UPDATABLE_FIELDS = ("project_status", "notes")


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def idea_summary(idea: Idea, document_count: int | None = None) -> dict[str, Any]:
    return {
        "id": idea.id, "idea_text": idea.idea_text, "source": idea.source,
        "project_status": idea.project_status, "notes": idea.notes or "",
        "tags": json_parse(idea.tags_json, []),
        "document_count": len(idea.documents) if document_count is None else document_count,
        "created_at": _iso(idea.created_at), "updated_at": _iso(idea.updated_at),
    }


def document_summary(doc: Document) -> dict[str, Any]:
    return {
        "id": doc.id, "idea_id": doc.idea_id, "document_type": doc.document_type,
        "content": json_parse(doc.content_json, {}),
        "has_audio": bool(doc.audio_base64),
        "created_at": _iso(doc.created_at),
    }


# ---------------------------------------------------------------------------
# Ideas
# ---------------------------------------------------------------------------


def save_idea(
    session: Session, user_id: str, idea_text: str, source: str = "manual",
    notes: str = "", tags: list[str] | None = None,
) -> Idea:
    idea = Idea(
        user_id=user_id, idea_text=idea_text, source=source,
        notes=notes, tags_json=json.dumps(tags or []),
    )
    session.add(idea)
    session.commit()
    session.refresh(idea)
    return idea


def find_idea_by_id(session: Session, idea_id: str, user_id: str) -> Idea:
    idea = session.execute(
        select(Idea).where(Idea.id == idea_id, Idea.user_id == user_id)
    ).scalars().first()
    if idea is None:
        raise NotFound("Idea not found")
    return idea


def list_ideas(
    session: Session, user_id: str, status: str | None = None, source: str | None = None,
) -> list[Idea]:
    query = select(Idea).where(Idea.user_id == user_id)
    if status:
        query = query.where(Idea.project_status == status)
    if source:
        query = query.where(Idea.source == source)
    return list(session.execute(query.order_by(Idea.created_at.desc(), Idea.id)).scalars().all())


def update_idea(session: Session, idea_id: str, user_id: str, updates: dict[str, Any]) -> Idea:
    """Update management fields only; the idea text itself is immutable."""
    idea = find_idea_by_id(session, idea_id, user_id)
    for field in IDEA_UPDATABLE_FIELDS:
        if updates.get(field) is not None:
            setattr(idea, field, updates[field])
    if updates.get("tags") is not None:
        idea.tags_json = json.dumps(updates["tags"])
    session.commit()
    session.refresh(idea)
    return idea


def delete_idea(session: Session, idea_id: str, user_id: str) -> None:
    """Delete an idea together with all of its documents."""
    idea = find_idea_by_id(session, idea_id, user_id)
    session.delete(idea)
    session.commit()


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


def save_document(
    session: Session, idea: Idea, document_type: str, content: dict[str, Any],
) -> Document:
    doc = Document(
        idea_id=idea.id, user_id=idea.user_id,
        document_type=document_type, content_json=json.dumps(content),
    )
    session.add(doc)
    session.commit()
    session.refresh(doc)
    return doc


def find_document(session: Session, document_id: str, user_id: str) -> Document:
    doc = session.execute(
        select(Document).where(Document.id == document_id, Document.user_id == user_id)
    ).scalars().first()
    if doc is None:
        raise NotFound("Document not found")
    return doc


def list_documents(
    session: Session, idea_id: str, user_id: str, document_type: str | None = None,
) -> list[Document]:
    find_idea_by_id(session, idea_id, user_id)
    query = select(Document).where(Document.idea_id == idea_id, Document.user_id == user_id)
    if document_type:
        query = query.where(Document.document_type == document_type)
    return list(session.execute(query.order_by(Document.created_at, Document.id)).scalars().all())


def delete_document(session: Session, document_id: str, user_id: str) -> None:
    """Delete one document. Its parent idea is left untouched."""
    doc = find_document(session, document_id, user_id)
    session.delete(doc)
    session.commit()


def attach_audio(session: Session, document_id: str, user_id: str, audio_base64: str) -> Document:
    doc = find_document(session, document_id, user_id)
    doc.audio_base64 = audio_base64
    session.commit()
    return doc


def count_documents_by_idea(session: Session, user_id: str) -> dict[str, int]:
    rows = session.execute(
        select(Document.idea_id, func.count(Document.id))
        .where(Document.user_id == user_id)
        .group_by(Document.idea_id)
    ).all()
    return {idea_id: count for idea_id, count in rows}
