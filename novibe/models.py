from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from novibe.utils import new_id

TIERS = ("free", "paid", "admin")
IDEA_SOURCES = ("manual", "frankenstein")
PROJECT_STATUSES = ("idea", "in_progress", "completed", "archived")
DOCUMENT_TYPES = (
    "startup_analysis", "hackathon_analysis",
    "prd", "technical_design", "architecture", "roadmap",
)
GENERATED_DOCUMENT_TYPES = ("prd", "technical_design", "architecture", "roadmap")
TRANSACTION_TYPES = ("deduct", "add", "refund", "admin_adjustment")


class Base(DeclarativeBase):
    pass


class Profile(Base):
    """Credit balance and tier for one user. The user itself lives in the auth provider."""
    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    credits: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    tier: Mapped[str] = mapped_column(String(20), nullable=False, default="free")  # free | paid | admin
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())


class CreditTransaction(Base):
    """Immutable audit row. Rows are only ever inserted."""
    __tablename__ = "credit_transactions"
    __table_args__ = (UniqueConstraint("user_id", "operation_id", name="uq_credit_tx_operation"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False)  # deduct | add | refund | admin_adjustment
    description: Mapped[str] = mapped_column(Text, default="")
    operation_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    metadata_json: Mapped[str] = mapped_column(Text, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class Idea(Base):
    __tablename__ = "ideas"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    idea_text: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="manual")  # manual | frankenstein
    project_status: Mapped[str] = mapped_column(String(20), nullable=False, default="idea")
    notes: Mapped[str] = mapped_column(Text, default="")
    tags_json: Mapped[str] = mapped_column(Text, default="[]")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    documents: Mapped[list[Document]] = relationship(
        "Document", back_populates="idea", cascade="all, delete-orphan",
    )


class Document(Base):
    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    idea_id: Mapped[str] = mapped_column(String(36), ForeignKey("ideas.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    document_type: Mapped[str] = mapped_column(String(30), nullable=False)
    content_json: Mapped[str] = mapped_column(Text, default="{}")
    audio_base64: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    idea: Mapped[Idea] = relationship("Idea", back_populates="documents")
