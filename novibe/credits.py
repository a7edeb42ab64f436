"""Credit ledger: balance checks, atomic idempotent deduction and audit history.

Deduction is a single conditional UPDATE (``credits >= 1``) committed together
with its audit row, so two concurrent requests cannot both spend the last
credit, and a repeated operation id is never charged twice.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from novibe.config import Settings, get_settings
from novibe.errors import InsufficientCredits, ValidationError
from novibe.models import TIERS, CreditTransaction, Profile
from novibe.utils import json_parse

log = logging.getLogger(__name__)

ANALYSIS_COST = 1


@dataclass
class CreditCheck:
    allowed: bool
    credits: int
    tier: str


@dataclass
class DeductionResult:
    success: bool
    new_balance: int
    duplicate: bool = False
    charged: bool = True


def can_perform_analysis(credits: int, tier: str) -> bool:
    """Admins are unlimited; everyone else needs a positive balance."""
    return tier == "admin" or credits > 0


def transaction_summary(tx: CreditTransaction) -> dict[str, Any]:
    return {
        "id": tx.id, "amount": tx.amount, "type": tx.type,
        "description": tx.description, "operation_id": tx.operation_id,
        "metadata": json_parse(tx.metadata_json, {}),
        "timestamp": tx.created_at.isoformat() if tx.created_at else None,
    }


class CreditLedger:
    def __init__(self, session: Session, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()

    # -- profiles -----------------------------------------------------------

    def ensure_profile(self, user_id: str, tier: str | None = None) -> Profile:
        """Load the user's profile, creating it with the default credits on first use."""
        if tier is not None and tier not in TIERS:
            tier = None
        profile = self.session.get(Profile, user_id)
        if profile is None:
            profile = Profile(user_id=user_id, credits=self.settings.default_credits, tier=tier or "free")
            self.session.add(profile)
            try:
                self.session.commit()
                log.info("Created profile for %s with %d credits", user_id, profile.credits)
            except IntegrityError:
                # created concurrently by another request
                self.session.rollback()
                profile = self.session.get(Profile, user_id)
        if tier is not None and profile.tier != tier:
            profile.tier = tier
            self.session.commit()
        return profile

    def _current_balance(self, user_id: str) -> int:
        return self.session.execute(
            select(Profile.credits).where(Profile.user_id == user_id)
        ).scalar_one()

    # -- queries ------------------------------------------------------------

    def check_credits(self, user_id: str) -> CreditCheck:
        profile = self.ensure_profile(user_id)
        if not self.settings.credit_system_enabled:
            return CreditCheck(allowed=True, credits=profile.credits, tier=profile.tier)
        return CreditCheck(
            allowed=can_perform_analysis(profile.credits, profile.tier),
            credits=profile.credits,
            tier=profile.tier,
        )

    def require_credits(self, user_id: str) -> CreditCheck:
        """check_credits that raises InsufficientCredits when not allowed."""
        check = self.check_credits(user_id)
        if not check.allowed:
            raise InsufficientCredits(check.credits, check.tier)
        return check

    def get_balance(self, user_id: str) -> dict[str, Any]:
        profile = self.ensure_profile(user_id)
        return {"credits": profile.credits, "tier": profile.tier}

    def list_transactions(self, user_id: str, limit: int = 50) -> list[dict[str, Any]]:
        rows = self.session.execute(
            select(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)
            .order_by(CreditTransaction.id.desc())
            .limit(limit)
        ).scalars().all()
        return [transaction_summary(tx) for tx in rows]

    # -- mutations ----------------------------------------------------------

    def _find_operation(self, user_id: str, operation_id: str) -> CreditTransaction | None:
        return self.session.execute(
            select(CreditTransaction).where(
                CreditTransaction.user_id == user_id,
                CreditTransaction.operation_id == operation_id,
            )
        ).scalars().first()

    def deduct_credit(
        self, user_id: str, operation_id: str | None = None, analysis_type: str = "analysis",
    ) -> DeductionResult:
        """Spend one credit for a completed operation.

        A repeated *operation_id* returns the current balance with
        ``duplicate=True`` and charges nothing.
        """
        if operation_id and self._find_operation(user_id, operation_id) is not None:
            return DeductionResult(True, self._current_balance(user_id), duplicate=True, charged=False)

        profile = self.ensure_profile(user_id)
        if not self.settings.credit_system_enabled or profile.tier == "admin":
            return DeductionResult(True, profile.credits, charged=False)

        result = self.session.execute(
            update(Profile)
            .where(Profile.user_id == user_id, Profile.credits >= ANALYSIS_COST)
            .values(credits=Profile.credits - ANALYSIS_COST, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.session.rollback()
            balance = self._current_balance(user_id)
            raise InsufficientCredits(balance, profile.tier)

        self.session.add(CreditTransaction(
            user_id=user_id,
            amount=-ANALYSIS_COST,
            type="deduct",
            description=f"Credit deducted for {analysis_type}",
            operation_id=operation_id,
            metadata_json=json.dumps({"analysisType": analysis_type}),
        ))
        try:
            self.session.commit()
        except IntegrityError:
            # same operation id committed concurrently; our UPDATE is rolled back with it
            self.session.rollback()
            return DeductionResult(True, self._current_balance(user_id), duplicate=True, charged=False)

        self.session.refresh(profile)
        log.info("Deducted %d credit from %s for %s (balance=%d, op=%s)",
                 ANALYSIS_COST, user_id, analysis_type, profile.credits, operation_id)
        return DeductionResult(True, profile.credits)

    def add_credits(
        self, user_id: str, amount: int, description: str = "", admin_user_id: str | None = None,
    ) -> dict[str, Any]:
        """Grant (positive) or remove (negative) credits. The balance never goes below zero."""
        if amount == 0:
            raise ValidationError("Amount must be non-zero")
        profile = self.ensure_profile(user_id)
        result = self.session.execute(
            update(Profile)
            .where(Profile.user_id == user_id, Profile.credits + amount >= 0)
            .values(credits=Profile.credits + amount, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.session.rollback()
            raise ValidationError("Adjustment would make the credit balance negative")
        self.session.add(CreditTransaction(
            user_id=user_id,
            amount=amount,
            type="add" if amount > 0 else "admin_adjustment",
            description=description or ("Credits added" if amount > 0 else "Credits removed"),
            metadata_json=json.dumps({"adminUserId": admin_user_id} if admin_user_id else {}),
        ))
        self.session.commit()
        self.session.refresh(profile)
        log.info("Adjusted credits for %s by %+d (balance=%d)", user_id, amount, profile.credits)
        return {"credits": profile.credits, "tier": profile.tier}
