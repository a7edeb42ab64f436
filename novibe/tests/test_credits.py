"""Credit ledger tests against an in-memory SQLite database."""
from __future__ import annotations

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from novibe.config import Settings
from novibe.credits import CreditLedger, can_perform_analysis
from novibe.errors import InsufficientCredits, ValidationError
from novibe.models import Base, CreditTransaction, Profile


@pytest.fixture()
def session():
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    sess = SessionLocal()
    try:
        yield sess
    finally:
        sess.close()


@pytest.fixture()
def settings() -> Settings:
    return Settings(default_credits=3, credit_system_enabled=True)


@pytest.fixture()
def ledger(session: Session, settings: Settings) -> CreditLedger:
    return CreditLedger(session, settings)


def _transactions(session: Session, user_id: str) -> list[CreditTransaction]:
    return list(session.execute(
        select(CreditTransaction).where(CreditTransaction.user_id == user_id)
    ).scalars().all())


class TestPolicy:
    @pytest.mark.parametrize("credits,tier,allowed", [
        (0, "free", False),
        (1, "free", True),
        (0, "paid", False),
        (5, "paid", True),
        (0, "admin", True),
    ])
    def test_can_perform_analysis(self, credits, tier, allowed):
        assert can_perform_analysis(credits, tier) is allowed


class TestProfiles:
    def test_first_use_creates_profile_with_default_credits(self, ledger, session):
        profile = ledger.ensure_profile("user-1")
        assert profile.credits == 3
        assert profile.tier == "free"
        assert session.get(Profile, "user-1") is not None

    def test_tier_claim_updates_profile(self, ledger):
        ledger.ensure_profile("user-1")
        assert ledger.ensure_profile("user-1", "paid").tier == "paid"
        # no claim leaves the stored tier alone
        assert ledger.ensure_profile("user-1").tier == "paid"

    def test_unknown_tier_ignored(self, ledger):
        assert ledger.ensure_profile("user-1", "platinum").tier == "free"

    def test_get_balance(self, ledger):
        assert ledger.get_balance("user-1") == {"credits": 3, "tier": "free"}


class TestCheckCredits:
    def test_allowed_with_balance(self, ledger):
        check = ledger.check_credits("user-1")
        assert check.allowed
        assert check.credits == 3

    def test_denied_at_zero(self, ledger, session):
        ledger.ensure_profile("user-1").credits = 0
        session.commit()
        with pytest.raises(InsufficientCredits) as exc_info:
            ledger.require_credits("user-1")
        assert exc_info.value.status_code == 429
        assert exc_info.value.details == {"credits": 0, "tier": "free"}

    def test_admin_allowed_at_zero(self, ledger, session):
        ledger.ensure_profile("admin-1", "admin").credits = 0
        session.commit()
        assert ledger.require_credits("admin-1").allowed

    def test_disabled_system_always_allows(self, session):
        ledger = CreditLedger(session, Settings(default_credits=0, credit_system_enabled=False))
        assert ledger.check_credits("user-1").allowed


class TestDeductCredit:
    def test_deducts_one_and_records_transaction(self, ledger, session):
        result = ledger.deduct_credit("user-1", "op-1", "startup_analysis")
        assert result.success
        assert result.charged
        assert result.new_balance == 2
        txs = _transactions(session, "user-1")
        assert len(txs) == 1
        assert txs[0].amount == -1
        assert txs[0].type == "deduct"
        assert txs[0].operation_id == "op-1"

    def test_same_operation_charged_once(self, ledger, session):
        ledger.deduct_credit("user-1", "op-1")
        again = ledger.deduct_credit("user-1", "op-1")
        assert again.duplicate
        assert not again.charged
        assert again.new_balance == 2
        assert len(_transactions(session, "user-1")) == 1

    def test_operation_ids_are_per_user(self, ledger):
        ledger.deduct_credit("user-1", "op-1")
        assert ledger.deduct_credit("user-2", "op-1").charged

    def test_never_goes_negative(self, ledger):
        for i in range(3):
            ledger.deduct_credit("user-1", f"op-{i}")
        with pytest.raises(InsufficientCredits) as exc_info:
            ledger.deduct_credit("user-1", "op-3")
        assert exc_info.value.credits == 0
        assert ledger.get_balance("user-1")["credits"] == 0

    def test_admin_not_charged(self, ledger, session):
        ledger.ensure_profile("admin-1", "admin")
        result = ledger.deduct_credit("admin-1", "op-1")
        assert result.success
        assert not result.charged
        assert result.new_balance == 3
        assert _transactions(session, "admin-1") == []

    def test_disabled_system_not_charged(self, session):
        ledger = CreditLedger(session, Settings(default_credits=3, credit_system_enabled=False))
        assert ledger.deduct_credit("user-1", "op-1").new_balance == 3


class TestAddCredits:
    def test_grant(self, ledger, session):
        balance = ledger.add_credits("user-1", 5, "Promo", admin_user_id="admin-1")
        assert balance == {"credits": 8, "tier": "free"}
        tx = _transactions(session, "user-1")[0]
        assert tx.type == "add"
        assert tx.description == "Promo"

    def test_removal(self, ledger, session):
        assert ledger.add_credits("user-1", -2)["credits"] == 1
        assert _transactions(session, "user-1")[0].type == "admin_adjustment"

    def test_removal_below_zero_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.add_credits("user-1", -4)
        assert ledger.get_balance("user-1")["credits"] == 3

    def test_zero_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.add_credits("user-1", 0)

    def test_history_newest_first(self, ledger):
        ledger.deduct_credit("user-1", "op-1")
        ledger.add_credits("user-1", 2)
        history = ledger.list_transactions("user-1")
        assert [tx["amount"] for tx in history] == [2, -1]
        assert history[1]["metadata"] == {"analysisType": "analysis"}
