import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import select

from credit_gate.errors import InsufficientBalance, InvalidAmount, TransientFailure
from credit_gate.models import CreditTransaction, LedgerBalance, TransactionType
from credit_gate.services.ledger import BalanceEngine


def count_transactions(session, account_id):
    statement = select(CreditTransaction).where(CreditTransaction.account_id == account_id)
    return len(session.exec(statement).all())


def test_seed_use_and_rejected_debit_scenario(session, engine, test_user):
    account_id = test_user.id
    assert engine.get_balance(session, account_id) == 0

    assert engine.credit(session, account_id, 100, description="seed") == 100
    assert count_transactions(session, account_id) == 1
    first = session.exec(select(CreditTransaction)).one()
    assert first.balance_after == 100
    assert first.amount == 100

    assert engine.use_credits(session, account_id, 1, description="wizard run") == 99
    assert count_transactions(session, account_id) == 2

    with pytest.raises(InsufficientBalance) as exc_info:
        engine.debit(session, account_id, 500, description="bad admin action")

    assert exc_info.value.balance == 99
    assert exc_info.value.requested == 500
    assert engine.get_balance(session, account_id) == 99
    assert count_transactions(session, account_id) == 2


def test_get_balance_has_no_side_effects(session, engine, test_user):
    assert engine.get_balance(session, test_user.id) == 0

    rows = session.exec(select(LedgerBalance)).all()
    assert rows == []


@pytest.mark.parametrize("amount", [0, -5, 1.5, True])
def test_non_positive_or_non_integer_amounts_are_rejected(session, engine, test_user, amount):
    with pytest.raises(InvalidAmount):
        engine.credit(session, test_user.id, amount)
    with pytest.raises(InvalidAmount):
        engine.debit(session, test_user.id, amount)

    assert count_transactions(session, test_user.id) == 0


def test_debit_on_untouched_account_creates_nothing(session, engine, test_user):
    with pytest.raises(InsufficientBalance) as exc_info:
        engine.use_credits(session, test_user.id, 1)

    assert exc_info.value.balance == 0
    assert session.exec(select(LedgerBalance)).all() == []
    assert count_transactions(session, test_user.id) == 0


def test_debit_of_exact_balance_reaches_zero(session, engine, test_user):
    engine.credit(session, test_user.id, 3)

    assert engine.debit(session, test_user.id, 3) == 0
    assert engine.get_balance(session, test_user.id) == 0


def test_transaction_records_type_and_attribution(session, engine, test_user, admin_user):
    engine.credit(session, test_user.id, 10, description="promo", actor=admin_user.id)
    engine.use_credits(session, test_user.id, 2, description="wizard run")
    engine.debit(session, test_user.id, 3, description="refund clawback", actor=admin_user.id)

    statement = (
        select(CreditTransaction)
        .where(CreditTransaction.account_id == test_user.id)
        .order_by(CreditTransaction.sequence)
    )
    credit, usage, admin_debit = session.exec(statement).all()

    assert credit.transaction_type == TransactionType.ADMIN_CREDIT
    assert credit.created_by == admin_user.id
    assert usage.transaction_type == TransactionType.USAGE_DEBIT
    assert usage.created_by is None
    assert usage.amount == -2
    assert admin_debit.transaction_type == TransactionType.ADMIN_DEBIT
    assert admin_debit.balance_after == 5
    assert [t.sequence for t in (credit, usage, admin_debit)] == [1, 2, 3]
    assert credit.created_at < usage.created_at < admin_debit.created_at


def test_credit_rejects_debit_types(session, engine, test_user):
    with pytest.raises(ValueError):
        engine.credit(session, test_user.id, 5, transaction_type=TransactionType.USAGE_DEBIT)
    with pytest.raises(ValueError):
        engine.debit(session, test_user.id, 5, transaction_type=TransactionType.SEED_CREDIT)


def test_replaying_transactions_reproduces_balance(session, engine, test_user):
    engine.credit(session, test_user.id, 50)
    for _ in range(7):
        engine.use_credits(session, test_user.id, 3)
    engine.credit(session, test_user.id, 4)
    engine.debit(session, test_user.id, 10)

    report = engine.audit(session, test_user.id)

    assert report.consistent
    assert report.transaction_count == 10
    assert report.replayed_balance == engine.get_balance(session, test_user.id) == 23


def test_audit_flags_tampered_balance(session, engine, test_user):
    engine.credit(session, test_user.id, 20)

    row = session.exec(select(LedgerBalance)).one()
    row.balance = 999
    session.add(row)
    session.commit()

    report = engine.audit(session, test_user.id)
    assert not report.consistent
    assert report.stored_balance == 999
    assert report.replayed_balance == 20


def test_seed_applies_only_once(session, engine, admin_user):
    balance, seeded = engine.seed(session, admin_user.id, 1000)
    assert (balance, seeded) == (1000, True)

    engine.use_credits(session, admin_user.id, 250)

    balance, seeded = engine.seed(session, admin_user.id, 1000)
    assert (balance, seeded) == (750, False)
    assert count_transactions(session, admin_user.id) == 2


def test_has_enough(session, engine, test_user):
    engine.credit(session, test_user.id, 2)

    assert engine.has_enough(session, test_user.id, 2)
    assert not engine.has_enough(session, test_user.id, 3)
    with pytest.raises(InvalidAmount):
        engine.has_enough(session, test_user.id, 0)


def test_list_balances_includes_untouched_accounts(session, engine, test_user, pending_user):
    engine.credit(session, test_user.id, 42)

    balances = {account.email: balance for account, balance in engine.list_balances(session)}

    assert balances == {"pending@example.com": 0, "user@example.com": 42}


def test_unrelated_accounts_do_not_interfere(session, engine, test_user, pending_user):
    engine.credit(session, test_user.id, 10)
    engine.credit(session, pending_user.id, 5)
    engine.use_credits(session, pending_user.id, 5)

    assert engine.get_balance(session, test_user.id) == 10
    assert engine.get_balance(session, pending_user.id) == 0
    assert engine.audit(session, test_user.id).consistent
    assert engine.audit(session, pending_user.id).consistent


def test_gives_up_after_max_attempts(session, engine, test_user, monkeypatch):
    engine.credit(session, test_user.id, 10)

    ledger = BalanceEngine(max_attempts=3, retry_backoff=0)
    calls = []

    def always_locked(*args):
        calls.append(args)
        raise OperationalError("UPDATE ledger_balance", {}, Exception("database is locked"))

    monkeypatch.setattr(ledger, "_apply_once", always_locked)

    with pytest.raises(TransientFailure):
        ledger.use_credits(session, test_user.id, 1)

    assert len(calls) == 3
    assert engine.get_balance(session, test_user.id) == 10
    assert count_transactions(session, test_user.id) == 1
