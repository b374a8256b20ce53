"""credit ledger schema

Revision ID: 0001_credit_ledger
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_credit_ledger"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "account",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column(
            "approval_status",
            sa.Enum("PENDING", "APPROVED", "REJECTED", name="approvalstatus"),
            nullable=False,
        ),
        sa.Column("is_admin", sa.Boolean(), nullable=False),
        sa.Column("is_disabled", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_account_email", "account", ["email"], unique=True)

    op.create_table(
        "ledger_balance",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("balance", sa.BigInteger(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("balance >= 0", name="ck_ledger_balance_non_negative"),
        sa.ForeignKeyConstraint(["account_id"], ["account.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ledger_balance_account_id", "ledger_balance", ["account_id"], unique=True)

    op.create_table(
        "credit_transaction",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("balance_after", sa.BigInteger(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column(
            "transaction_type",
            sa.Enum("USAGE_DEBIT", "ADMIN_CREDIT", "ADMIN_DEBIT", "SEED_CREDIT", name="transactiontype"),
            nullable=False,
        ),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("created_by", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount <> 0", name="ck_credit_transaction_non_zero"),
        sa.CheckConstraint("balance_after >= 0", name="ck_credit_transaction_balance_after"),
        sa.ForeignKeyConstraint(["account_id"], ["account.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("account_id", "sequence", name="uq_credit_transaction_sequence"),
    )
    op.create_index(
        "ix_credit_transaction_account_created",
        "credit_transaction",
        ["account_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_credit_transaction_account_created", table_name="credit_transaction")
    op.drop_table("credit_transaction")
    op.drop_index("ix_ledger_balance_account_id", table_name="ledger_balance")
    op.drop_table("ledger_balance")
    op.drop_index("ix_account_email", table_name="account")
    op.drop_table("account")
    sa.Enum(name="transactiontype").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="approvalstatus").drop(op.get_bind(), checkfirst=True)
