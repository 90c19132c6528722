from __future__ import annotations

from alembic import op

revision = "0001_core"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Reference tables owned by the wallet/category services
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS wallets (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS categories (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            type VARCHAR(16) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT unique_name_type UNIQUE (name, type),
            CONSTRAINT ck_categories_type CHECK (type IN ('expense', 'income'))
        );
        """
    )

    # Ledger (read by the budget reconciliation queries)
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS transactions (
            id SERIAL PRIMARY KEY,
            type VARCHAR(16) NOT NULL,
            amount BIGINT NOT NULL,
            date DATE NOT NULL,
            note TEXT,
            wallet_id INTEGER NOT NULL REFERENCES wallets(id) ON DELETE RESTRICT,
            category_id INTEGER REFERENCES categories(id) ON DELETE RESTRICT,
            transfer_id TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_transactions_type CHECK (type IN ('expense', 'income', 'transfer', 'savings'))
        );
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS idx_transactions_date ON transactions (date);")
    op.execute("CREATE INDEX IF NOT EXISTS idx_transactions_wallet_id ON transactions (wallet_id);")
    op.execute("CREATE INDEX IF NOT EXISTS idx_transactions_category_id ON transactions (category_id);")
    op.execute("CREATE INDEX IF NOT EXISTS idx_transactions_type ON transactions (type);")
    op.execute("CREATE INDEX IF NOT EXISTS idx_transactions_transfer_id ON transactions (transfer_id);")

    # Budgets: one row per (month, category)
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS budgets (
            id SERIAL PRIMARY KEY,
            month DATE NOT NULL, -- first day of month
            category_id INTEGER NOT NULL,
            limit_amount BIGINT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT fk_budgets_category_id FOREIGN KEY (category_id) REFERENCES categories(id) ON DELETE CASCADE,
            CONSTRAINT unique_month_category UNIQUE (month, category_id),
            CONSTRAINT ck_budgets_limit_amount_non_negative CHECK (limit_amount >= 0)
        );
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS idx_budgets_month ON budgets (month);")
    op.execute("CREATE INDEX IF NOT EXISTS idx_budgets_category_id ON budgets (category_id);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS budgets;")
    op.execute("DROP TABLE IF EXISTS transactions;")
    op.execute("DROP TABLE IF EXISTS categories;")
    op.execute("DROP TABLE IF EXISTS wallets;")
