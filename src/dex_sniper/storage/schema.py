"""
Ledger schema.

holdings - one row per open position, keyed by token mint
tokens   - every token that passed the risk gate (duplicate-name check)
"""

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS holdings (
        token_mint          TEXT PRIMARY KEY,
        opened_at           BIGINT NOT NULL,
        token_name          TEXT NOT NULL DEFAULT 'N/A',
        balance             NUMERIC NOT NULL,
        decimals            INTEGER,
        raw_amount          NUMERIC(20, 0),
        sol_paid            NUMERIC NOT NULL,
        sol_fee_paid        NUMERIC NOT NULL DEFAULT 0,
        paid_usd            NUMERIC NOT NULL,
        fee_usd             NUMERIC NOT NULL DEFAULT 0,
        per_token_paid_usd  NUMERIC NOT NULL,
        slot                BIGINT NOT NULL DEFAULT 0,
        program             TEXT NOT NULL DEFAULT 'N/A'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tokens (
        id          SERIAL PRIMARY KEY,
        seen_at     BIGINT NOT NULL,
        mint        TEXT NOT NULL,
        name        TEXT NOT NULL,
        creator     TEXT NOT NULL
    )
    """,
    "ALTER TABLE holdings ADD COLUMN IF NOT EXISTS raw_amount NUMERIC(20, 0)",
    "CREATE INDEX IF NOT EXISTS idx_tokens_name_creator ON tokens (name, creator)",
    "CREATE INDEX IF NOT EXISTS idx_tokens_mint ON tokens (mint)",
)
