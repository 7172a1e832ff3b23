"""005: create legal_agreements table

Revision ID: 005
Revises: 004
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE legal_agreements (
            id              VARCHAR(64)     PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL REFERENCES users(id),
            role            VARCHAR(10)     NOT NULL,
            listing_id      VARCHAR(64),
            order_id        VARCHAR(64),
            version         VARCHAR(32)     NOT NULL,
            agreed_at       TIMESTAMPTZ     NOT NULL,
            agreed_ip       VARCHAR(64),
            user_agent      VARCHAR(512),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_legal_agreements_role CHECK (role IN ('buyer', 'seller'))
        );
    """)
    op.execute("CREATE INDEX idx_legal_agreements_user ON legal_agreements (user_id, agreed_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_legal_agreements_append_only
            BEFORE UPDATE OR DELETE ON legal_agreements
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)
    op.execute("COMMENT ON TABLE legal_agreements IS '法律确认记录，只允许插入';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS legal_agreements CASCADE;")
