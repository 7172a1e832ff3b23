"""004: create orders table

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id                      VARCHAR(64)     PRIMARY KEY,
            kind                    VARCHAR(20)     NOT NULL,
            listing_id              VARCHAR(64)     NOT NULL REFERENCES listings(id),
            buyer_id                VARCHAR(64)     NOT NULL REFERENCES users(id),
            seller_id               VARCHAR(64)     NOT NULL REFERENCES users(id),
            quantity                INT             NOT NULL,
            unit_price              BIGINT          NOT NULL,
            base_price              BIGINT          NOT NULL,
            service_fee             BIGINT          NOT NULL DEFAULT 0,
            platform_fee            BIGINT          NOT NULL DEFAULT 0,
            shipping_fee            BIGINT          NOT NULL DEFAULT 0,
            tip                     BIGINT          NOT NULL DEFAULT 0,
            total_amount            BIGINT          NOT NULL,
            status                  VARCHAR(20)     NOT NULL DEFAULT 'pending',
            settlement_status       VARCHAR(20)     NOT NULL DEFAULT 'pending',
            settlement_amount       BIGINT,
            platform_revenue        BIGINT,
            settled_at              TIMESTAMPTZ,
            delivery_method         VARCHAR(10),
            shipping_address        JSONB,
            pickup_address          VARCHAR(200),
            shipping_fee_paid_by    VARCHAR(10),
            tracking_number         VARCHAR(100),
            tracking_company        VARCHAR(100),
            notes                   VARCHAR(500),
            ip_location             VARCHAR(50),
            listing_title           VARCHAR(100),
            listing_image           VARCHAR(512),
            buyer_username          VARCHAR(64),
            buyer_avatar_url        VARCHAR(512),
            seller_username         VARCHAR(64),
            seller_avatar_url       VARCHAR(512),
            legal_agreement_version VARCHAR(32),
            buyer_legal_agreed_at   TIMESTAMPTZ,
            buyer_legal_agreed_ip   VARCHAR(64),
            seller_legal_agreed_at  TIMESTAMPTZ,
            seller_legal_agreed_ip  VARCHAR(64),
            paid_at                 TIMESTAMPTZ,
            processing_at           TIMESTAMPTZ,
            shipped_at              TIMESTAMPTZ,
            received_at             TIMESTAMPTZ,
            completed_at            TIMESTAMPTZ,
            cancelled_at            TIMESTAMPTZ,
            refunded_at             TIMESTAMPTZ,
            version                 BIGINT          NOT NULL DEFAULT 0,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_orders_kind               CHECK (kind IN ('PROXY_PURCHASE', 'MARKETPLACE')),
            CONSTRAINT ck_orders_parties            CHECK (buyer_id <> seller_id),
            CONSTRAINT ck_orders_quantity           CHECK (quantity > 0),
            CONSTRAINT ck_orders_amounts            CHECK (
                unit_price >= 0 AND base_price >= 0 AND service_fee >= 0
                AND platform_fee >= 0 AND shipping_fee >= 0 AND tip >= 0
            ),
            CONSTRAINT ck_orders_total              CHECK (
                (kind = 'PROXY_PURCHASE'
                    AND total_amount = base_price + service_fee + platform_fee + shipping_fee + tip)
                OR (kind = 'MARKETPLACE' AND total_amount = base_price + shipping_fee)
            ),
            CONSTRAINT ck_orders_status             CHECK (
                status IN ('pending', 'paid', 'processing', 'shipping', 'received',
                           'completed', 'cancelled', 'refunded')
            ),
            CONSTRAINT ck_orders_settlement_status  CHECK (
                settlement_status IN ('pending', 'processing', 'completed', 'failed')
            ),
            CONSTRAINT ck_orders_settled            CHECK (
                settlement_status <> 'completed'
                OR (settled_at IS NOT NULL AND settlement_amount IS NOT NULL
                    AND platform_revenue IS NOT NULL)
            )
        );
    """)
    op.execute("CREATE INDEX idx_orders_buyer ON orders (buyer_id, kind, id DESC);")
    op.execute("CREATE INDEX idx_orders_seller ON orders (seller_id, kind, id DESC);")
    op.execute("CREATE INDEX idx_orders_listing ON orders (listing_id);")
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE orders IS '代购订单与二手订单，金额字段创建后不变';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
