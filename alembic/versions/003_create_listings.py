"""003: create listings table

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE listings (
            id                      VARCHAR(64)     PRIMARY KEY,
            kind                    VARCHAR(10)     NOT NULL,
            owner_id                VARCHAR(64)     NOT NULL REFERENCES users(id),
            title                   VARCHAR(100)    NOT NULL,
            description             VARCHAR(2000)   NOT NULL,
            status                  VARCHAR(20)     NOT NULL,
            images                  TEXT[]          NOT NULL DEFAULT '{}',
            category                VARCHAR(50),
            price                   BIGINT          NOT NULL DEFAULT 0,
            original_price          BIGINT,
            currency                CHAR(3)         NOT NULL DEFAULT 'CNY',
            location                VARCHAR(200),
            ip_location             VARCHAR(50),
            available_count         INT             NOT NULL DEFAULT 1,
            reserved_count          INT             NOT NULL DEFAULT 0,
            fulfilled_count         INT             NOT NULL DEFAULT 0,
            target_country          VARCHAR(50),
            required_quantity       INT,
            expected_return_date    TIMESTAMPTZ,
            expected_tip            BIGINT          NOT NULL DEFAULT 0,
            accepted_by             VARCHAR(64)     REFERENCES users(id),
            accepted_at             TIMESTAMPTZ,
            purchaser_images        TEXT[]          NOT NULL DEFAULT '{}',
            receipt_image           VARCHAR(512),
            tracking_number         VARCHAR(64),
            tracking_company        VARCHAR(64),
            legal_agreement_version VARCHAR(32),
            condition               VARCHAR(10),
            delivery_method         VARCHAR(10),
            shipping_fee            BIGINT          NOT NULL DEFAULT 0,
            shipping_fee_paid_by    VARCHAR(10),
            version                 BIGINT          NOT NULL DEFAULT 0,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_listings_kind             CHECK (kind IN ('WANT_AD', 'ITEM')),
            CONSTRAINT ck_listings_status           CHECK (
                (kind = 'WANT_AD' AND status IN
                    ('pending', 'accepted', 'purchased', 'shipping', 'completed', 'cancelled'))
                OR (kind = 'ITEM' AND status IN ('available', 'reserved', 'sold', 'removed'))
            ),
            CONSTRAINT ck_listings_price            CHECK (price >= 0),
            CONSTRAINT ck_listings_available        CHECK (available_count >= 0),
            CONSTRAINT ck_listings_reserved         CHECK (reserved_count >= 0),
            CONSTRAINT ck_listings_fulfilled        CHECK (fulfilled_count >= 0),
            CONSTRAINT ck_listings_capacity         CHECK (
                required_quantity IS NULL
                OR available_count + reserved_count + fulfilled_count <= required_quantity
            ),
            CONSTRAINT ck_listings_want_ad_fields   CHECK (
                kind <> 'WANT_AD'
                OR (target_country IS NOT NULL AND required_quantity >= 1
                    AND expected_return_date IS NOT NULL)
            ),
            CONSTRAINT ck_listings_item_fields      CHECK (
                kind <> 'ITEM' OR (price > 0 AND category IS NOT NULL AND condition IS NOT NULL)
            ),
            CONSTRAINT ck_listings_accepted         CHECK (
                accepted_by IS NULL OR accepted_by <> owner_id
            ),
            CONSTRAINT ck_listings_condition        CHECK (
                condition IS NULL OR condition IN ('new', 'likeNew', 'good', 'fair', 'poor')
            ),
            CONSTRAINT ck_listings_delivery         CHECK (
                delivery_method IS NULL OR delivery_method IN ('pickup', 'shipping', 'negotiable')
            ),
            CONSTRAINT ck_listings_fee_paid_by      CHECK (
                shipping_fee_paid_by IS NULL
                OR shipping_fee_paid_by IN ('buyer', 'seller', 'negotiable')
            )
        );
    """)
    op.execute("CREATE INDEX idx_listings_kind_status ON listings (kind, status, id DESC);")
    op.execute("CREATE INDEX idx_listings_owner ON listings (owner_id, id DESC);")
    op.execute("""
        CREATE TRIGGER trg_listings_updated_at
            BEFORE UPDATE ON listings
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE listings IS '需求（代购）与二手商品，available_count 永不为负';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS listings CASCADE;")
