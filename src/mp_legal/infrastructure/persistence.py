# src/mp_legal/infrastructure/persistence.py
"""LegalAgreementRepository: raw SQL, INSERT and SELECT only."""
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_legal.domain.models import LegalAgreement

_INSERT_AGREEMENT_SQL = text("""
    INSERT INTO legal_agreements (id, user_id, role, listing_id, order_id,
        version, agreed_at, agreed_ip, user_agent)
    VALUES (:id, :user_id, :role, :listing_id, :order_id,
        :version, :agreed_at, :agreed_ip, :user_agent)
""")

_LIST_BY_USER_SQL = text("""
    SELECT id, user_id, role, listing_id, order_id, version,
           agreed_at, agreed_ip, user_agent, created_at
    FROM legal_agreements
    WHERE user_id = :user_id
    ORDER BY agreed_at DESC, id DESC
    LIMIT :limit
""")


def _row_to_agreement(row: Any) -> LegalAgreement:
    return LegalAgreement(
        id=row.id,
        user_id=row.user_id,
        role=row.role,
        listing_id=row.listing_id,
        order_id=row.order_id,
        version=row.version,
        agreed_at=row.agreed_at,
        agreed_ip=row.agreed_ip,
        user_agent=row.user_agent,
        created_at=row.created_at,
    )


class LegalAgreementRepository:
    async def insert(self, agreement: LegalAgreement, db: AsyncSession) -> None:
        await db.execute(
            _INSERT_AGREEMENT_SQL,
            {
                "id": agreement.id,
                "user_id": agreement.user_id,
                "role": agreement.role,
                "listing_id": agreement.listing_id,
                "order_id": agreement.order_id,
                "version": agreement.version,
                "agreed_at": agreement.agreed_at,
                "agreed_ip": agreement.agreed_ip,
                "user_agent": agreement.user_agent,
            },
        )

    async def list_by_user(
        self, user_id: str, limit: int, db: AsyncSession
    ) -> list[LegalAgreement]:
        result = await db.execute(_LIST_BY_USER_SQL, {"user_id": user_id, "limit": limit})
        return [_row_to_agreement(row) for row in result.fetchall()]
