# src/mp_legal/domain/repository.py
"""Consent records are never updated or deleted, so the protocol has no such methods."""
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_legal.domain.models import LegalAgreement


class LegalAgreementRepositoryProtocol(Protocol):
    async def insert(self, agreement: LegalAgreement, db: AsyncSession) -> None: ...

    async def list_by_user(
        self, user_id: str, limit: int, db: AsyncSession
    ) -> list[LegalAgreement]: ...
