"""Consent recording.

ConsentRecorder writes inside the caller's transaction (listing and order
services call it before they commit). LegalAgreementService is the thin
composition layer behind /legal-agreements and owns its own commit.
"""
import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mp_common.datetime_utils import ensure_utc, utc_now
from src.mp_common.enums import PartyRole
from src.mp_common.errors import ForbiddenError, InvalidFieldError, MissingFieldError
from src.mp_common.id_generator import generate_id
from src.mp_legal.application.schemas import (
    AgreementListResponse,
    AgreementResponse,
    ConsentPayload,
    RecordAgreementRequest,
)
from src.mp_legal.domain.models import LegalAgreement
from src.mp_legal.domain.repository import LegalAgreementRepositoryProtocol
from src.mp_legal.infrastructure.persistence import LegalAgreementRepository

logger = logging.getLogger(__name__)

_ROLES = {r.value for r in PartyRole}


class ConsentRecorder:
    def __init__(self, repo: LegalAgreementRepositoryProtocol | None = None) -> None:
        self._repo: LegalAgreementRepositoryProtocol = repo or LegalAgreementRepository()

    async def record(
        self,
        db: AsyncSession,
        actor_id: str,
        role: str | None,
        version: str | None,
        *,
        agreed_at: datetime | None = None,
        agreed_ip: str | None = None,
        user_agent: str | None = None,
        listing_id: str | None = None,
        order_id: str | None = None,
    ) -> LegalAgreement:
        if not role:
            raise MissingFieldError("role")
        if not version:
            raise MissingFieldError("version")
        if role not in _ROLES:
            raise InvalidFieldError(f"role must be one of {sorted(_ROLES)}, got {role}")

        agreement = LegalAgreement(
            id=generate_id("agr"),
            user_id=actor_id,
            role=role,
            version=version,
            agreed_at=ensure_utc(agreed_at) if agreed_at else utc_now(),
            agreed_ip=agreed_ip,
            user_agent=user_agent,
            listing_id=listing_id,
            order_id=order_id,
        )
        await self._repo.insert(agreement, db)
        logger.info(
            "Consent recorded: user=%s role=%s version=%s listing=%s order=%s",
            actor_id,
            role,
            version,
            listing_id,
            order_id,
        )
        return agreement

    async def record_from_payload(
        self,
        db: AsyncSession,
        actor_id: str,
        role: str,
        consent: ConsentPayload | None,
        client_ip: str | None,
        *,
        listing_id: str | None = None,
        order_id: str | None = None,
    ) -> LegalAgreement:
        """Consent attached to a listing/order request; version falls back to the current one."""
        consent = consent or ConsentPayload()
        return await self.record(
            db,
            actor_id,
            role,
            consent.version or settings.DEFAULT_LEGAL_VERSION,
            agreed_at=consent.agreed_at,
            agreed_ip=consent.agreed_ip or client_ip,
            user_agent=consent.user_agent,
            listing_id=listing_id,
            order_id=order_id,
        )


class LegalAgreementService:
    def __init__(self, recorder: ConsentRecorder | None = None,
                 repo: LegalAgreementRepositoryProtocol | None = None) -> None:
        self._repo: LegalAgreementRepositoryProtocol = repo or LegalAgreementRepository()
        self._recorder = recorder or ConsentRecorder(self._repo)

    async def create(
        self,
        db: AsyncSession,
        actor_id: str,
        req: RecordAgreementRequest,
        client_ip: str,
        user_agent: str | None,
    ) -> AgreementResponse:
        try:
            agreement = await self._recorder.record(
                db,
                actor_id,
                req.role,
                req.version,
                agreed_at=req.agreed_at,
                agreed_ip=req.agreed_ip or client_ip,
                user_agent=req.user_agent or user_agent,
                listing_id=req.listing_id,
                order_id=req.order_id,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return AgreementResponse.from_domain(agreement)

    async def list_for_user(
        self, db: AsyncSession, actor_id: str, user_id: str, limit: int = 100
    ) -> AgreementListResponse:
        if actor_id != user_id:
            raise ForbiddenError("Cannot view another user's consent records")
        agreements = await self._repo.list_by_user(user_id, limit, db)
        return AgreementListResponse(items=[AgreementResponse.from_domain(a) for a in agreements])
