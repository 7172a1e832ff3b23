"""Pydantic schemas for mp_legal API."""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from src.mp_legal.domain.models import LegalAgreement


class ConsentPayload(BaseModel):
    """Consent details a client attaches to a listing/order request."""

    version: str | None = Field(None, max_length=32)
    agreed_at: datetime | None = None
    agreed_ip: str | None = Field(None, max_length=64)
    user_agent: str | None = Field(None, max_length=512)


class RecordAgreementRequest(BaseModel):
    role: Literal["buyer", "seller"] | None = None
    version: str | None = Field(None, max_length=32)
    listing_id: str | None = None
    order_id: str | None = None
    agreed_at: datetime | None = None
    agreed_ip: str | None = Field(None, max_length=64)
    user_agent: str | None = Field(None, max_length=512)


class AgreementResponse(BaseModel):
    id: str
    user_id: str
    role: str
    version: str
    listing_id: str | None
    order_id: str | None
    agreed_at: str
    agreed_ip: str | None
    user_agent: str | None

    @classmethod
    def from_domain(cls, agreement: LegalAgreement) -> "AgreementResponse":
        return cls(
            id=agreement.id,
            user_id=agreement.user_id,
            role=agreement.role,
            version=agreement.version,
            listing_id=agreement.listing_id,
            order_id=agreement.order_id,
            agreed_at=agreement.agreed_at.isoformat(),
            agreed_ip=agreement.agreed_ip,
            user_agent=agreement.user_agent,
        )


class AgreementListResponse(BaseModel):
    items: list[AgreementResponse]
