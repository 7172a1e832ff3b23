"""Legal consent record: append-only audit evidence."""
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class LegalAgreement:
    id: str
    user_id: str
    role: str  # buyer / seller
    version: str
    agreed_at: datetime
    agreed_ip: str | None = None
    user_agent: str | None = None
    listing_id: str | None = None
    order_id: str | None = None
    created_at: datetime | None = None
