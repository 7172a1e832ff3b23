"""mp_legal REST API: consent records for the current user."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.database import get_db_session
from src.mp_common.response import ApiResponse, success_response
from src.mp_gateway.auth.dependencies import get_current_user_id
from src.mp_geo.client_address import get_client_ip
from src.mp_legal.application.schemas import RecordAgreementRequest
from src.mp_legal.application.service import LegalAgreementService

router = APIRouter(prefix="/legal-agreements", tags=["legal"])

_service = LegalAgreementService()


@router.post("", status_code=201)
async def record_agreement(
    body: RecordAgreementRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create(
        db, user_id, body, get_client_ip(request), request.headers.get("user-agent")
    )
    return success_response(data.model_dump(), request)


@router.get("/user/{target_user_id}")
async def list_user_agreements(
    target_user_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(100, ge=1, le=500, description="Max records"),
) -> ApiResponse:
    data = await _service.list_for_user(db, user_id, target_user_id, limit)
    return success_response(data.model_dump(), request)
