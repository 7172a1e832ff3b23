"""FastAPI dependency: get_current_user_id.

Usage in any protected router:
    from src.mp_gateway.auth.dependencies import get_current_user_id

    @router.get("/protected")
    async def protected(user_id: Annotated[str, Depends(get_current_user_id)]):
        ...
"""

from typing import Annotated

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from src.mp_common.errors import AuthenticationRequiredError
from src.mp_gateway.auth.jwt_handler import decode_token

# auto_error=False so a missing header renders the unified error envelope
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


async def get_current_user_id(
    token: Annotated[str | None, Depends(oauth2_scheme)],
) -> str:
    """Return the actor id from the Bearer token; 401 if missing or invalid."""
    if not token:
        raise AuthenticationRequiredError()
    return decode_token(token)["sub"]
