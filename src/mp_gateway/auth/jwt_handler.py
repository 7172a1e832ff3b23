"""JWT verification.

Tokens are issued by the identity service; this service only verifies them
and trusts `sub` as the actor id. HS256 with a shared JWT_SECRET.
"""

from jose import JWTError, jwt

from config.settings import settings
from src.mp_common.errors import AuthenticationRequiredError


def decode_token(token: str) -> dict[str, str]:
    """Decode and validate an access token.

    Raises:
        AuthenticationRequiredError: signature/expiry invalid, wrong token
            type, or no subject claim.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],  # Explicit list prevents algorithm confusion
        )
    except JWTError:
        raise AuthenticationRequiredError() from None

    # Refresh tokens carry type=refresh; tokens without a type are accepted
    if payload.get("type", "access") != "access" or not payload.get("sub"):
        raise AuthenticationRequiredError()
    return payload
