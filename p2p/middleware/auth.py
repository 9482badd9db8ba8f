from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
import structlog

from p2p.services.auth_service import verify_access_token
from p2p.services.identity import Identity

logger = structlog.get_logger()

security = HTTPBearer()


async def get_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Identity:
    """FastAPI dependency: verify the bearer JWT and build the caller's Identity."""
    try:
        claims = verify_access_token(credentials.credentials)
        identity = Identity.from_claims(claims)
    except (JWTError, KeyError, ValueError) as e:
        logger.warning("auth_token_invalid", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": {
                    "code": "AUTH_TOKEN_INVALID",
                    "message": "Invalid or expired token",
                }
            },
            headers={"WWW-Authenticate": "Bearer"},
        )
    structlog.contextvars.bind_contextvars(user_id=identity.current_user().id)
    return identity
