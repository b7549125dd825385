"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import settings
from app.core.changefeed import ChangeFeed, LocalChangeFeed, RedisChangeFeed
from app.core.gateway import DataGateway
from app.core.redis_client import get_redis_client
from app.core.security import auth_context_from_token
from app.database import AsyncSessionLocal
from app.schemas.auth import AuthContext

# Security
security = HTTPBearer(auto_error=False)

# Global change feed and gateway instances
_changefeed: ChangeFeed | None = None
_gateway: DataGateway | None = None


def get_changefeed() -> ChangeFeed:
    """
    Get or create the change feed selected by configuration.

    Returns:
        Change feed instance
    """
    global _changefeed

    if _changefeed is None:
        if settings.uses_redis_changefeed:
            _changefeed = RedisChangeFeed(get_redis_client())
        else:
            _changefeed = LocalChangeFeed()

    return _changefeed


async def close_changefeed() -> None:
    """Close the change feed and every open subscription."""
    global _changefeed, _gateway

    if _changefeed is not None:
        await _changefeed.close()
        _changefeed = None
    _gateway = None


def get_gateway() -> DataGateway:
    """
    Get or create the data gateway.

    Returns:
        Data gateway bound to the application database
    """
    global _gateway

    if _gateway is None:
        _gateway = DataGateway(AsyncSessionLocal, get_changefeed())

    return _gateway


async def get_auth_context(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> AuthContext:
    """
    Resolve the session of the signed-in administrator.

    Args:
        credentials: Bearer token credentials, if sent

    Returns:
        Authentication context

    Raises:
        AuthMissing: If there is no valid session
    """
    return auth_context_from_token(credentials.credentials if credentials else None)


# Type aliases for dependency injection
Gateway = Annotated[DataGateway, Depends(get_gateway)]
CurrentAuth = Annotated[AuthContext, Depends(get_auth_context)]
