import secrets
from datetime import UTC, datetime, timedelta
from typing import Annotated, Any

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app.core.db import get_db
from app.models.player import Player

bearer_scheme = HTTPBearer(auto_error=False)


def _get_jwt_secret() -> str:
    """Get the JWT secret, generating an ephemeral one for dev if not set.

    An ephemeral secret invalidates every token on restart, so configure
    ``settings.jwt_secret`` outside development.
    """
    if settings.jwt_secret:
        return settings.jwt_secret

    secret = secrets.token_urlsafe(32)
    logger.warning(
        "JWT secret not configured. Using ephemeral secret for this process; "
        "tokens will invalidate on restart."
    )
    # Keep it stable for the lifetime of the process
    settings.jwt_secret = secret
    return secret


def create_access_token(*, sub: str, is_admin: bool) -> str:
    """Create a short-lived access JWT.

    Claims:
      - sub: player id as string
      - is_admin: bool
      - exp: expiry
      - iat: issued at
    """
    now = datetime.now(UTC)
    exp = now + timedelta(seconds=settings.access_token_ttl_seconds)
    payload: dict[str, Any] = {
        "sub": sub,
        "is_admin": is_admin,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, _get_jwt_secret(), algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token.

    Raises:
        jwt.InvalidTokenError: If the token is malformed, badly signed or expired.
    """
    return jwt.decode(token, _get_jwt_secret(), algorithms=[settings.jwt_algorithm])


def get_player_id_from_token(token: str) -> int:
    """Resolve the player id carried by an access token.

    Raises:
        HTTPException: 401 if the token is invalid or carries no usable subject.
    """
    try:
        claims = decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired") from None
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token") from None

    sub = claims.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Invalid token payload")

    try:
        return int(sub)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid subject") from None


async def get_current_player(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Player:
    """Resolve the current Player from Authorization: Bearer <jwt>.

    - 401 if missing/invalid
    - 404 if the player no longer exists
    """
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Not authenticated")

    player_id = get_player_id_from_token(credentials.credentials)

    result = await db.exec(select(Player).where(Player.id == player_id))
    player = result.first()
    if not player:
        raise HTTPException(status_code=404, detail="Player not found")
    return player


def require_admin(player: Annotated[Player, Depends(get_current_player)]) -> Player:
    if not player.is_admin:
        raise HTTPException(status_code=403, detail="Admin privileges required")
    return player
