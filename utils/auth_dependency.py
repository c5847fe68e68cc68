from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from schemas.ledger import Actor
from utils.security import decode_token

security = HTTPBearer()

def actor_from_token(token: str) -> Optional[Actor]:
    """Build the acting team member from token claims: sub, team_id, name"""
    payload = decode_token(token)
    if payload is None:
        return None

    user_id = payload.get("sub")
    if not user_id or not isinstance(user_id, str):
        return None

    return Actor(
        team_id=payload.get("team_id") or "",
        user_id=user_id,
        display_name=payload.get("name") or ""
    )

async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Actor:
    actor = actor_from_token(credentials.credentials)
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not actor.team_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is not part of a team"
        )

    return actor
