"""
Identity - resolves the calling actor from a bearer token
Tokens are issued by the external identity service
"""
from fastapi import APIRouter, HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from datetime import datetime, timezone, timedelta
from jose import JWTError, jwt
import os

from app.requests.domain.models import Actor, Role

# JWT Settings
SECRET_KEY = os.environ.get('SECRET_KEY', 'your-secret-key-change-in-production')
ALGORITHM = os.environ.get('JWT_ALGORITHM', 'HS256')
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24  # 24 hours

# Security
security = HTTPBearer(auto_error=False)

auth_router = APIRouter(prefix="/api/auth", tags=["Identity"])


class ActorResponse(BaseModel):
    id: str
    name: str
    role: Role


def create_access_token(actor: Actor, expires_delta: timedelta = None) -> str:
    """Issue a token for ``actor``; used by tooling and tests."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {
        "sub": actor.id,
        "name": actor.name,
        "role": actor.role.value,
        "exp": expire,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_actor(token: str) -> Actor:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="인증 정보가 유효하지 않습니다",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_exception

    user_id = payload.get("sub")
    name = payload.get("name")
    try:
        role = Role(payload.get("role"))
    except ValueError:
        raise credentials_exception
    if not user_id or not name:
        raise credentials_exception
    return Actor(id=user_id, name=name, role=role)


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="로그인이 필요합니다",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return decode_actor(credentials.credentials)


@auth_router.get("/me", response_model=ActorResponse)
async def get_me(current_actor: Actor = Depends(get_current_actor)):
    """Return the actor the bearer token resolves to"""
    return ActorResponse(id=current_actor.id, name=current_actor.name, role=current_actor.role)
