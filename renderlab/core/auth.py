import asyncio
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from renderlab.core.config import settings
from renderlab.schemas.auth import TokenData
from renderlab.services.supabase_service import supabase_service

logger = logging.getLogger(__name__)

security = HTTPBearer()


async def verify_token(credentials: HTTPAuthorizationCredentials = Depends(security)) -> TokenData:
    """Verify a Supabase access token and return user data"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    token = credentials.credentials

    # Local verification against the project's JWT secret (no network call)
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
        user_id = payload.get("sub")
        if user_id:
            return TokenData(user_id=user_id, email=payload.get("email") or "")
    except JWTError as e:
        logger.debug("Local JWT verification failed, trying Supabase: %s", e)

    # Fallback: ask Supabase
    try:
        user_result = await asyncio.wait_for(supabase_service.get_user(token), timeout=3.0)
    except asyncio.TimeoutError:
        logger.warning("Supabase auth timeout")
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail="Authentication service timeout"
        )
    except RuntimeError as e:
        logger.warning("Supabase auth unavailable: %s", e)
        raise credentials_exception

    if user_result["success"] and user_result.get("user"):
        user = user_result["user"]
        return TokenData(user_id=user.id, email=user.email)

    raise credentials_exception


async def get_current_user(token_data: TokenData = Depends(verify_token)) -> TokenData:
    """Get current authenticated user"""
    return token_data
