"""Shared dependencies for the LMS Progress Service."""

from typing import Optional
from uuid import UUID
import httpx
from aiocache import Cache
import structlog
from jose import jwt, JWTError
from datetime import datetime, timedelta
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.lms import ParentStudentLink

logger = structlog.get_logger()

# Global instances
_redis_cache: Optional[Cache] = None
_http_client: Optional[httpx.AsyncClient] = None

# Security
security = HTTPBearer()

ROLES = ("admin", "teacher", "student", "parent")
STAFF_ROLES = ("admin", "teacher")


async def get_redis_cache():
    """Get Redis cache instance."""
    global _redis_cache

    if _redis_cache is None:
        try:
            _redis_cache = Cache.from_url(settings.REDIS_URL)
            await _redis_cache.exists("test")  # Test connection
            logger.info("Redis cache connection established")
        except Exception as e:
            logger.warning("Redis cache not available, using memory cache", error=str(e))
            _redis_cache = Cache(Cache.MEMORY)

    return _redis_cache


async def get_http_client() -> httpx.AsyncClient:
    """Get HTTP client for outbound API calls."""
    global _http_client

    if _http_client is None:
        _http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.HTTP_TIMEOUT),
            headers={
                "Content-Type": "application/json",
                "User-Agent": f"{settings.SERVICE_NAME}/{settings.APP_VERSION}"
            }
        )

    return _http_client


async def close_http_client():
    """Close the shared HTTP client, if one was opened."""
    global _http_client

    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """Create JWT access token."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.JWT_EXPIRATION_MINUTES)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return encoded_jwt


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Get current user from JWT token."""
    token = credentials.credentials

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        raise _credentials_exception()

    user_id: str = payload.get("sub")
    role = payload.get("role", "student")
    if user_id is None or role not in ROLES:
        raise _credentials_exception()
    return {"sub": user_id, "role": role}


def require_roles(*roles: str):
    """Dependency factory restricting an endpoint to the given roles."""

    async def checker(current_user: dict = Depends(get_current_user)):
        if current_user["role"] not in roles:
            raise HTTPException(status_code=403, detail="Not authorized")
        return current_user

    return checker


async def ensure_can_view_student(db: AsyncSession, current_user: dict, student_id: UUID) -> None:
    """Raise 403 unless the caller may read the records of ``student_id``.

    Parents may read the students linked to them.
    """
    if current_user["role"] in STAFF_ROLES:
        return
    if current_user["sub"] == str(student_id):
        return
    if current_user["role"] == "parent" and await is_linked_parent(db, current_user["sub"], student_id):
        return
    raise HTTPException(status_code=403, detail="Not authorized")


async def is_linked_parent(db: AsyncSession, parent_id: str, student_id: UUID) -> bool:
    try:
        parent_uuid = UUID(parent_id)
    except ValueError:
        return False

    link_id = await db.scalar(
        select(ParentStudentLink.id).where(
            ParentStudentLink.parent_id == parent_uuid,
            ParentStudentLink.student_id == student_id
        )
    )
    return link_id is not None
