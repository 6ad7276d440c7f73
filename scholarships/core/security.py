"""Security utilities: JWT identity resolution and RBAC."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from scholarships.config import settings

# HTTPBearer for simple token authentication in Swagger (just paste the access token)
security = HTTPBearer()


class Role(str, Enum):
    """Actor roles."""

    ADMIN = "admin"
    REVIEWER = "reviewer"
    STUDENT = "student"
    SYSTEM = "system"


# Role hierarchy (higher roles inherit lower role permissions)
ROLE_HIERARCHY = {
    Role.SYSTEM: [Role.SYSTEM, Role.ADMIN, Role.REVIEWER],
    Role.ADMIN: [Role.ADMIN, Role.REVIEWER],
    Role.REVIEWER: [Role.REVIEWER],
    Role.STUDENT: [Role.STUDENT],
}


@dataclass(frozen=True)
class Actor:
    """Identity of whoever performs a core operation."""

    id: str
    role: Role = Role.STUDENT

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in ROLE_HIERARCHY[self.role]

    @property
    def can_review(self) -> bool:
        return Role.REVIEWER in ROLE_HIERARCHY[self.role]

    @classmethod
    def system(cls) -> "Actor":
        return cls(id=settings.SYSTEM_ACTOR_ID, role=Role.SYSTEM)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and verify JWT token."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    """Resolve the acting identity from the Bearer token."""
    payload = decode_token(credentials.credentials)

    actor_id: str = payload.get("sub")
    if actor_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )

    try:
        role = Role(str(payload.get("role", Role.STUDENT.value)).lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Unknown role: {payload.get('role')}",
        )

    return Actor(id=str(actor_id), role=role)


def require_role(*allowed_roles: Role):
    """Dependency to check if the actor has a required role."""

    async def role_checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        granted = ROLE_HIERARCHY.get(actor.role, [actor.role])
        if any(role in granted for role in allowed_roles):
            return actor

        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Insufficient permissions. Required: {[r.value for r in allowed_roles]}",
        )

    return role_checker
