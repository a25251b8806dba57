"""
FastAPI Dependencies

Authentication context forwarded by the upstream gateway.

Authentication itself happens upstream; requests arrive with the caller's
identity in headers:
- X-Student-Id: opaque identifier of the authenticated user
- X-User-Role: "student" (default) or "admin"
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Query, status

from app.enums.study import UserRole


@dataclass(frozen=True)
class AuthContext:
    """Identity of the caller."""

    user_id: str
    role: UserRole = UserRole.STUDENT

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


async def get_auth_context(
    x_student_id: Optional[str] = Header(None, alias="X-Student-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> AuthContext:
    """
    Build the auth context from gateway headers.

    Raises:
        HTTPException: 401 if the identity header is missing or the role is unknown
    """
    if not x_student_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Student-Id header",
        )

    try:
        role = UserRole(x_user_role) if x_user_role else UserRole.STUDENT
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role '{x_user_role}'",
        )

    return AuthContext(user_id=x_student_id, role=role)


async def require_admin(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
    """Allow only admin callers."""
    if not auth.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return auth


async def resolve_student_id(
    student_id: Optional[str] = Query(
        None, description="Student to act on (admin only; defaults to the caller)"
    ),
    auth: AuthContext = Depends(get_auth_context),
) -> str:
    """
    Student a request is scoped to.

    Students always act on themselves; admins may name another student.
    """
    if student_id is None or student_id == auth.user_id:
        return auth.user_id
    if not auth.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can act on behalf of another student",
        )
    return student_id


# Dependencies that can be used in routers
RequireAdmin = Depends(require_admin)
