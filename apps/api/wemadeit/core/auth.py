from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session
from starlette.requests import Request

from wemadeit.auth.service import session_service
from wemadeit.core.database import get_db


@dataclass
class AuthUser:
    sub: str
    email_address: str
    name: str
    role: str
    token: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def bearer_token(request: Request) -> str:
    auth_header = request.headers.get("authorization", "")
    return auth_header[len("Bearer ") :].strip() if auth_header.startswith("Bearer ") else ""


def get_current_user(request: Request, db: Session = Depends(get_db)) -> AuthUser:
    token = bearer_token(request)
    user = session_service.authenticate(db, token) if token else None
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthorized")

    context = getattr(request.state, "context", None)
    if context is not None:
        context.user_id = user.id
    return AuthUser(sub=user.id, email_address=user.email_address, name=user.name, role=user.role, token=token)


def require_admin(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing role: admin")
    return user
