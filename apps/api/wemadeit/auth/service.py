from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from wemadeit import audit
from wemadeit.auth.models import User, UserSession, utcnow
from wemadeit.auth.schemas import LoginRequest, LoginResponse, UserRead, UserWrite
from wemadeit.core.config import get_settings
from wemadeit.core.database import atomic
from wemadeit.core.security import hash_password, new_token, verify_password
from wemadeit.crm.cascade import cascade_engine
from wemadeit.crm.models import ensure_utc


logger = logging.getLogger("wemadeit.auth")

SESSION_TOKEN_BYTES = 32


class UserService:
    def list_users(self, session: Session) -> list[UserRead]:
        rows = session.scalars(select(User).order_by(User.created_at.desc(), User.id.desc())).all()
        return [UserRead.model_validate(row) for row in rows]

    def get_user(self, session: Session, user_id: str) -> UserRead:
        user = session.get(User, user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")
        return UserRead.model_validate(user)

    def find_by_email(self, session: Session, email_address: str) -> User | None:
        return session.scalar(select(User).where(User.email_address == email_address.strip().lower()))

    def put_user(self, session: Session, actor_user_id: str | None, dto: UserWrite) -> UserRead:
        with atomic(session, "save user"):
            if dto.id is not None:
                user = session.get(User, dto.id)
                if user is None:
                    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")
                action = "replace"
            else:
                if dto.password is None:
                    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="password is required")
                user = User()
                session.add(user)
                action = "create"

            user.email_address = dto.email_address
            user.name = dto.name
            user.role = dto.role
            if dto.password is not None:
                user.password_hash = hash_password(dto.password)
            user.updated_at = utcnow()
            session.flush()
            user_id = user.id

        audit.record(
            actor_user_id=actor_user_id,
            entity_type="auth.user",
            entity_id=user_id,
            action=action,
            before=None,
            after={"email_address": dto.email_address, "role": dto.role},
        )
        return UserRead.model_validate(user)

    def delete_user(self, session: Session, actor_user_id: str | None, user_id: str) -> bool:
        return cascade_engine.delete(session, "user", user_id, actor_user_id=actor_user_id)


class SessionService:
    def login(
        self,
        session: Session,
        dto: LoginRequest,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> LoginResponse:
        email = dto.email.strip().lower()
        if not email or not dto.password:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="email and password are required")

        user = user_service.find_by_email(session, email)
        if user is None or not verify_password(dto.password, user.password_hash):
            logger.info("auth.login_rejected", extra={"error": "invalid credentials"})
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid credentials")

        ttl = timedelta(hours=get_settings().session_ttl_hours)
        now = utcnow()
        with atomic(session, "create session"):
            user_session = UserSession(
                token=new_token(SESSION_TOKEN_BYTES),
                user_id=user.id,
                created_at=now,
                expires_at=now + ttl,
                user_agent=user_agent,
                ip_address=ip_address,
            )
            session.add(user_session)
            token = user_session.token
            expires_at = user_session.expires_at

        logger.info("auth.login", extra={"user_id": user.id})
        return LoginResponse(token=token, expires_at=expires_at, user=UserRead.model_validate(user))

    def logout(self, session: Session, token: str) -> None:
        with atomic(session, "delete session"):
            session.execute(delete(UserSession).where(UserSession.token == token))

    def authenticate(self, session: Session, token: str) -> User | None:
        """Resolve a bearer token to its user; expired sessions are removed on sight."""
        if not token:
            return None
        user_session = session.get(UserSession, token)
        if user_session is None:
            return None
        user_id = user_session.user_id
        if ensure_utc(user_session.expires_at) <= utcnow():
            with atomic(session, "expire session"):
                session.execute(delete(UserSession).where(UserSession.token == token))
            logger.info("auth.session_expired", extra={"user_id": user_id})
            return None
        return session.get(User, user_id)


user_service = UserService()
session_service = SessionService()
