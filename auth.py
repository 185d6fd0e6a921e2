# auth.py
import logging
import secrets
from datetime import timedelta, timezone
from typing import Optional, Tuple

from fastapi import Depends, Request
from sqlmodel import Session
from werkzeug.security import check_password_hash, generate_password_hash

import settings
from database import RecordStore, get_session
from models import AuthSession, User, UserRole, utcnow
from rental_operations import MESSAGES, AuthenticationError, AuthorizationError, PreconditionError

logger = logging.getLogger(__name__)

# Checked against when the username is unknown so both failure paths cost the same
_DUMMY_HASH = generate_password_hash("not-a-real-password")


class AuthGate:
    """Password credentials and cookie sessions."""

    def __init__(self, users: RecordStore[User], sessions: RecordStore[AuthSession],
                 max_age: Optional[int] = None):
        self.users = users
        self.sessions = sessions
        self.max_age = timedelta(seconds=settings.SESSION_MAX_AGE if max_age is None else max_age)

    def find_user(self, username: str) -> Optional[User]:
        return self.users.first(User.username == username)

    def register(self, username: str, password: str, role: UserRole = UserRole.customer) -> User:
        if self.find_user(username) is not None:
            raise PreconditionError(MESSAGES["username_taken"])
        user = User(username=username, hashed_password=generate_password_hash(password), role=role)
        return self.users.create(user)

    def signup(self, username: str, password: str) -> Tuple[User, str]:
        user = self.register(username, password)
        logger.info("New customer account %s", username)
        return user, self.open_session(user)

    def authenticate(self, username: str, password: str) -> User:
        user = self.find_user(username)
        if user is None:
            check_password_hash(_DUMMY_HASH, password)
        elif check_password_hash(user.hashed_password, password):
            return user
        logger.warning("Failed login for %s", username)
        raise AuthenticationError(MESSAGES["bad_credentials"])

    def login(self, username: str, password: str) -> Tuple[User, str]:
        user = self.authenticate(username, password)
        logger.info("User %s logged in", username)
        return user, self.open_session(user)

    def open_session(self, user: User) -> str:
        self.prune_expired()
        token = secrets.token_urlsafe(32)
        self.sessions.create(AuthSession(id=token, user_id=user.id))
        return token

    def _expired(self, record: AuthSession) -> bool:
        created = record.created_at
        if created.tzinfo is None:
            # SQLite hands datetimes back naive
            created = created.replace(tzinfo=timezone.utc)
        return utcnow() - created > self.max_age

    def prune_expired(self) -> int:
        cutoff = utcnow() - self.max_age
        stale = self.sessions.list(AuthSession.created_at < cutoff)
        for record in stale:
            self.sessions.session.delete(record)
        if stale:
            self.sessions.commit()
            logger.info("Pruned %d expired sessions", len(stale))
        return len(stale)

    def logout(self, session_id: Optional[str]) -> bool:
        if not session_id:
            return False
        return self.sessions.delete(session_id)

    def resolve_session(self, session_id: Optional[str]) -> Optional[User]:
        if not session_id:
            return None
        record = self.sessions.get(session_id)
        if record is None:
            return None
        if self._expired(record):
            self.sessions.delete(record.id)
            return None
        return self.users.get(record.user_id)

    def ensure_admin(self, username: str, password: str) -> User:
        user = self.find_user(username)
        if user is None:
            user = self.register(username, password, role=UserRole.admin)
            logger.info("Seeded admin account %s", username)
        return user


def get_auth_gate(session: Session = Depends(get_session)) -> AuthGate:
    return AuthGate(RecordStore(session, User, "user"), RecordStore(session, AuthSession, "session"))


def session_token(request: Request) -> Optional[str]:
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def current_user(request: Request, gate: AuthGate = Depends(get_auth_gate)) -> Optional[User]:
    return gate.resolve_session(session_token(request))


def require_user(user: Optional[User] = Depends(current_user)) -> User:
    if user is None:
        raise AuthenticationError(MESSAGES["not_logged_in"])
    return user


def require_admin(user: User = Depends(require_user)) -> User:
    if user.role != UserRole.admin:
        raise AuthorizationError(MESSAGES["forbidden"])
    return user
