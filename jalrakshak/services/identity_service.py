from __future__ import annotations

import hashlib
import os

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from jalrakshak.domain.models import (
    BootstrapAdminRequest,
    RegisterRequest,
    User,
    UserCreate,
    UserProfileUpdate,
    UserRole,
    Utility,
    UtilityCreate,
    now_utc,
)
from jalrakshak.domain.permissions import permissions_for_role
from jalrakshak.infra.db import get_engine


class IdentityError(Exception):
    pass


class NotFoundError(IdentityError):
    pass


class ConflictError(IdentityError):
    pass


class AuthError(IdentityError):
    pass


class IdentityService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _hash_password(self, raw_password: str) -> str:
        salt = os.getenv("PASSWORD_SALT", "jalrakshak-dev-salt")
        return hashlib.sha256(f"{salt}:{raw_password}".encode()).hexdigest()

    @staticmethod
    def _normalize_email(email: str) -> str:
        return email.strip().lower()

    def _get_scoped_user(self, session: Session, utility_id: str, user_id: str) -> User | None:
        statement = select(User).where(User.utility_id == utility_id).where(User.id == user_id)
        return session.exec(statement).first()

    def _insert_user(self, session: Session, user: User) -> User:
        session.add(user)
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise ConflictError("email already registered in utility") from exc
        session.refresh(user)
        return user

    def create_utility(self, payload: UtilityCreate) -> Utility:
        with self._session() as session:
            utility = Utility(name=payload.name.strip())
            session.add(utility)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("utility name already exists") from exc
            session.refresh(utility)
            return utility

    def get_utility(self, utility_id: str) -> Utility:
        with self._session() as session:
            utility = session.get(Utility, utility_id)
            if utility is None:
                raise NotFoundError("utility not found")
            return utility

    def bootstrap_admin(self, payload: BootstrapAdminRequest) -> User:
        with self._session() as session:
            if session.get(Utility, payload.utility_id) is None:
                raise NotFoundError("utility not found")
            existing = session.exec(select(User).where(User.utility_id == payload.utility_id)).first()
            if existing is not None:
                raise ConflictError("utility already initialized")
            admin = User(
                utility_id=payload.utility_id,
                email=self._normalize_email(payload.email),
                full_name=payload.full_name,
                role=UserRole.ADMIN,
                password_hash=self._hash_password(payload.password),
            )
            return self._insert_user(session, admin)

    def register_citizen(self, payload: RegisterRequest) -> User:
        with self._session() as session:
            if session.get(Utility, payload.utility_id) is None:
                raise NotFoundError("utility not found")
            user = User(
                utility_id=payload.utility_id,
                email=self._normalize_email(payload.email),
                full_name=payload.full_name,
                role=UserRole.CITIZEN,
                phone=payload.phone,
                location=payload.location,
                password_hash=self._hash_password(payload.password),
            )
            return self._insert_user(session, user)

    def create_user(self, utility_id: str, payload: UserCreate) -> User:
        with self._session() as session:
            user = User(
                utility_id=utility_id,
                email=self._normalize_email(payload.email),
                full_name=payload.full_name,
                role=payload.role,
                phone=payload.phone,
                location=payload.location,
                password_hash=self._hash_password(payload.password),
            )
            return self._insert_user(session, user)

    def list_users(self, utility_id: str, *, role: UserRole | None = None) -> list[User]:
        with self._session() as session:
            statement = select(User).where(User.utility_id == utility_id)
            if role is not None:
                statement = statement.where(User.role == role)
            return list(session.exec(statement).all())

    def get_user(self, utility_id: str, user_id: str) -> User:
        with self._session() as session:
            user = self._get_scoped_user(session, utility_id, user_id)
            if user is None:
                raise NotFoundError("user not found")
            return user

    def update_profile(self, utility_id: str, user_id: str, payload: UserProfileUpdate) -> User:
        with self._session() as session:
            user = self._get_scoped_user(session, utility_id, user_id)
            if user is None:
                raise NotFoundError("user not found")
            if payload.full_name is not None:
                user.full_name = payload.full_name
            if payload.phone is not None:
                user.phone = payload.phone
            if payload.location is not None:
                user.location = payload.location
            if payload.password is not None:
                user.password_hash = self._hash_password(payload.password)
            user.updated_at = now_utc()
            session.add(user)
            session.commit()
            session.refresh(user)
            return user

    def set_active(self, utility_id: str, user_id: str, is_active: bool) -> User:
        with self._session() as session:
            user = self._get_scoped_user(session, utility_id, user_id)
            if user is None:
                raise NotFoundError("user not found")
            user.is_active = is_active
            user.updated_at = now_utc()
            session.add(user)
            session.commit()
            session.refresh(user)
            return user

    def login(self, utility_id: str, email: str, password: str) -> tuple[User, list[str]]:
        with self._session() as session:
            statement = (
                select(User)
                .where(User.utility_id == utility_id)
                .where(User.email == self._normalize_email(email))
            )
            user = session.exec(statement).first()
            if user is None:
                raise AuthError("invalid credentials")
            if not user.is_active:
                raise AuthError("user disabled")
            if user.password_hash != self._hash_password(password):
                raise AuthError("invalid credentials")
        return user, permissions_for_role(user.role)
