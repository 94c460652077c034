import time
import uuid
from typing import Optional, Tuple

import bcrypt
from fastapi import Depends, Request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from tenx_cards.db.session import get_session
from tenx_cards.models.user import User
from tenx_cards.utils.config import Settings
from tenx_cards.utils.dependencies import get_app_settings
from tenx_cards.utils.errors import ApiError

TOKEN_SALT = "tenx-cards-access"


def unauthorized() -> ApiError:
    return ApiError("UNAUTHORIZED", "Authentication required", 401)


class AuthService:
    """
    Usuários, senha (bcrypt) e tokens de acesso assinados (itsdangerous).
    O token carrega {sub, ver}; logout incrementa a versão e invalida os anteriores.
    """

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings
        self.serializer = URLSafeTimedSerializer(settings.SECRET_KEY, salt=TOKEN_SALT)

    def _find_by_email(self, email: str) -> Optional[User]:
        return self.db.exec(select(User).where(User.email == email)).first()

    def register(self, email: str, password: str) -> User:
        if self._find_by_email(email) is not None:
            raise ApiError("EMAIL_ALREADY_REGISTERED", "A user with this email already exists", 400)

        password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.settings.BCRYPT_ROUNDS))
        user = User(email=email, password_hash=password_hash.decode("utf-8"))
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ApiError("EMAIL_ALREADY_REGISTERED", "A user with this email already exists", 400)

        self.db.refresh(user)
        logger.info(f"👤 Usuário {user.id} registrado")
        return user

    def login(self, email: str, password: str) -> Tuple[User, str, int]:
        user = self._find_by_email(email)
        if user is None or not bcrypt.checkpw(password.encode("utf-8"), user.password_hash.encode("utf-8")):
            raise ApiError("INVALID_CREDENTIALS", "Invalid email or password", 400)

        token, expires_at = self._issue_token(user)
        return user, token, expires_at

    def _issue_token(self, user: User) -> Tuple[str, int]:
        token = self.serializer.dumps({"sub": str(user.id), "ver": user.token_version})
        return token, int(time.time()) + self.settings.ACCESS_TOKEN_TTL

    def update_password(self, user: User, new_password: str) -> Tuple[str, int]:
        """Troca a senha e invalida todos os tokens emitidos antes; devolve um token novo."""
        password_hash = bcrypt.hashpw(new_password.encode("utf-8"), bcrypt.gensalt(rounds=self.settings.BCRYPT_ROUNDS))
        user.password_hash = password_hash.decode("utf-8")
        user.token_version += 1
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"🔑 Senha do usuário {user.id} atualizada")
        return self._issue_token(user)

    def logout(self, user: User) -> None:
        user.token_version += 1
        self.db.add(user)
        self.db.commit()

    def resolve_token(self, token: str) -> User:
        try:
            payload = self.serializer.loads(token, max_age=self.settings.ACCESS_TOKEN_TTL)
        except SignatureExpired:
            raise ApiError("UNAUTHORIZED", "Access token expired", 401)
        except BadSignature:
            raise unauthorized()

        try:
            user_id = uuid.UUID(payload["sub"])
        except (KeyError, TypeError, ValueError):
            raise unauthorized()

        user = self.db.get(User, user_id)
        if user is None or user.token_version != payload.get("ver"):
            raise unauthorized()
        return user


# ---------------------------------------------------------
# Dependências FastAPI
# ---------------------------------------------------------


def get_auth_service(
    db: Session = Depends(get_session), settings: Settings = Depends(get_app_settings)
) -> AuthService:
    return AuthService(db, settings)


def get_current_user(request: Request, auth: AuthService = Depends(get_auth_service)) -> User:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise unauthorized()
    return auth.resolve_token(token.strip())
