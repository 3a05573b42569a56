# app/core/auth/service.py
"""
Contraseñas y tokens JWT.

Se emiten dos tokens por sesión: uno de acceso (corto, va en cada request) y
uno de refresco (largo, solo sirve en /auth/refresh). El claim "type" los
distingue y cada uno se rechaza donde se espera el otro.
"""
import logging
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from jose import jwt, JWTError
from passlib.context import CryptContext

from app.config.settings import settings
from app.core.exceptions import InvalidInputError
from app.shared.database.models import User
from app.shared.timezone import utc_now

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

PASSWORD_MIN_LENGTH = 6
# bcrypt ignora lo que pasa de 72 bytes
PASSWORD_MAX_BYTES = 72


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class AuthService:
    """Hash de contraseñas y emisión / validación de tokens"""

    # ===== CONTRASEÑAS =====

    @staticmethod
    def check_password_policy(password: str) -> None:
        """Lanza InvalidInputError si la contraseña no se puede aceptar"""
        errors = []
        if len(password) < PASSWORD_MIN_LENGTH:
            errors.append({"field": "password", "message": f"Debe tener al menos {PASSWORD_MIN_LENGTH} caracteres"})
        if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
            errors.append({"field": "password", "message": f"No puede superar {PASSWORD_MAX_BYTES} bytes"})
        if errors:
            raise InvalidInputError("Contraseña no válida", details={"errors": errors})

    @staticmethod
    def hash_password(password: str) -> str:
        AuthService.check_password_policy(password)
        return pwd_context.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
        if not plain_password or not hashed_password:
            return False
        try:
            return pwd_context.verify(plain_password, hashed_password)
        except (ValueError, TypeError) as e:
            # hash corrupto o de un esquema desconocido
            logger.warning(f"No se pudo verificar contraseña: {e}")
            return False

    # ===== TOKENS =====

    @staticmethod
    def build_claims(user: User) -> Dict[str, Any]:
        return {
            "user_id": user.id,
            "username": user.username,
            "role": user.role
        }

    @staticmethod
    def create_token(
        claims: Dict[str, Any],
        token_type: TokenType = TokenType.ACCESS,
        expires_delta: Optional[timedelta] = None
    ) -> str:
        if "user_id" not in claims:
            raise ValueError("user_id es requerido en el token")

        if expires_delta is None:
            if token_type == TokenType.REFRESH:
                expires_delta = timedelta(days=settings.refresh_token_expire_days)
            else:
                expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

        now = utc_now()
        payload = {**claims, "type": token_type.value, "iat": now, "exp": now + expires_delta}
        return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)

    @classmethod
    def create_token_pair(cls, user: User) -> Tuple[str, str]:
        """(access_token, refresh_token) para el usuario"""
        claims = cls.build_claims(user)
        return (
            cls.create_token(claims, TokenType.ACCESS),
            cls.create_token(claims, TokenType.REFRESH)
        )

    @staticmethod
    def decode_token(token: str, expected_type: TokenType = TokenType.ACCESS) -> Optional[Dict[str, Any]]:
        """
        Payload del token si la firma, la expiración y el tipo son válidos.

        Los tokens sin claim "type" se toman como de acceso.
        """
        try:
            payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        except JWTError as e:
            logger.debug(f"Token rechazado: {e}")
            return None

        if payload.get("type", TokenType.ACCESS.value) != expected_type.value:
            logger.info(f"Token de tipo '{payload.get('type')}' usado donde se espera '{expected_type.value}'")
            return None
        return payload
