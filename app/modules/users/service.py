# app/modules/users/service.py
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from app.core.auth.schemas import UserResponse
from app.core.auth.service import AuthService
from app.core.exceptions import BusinessRuleError, ConflictError, NotFoundError
from app.modules.audit.service import AuditService
from app.shared.database.models import AuditAction, Role, User
from app.shared.schemas.common import MessageResponse, PaginatedResponse
from app.shared.timezone import utc_now
from .repository import UsersRepository
from .schemas import ResetPasswordRequest, UserCreateRequest, UserStatsResponse, UserUpdateRequest

logger = logging.getLogger(__name__)

_CONFLICT_MESSAGES = {
    "correo": "El correo electrónico ya está en uso",
    "username": "El nombre de usuario ya está en uso",
    "dni": "El DNI ya está registrado",
    "numero_empleado": "El número de empleado ya está registrado",
}

# Campos que nunca se guardan en la bitácora
_SECRET_FIELDS = {"password", "password_hash"}


class UsersService:
    def __init__(self, db: Session, now: Optional[datetime] = None):
        self.db = db
        self.repository = UsersRepository(db)
        self.audit = AuditService(db)
        self.now = now

    def create_user(
        self,
        user_data: UserCreateRequest,
        admin: User,
        request: Optional[Request] = None
    ) -> UserResponse:
        """Crear usuario. Correo, username, DNI y número de empleado son únicos"""
        data = user_data.model_dump()
        self._check_conflicts(data)

        password = data.pop("password")
        data["role"] = user_data.role.value
        data["password_hash"] = AuthService.hash_password(password)
        data["is_active"] = True

        user = self.repository.create(data)
        logger.info(f"Usuario creado: {user.id} - {user.username} ({user.role}) por {admin.username}")

        self.audit.log_action(
            AuditAction.CREATE, "users", admin.id,
            registro_id=user.id,
            datos_nuevos=_auditable(data),
            request=request
        )
        return UserResponse.from_user(user)

    def list_users(self, page: int, limit: int, role: Optional[Role] = None) -> PaginatedResponse:
        users, total = self.repository.list_paginated(page, limit, role.value if role else None)
        return PaginatedResponse.build(
            items=[UserResponse.from_user(u) for u in users],
            total=total,
            page=page,
            size=limit
        )

    def get_user(self, user_id: int) -> UserResponse:
        return UserResponse.from_user(self._get_or_404(user_id))

    def update_user(
        self,
        user_id: int,
        update_data: UserUpdateRequest,
        admin: User,
        request: Optional[Request] = None
    ) -> UserResponse:
        user = self._get_or_404(user_id)
        changes = update_data.model_dump(exclude_unset=True, exclude_none=True)
        self._check_conflicts(changes, exclude_id=user.id)

        if "role" in changes:
            changes["role"] = changes["role"].value
            if user.id == admin.id and changes["role"] != user.role:
                raise BusinessRuleError("No puede cambiar su propio rol")
        if "password" in changes:
            changes["password_hash"] = AuthService.hash_password(changes.pop("password"))

        anteriores = {key: getattr(user, key) for key in changes if key not in _SECRET_FIELDS}
        user = self.repository.update(user, changes)

        self.audit.log_action(
            AuditAction.UPDATE, "users", admin.id,
            registro_id=user.id,
            datos_anteriores=anteriores,
            datos_nuevos=_auditable(changes),
            descripcion="Contraseña actualizada" if "password_hash" in changes else None,
            request=request
        )
        return UserResponse.from_user(user)

    def deactivate_user(self, user_id: int, admin: User, request: Optional[Request] = None) -> MessageResponse:
        """Desactivar (soft delete). Un administrador no puede desactivarse a sí mismo"""
        user = self._get_or_404(user_id)
        if user.id == admin.id:
            raise BusinessRuleError("No puede desactivar su propia cuenta")

        self.repository.update(user, {"is_active": False})
        self.audit.log_action(
            AuditAction.DELETE, "users", admin.id,
            registro_id=user.id,
            descripcion=f"Usuario {user.username} desactivado",
            request=request
        )
        return MessageResponse(message="Usuario desactivado exitosamente")

    def activate_user(self, user_id: int, admin: User, request: Optional[Request] = None) -> MessageResponse:
        user = self._get_or_404(user_id)
        self.repository.update(user, {"is_active": True})
        self.audit.log_action(
            AuditAction.ACTIVAR, "users", admin.id,
            registro_id=user.id,
            descripcion=f"Usuario {user.username} activado",
            request=request
        )
        return MessageResponse(message="Usuario activado exitosamente")

    def reset_password(
        self,
        user_id: int,
        body: ResetPasswordRequest,
        admin: User,
        request: Optional[Request] = None
    ) -> MessageResponse:
        user = self._get_or_404(user_id)
        self.repository.update(user, {"password_hash": AuthService.hash_password(body.new_password)})
        logger.info(f"Contraseña de {user.username} restablecida por {admin.username}")
        self.audit.log_action(
            AuditAction.RESET_PASSWORD, "users", admin.id,
            registro_id=user.id,
            descripcion=f"Contraseña de {user.username} restablecida",
            request=request
        )
        return MessageResponse(message="Contraseña restablecida exitosamente")

    def get_stats(self) -> UserStatsResponse:
        """Usuarios activos, con login en los últimos 30 días y por rol"""
        now = self.now or utc_now()
        return UserStatsResponse(
            success=True,
            message="Estadísticas de usuarios",
            total_users=self.repository.count_active(),
            active_last_month=self.repository.count_active_logged_since(now - timedelta(days=30)),
            by_role=self.repository.count_active_by_role()
        )

    def _check_conflicts(self, values: dict, exclude_id: Optional[int] = None) -> None:
        conflicts = self.repository.find_conflicts(values, exclude_id)
        if conflicts:
            raise ConflictError(_CONFLICT_MESSAGES[conflicts[0]], details={"campos": conflicts})

    def _get_or_404(self, user_id: int) -> User:
        user = self.repository.get_by_id(user_id)
        if not user:
            raise NotFoundError("Usuario no encontrado")
        return user


def _auditable(data: dict) -> dict:
    return {key: value for key, value in data.items() if key not in _SECRET_FIELDS}
