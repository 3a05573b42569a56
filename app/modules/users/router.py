# app/modules/users/router.py
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional

from app.config.database import get_db
from app.core.auth.dependencies import get_admin_user, get_market_user
from app.core.auth.schemas import UserResponse
from app.shared.database.models import Role
from app.shared.schemas.common import MessageResponse, PaginatedResponse
from .service import UsersService
from .schemas import ResetPasswordRequest, UserCreateRequest, UserStatsResponse, UserUpdateRequest

router = APIRouter()

@router.post("/", response_model=UserResponse, status_code=201)
async def create_user(
    user_data: UserCreateRequest,
    request: Request,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Crear usuario (rol USER por defecto)"""
    return UsersService(db).create_user(user_data, current_user, request)

@router.get("/", response_model=PaginatedResponse)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    role: Optional[Role] = Query(None, description="Filtrar por rol"),
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    """Usuarios con su ubicación activa"""
    return UsersService(db).list_users(page, limit, role)

@router.get("/stats", response_model=UserStatsResponse)
async def users_stats(
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return UsersService(db).get_stats()

@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    return UsersService(db).get_user(user_id)

@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    update_data: UserUpdateRequest,
    request: Request,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return UsersService(db).update_user(user_id, update_data, current_user, request)

@router.delete("/{user_id}", response_model=MessageResponse)
async def deactivate_user(
    user_id: int,
    request: Request,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Desactivar usuario (no se elimina)"""
    return UsersService(db).deactivate_user(user_id, current_user, request)

@router.patch("/{user_id}/activate", response_model=MessageResponse)
async def activate_user(
    user_id: int,
    request: Request,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return UsersService(db).activate_user(user_id, current_user, request)

@router.patch("/{user_id}/reset-password", response_model=MessageResponse)
async def reset_password(
    user_id: int,
    body: ResetPasswordRequest,
    request: Request,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Asignar una contraseña nueva a otro usuario"""
    return UsersService(db).reset_password(user_id, body, current_user, request)
