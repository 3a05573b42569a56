import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from app.config.database import get_db
from app.core.auth.service import AuthService, TokenType
from app.core.auth.schemas import (
    ChangePasswordRequest, RefreshTokenRequest, TokenResponse, UserLogin, UserResponse
)
from app.core.auth.dependencies import get_current_user
from app.core.exceptions import BusinessRuleError
from app.modules.audit.service import AuditService
from app.shared.database.models import AuditAction, User
from app.shared.schemas.common import MessageResponse
from app.shared.timezone import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )

def _token_response(user: User) -> TokenResponse:
    access_token, refresh_token = AuthService.create_token_pair(user)
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        user=UserResponse.from_user(user)
    )

def _authenticate(db: Session, username: str, password: str, request: Request) -> TokenResponse:
    user = db.query(User).filter(User.username == username).first()

    if not user or not AuthService.verify_password(password, user.password_hash):
        logger.info(f"Login fallido para '{username}'")
        raise _unauthorized("Usuario o contraseña incorrectos")

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Usuario inactivo"
        )

    user.last_login = utc_now()
    db.commit()
    AuditService(db).log_action(
        AuditAction.LOGIN, "users", user.id,
        registro_id=user.id,
        descripcion=f"Inicio de sesión de {user.username}",
        request=request
    )
    return _token_response(user)

@router.post("/login", response_model=TokenResponse)
async def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """
    Login con formulario OAuth2

    **Parámetros:**
    - **username**: Nombre de usuario
    - **password**: Contraseña del usuario
    """
    return _authenticate(db, form_data.username, form_data.password, request)

@router.post("/login-json", response_model=TokenResponse)
async def login_json(
    user_login: UserLogin,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Login alternativo que acepta JSON

    **Body:**
    ```json
        {
            "username": "admin",
            "password": "admin123"
        }
    ```
    """
    return _authenticate(db, user_login.username, user_login.password, request)

@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    body: RefreshTokenRequest,
    db: Session = Depends(get_db)
):
    """
    Nuevo par de tokens a partir del token de refresco.

    Un token de acceso no sirve aquí, y el usuario debe seguir activo.
    """
    payload = AuthService.decode_token(body.refresh_token, TokenType.REFRESH)
    if payload is None:
        raise _unauthorized("Token de refresco inválido o expirado")

    user = db.query(User).filter(User.id == payload.get("user_id")).first()
    if user is None or not user.is_active:
        raise _unauthorized("Usuario no encontrado o inactivo")

    return _token_response(user)

@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Perfil del usuario actual"""
    return UserResponse.from_user(current_user)

@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Cambiar la contraseña propia. Requiere la contraseña actual"""
    if not AuthService.verify_password(body.current_password, current_user.password_hash):
        raise BusinessRuleError("La contraseña actual es incorrecta")

    current_user.password_hash = AuthService.hash_password(body.new_password)
    db.commit()
    AuditService(db).log_action(
        AuditAction.CAMBIAR_PASSWORD, "users", current_user.id,
        registro_id=current_user.id,
        descripcion=f"{current_user.username} cambió su contraseña",
        request=request
    )
    return MessageResponse(message="Contraseña actualizada exitosamente")

@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Logout (con JWT stateless queda registrado en auditoría)

    En el frontend debes eliminar los tokens del storage.
    """
    AuditService(db).log_action(
        AuditAction.LOGOUT, "users", current_user.id,
        registro_id=current_user.id,
        request=request
    )
    return MessageResponse(message="Logout exitoso. Elimina el token del cliente.")
