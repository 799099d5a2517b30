# distribuidora/core/auth/dependencies.py
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import List

from distribuidora.core.auth.service import AuthService
from distribuidora.core.auth.schemas import Actor, TokenPayload
from distribuidora.core.exceptions import PermissionDeniedError

security = HTTPBearer()

class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Actor:
    """Obtener actor desde el token de la capa de control de acceso"""

    payload = AuthService.verify_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Token inválido o expirado")

    try:
        token = TokenPayload(**payload)
    except ValueError:
        raise AuthenticationError("Payload del token inválido")

    return Actor(id=token.user_id, role=token.role, name=token.name)

def require_roles(allowed_roles: List[str]):
    """Factory para crear dependency que requiere roles específicos"""
    def role_checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed_roles:
            raise PermissionDeniedError(
                f"Rol '{actor.role}' no autorizado. Roles permitidos: {allowed_roles}"
            )
        return actor
    return role_checker

# Dependencies específicas por rol
def get_admin_actor(actor: Actor = Depends(require_roles(["admin"]))):
    """Dependency para administradores"""
    return actor

def get_courier_actor(actor: Actor = Depends(require_roles(["transportista", "admin"]))):
    """Dependency para transportistas"""
    return actor

def get_staff_actor(actor: Actor = Depends(require_roles(["preventista", "deposito", "transportista", "admin"]))):
    """Dependency para cualquier rol operativo"""
    return actor
