# distribuidora/core/auth/service.py
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt, JWTError
from distribuidora.config.settings import settings

class AuthService:
    """
    Lectura de tokens emitidos por la capa de control de acceso.

    Este servicio no autentica usuarios: solo decodifica el token firmado
    para obtener el id y el rol del actor.
    """

    @staticmethod
    def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Crear token de acceso (usado por tests)"""
        to_encode = data.copy()

        if expires_delta:
            expire = datetime.now(timezone.utc) + expires_delta
        else:
            expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)

        to_encode.update({"exp": expire})

        if "user_id" not in to_encode or "role" not in to_encode:
            raise ValueError("user_id y role son requeridos en el token")

        return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

    @staticmethod
    def verify_token(token: str) -> Optional[dict]:
        """Verificar y decodificar token"""
        try:
            return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        except JWTError:
            return None
