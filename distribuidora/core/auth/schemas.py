# distribuidora/core/auth/schemas.py
from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from distribuidora.config.settings import settings

class TokenPayload(BaseModel):
    """Schema para payload del token"""
    user_id: int
    role: str
    name: Optional[str] = None
    exp: Optional[datetime] = None

class Actor(BaseModel):
    """Usuario que ejecuta la operación, pasado explícitamente a cada servicio"""
    id: int
    role: str
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == settings.admin_role

    @property
    def is_courier(self) -> bool:
        return self.role == settings.courier_role
