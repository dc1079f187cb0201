from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from servicebell.db.models.user import UserRole
from servicebell.schemas.base import CamelSchema


# Propriedades compartilhadas que todos os schemas de usuário terão
class UserBase(CamelSchema):
    username: str = Field(..., min_length=3, max_length=64)
    email: Optional[EmailStr] = None


# Cadastro aberto: cria o dono e o primeiro restaurante
class UserRegister(UserBase):
    password: str = Field(..., min_length=6, max_length=72)
    restaurant_name: Optional[str] = Field(None, max_length=120)


# Membro da equipe criado pelo dono
class StaffCreate(UserBase):
    password: str = Field(..., min_length=6, max_length=72)


class UserLogin(CamelSchema):
    username: str
    password: str


class UserRead(UserBase):
    id: int
    role: UserRole
    restaurant_id: Optional[int] = None
    created_at: datetime


class UserWithToken(UserRead):
    access_token: str
    token_type: str = "bearer"
