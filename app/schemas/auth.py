from typing import Optional

from pydantic import BaseModel

from app.db.models import UserRole


class LoginIn(BaseModel):
    # Champs optionnels : l'absence est traitée en 400 par le router
    username: Optional[str] = None
    password: Optional[str] = None


class UserPublic(BaseModel):
    id: int
    username: str
    role: UserRole

    class Config:
        from_attributes = True


class LoginOut(BaseModel):
    token: str
    user: UserPublic


class ClientIpOut(BaseModel):
    ip: str
