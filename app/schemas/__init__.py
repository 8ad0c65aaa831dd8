# Ré-exports des schémas les plus utilisés

from .base import Msg, ImportResult
from .auth import LoginIn, LoginOut, UserPublic, ClientIpOut
from .user import UserCreate, UserUpdate, UserOut, UserLite

__all__ = [
    "Msg", "ImportResult",
    "LoginIn", "LoginOut", "UserPublic", "ClientIpOut",
    "UserCreate", "UserUpdate", "UserOut", "UserLite",
]
