# app/core/roles.py
from typing import Iterable

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_current_subject
from app.db.session import get_session
from app.db.models import User, UserRole


# Libellés acceptés par require_role (valeur ou nom, casse indifférente)
ROLE_ALIASES = {
    "ADMIN": UserRole.admin,
    "TELEPRO": UserRole.telepro,
}


def map_role(r) -> UserRole | None:
    if isinstance(r, UserRole):
        return r
    return ROLE_ALIASES.get(str(r or "").upper().strip())


async def get_current_user(
    sub: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Récupère l'utilisateur courant à partir du JWT (sub = id utilisateur).
    Lève 401 si l'utilisateur a été supprimé depuis l'émission du token.
    """
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token invalide")

    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Utilisateur non trouvé")
    return user


def require_role(roles: Iterable | str | UserRole):
    """Vérifie que l'utilisateur courant possède un rôle parmi ceux listés (valeurs ou alias)."""
    raw = roles if isinstance(roles, (list, tuple, set)) else [roles]
    needed = {map_role(r) for r in raw} - {None}

    async def dep(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in needed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Accès refusé : droits insuffisants",
            )
        return current_user
    return dep


require_admin = require_role([UserRole.admin])
