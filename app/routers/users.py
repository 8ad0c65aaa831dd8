# app/routers/users.py
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_async_session
from app.db.models import User, UserRole
from app.core.roles import get_current_user, require_admin
from app.core.security import hash_password
from app.schemas.user import UserCreate, UserUpdate, UserOut, UserLite
from app.services import clients as clients_service

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)


def _parse_role(value: str | None) -> UserRole:
    try:
        return UserRole(str(value or "").strip().lower())
    except ValueError:
        raise HTTPException(status_code=400, detail="Rôle invalide")


async def _username_taken(db: AsyncSession, username: str, exclude_id: int | None = None) -> bool:
    q = select(User.id).where(User.username == username)
    if exclude_id is not None:
        q = q.where(User.id != exclude_id)
    return (await db.execute(q)).first() is not None


# =========================================================
# Télépros (listes pour l'attribution / le calendrier)
# =========================================================
@router.get("/telepros", response_model=List[UserLite])
async def list_telepros(
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    rows = (
        await session.execute(select(User).where(User.role == UserRole.telepro).order_by(User.username))
    ).scalars().all()
    return rows


@router.get("/agents", response_model=List[UserLite])
async def list_agents(
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    return await list_telepros(session, current_user)


# =========================================================
# CRUD (admin)
# =========================================================
@router.get("", response_model=List[UserOut])
async def list_users(
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    return (await session.execute(select(User).order_by(User.created_at.desc()))).scalars().all()


@router.post("", response_model=UserOut, status_code=201)
async def create_user(
    body: UserCreate,
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    username = (body.username or "").strip()
    if not username or not body.password or not body.role:
        raise HTTPException(status_code=400, detail="Données manquantes")

    role = _parse_role(body.role)
    if await _username_taken(session, username):
        raise HTTPException(status_code=400, detail="Nom d'utilisateur déjà utilisé")

    user = User(
        username=username,
        password_hash=hash_password(body.password),
        role=role,
        allowed_ip=(body.allowed_ip or "").strip() or None,
        ip_restriction_enabled=bool(body.ip_restriction_enabled),
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)

    logger.info("Utilisateur %s (%s) créé par %s", user.username, role.value, admin.username)
    return user


@router.patch("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: int,
    body: UserUpdate,
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="Utilisateur introuvable")

    data = body.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=400, detail="Aucune donnée à mettre à jour")

    if "username" in data:
        username = (data["username"] or "").strip()
        if not username:
            raise HTTPException(status_code=400, detail="Nom d'utilisateur requis")
        if await _username_taken(session, username, exclude_id=user.id):
            raise HTTPException(status_code=400, detail="Nom d'utilisateur déjà utilisé")
        user.username = username

    if data.get("password"):
        user.password_hash = hash_password(data["password"])

    if "role" in data:
        role = _parse_role(data["role"])
        if user.role == UserRole.admin and role != UserRole.admin:
            admins = (
                await session.execute(select(func.count()).select_from(User).where(User.role == UserRole.admin))
            ).scalar_one()
            if admins <= 1:
                raise HTTPException(status_code=400, detail="Impossible de retirer le dernier administrateur")
        user.role = role

    if "allowed_ip" in data:
        user.allowed_ip = (data["allowed_ip"] or "").strip() or None
    if data.get("ip_restriction_enabled") is not None:
        user.ip_restriction_enabled = bool(data["ip_restriction_enabled"])

    await session.commit()
    await session.refresh(user)
    return user


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    """
    Produits et leads assignés -> désassignés (SET NULL),
    commentaires et RDV de l'utilisateur -> supprimés (CASCADE),
    documents -> conservés, uploader effacé.
    """
    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="Utilisateur introuvable")

    if user.role == UserRole.admin:
        admins = (
            await session.execute(select(func.count()).select_from(User).where(User.role == UserRole.admin))
        ).scalar_one()
        if admins <= 1:
            raise HTTPException(status_code=400, detail="Impossible de supprimer le dernier administrateur")

    if user.id == admin.id:
        raise HTTPException(status_code=400, detail="Vous ne pouvez pas supprimer votre propre compte")

    stats = await clients_service.user_deletion_stats(session, user.id)
    impacts = clients_service.user_deletion_impacts(stats)

    username = user.username
    await session.delete(user)
    await session.commit()

    logger.info("Utilisateur %s (ID: %s) supprimé par %s", username, user_id, admin.username)
    if impacts:
        logger.info("  Impacts: %s", ", ".join(impacts))

    return {
        "message": f'Utilisateur "{username}" supprimé avec succès',
        "impacts": impacts,
        "stats": stats,
    }
