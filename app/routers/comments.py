# app/routers/comments.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_async_session
from app.db.models import Comment, Lead, User
from app.core.roles import get_current_user
from app.schemas.comment import CommentCreate, CommentOut

router = APIRouter(prefix="/comments", tags=["comments"])


def comment_out(c: Comment, username: str | None) -> CommentOut:
    return CommentOut(
        id=c.id,
        lead_id=c.lead_id,
        client_base_id=c.client_base_id,
        user_id=c.user_id,
        username=username,
        content=c.content,
        created_at=c.created_at,
    )


def comments_query():
    """Commentaires + auteur, les plus récents d'abord."""
    return (
        select(Comment, User.username)
        .join(User, User.id == Comment.user_id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )


@router.get("/lead/{lead_id}", response_model=List[CommentOut])
async def list_lead_comments(
    lead_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    rows = (await session.execute(comments_query().where(Comment.lead_id == lead_id))).all()
    return [comment_out(c, username) for c, username in rows]


@router.post("", response_model=CommentOut, status_code=201)
async def create_comment(
    body: CommentCreate,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    content = (body.content or "").strip()
    if not body.lead_id or not content:
        raise HTTPException(status_code=400, detail="Données manquantes")

    if not await session.get(Lead, body.lead_id):
        raise HTTPException(status_code=404, detail="Lead introuvable")

    c = Comment(lead_id=body.lead_id, user_id=current_user.id, content=content)
    session.add(c)
    await session.commit()
    await session.refresh(c)
    return comment_out(c, current_user.username)


@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    c = await session.get(Comment, comment_id)
    if not c:
        raise HTTPException(status_code=404, detail="Commentaire introuvable")

    # Auteur ou admin
    if c.user_id != current_user.id and not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Non autorisé")

    await session.delete(c)
    await session.commit()
    return {"message": "Commentaire supprimé"}
