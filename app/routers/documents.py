# app/routers/documents.py
from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from fastapi.responses import FileResponse
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.roles import get_current_user
from app.db.models import ClientBase, ClientDocument, User
from app.db.session import get_async_session
from app.services import storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])


def _read_limited(upload: UploadFile, max_bytes: int) -> bytes:
    # max_bytes + 1 : un fichier trop gros reste détectable sans tout lire
    return upload.file.read(max_bytes + 1)


def _document_out(doc: ClientDocument, username: str | None = None) -> Dict[str, Any]:
    return {
        "id": doc.id,
        "client_base_id": doc.client_base_id,
        "file_name": doc.file_name,
        "file_type": doc.file_type,
        "file_size": doc.file_size,
        "uploaded_by": doc.uploaded_by,
        "uploaded_by_username": username,
        "uploaded_at": doc.uploaded_at,
    }


# =========================================================
#   POST /documents/upload/{client_id}
# =========================================================
@router.post("/upload/{client_id}", status_code=201)
async def upload_document(
    client_id: int,
    file: UploadFile = File(...),
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    if not file or not file.filename:
        raise HTTPException(status_code=400, detail="Aucun fichier fourni")

    content = _read_limited(file, settings.MAX_UPLOAD_SIZE)
    try:
        storage.check_upload(file.filename, file.content_type, len(content))
    except storage.UploadRejected as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    # Client vérifié avant écriture : aucun fichier orphelin
    if not await session.get(ClientBase, client_id):
        raise HTTPException(status_code=404, detail="Client introuvable")

    stored = storage.store_client_document(original_filename=file.filename, content=content)

    doc = ClientDocument(
        client_base_id=client_id,
        file_name=file.filename,
        file_path=stored,
        file_type=file.content_type,
        file_size=len(content),
        uploaded_by=current_user.id,
    )
    session.add(doc)
    await session.commit()
    await session.refresh(doc)

    return _document_out(doc, current_user.username)


# =========================================================
#   GET /documents/client/{client_id}
# =========================================================
@router.get("/client/{client_id}")
async def list_client_documents(
    client_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    rows = (
        await session.execute(
            select(ClientDocument, User.username)
            .outerjoin(User, User.id == ClientDocument.uploaded_by)
            .where(ClientDocument.client_base_id == client_id)
            .order_by(ClientDocument.uploaded_at.desc(), ClientDocument.id.desc())
        )
    ).all()
    return [_document_out(d, u) for d, u in rows]


# =========================================================
#   GET /documents/download/{id}
# =========================================================
@router.get("/download/{document_id}")
async def download_document(
    document_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    doc = await session.get(ClientDocument, document_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Document introuvable")

    path = storage.get_client_document_path(doc.file_path)
    if not path.exists():
        raise HTTPException(status_code=404, detail="Fichier introuvable sur le serveur")

    return FileResponse(
        str(path),
        media_type=doc.file_type or "application/octet-stream",
        filename=doc.file_name,
    )


# =========================================================
#   DELETE /documents/{id}
# =========================================================
@router.delete("/{document_id}")
async def delete_document(
    document_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    doc = await session.get(ClientDocument, document_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Document introuvable")

    if doc.uploaded_by != current_user.id and not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Non autorisé - vous devez être l'uploadeur ou admin")

    stored = doc.file_path
    await session.delete(doc)
    await session.commit()

    # Fichier partagé avec une copie (duplication) : on le garde
    remaining = (
        await session.execute(
            select(func.count()).select_from(ClientDocument).where(ClientDocument.file_path == stored)
        )
    ).scalar_one()
    if not remaining:
        storage.delete_client_document(stored)

    logger.info("Document %s supprimé par %s", document_id, current_user.username)
    return {"message": "Document supprimé"}
