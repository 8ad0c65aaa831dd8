# app/services/storage.py

import os
import uuid
from pathlib import Path

from loguru import logger

from app.core.config import settings

# =========================================================
# DOCUMENTS CLIENTS (UPLOAD)
# =========================================================

ALLOWED_MIME_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

BLOCKED_EXTENSIONS = {".exe", ".bat", ".cmd", ".sh", ".ps1", ".msi", ".app", ".deb", ".rpm"}


class UploadRejected(ValueError):
    """Fichier refusé (type, extension ou taille)."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def upload_dir() -> Path:
    path = Path(settings.UPLOAD_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def check_upload(original_filename: str, content_type: str | None, size: int) -> None:
    """
    Lève UploadRejected si le fichier n'est pas acceptable.
    L'extension est contrôlée avant le type MIME (un .exe déclaré en PDF reste refusé).
    """
    ext = os.path.splitext(original_filename or "")[1].lower()
    if ext in BLOCKED_EXTENSIONS:
        raise UploadRejected("Type de fichier non autorisé pour des raisons de sécurité")

    if (content_type or "").lower() not in ALLOWED_MIME_TYPES:
        raise UploadRejected(
            "Type de fichier non autorisé. Types acceptés: PDF, Images (JPG, PNG, GIF), "
            "Documents Office (Word, Excel)"
        )

    if size > settings.MAX_UPLOAD_SIZE:
        limit_mb = settings.MAX_UPLOAD_SIZE // (1024 * 1024)
        raise UploadRejected(f"Fichier trop volumineux (max {limit_mb} Mo)", status_code=413)


def store_client_document(*, original_filename: str, content: bytes) -> str:
    """
    Écrit le fichier sous UPLOAD_DIR avec un nom unique.
    Retourne le nom stocké (clé DB).
    """
    ext = os.path.splitext(original_filename or "")[1].lower()
    filename = f"{uuid.uuid4().hex}{ext}"
    path = upload_dir() / filename
    with open(path, "wb") as f:
        f.write(content)
    logger.info(f"[STORAGE] document stocké {original_filename!r} -> {filename} ({len(content)} o)")
    return filename


def get_client_document_path(filename: str) -> Path:
    # basename : la clé DB ne doit jamais sortir du dossier d'upload
    return Path(settings.UPLOAD_DIR) / Path(filename).name


def delete_client_document(filename: str) -> None:
    """
    Supprime le fichier (best effort)
    """
    path = get_client_document_path(filename)
    if path.exists():
        path.unlink()
        logger.info(f"[STORAGE] document supprimé {filename}")


# =========================================================
# NOTES DE DIMENSIONNEMENT (PDF)
# =========================================================

def pdf_dir() -> Path:
    path = Path(settings.PDF_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def store_dimensioning_pdf(*, client_id: int, content: bytes) -> str:
    filename = f"note_dimensionnement_{client_id}_{uuid.uuid4().hex[:12]}.pdf"
    path = pdf_dir() / filename
    with open(path, "wb") as f:
        f.write(content)
    logger.info(f"[STORAGE] note PDF écrite {path}")
    return str(path)


def delete_file(path: str | None) -> None:
    if not path:
        return
    p = Path(path)
    if p.exists():
        p.unlink()
