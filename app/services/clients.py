# app/services/clients.py
"""
Opérations métier sur les clients (fiche commune + produits) partagées
par les routers clients, leads et users.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from loguru import logger
from sqlalchemy import select, func, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import (
    ClientBase,
    ClientProduit,
    ClientDocument,
    Comment,
    Appointment,
    DimensioningNote,
    Lead,
    User,
    TypeProduit,
    CLIENT_BASE_FIELDS,
    TECHNICAL_FIELDS,
    DEFAULT_STATUT,
    utcnow,
)
from app.services import storage


VALID_TYPES = ", ".join(t.value for t in TypeProduit)


# =========================================================
# Validation / sérialisation
# =========================================================
def validate_type(value: Any) -> Optional[TypeProduit]:
    if isinstance(value, TypeProduit):
        return value
    try:
        return TypeProduit(str(value or "").strip())
    except ValueError:
        return None


def filter_technical(type_produit: TypeProduit, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Ne conserve que les clés techniques du type de produit."""
    if not data:
        return {}
    keys = TECHNICAL_FIELDS[type_produit]
    return {k: v for k, v in data.items() if k in keys}


def base_to_dict(base: ClientBase) -> Dict[str, Any]:
    out = {f: getattr(base, f) for f in CLIENT_BASE_FIELDS}
    out.update({
        "id": base.id,
        "client_base_id": base.id,
        "converted_from_lead_id": base.converted_from_lead_id,
        "created_at": base.created_at,
        "updated_at": base.updated_at,
    })
    return out


def produit_to_dict(p: ClientProduit, usernames: Dict[int, str] | None = None) -> Dict[str, Any]:
    return {
        "id": p.id,
        "client_base_id": p.client_base_id,
        "type_produit": p.type_produit.value,
        "donnees_techniques": p.donnees_techniques or {},
        "statut": p.statut,
        "assigned_to": p.assigned_to,
        "assigned_username": (usernames or {}).get(p.assigned_to) if p.assigned_to else None,
        "created_at": p.created_at,
        "updated_at": p.updated_at,
    }


async def usernames_by_id(db: AsyncSession, ids: Iterable[Optional[int]]) -> Dict[int, str]:
    wanted = {i for i in ids if i}
    if not wanted:
        return {}
    rows = (await db.execute(select(User.id, User.username).where(User.id.in_(wanted)))).all()
    return {uid: name for uid, name in rows}


def copy_base(source: ClientBase, societe: Optional[str] = None) -> ClientBase:
    data = {f: getattr(source, f) for f in CLIENT_BASE_FIELDS}
    if societe is not None:
        data["societe"] = societe
    return ClientBase(**data)


# =========================================================
# Suppression
# =========================================================
async def _remove_orphan_files(db: AsyncSession, document_paths: List[str], pdf_paths: List[str]) -> None:
    """Fichiers dont plus aucune ligne client_documents ne dépend (copies par duplication)."""
    for path in set(document_paths):
        still_used = (
            await db.execute(
                select(func.count()).select_from(ClientDocument).where(ClientDocument.file_path == path)
            )
        ).scalar_one()
        if not still_used:
            storage.delete_client_document(path)
    for path in pdf_paths:
        storage.delete_file(path)


async def delete_client(db: AsyncSession, base: ClientBase) -> None:
    """
    Supprime la fiche et tout ce qui en dépend (produits, commentaires, RDV,
    documents, notes). Les fichiers sont retirés du disque après commit.
    """
    doc_paths = (
        await db.execute(select(ClientDocument.file_path).where(ClientDocument.client_base_id == base.id))
    ).scalars().all()
    pdf_paths = (
        await db.execute(
            select(DimensioningNote.pdf_path).where(
                DimensioningNote.client_base_id == base.id,
                DimensioningNote.pdf_path.is_not(None),
            )
        )
    ).scalars().all()

    await db.delete(base)
    await db.commit()

    await _remove_orphan_files(db, list(doc_paths), list(pdf_paths))
    logger.info(f"[CLIENTS] client {base.id} supprimé ({len(doc_paths)} document(s))")


async def delete_produit(db: AsyncSession, produit: ClientProduit) -> bool:
    """
    Supprime un produit. Si c'était le dernier du client, le client est
    supprimé aussi. Retourne True dans ce cas.
    """
    base_id = produit.client_base_id
    await db.delete(produit)
    await db.flush()

    remaining = (
        await db.execute(
            select(func.count()).select_from(ClientProduit).where(ClientProduit.client_base_id == base_id)
        )
    ).scalar_one()

    if remaining == 0:
        base = await db.get(ClientBase, base_id)
        if base is not None:
            await delete_client(db, base)
            return True

    await db.execute(update(ClientBase).where(ClientBase.id == base_id).values(updated_at=utcnow()))
    await db.commit()
    return False


async def bulk_delete_produits(db: AsyncSession, produit_ids: List[int]) -> Dict[str, int]:
    base_ids = set(
        (
            await db.execute(
                select(ClientProduit.client_base_id).where(ClientProduit.id.in_(produit_ids))
            )
        ).scalars().all()
    )
    res = await db.execute(delete(ClientProduit).where(ClientProduit.id.in_(produit_ids)))
    await db.flush()

    orphans: List[ClientBase] = []
    for base_id in base_ids:
        remaining = (
            await db.execute(
                select(func.count()).select_from(ClientProduit).where(ClientProduit.client_base_id == base_id)
            )
        ).scalar_one()
        if remaining == 0:
            base = await db.get(ClientBase, base_id)
            if base is not None:
                orphans.append(base)

    doc_paths: List[str] = []
    pdf_paths: List[str] = []
    for base in orphans:
        doc_paths += (
            await db.execute(select(ClientDocument.file_path).where(ClientDocument.client_base_id == base.id))
        ).scalars().all()
        pdf_paths += (
            await db.execute(
                select(DimensioningNote.pdf_path).where(
                    DimensioningNote.client_base_id == base.id,
                    DimensioningNote.pdf_path.is_not(None),
                )
            )
        ).scalars().all()
        await db.delete(base)

    await db.commit()
    await _remove_orphan_files(db, doc_paths, pdf_paths)

    return {"produitsDeleted": res.rowcount or 0, "clientsDeleted": len(orphans)}


# =========================================================
# Duplication
# =========================================================
async def _copy_children(db: AsyncSession, source_id: int, target_id: int) -> Dict[str, int]:
    now = utcnow()

    comments = (await db.execute(select(Comment).where(Comment.client_base_id == source_id))).scalars().all()
    for c in comments:
        db.add(Comment(client_base_id=target_id, user_id=c.user_id, content=c.content, created_at=now))

    appointments = (
        await db.execute(select(Appointment).where(Appointment.client_base_id == source_id))
    ).scalars().all()
    for a in appointments:
        db.add(Appointment(
            client_base_id=target_id,
            user_id=a.user_id,
            title=a.title,
            date=a.date,
            time=a.time,
            location=a.location,
            notes=a.notes,
            created_at=now,
        ))

    # Même fichier physique, nouvelle ligne
    documents = (
        await db.execute(select(ClientDocument).where(ClientDocument.client_base_id == source_id))
    ).scalars().all()
    for d in documents:
        db.add(ClientDocument(
            client_base_id=target_id,
            file_name=d.file_name,
            file_path=d.file_path,
            file_type=d.file_type,
            file_size=d.file_size,
            uploaded_by=d.uploaded_by,
            uploaded_at=now,
        ))

    return {"comments": len(comments), "appointments": len(appointments), "documents": len(documents)}


async def duplicate_produit(
    db: AsyncSession,
    produit: ClientProduit,
    type_produit: TypeProduit,
    user: User,
) -> Dict[str, Any]:
    source = await db.get(ClientBase, produit.client_base_id)

    new_base = copy_base(source, societe=f"{source.societe} (copie)")
    db.add(new_base)
    await db.flush()

    new_produit = ClientProduit(
        client_base_id=new_base.id,
        type_produit=type_produit,
        donnees_techniques={},
        statut=DEFAULT_STATUT,
        assigned_to=user.id,
    )
    db.add(new_produit)

    copied = await _copy_children(db, source.id, new_base.id)
    await db.commit()

    logger.info(
        f"[CLIENTS] duplication produit {produit.id} -> client {new_base.id} "
        f"({copied['comments']} commentaires, {copied['appointments']} RDV, {copied['documents']} docs)"
    )
    return {
        "message": "Client dupliqué avec succès",
        "id": new_base.id,
        "client_base_id": new_base.id,
        "produit_id": new_produit.id,
        "type_produit": type_produit.value,
        "copied": copied,
    }


async def duplicate_client(db: AsyncSession, source: ClientBase, user: User) -> Dict[str, Any]:
    """Ancienne duplication : copie de la fiche + du premier produit (même type, mêmes données)."""
    first = (
        await db.execute(
            select(ClientProduit)
            .where(ClientProduit.client_base_id == source.id)
            .order_by(ClientProduit.id.asc())
            .limit(1)
        )
    ).scalar_one_or_none()

    new_base = copy_base(source, societe=f"{source.societe} (copie)")
    db.add(new_base)
    await db.flush()

    if first is not None:
        db.add(ClientProduit(
            client_base_id=new_base.id,
            type_produit=first.type_produit,
            donnees_techniques=dict(first.donnees_techniques or {}),
            statut=DEFAULT_STATUT,
            assigned_to=user.id,
        ))
    await db.commit()

    return {"message": "Client dupliqué avec succès", "id": new_base.id, "client_base_id": new_base.id}


# =========================================================
# Conversion lead -> client
# =========================================================
async def convert_lead(
    db: AsyncSession,
    lead: Lead,
    type_produit: TypeProduit,
    user: User,
    *,
    donnees_techniques: Optional[Dict[str, Any]] = None,
    societe: Optional[str] = None,
) -> Dict[str, Any]:
    base = ClientBase(
        societe=(societe or "").strip() or lead.full_name,
        adresse=lead.address,
        telephone=lead.phone or lead.mobile_phone,
        mail_signataire=lead.email,
        nom_signataire=lead.full_name,
        converted_from_lead_id=lead.id,
    )
    db.add(base)
    await db.flush()

    produit = ClientProduit(
        client_base_id=base.id,
        type_produit=type_produit,
        donnees_techniques=filter_technical(type_produit, donnees_techniques),
        statut=DEFAULT_STATUT,
        assigned_to=lead.assigned_to or user.id,
    )
    db.add(produit)

    moved_comments = await db.execute(
        update(Comment).where(Comment.lead_id == lead.id).values(lead_id=None, client_base_id=base.id)
    )
    moved_appointments = await db.execute(
        update(Appointment).where(Appointment.lead_id == lead.id).values(lead_id=None, client_base_id=base.id)
    )

    lead_id = lead.id
    await db.delete(lead)
    await db.commit()

    logger.info(f"[LEADS] lead {lead_id} converti en client {base.id} ({type_produit.value})")
    return {
        "message": "Lead converti en client avec succès",
        "id": base.id,
        "client_base_id": base.id,
        "produit_id": produit.id,
        "moved": {
            "comments": moved_comments.rowcount or 0,
            "appointments": moved_appointments.rowcount or 0,
        },
    }


# =========================================================
# Suppression d'un utilisateur
# =========================================================
def _plural(n: int, word: str, verb: str) -> str:
    s = "s" if n > 1 else ""
    return f"{n} {word}{s} {verb}{s}"


async def user_deletion_stats(db: AsyncSession, user_id: int) -> Dict[str, int]:
    async def count(model, column) -> int:
        return (
            await db.execute(select(func.count()).select_from(model).where(column == user_id))
        ).scalar_one()

    return {
        "clients": await count(ClientProduit, ClientProduit.assigned_to),
        "comments": await count(Comment, Comment.user_id),
        "appointments": await count(Appointment, Appointment.user_id),
        "documents": await count(ClientDocument, ClientDocument.uploaded_by),
    }


def user_deletion_impacts(stats: Dict[str, int]) -> List[str]:
    impacts: List[str] = []
    if stats["clients"]:
        impacts.append(_plural(stats["clients"], "client", "désassigné"))
    if stats["comments"]:
        impacts.append(_plural(stats["comments"], "commentaire", "supprimé"))
    if stats["appointments"]:
        n = stats["appointments"]
        impacts.append(f"{n} rendez-vous supprimé{'s' if n > 1 else ''}")
    if stats["documents"]:
        impacts.append(_plural(stats["documents"], "document", "conservé"))
    return impacts
