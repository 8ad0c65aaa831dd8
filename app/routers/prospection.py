# app/routers/prospection.py
from __future__ import annotations

import csv
import io
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from loguru import logger

from app.core.config import settings
from app.core.roles import get_current_user, require_admin
from app.db.models import User
from app.schemas.prospection import ProspectionSearchIn, ProspectionExportIn
from app.services import prospection, scoring
from app.services.excel_export import build_prospects_excel

router = APIRouter(prefix="/prospection", tags=["prospection"])


def rows_to_csv(rows: List[Dict[str, Any]], headers: List[str]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=headers, delimiter=";", extrasaction="ignore")
    writer.writeheader()
    for r in rows:
        writer.writerow(r)
    return buf.getvalue()


def _export_rows(body: ProspectionExportIn) -> List[Dict[str, Any]]:
    if not settings.PROSPECTION_EXPORT_ENABLED:
        raise HTTPException(status_code=403, detail="Export de prospection désactivé")
    if not body.results:
        raise HTTPException(status_code=400, detail="Résultats de prospection requis")
    return prospection.format_for_export(body.results)


def _check_produit(type_produit: Optional[str]) -> None:
    if type_produit and type_produit not in scoring.PRODUITS:
        raise HTTPException(
            status_code=400,
            detail="typeProduit invalide (destratification, pression, matelas_isolants)",
        )


@router.post("/search")
async def search_prospects(
    body: ProspectionSearchIn,
    current_user: User = Depends(get_current_user),
):
    if not body.has_target():
        raise HTTPException(status_code=400, detail="Au moins un critère de recherche requis (NAF ou géographique)")
    _check_produit(body.typeProduit)

    logger.info(f"[PROSPECTION] recherche par {current_user.username}: {body.model_dump(exclude_none=True)}")
    return await prospection.search(body)


@router.post("/export/csv")
async def export_prospects_csv(
    body: ProspectionExportIn,
    current_user: User = Depends(get_current_user),
):
    rows = _export_rows(body)
    # BOM pour l'ouverture directe dans Excel
    content = "\ufeff" + rows_to_csv(rows, prospection.EXPORT_FIELDS)
    filename = f"prospects-{datetime.now():%Y%m%d-%H%M%S}.csv"
    return StreamingResponse(
        iter([content.encode("utf-8")]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/export/excel")
async def export_prospects_excel(
    body: ProspectionExportIn,
    current_user: User = Depends(get_current_user),
):
    rows = _export_rows(body)
    buffer = build_prospects_excel(rows, body.criteria)
    filename = f"prospects-{datetime.now():%Y%m%d-%H%M%S}.xlsx"
    return StreamingResponse(
        buffer,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/naf/relevant")
async def relevant_naf(
    typeProduit: Optional[str] = None,
    current_user: User = Depends(get_current_user),
):
    if not typeProduit:
        raise HTTPException(
            status_code=400,
            detail="typeProduit requis (destratification, pression, matelas_isolants)",
        )
    return {"typeProduit": typeProduit, "codes": prospection.relevant_naf(typeProduit)}


@router.get("/stats")
async def prospection_stats(admin: User = Depends(require_admin)):
    return {
        "maxResults": settings.PROSPECTION_MAX_RESULTS,
        "enrichLimit": settings.PROSPECTION_ENRICH_LIMIT,
        "exportEnabled": settings.PROSPECTION_EXPORT_ENABLED,
        "typesProduitsDisponibles": list(scoring.PRODUITS),
    }
