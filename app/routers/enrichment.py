# app/routers/enrichment.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger

from app.core.roles import get_current_user, require_admin
from app.db.models import User
from app.schemas.enrichment import EnrichmentSearchIn, EnrichmentFormatIn
from app.services import enrichment

router = APIRouter(prefix="/enrichment", tags=["enrichment"])


@router.get("/suggest")
async def suggest_companies(
    q: str = Query(""),
    limit: int = Query(10, ge=1, le=25),
    current_user: User = Depends(get_current_user),
):
    return await enrichment.suggest(q, limit=limit)


@router.get("/siret/{siret}")
async def enrich_siret(
    siret: str,
    typeProduit: Optional[str] = None,
    current_user: User = Depends(get_current_user),
):
    siret = siret.replace(" ", "")
    if not enrichment.is_valid_siret(siret):
        raise HTTPException(status_code=400, detail="SIRET invalide (14 chiffres attendus)")

    try:
        return await enrichment.enrich_by_siret(siret, typeProduit)
    except enrichment.CompanyNotFound:
        raise HTTPException(status_code=404, detail="Entreprise non trouvée")
    except enrichment.EnrichmentUnavailable:
        raise HTTPException(status_code=502, detail="Service d'enrichissement indisponible")


@router.post("/search")
async def search_companies(
    body: EnrichmentSearchIn,
    current_user: User = Depends(get_current_user),
):
    q = (body.q or "").strip()
    if len(q) < 2:
        raise HTTPException(status_code=400, detail="La recherche doit contenir au moins 2 caractères")

    results = await enrichment.search_companies(
        q,
        code_postal=body.codePostal,
        departement=body.departement,
        code_naf=body.codeNAF,
        limit=body.limit,
    )
    logger.info(f"[ENRICHMENT] recherche {q!r} par {current_user.username}: {len(results)} résultat(s)")
    return {"total": len(results), "results": results}


@router.post("/format")
async def format_enriched(
    body: EnrichmentFormatIn,
    current_user: User = Depends(get_current_user),
):
    if not body.enrichedData:
        raise HTTPException(status_code=400, detail="Données enrichies manquantes")
    return enrichment.format_for_database(body.enrichedData)


@router.get("/communes/{code_postal}")
async def communes(
    code_postal: str,
    current_user: User = Depends(get_current_user),
):
    if not (len(code_postal) == 5 and code_postal.isdigit()):
        raise HTTPException(status_code=400, detail="Code postal invalide")
    return await enrichment.communes_by_postal_code(code_postal)


@router.get("/address")
async def address(
    q: str = Query(""),
    postcode: Optional[str] = None,
    limit: int = Query(5, ge=1, le=20),
    current_user: User = Depends(get_current_user),
):
    return await enrichment.geocode_address(q, postcode=postcode, limit=limit)


@router.get("/health")
async def enrichment_health(admin: User = Depends(require_admin)):
    return enrichment.health()


@router.delete("/cache")
async def clear_enrichment_cache(
    pattern: Optional[str] = None,
    admin: User = Depends(require_admin),
):
    removed = enrichment.clear_cache(pattern)
    logger.info(f"[ENRICHMENT] cache vidé par {admin.username} (motif {pattern or '*'}): {removed}")
    return {"message": "Cache nettoyé avec succès", "pattern": pattern or "*", "removed": removed}
