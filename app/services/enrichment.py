# app/services/enrichment.py
"""
Enrichissement des fiches clients à partir des APIs publiques françaises :
  - Recherche Entreprises (recherche-entreprises.api.gouv.fr) : SIREN/SIRET,
    dénomination, siège, NAF, dirigeants ;
  - BAN (api-adresse.data.gouv.fr) : géocodage d'adresse ;
  - Géo API (geo.api.gouv.fr) : communes d'un code postal.

Aucune clé API n'est requise. En cas d'indisponibilité, les recherches
renvoient une liste vide ; seule la recherche par SIRET lève une erreur.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from app.core.config import settings
from app.services.cache import TTLCache


class EnrichmentUnavailable(RuntimeError):
    """API externe injoignable, en erreur ou désactivée."""


class CompanyNotFound(LookupError):
    pass


MAX_PER_PAGE = 25

SOURCES = ("recherche", "ban", "geo")

cache = TTLCache(default_ttl=settings.CACHE_TTL)

# Transport httpx injectable (tests : httpx.MockTransport)
_transport: Optional[httpx.AsyncBaseTransport] = None


def is_enabled(source: str) -> bool:
    return source in (settings.ENRICHMENT_SOURCES or [])


def _cache_key(source: str, url: str, params: Dict[str, Any]) -> str:
    query = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return f"{source}:{url}?{query}"


async def _get(source: str, url: str, params: Dict[str, Any]) -> Dict[str, Any] | List[Any]:
    """
    GET JSON sur une API publique, avec cache.
    Toute erreur (réseau, HTTP, corps non JSON) remonte en httpx.HTTPError.
    """
    key = _cache_key(source, url, params)
    cached = cache.get(key)
    if cached is not None:
        logger.debug(f"[ENRICHMENT] cache HIT {key}")
        return cached

    async with httpx.AsyncClient(
        timeout=settings.ENRICHMENT_TIMEOUT,
        headers={"Accept": "application/json"},
        transport=_transport,
    ) as client:
        r = await client.get(url, params=params)
        r.raise_for_status()
        try:
            data = r.json()
        except ValueError as exc:
            raise httpx.DecodingError(f"Réponse non JSON de {url}", request=r.request) from exc

    cache.set(key, data)
    return data


# =========================================================
# Recherche Entreprises
# =========================================================
def format_result(data: Dict[str, Any]) -> Dict[str, Any]:
    siege = data.get("siege") or {}
    etablissements = data.get("matching_etablissements") or []
    return {
        "siren": data.get("siren"),
        "siret": siege.get("siret") or data.get("siret"),
        "denomination": data.get("nom_complet") or data.get("nom_raison_sociale") or "Non renseigné",
        "sigle": data.get("sigle"),
        "adresse": {
            "numeroVoie": siege.get("numero_voie") or "",
            "typeVoie": siege.get("type_voie") or "",
            "libelleVoie": siege.get("libelle_voie") or "",
            "codePostal": siege.get("code_postal") or "",
            "commune": siege.get("libelle_commune") or "",
            "adresseComplete": siege.get("geo_adresse") or siege.get("adresse") or "",
        },
        "codeNAF": data.get("activite_principale") or "",
        "libelleNAF": data.get("libelle_activite_principale") or "",
        "section": data.get("section_activite_principale") or "",
        "etatAdministratif": data.get("etat_administratif"),
        "actif": data.get("etat_administratif") == "A",
        "categorieEntreprise": data.get("categorie_entreprise"),
        "nombreEtablissements": len(etablissements),
        "dateCreation": data.get("date_creation"),
        "dateMiseAJour": data.get("date_mise_a_jour"),
        "dirigeants": [
            {
                "nom": d.get("nom"),
                "prenoms": d.get("prenoms"),
                "fonction": d.get("qualite"),
            }
            for d in (data.get("dirigeants") or [])
        ],
        "etablissements": [
            {
                "siret": e.get("siret"),
                "adresse": e.get("geo_adresse") or e.get("adresse"),
                "estSiege": e.get("est_siege"),
            }
            for e in etablissements
        ],
        "_source": "recherche-entreprises",
    }


async def search_companies(
    q: str,
    *,
    code_postal: Optional[str] = None,
    departement: Optional[str] = None,
    code_naf: Optional[str] = None,
    region: Optional[str] = None,
    limit: int = 20,
    page: int = 1,
) -> List[Dict[str, Any]]:
    q = (q or "").strip()
    if len(q) < 2 or not is_enabled("recherche"):
        return []

    params: Dict[str, Any] = {
        "q": q,
        "page": page,
        "per_page": max(1, min(limit, MAX_PER_PAGE)),
    }
    if code_postal:
        params["code_postal"] = code_postal
    if departement:
        params["departement"] = departement
    if code_naf:
        params["activite_principale"] = code_naf
    if region:
        params["region"] = region

    try:
        data = await _get("recherche", settings.RECHERCHE_ENTREPRISES_URL, params)
    except httpx.HTTPError as exc:
        logger.error(f"[ENRICHMENT] Recherche Entreprises indisponible: {exc}")
        return []

    results = (data or {}).get("results") or [] if isinstance(data, dict) else []
    logger.debug(f"[ENRICHMENT] {len(results)} résultat(s) pour {params}")
    return [format_result(item) for item in results]


async def suggest(q: str, limit: int = 10) -> List[Dict[str, Any]]:
    """Suggestions pour l'autocomplete SIRET / dénomination."""
    if not q or len(q.strip()) < 2:
        return []
    results = await search_companies(q, limit=limit)
    return [
        {
            "siret": r["siret"],
            "siren": r["siren"],
            "denomination": r["denomination"],
            "adresse": r["adresse"]["adresseComplete"],
            "codePostal": r["adresse"]["codePostal"],
            "commune": r["adresse"]["commune"],
            "codeNAF": r["codeNAF"],
            "label": f"{r['denomination']} - {r['siret']} - {r['adresse']['commune']}",
        }
        for r in results
    ]


def is_valid_siret(siret: str | None) -> bool:
    return bool(siret) and len(siret) == 14 and siret.isdigit()


async def enrich_by_siret(siret: str, type_produit: Optional[str] = None) -> Dict[str, Any]:
    """
    Fiche enrichie pour un SIRET.
    Lève CompanyNotFound si l'API ne connaît pas ce SIRET,
    EnrichmentUnavailable si l'API ne répond pas.
    """
    if not is_enabled("recherche"):
        raise EnrichmentUnavailable("source recherche désactivée")

    params = {"q": siret, "page": 1, "per_page": 1}
    try:
        data = await _get("recherche", settings.RECHERCHE_ENTREPRISES_URL, params)
    except httpx.HTTPError as exc:
        logger.error(f"[ENRICHMENT] SIRET {siret}: API indisponible ({exc})")
        raise EnrichmentUnavailable(str(exc)) from exc

    results = data.get("results") or [] if isinstance(data, dict) else []
    if not results:
        raise CompanyNotFound(f"SIRET {siret} non trouvé")

    company = format_result(results[0])
    logger.info(f"[ENRICHMENT] SIRET {siret} -> {company['denomination']}")

    return {
        "siret": siret,
        "siren": siret[:9],
        "typeProduit": type_produit,
        "dateEnrichissement": datetime.now(timezone.utc).isoformat(),
        "sources": ["recherche-entreprises"],
        "denomination": company["denomination"],
        "adresse": company["adresse"],
        "codeNAF": company["codeNAF"],
        "libelleNAF": company["libelleNAF"],
        "actif": company["actif"],
        "dirigeants": company["dirigeants"],
        "donnees": {"recherche": company},
        "donneesTechniques": {},
    }


def format_for_database(enriched: Dict[str, Any]) -> Dict[str, Any]:
    """Convertit une fiche enrichie en champs client_base."""
    adresse = enriched.get("adresse") or {}
    return {
        "societe": enriched.get("denomination"),
        "siret": enriched.get("siret"),
        "telephone": enriched.get("telephone"),
        "code_naf": enriched.get("codeNAF"),
        "adresse": adresse.get("adresseComplete") or "",
        "code_postal": adresse.get("codePostal") or "",
        "ville": adresse.get("commune") or "",
        "donnees_techniques": enriched.get("donneesTechniques") or {},
        "donnees_enrichies": {
            "sources": enriched.get("sources") or [],
            "dateEnrichissement": enriched.get("dateEnrichissement"),
            "donnees": enriched.get("donnees") or {},
        },
    }


# =========================================================
# Géocodage (BAN / Géo API)
# =========================================================
async def communes_by_postal_code(code_postal: str) -> List[Dict[str, Any]]:
    if not is_enabled("geo"):
        return []
    params = {"codePostal": code_postal, "fields": "nom,code,codesPostaux", "format": "json"}
    try:
        data = await _get("geo", settings.GEO_API_URL, params)
    except httpx.HTTPError as exc:
        logger.error(f"[GEO] communes {code_postal}: {exc}")
        return []

    return [
        {"nom": c.get("nom"), "code_insee": c.get("code"), "code_postal": code_postal}
        for c in (data if isinstance(data, list) else [])
    ]


async def geocode_address(q: str, postcode: Optional[str] = None, limit: int = 5) -> List[Dict[str, Any]]:
    q = (q or "").strip()
    if len(q) < 3 or not is_enabled("ban"):
        return []
    params: Dict[str, Any] = {"q": q, "limit": limit}
    if postcode:
        params["postcode"] = postcode

    try:
        data = await _get("ban", settings.BAN_API_URL, params)
    except httpx.HTTPError as exc:
        logger.error(f"[BAN] géocodage {q!r}: {exc}")
        return []

    out: List[Dict[str, Any]] = []
    for feat in (data.get("features") or [] if isinstance(data, dict) else []):
        props = feat.get("properties") or {}
        coords = (feat.get("geometry") or {}).get("coordinates") or [None, None]
        out.append({
            "label": props.get("label"),
            "adresse": props.get("name"),
            "code_postal": props.get("postcode"),
            "ville": props.get("city"),
            "code_insee": props.get("citycode"),
            "contexte": props.get("context"),
            "score": props.get("score"),
            "longitude": coords[0],
            "latitude": coords[1],
        })
    return out


def health() -> Dict[str, Any]:
    return {
        "apis": {
            "recherche": {"enabled": is_enabled("recherche"), "url": settings.RECHERCHE_ENTREPRISES_URL},
            "ban": {"enabled": is_enabled("ban"), "url": settings.BAN_API_URL},
            "geo": {"enabled": is_enabled("geo"), "url": settings.GEO_API_URL},
        },
        "cache": {"enabled": settings.CACHE_TTL > 0, "ttl": settings.CACHE_TTL, "entries": len(cache)},
        "timeout": settings.ENRICHMENT_TIMEOUT,
    }


def clear_cache(pattern: Optional[str] = None) -> int:
    return cache.clear(pattern or "*")
