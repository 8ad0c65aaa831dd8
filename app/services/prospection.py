# app/services/prospection.py
"""
Prospection : recherche d'entreprises par NAF / zone, géocodage BAN des premiers résultats,
puis score de pertinence pour le produit ciblé (voir services/scoring.py).
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger

from app.core.config import settings
from app.schemas.prospection import ProspectionSearchIn
from app.services import enrichment, scoring

DEFAULT_PRODUIT = "destratification"
DEFAULT_QUERY = "entreprise"

# recherche-entreprises exige un texte : mot-clé par code NAF
NAF_TO_KEYWORD: Dict[str, str] = {
    "47.11F": "hypermarche",
    "47.11D": "supermarche",
    "52.10A": "entrepot",
    "52.10B": "entrepot",
    "56.10A": "restaurant",
    "56.10C": "restaurant",
    "56.29A": "restauration",
    "93.11Z": "sport",
    "10.11Z": "viande",
    "10.71A": "boulangerie",
    "86.10Z": "hopital",
    "87.10A": "ehpad",
    "55.10Z": "hotel",
    "85.31Z": "college",
    "85.32Z": "lycee",
    "24.10Z": "acier",
    "24.51Z": "fonderie",
    "20.11Z": "chimie",
    "10.51A": "laiterie",
}

PERTINENCE_ORDER = {"très haute": 3, "haute": 2, "moyenne": 1}

NAF_BY_PRODUCT: Dict[str, List[Dict[str, str]]] = {
    "destratification": [
        {"code": "47.11F", "label": "Hypermarchés", "pertinence": "très haute", "raison": "Grands volumes avec hauteur >8m"},
        {"code": "47.11D", "label": "Supermarchés", "pertinence": "très haute", "raison": "Surfaces importantes avec hauteur"},
        {"code": "52.10A", "label": "Entreposage et stockage frigorifique", "pertinence": "très haute", "raison": "Entrepôts >10m de hauteur"},
        {"code": "52.10B", "label": "Entreposage et stockage non frigorifique", "pertinence": "très haute", "raison": "Entrepôts >10m de hauteur"},
        {"code": "56.10A", "label": "Restauration traditionnelle", "pertinence": "haute", "raison": "Cuisines avec hauteur et zones chaudes"},
        {"code": "56.10C", "label": "Restauration de type rapide", "pertinence": "haute", "raison": "Cuisines avec zones chaudes"},
        {"code": "56.29A", "label": "Restauration collective sous contrat", "pertinence": "haute", "raison": "Cuisines collectives"},
        {"code": "93.11Z", "label": "Gestion d'installations sportives", "pertinence": "très haute", "raison": "Salles de sport >8m"},
        {"code": "10.11Z", "label": "Transformation et conservation de la viande de boucherie", "pertinence": "haute", "raison": "Usines agroalimentaires"},
        {"code": "10.13A", "label": "Préparation industrielle de produits à base de viande", "pertinence": "haute", "raison": "Usines agroalimentaires"},
        {"code": "10.71A", "label": "Fabrication industrielle de pain et de pâtisserie fraîche", "pertinence": "haute", "raison": "Fours industriels avec hauteur"},
        {"code": "41.20A", "label": "Construction de maisons individuelles", "pertinence": "moyenne", "raison": "Hangars de chantier"},
        {"code": "41.20B", "label": "Construction d'autres bâtiments", "pertinence": "moyenne", "raison": "Hangars de chantier"},
    ],
    "pression": [
        {"code": "86.10Z", "label": "Activités hospitalières", "pertinence": "très haute", "raison": "Hôpitaux avec chauffage collectif"},
        {"code": "87.10A", "label": "Hébergement médicalisé pour personnes âgées", "pertinence": "très haute", "raison": "EHPAD avec chauffage central"},
        {"code": "87.20A", "label": "Hébergement social pour handicapés mentaux", "pertinence": "haute", "raison": "Établissements avec chauffage collectif"},
        {"code": "87.30A", "label": "Hébergement social pour personnes âgées", "pertinence": "haute", "raison": "Résidences avec chauffage collectif"},
        {"code": "55.10Z", "label": "Hôtels et hébergement similaire", "pertinence": "très haute", "raison": "Hôtels avec chauffage central"},
        {"code": "55.20Z", "label": "Hébergement touristique et autre hébergement de courte durée", "pertinence": "haute", "raison": "Résidences avec chauffage"},
        {"code": "85.31Z", "label": "Enseignement secondaire général", "pertinence": "haute", "raison": "Collèges/Lycées avec chauffage collectif"},
        {"code": "85.32Z", "label": "Enseignement secondaire technique ou professionnel", "pertinence": "haute", "raison": "Établissements avec chauffage collectif"},
        {"code": "85.42Z", "label": "Enseignement supérieur", "pertinence": "haute", "raison": "Universités avec chauffage collectif"},
        {"code": "93.13Z", "label": "Activités de centres de culture physique", "pertinence": "moyenne", "raison": "Centres sportifs avec chauffage"},
        {"code": "68.20A", "label": "Location de logements", "pertinence": "haute", "raison": "Bailleurs sociaux avec chauffage collectif"},
        {"code": "68.20B", "label": "Location de terrains et d'autres biens immobiliers", "pertinence": "moyenne", "raison": "Gestionnaires immobiliers"},
    ],
    "matelas_isolants": [
        {"code": "24.10Z", "label": "Sidérurgie", "pertinence": "très haute", "raison": "Sites ICPE avec fours industriels"},
        {"code": "24.51Z", "label": "Fonderie de métaux ferreux", "pertinence": "très haute", "raison": "Sites ICPE avec fours >1000°C"},
        {"code": "24.52Z", "label": "Fonderie de métaux légers", "pertinence": "très haute", "raison": "Sites ICPE avec fours industriels"},
        {"code": "24.53Z", "label": "Fonderie d'autres métaux non ferreux", "pertinence": "très haute", "raison": "Sites ICPE avec fours"},
        {"code": "25.11Z", "label": "Fabrication de structures métalliques", "pertinence": "haute", "raison": "Ateliers ICPE avec soudage"},
        {"code": "20.11Z", "label": "Fabrication de gaz industriels", "pertinence": "très haute", "raison": "Sites ICPE avec installations cryogéniques"},
        {"code": "20.13A", "label": "Enrichissement et retraitement de matières nucléaires", "pertinence": "très haute", "raison": "Sites ICPE sensibles"},
        {"code": "20.14Z", "label": "Fabrication d'autres produits chimiques organiques de base", "pertinence": "très haute", "raison": "Sites ICPE chimie"},
        {"code": "20.15Z", "label": "Fabrication de produits azotés et d'engrais", "pertinence": "haute", "raison": "Sites ICPE avec process thermiques"},
        {"code": "10.11Z", "label": "Transformation et conservation de la viande de boucherie", "pertinence": "haute", "raison": "Chambres froides industrielles"},
        {"code": "10.13A", "label": "Préparation industrielle de produits à base de viande", "pertinence": "haute", "raison": "Installations frigorifiques"},
        {"code": "10.20Z", "label": "Transformation et conservation de poisson", "pertinence": "haute", "raison": "Chambres froides"},
        {"code": "10.51A", "label": "Exploitation de laiteries et fabrication de fromage", "pertinence": "haute", "raison": "Process thermiques et froids"},
        {"code": "23.51Z", "label": "Fabrication de ciment", "pertinence": "très haute", "raison": "Sites ICPE avec fours rotatifs"},
        {"code": "23.52Z", "label": "Fabrication de chaux et plâtre", "pertinence": "haute", "raison": "Sites ICPE avec fours"},
        {"code": "29.10Z", "label": "Construction de véhicules automobiles", "pertinence": "haute", "raison": "Usines avec cabines de peinture"},
    ],
}

# Colonnes de l'export CSV (ordre conservé)
EXPORT_FIELDS = [
    "siret", "siren", "denomination", "adresse", "codePostal", "commune", "departement", "region",
    "codeNAF", "libelleNAF", "telephone", "email", "actif", "scorePertinence", "eligible",
    "hauteur", "surface", "nbEtages", "classeDPE", "typeChauffage", "energieChauffage",
    "isolationToiture", "isolationMurs", "isolationFenetres", "siteICPE", "typeICPE",
    "produitsRecommandes", "cumacMin", "cumacMax", "nbSourcesEnrichies", "sourcesUtilisees",
    "dateEnrichissement",
]


def normalize_naf(code: Optional[str]) -> Optional[str]:
    """4711F -> 47.11F (l'API attend le point)."""
    if not code:
        return None
    code = code.strip().upper()
    if len(code) >= 5 and "." not in code:
        return f"{code[:2]}.{code[2:]}"
    return code


def relevant_naf(type_produit: str) -> List[Dict[str, str]]:
    codes = list(NAF_BY_PRODUCT.get(type_produit, []))
    codes.sort(key=lambda c: PERTINENCE_ORDER.get(c["pertinence"], 0), reverse=True)
    return codes


async def _fetch_companies(query: str, criteria: ProspectionSearchIn, code_naf: Optional[str], limit: int):
    companies: List[Dict[str, Any]] = []
    page = 1
    while len(companies) < limit:
        batch = await enrichment.search_companies(
            query,
            code_postal=criteria.codePostal,
            departement=criteria.departement,
            code_naf=code_naf,
            region=criteria.region,
            limit=min(limit - len(companies), enrichment.MAX_PER_PAGE),
            page=page,
        )
        companies.extend(batch)
        if len(batch) < enrichment.MAX_PER_PAGE:
            break
        page += 1
    return companies[:limit]


def _ban_from_feature(feature: Dict[str, Any]) -> Dict[str, Any]:
    # contexte BAN : "59, Nord, Hauts-de-France"
    parts = [p.strip() for p in (feature.get("contexte") or "").split(",") if p.strip()]
    return {
        "label": feature.get("label"),
        "codePostal": feature.get("code_postal"),
        "commune": feature.get("ville"),
        "codeInsee": feature.get("code_insee"),
        "departement": parts[0] if parts else None,
        "region": parts[-1] if len(parts) > 1 else None,
        "score": feature.get("score"),
        "coordinates": {"latitude": feature.get("latitude"), "longitude": feature.get("longitude")},
    }


async def enrich_prospect(company: Dict[str, Any], produit: str) -> Optional[Dict[str, Any]]:
    """company : sortie de enrichment.format_result()."""
    siret = company.get("siret")
    if not siret:
        logger.warning(f"[PROSPECTION] SIRET manquant pour {company.get('denomination')}")
        return None

    adresse = company.get("adresse") or {}
    prospect: Dict[str, Any] = {
        "siret": siret,
        "siren": siret[:9],
        "dateEnrichissement": datetime.now(timezone.utc).isoformat(),
        "produitCible": produit,
        "sources": ["recherche-entreprises"],
        "sirene": {
            "denomination": company.get("denomination"),
            "adresse": adresse,
            "codeNAF": company.get("codeNAF"),
            "libelleNAF": company.get("libelleNAF"),
            "actif": company.get("actif"),
        },
        "ban": None,
        "coordinates": None,
    }

    if adresse.get("adresseComplete"):
        features = await enrichment.geocode_address(
            adresse["adresseComplete"], postcode=adresse.get("codePostal") or None, limit=1
        )
        if features and features[0].get("latitude") is not None:
            ban = _ban_from_feature(features[0])
            prospect["ban"] = ban
            prospect["coordinates"] = ban["coordinates"]
            prospect["sirene"]["adresse"] = {**adresse, "departement": ban["departement"]}
            prospect["sources"].append("ban")

    return prospect


def _technical_match(p: Dict[str, Any], criteria: ProspectionSearchIn) -> bool:
    bdnb, bdtopo = p.get("bdnb") or {}, p.get("bdtopo") or {}

    if criteria.codesNAF and len(criteria.codesNAF) > 1:
        naf = ((p.get("sirene") or {}).get("codeNAF") or "").replace(".", "")
        if naf and not any(naf.startswith(c.replace(".", "")) for c in criteria.codesNAF):
            return False

    if criteria.hauteurMin:
        hauteur = bdtopo.get("hauteur") or bdnb.get("hauteur")
        if not hauteur or float(hauteur) < criteria.hauteurMin:
            return False

    if criteria.surfaceMin:
        surface = bdnb.get("surfacePlancher")
        if not surface or float(surface) < criteria.surfaceMin:
            return False

    if criteria.typesChauffage:
        chauffage = f"{bdnb.get('typeChauffage') or ''} {bdnb.get('energieChauffage') or ''}".lower()
        if not any(t.lower() in chauffage for t in criteria.typesChauffage):
            return False

    if criteria.classesDPE:
        classe = scoring.classe_dpe(p)
        if not classe or classe.upper() not in [c.upper() for c in criteria.classesDPE]:
            return False

    return True


async def search(criteria: ProspectionSearchIn) -> Dict[str, Any]:
    produit = criteria.typeProduit or DEFAULT_PRODUIT
    limit = min(criteria.limit, settings.PROSPECTION_MAX_RESULTS)

    # l'API ne filtre que sur un NAF : les autres sont appliqués après coup
    code_naf = normalize_naf(criteria.codeNAF or (criteria.codesNAF[0] if criteria.codesNAF else None))
    query = NAF_TO_KEYWORD.get(code_naf or "", DEFAULT_QUERY)

    companies = await _fetch_companies(query, criteria, code_naf, limit)
    logger.info(f"[PROSPECTION] {len(companies)} entreprise(s) pour NAF={code_naf} requête={query!r}")

    enrich_limit = limit if criteria.enrichAll else min(settings.PROSPECTION_ENRICH_LIMIT, limit)
    prospects: List[Dict[str, Any]] = []
    for company in companies[:enrich_limit]:
        prospect = await enrich_prospect(company, produit)
        if prospect:
            prospects.append(prospect)

    seuil = criteria.scoreMinimum if criteria.scoreMinimum is not None else scoring.SEUILS_MINIMAUX[produit]
    results: List[Dict[str, Any]] = []
    for p in prospects:
        scores = scoring.score_all(p)
        cible = scores[produit]
        if cible["score"] < seuil or not _technical_match(p, criteria):
            continue
        results.append({
            **p,
            "scoring": scores,
            "scorePertinence": cible["score"],
            "eligible": cible["eligible"],
            "raisons": cible["raisons"],
            "details": cible["details"],
            "estimationCUMAC": scoring.estimate_cumac(p, produit),
            "recommandations": [
                {"produit": produit, "pertinence": "haute" if cible["eligible"] else "moyenne", "raison": r}
                for r in cible["raisons"]
            ],
        })

    results.sort(key=lambda r: r["scorePertinence"], reverse=True)
    logger.info(f"[PROSPECTION] {len(results)} prospect(s) qualifié(s) sur {len(companies)} (seuil {seuil})")

    sources = ["recherche-entreprises"]
    if enrichment.is_enabled("ban"):
        sources.append("ban")
    return {
        "total": len(results),
        "criteria": criteria.model_dump(exclude_none=True),
        "results": results,
        "metadata": {"date": datetime.now(timezone.utc).isoformat(), "sources": sources},
    }


def format_for_export(prospects: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Une ligne plate par prospect, clés de EXPORT_FIELDS."""
    rows = []
    for p in prospects:
        sirene = p.get("sirene") or {}
        adresse = sirene.get("adresse") or {}
        ban = p.get("ban") or {}
        bdnb, bdtopo = p.get("bdnb") or {}, p.get("bdtopo") or {}
        georisques = p.get("georisques") or []
        cumac = p.get("estimationCUMAC") or {}
        sources = p.get("sources") or []
        rows.append({
            "siret": p.get("siret") or "",
            "siren": p.get("siren") or "",
            "denomination": sirene.get("denomination") or "",
            "adresse": adresse.get("adresseComplete") or "",
            "codePostal": adresse.get("codePostal") or "",
            "commune": adresse.get("commune") or "",
            "departement": adresse.get("departement") or "",
            "region": ban.get("region") or "",
            "codeNAF": sirene.get("codeNAF") or "",
            "libelleNAF": sirene.get("libelleNAF") or "",
            "telephone": sirene.get("telephone") or "",
            "email": sirene.get("email") or "",
            "actif": "OUI" if sirene.get("actif") else "NON",
            "scorePertinence": round(p.get("scorePertinence") or 0),
            "eligible": "OUI" if p.get("eligible") else "NON",
            "hauteur": bdtopo.get("hauteur") or bdnb.get("hauteur") or "",
            "surface": bdnb.get("surfacePlancher") or "",
            "nbEtages": bdtopo.get("nombreEtages") or "",
            "classeDPE": scoring.classe_dpe(p) or "",
            "typeChauffage": bdnb.get("typeChauffage") or "",
            "energieChauffage": bdnb.get("energieChauffage") or "",
            "isolationToiture": bdnb.get("isolationToiture") or "",
            "isolationMurs": bdnb.get("isolationMurs") or "",
            "isolationFenetres": bdnb.get("isolationFenetres") or "",
            "siteICPE": "OUI" if georisques else "NON",
            "typeICPE": georisques[0].get("typeIndustrie", "") if georisques else "",
            "produitsRecommandes": " | ".join(p.get("raisons") or []),
            "cumacMin": cumac.get("estimationBasse") or "",
            "cumacMax": cumac.get("estimationHaute") or "",
            "nbSourcesEnrichies": len(sources),
            "sourcesUtilisees": ", ".join(sources),
            "dateEnrichissement": p.get("dateEnrichissement") or "",
        })
    return rows
