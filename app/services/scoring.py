# app/services/scoring.py
"""
Score de pertinence (0-100) d'un prospect pour chaque produit CEE.

Le prospect est un dict multi-sources ; les clés lues sont :
  sirene     {codeNAF, ...}
  bdnb       {hauteur, surfacePlancher, typeChauffage, typeInstallation, classeDPE,
              nombreLogements, consommationEstimee, isolationMurs, isolationToiture,
              potentielRenovation, raccordeReseauChaleur, nombreNiveaux, codeNAF}
  bdtopo     {hauteur, hauteurEstimee, nombreEtages, surfaceEmpriseAuSol, nature, usage}
  dpe        [{surface, etiquetteDPE, typeEnergieChauffage, typeInstallationChauffage, consommation}]
  georisques [{pertinenceMatelasIsolants, typeIndustrie, regime, enActivite}]
Toute clé absente est simplement ignorée.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

PRODUITS = ("destratification", "pression", "matelas_isolants")

# 0 : tous les prospects sont éligibles, seul le tri compte
SEUILS_MINIMAUX: Dict[str, int] = {
    "destratification": 0,
    "pression": 0,
    "matelas_isolants": 0,
}

# Préfixes NAF prioritaires par produit
NAF_PERTINENTS: Dict[str, List[str]] = {
    "destratification": ["47.11", "47.19", "52.10", "52.24", "56.10", "93.11", "10.", "28.", "01."],
    "pression": ["86.10", "87.", "55.", "85.", "91.04", "93."],
    "matelas_isolants": ["24.", "25.", "20.", "23.", "10.", "28.", "29.", "30."],
}

DPE_MAUVAIS = ("E", "F", "G")
DPE_MOYEN_OU_MAUVAIS = ("D", "E", "F", "G")

# kWh cumac / m² (bas, haut, haut si passoire E-G)
CUMAC_PAR_M2 = {
    "destratification": (50, 150, 200),
    "pression": (30, 80, 80),
    "matelas_isolants": (100, 300, 400),
}


def _first(*values: Any) -> Any:
    for v in values:
        if v:
            return v
    return None


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    return data.get(key) or {}


def _first_dpe(data: Dict[str, Any]) -> Dict[str, Any]:
    dpe = data.get("dpe") or []
    return dpe[0] if dpe else {}


def classe_dpe(data: Dict[str, Any]) -> Optional[str]:
    return _first(_section(data, "bdnb").get("classeDPE"), _first_dpe(data).get("etiquetteDPE"))


def naf_pertinent(code_naf: Optional[str], produit: str) -> bool:
    if not code_naf:
        return False
    return any(code_naf.startswith(prefix) for prefix in NAF_PERTINENTS.get(produit, []))


def _result(produit: str, score: int, details: Dict[str, Any], raisons: List[str], criteres: Dict[str, bool]):
    seuil = SEUILS_MINIMAUX[produit]
    return {
        "score": min(score, 100),
        "eligible": score >= seuil,
        "seuilMinimum": seuil,
        "details": details,
        "raisons": raisons,
        "criteresCles": criteres,
    }


def score_destratification(data: Dict[str, Any]) -> Dict[str, Any]:
    """Hauteur (40), surface (20), chauffage aérien (20), activité (15 + 5), DPE (5)."""
    bdnb, bdtopo, dpe = _section(data, "bdnb"), _section(data, "bdtopo"), _first_dpe(data)
    score = 0
    details: Dict[str, Any] = {}
    raisons: List[str] = []

    hauteur = _first(bdtopo.get("hauteur"), bdtopo.get("hauteurEstimee"), bdnb.get("hauteur"))
    etages = _first(bdtopo.get("nombreEtages"), bdnb.get("nombreNiveaux"))
    if hauteur:
        if hauteur >= 8:
            pts, niveau = 40, "excellent"
            raisons.append(f"Hauteur exceptionnelle ({hauteur}m) - Fort potentiel destratification")
        elif hauteur >= 6:
            pts, niveau = 30, "tres_bon"
            raisons.append(f"Hauteur élevée ({hauteur}m) - Bon potentiel destratification")
        elif hauteur >= 4:
            pts, niveau = 20, "minimum"
            raisons.append(f"Hauteur suffisante ({hauteur}m) - Minimum requis atteint")
        else:
            pts, niveau = 0, "insuffisant"
            raisons.append(f"Hauteur insuffisante ({hauteur}m < 4m)")
        score += pts
        details["hauteur"] = {"valeur": hauteur, "points": pts, "niveau": niveau}
    elif etages:
        # ~3 m par niveau
        if etages >= 3:
            score += 25
            details["hauteur"] = {"valeur": f"{etages} étages (estimé {etages * 3}m)", "points": 25, "niveau": "estime_bon"}
            raisons.append(f"{etages} étages détectés (hauteur estimée suffisante)")
        elif etages >= 2:
            score += 15
            details["hauteur"] = {"valeur": f"{etages} étages (estimé {etages * 3}m)", "points": 15, "niveau": "estime_moyen"}
            raisons.append(f"{etages} étages - Hauteur estimée moyenne")

    surface = _first(bdnb.get("surfacePlancher"), bdtopo.get("surfaceEmpriseAuSol"), dpe.get("surface"))
    if surface:
        if surface >= 2000:
            pts, niveau = 20, "tres_grande"
            raisons.append(f"Surface très importante ({surface}m²) - Fort volume à traiter")
        elif surface >= 1000:
            pts, niveau = 15, "grande"
            raisons.append(f"Grande surface ({surface}m²)")
        elif surface >= 500:
            pts, niveau = 10, "moyenne"
            raisons.append(f"Surface moyenne ({surface}m²)")
        else:
            pts, niveau = 5, "petite"
        score += pts
        details["surface"] = {"valeur": surface, "points": pts, "niveau": niveau}

    type_chauffage = _first(bdnb.get("typeChauffage"), dpe.get("typeEnergieChauffage"))
    type_installation = _first(bdnb.get("typeInstallation"), dpe.get("typeInstallationChauffage"))
    if type_chauffage or type_installation:
        texte = f"{type_chauffage or ''} {type_installation or ''}".lower()
        if any(k in texte for k in ("air", "aérien", "aérotherme", "pulsion")):
            pts, niveau = 20, "ideal"
            raisons.append("Chauffage aérien/air pulsé - Idéal pour destratification")
        elif "radiant" in texte or "rayonnant" in texte:
            pts, niveau = 15, "tres_bon"
            raisons.append("Chauffage radiant - Compatible destratification")
        else:
            pts, niveau = 5, "autre"
        score += pts
        details["chauffage"] = {"type": type_chauffage, "installation": type_installation, "points": pts, "niveau": niveau}

    code_naf = _first(_section(data, "sirene").get("codeNAF"), bdnb.get("codeNAF"))
    if code_naf:
        if naf_pertinent(code_naf, "destratification"):
            score += 15
            details["activite"] = {"codeNAF": code_naf, "pertinence": True, "points": 15, "niveau": "pertinent"}
            raisons.append(f"Activité pertinente (NAF {code_naf})")
        else:
            score += 5
            details["activite"] = {"codeNAF": code_naf, "pertinence": False, "points": 5, "niveau": "autre"}

    nature = (bdtopo.get("nature") or "").lower()
    usage = (bdtopo.get("usage") or "").lower()
    if "industriel" in nature or "commercial" in nature or "entrepôt" in usage or "commerce" in usage:
        score += 5
        details["typeBatiment"] = {"nature": nature, "usage": usage, "points": 5}
        raisons.append(f"Type bâtiment favorable ({nature or usage})")

    classe = classe_dpe(data)
    if classe in DPE_MOYEN_OU_MAUVAIS:
        score += 5
        details["dpe"] = {"classe": classe, "points": 5}
        raisons.append(f"DPE {classe} - Potentiel économies d'énergie")

    return _result("destratification", score, details, raisons, {
        "hauteurOk": bool(hauteur and hauteur >= 4),
        "surfaceOk": bool(surface and surface >= 500),
    })


def score_pression(data: Dict[str, Any]) -> Dict[str, Any]:
    """Chauffage collectif (40), surface (20), énergie (15), logements (10), activité (10), consommation (5)."""
    bdnb, bdtopo, dpe = _section(data, "bdnb"), _section(data, "bdtopo"), _first_dpe(data)
    score = 0
    details: Dict[str, Any] = {}
    raisons: List[str] = []

    installation = _first(bdnb.get("typeInstallation"), dpe.get("typeInstallationChauffage")) or ""
    texte = installation.lower()
    collectif = "collectif" in texte or "chaufferie" in texte
    if collectif:
        score += 40
        details["installation"] = {"type": installation, "points": 40, "niveau": "ideal"}
        raisons.append("Chauffage collectif détecté - Idéal pour solution pression")
    elif "chaudière" in texte or "chaudiere" in texte:
        score += 30
        details["installation"] = {"type": installation, "points": 30, "niveau": "tres_bon"}
        raisons.append("Chaudière détectée - Compatible solution pression")
    elif bdnb.get("raccordeReseauChaleur"):
        score += 35
        details["installation"] = {"type": "Réseau de chaleur", "points": 35, "niveau": "tres_bon"}
        raisons.append("Raccordé réseau de chaleur - Excellent candidat")
    elif "central" in texte:
        score += 20
        details["installation"] = {"type": installation, "points": 20, "niveau": "bon"}
        raisons.append("Chauffage central - Potentiel solution pression")

    surface = _first(bdnb.get("surfacePlancher"), bdtopo.get("surfaceEmpriseAuSol"))
    if surface:
        if surface >= 1500:
            pts, niveau = 20, "tres_grande"
            raisons.append(f"Surface très importante ({surface}m²) - Grand réseau à gérer")
        elif surface >= 800:
            pts, niveau = 15, "grande"
            raisons.append(f"Grande surface ({surface}m²)")
        elif surface >= 500:
            pts, niveau = 10, "moyenne"
        else:
            pts, niveau = 5, "petite"
        score += pts
        details["surface"] = {"valeur": surface, "points": pts, "niveau": niveau}

    energie = _first(bdnb.get("typeChauffage"), dpe.get("typeEnergieChauffage"))
    if energie:
        e = energie.lower()
        if "gaz" in e or "fioul" in e:
            score += 15
            details["energie"] = {"type": energie, "points": 15, "niveau": "ideal"}
            raisons.append(f"Énergie {energie} - Système pression applicable")
        elif "bois" in e or "biomasse" in e:
            score += 10
            details["energie"] = {"type": energie, "points": 10, "niveau": "bon"}
            raisons.append(f"Énergie {energie} - Compatible")

    logements = bdnb.get("nombreLogements")
    if logements and logements > 1:
        if logements >= 20:
            pts, niveau = 10, "collectif_important"
            raisons.append(f"{logements} logements - Collectif important")
        elif logements >= 10:
            pts, niveau = 7, "collectif"
            raisons.append(f"{logements} logements - Collectif moyen")
        else:
            pts, niveau = 5, "petit_collectif"
        score += pts
        details["logements"] = {"nombre": logements, "points": pts, "niveau": niveau}

    code_naf = _section(data, "sirene").get("codeNAF")
    if naf_pertinent(code_naf, "pression"):
        score += 10
        details["activite"] = {"codeNAF": code_naf, "pertinence": True, "points": 10}
        raisons.append(f"Activité pertinente pour solution pression (NAF {code_naf})")

    consommation = _first(bdnb.get("consommationEstimee"), dpe.get("consommation"))
    if consommation and consommation > 200:
        score += 5
        details["consommation"] = {"valeur": consommation, "points": 5}
        raisons.append(f"Consommation élevée ({consommation} kWh/m²/an) - Économies potentielles")

    return _result("pression", score, details, raisons, {
        "chauffageCollectifOk": collectif,
        "surfaceOk": bool(surface and surface >= 500),
    })


def score_matelas_isolants(data: Dict[str, Any]) -> Dict[str, Any]:
    """Site ICPE (40 + 5), isolation (30 + 5), surface (15), type d'industrie (10), économies (5)."""
    bdnb, bdtopo, dpe = _section(data, "bdnb"), _section(data, "bdtopo"), _first_dpe(data)
    georisques = data.get("georisques") or []
    score = 0
    details: Dict[str, Any] = {}
    raisons: List[str] = []

    if georisques:
        icpe = georisques[0]
        type_industrie = icpe.get("typeIndustrie") or ""
        pertinence = icpe.get("pertinenceMatelasIsolants") or 0
        if pertinence >= 80:
            score += 40
            details["icpe"] = {"present": True, "type": type_industrie, "regime": icpe.get("regime"),
                               "points": 40, "niveau": "tres_pertinent"}
            raisons.append(f"Site ICPE {type_industrie} très pertinent (score {pertinence}/100)")
        elif pertinence >= 60:
            score += 30
            details["icpe"] = {"present": True, "type": type_industrie, "points": 30, "niveau": "pertinent"}
            raisons.append(f"Site ICPE {type_industrie} pertinent")
        else:
            score += 20
            details["icpe"] = {"present": True, "type": type_industrie, "points": 20, "niveau": "moyen"}
            raisons.append("Site industriel classé détecté")
        if icpe.get("enActivite"):
            score += 5
            raisons.append("Site en activité - Besoin immédiat potentiel")
    else:
        code_naf = _section(data, "sirene").get("codeNAF")
        if naf_pertinent(code_naf, "matelas_isolants"):
            score += 25
            details["icpe"] = {"present": False, "nafIndustriel": True, "codeNAF": code_naf, "points": 25}
            raisons.append(f"Activité industrielle détectée (NAF {code_naf})")

    classe = classe_dpe(data)
    murs = bdnb.get("isolationMurs")
    toiture = bdnb.get("isolationToiture")
    if classe in DPE_MAUVAIS:
        score += 30
        details["isolation"] = {"dpe": classe, "niveau": "mauvais", "points": 30}
        raisons.append(f"DPE {classe} - Isolation très insuffisante, fort potentiel amélioration")
    elif classe == "D":
        score += 20
        details["isolation"] = {"dpe": classe, "niveau": "moyen", "points": 20}
        raisons.append("DPE D - Isolation moyenne, potentiel amélioration")
    elif not murs or murs < 5:
        score += 15
        details["isolation"] = {"murs": murs or 0, "niveau": "faible", "points": 15}
        raisons.append("Isolation murs faible ou absente")

    if not toiture or toiture < 10:
        score += 5
        details["isolation"] = {**details.get("isolation", {}), "toiture": toiture or 0, "bonus": 5}
        raisons.append("Isolation toiture également défaillante")

    surface = _first(bdnb.get("surfacePlancher"), bdtopo.get("surfaceEmpriseAuSol"))
    if surface:
        if surface >= 2000:
            score += 15
            details["surface"] = {"valeur": surface, "points": 15, "niveau": "tres_grande"}
            raisons.append(f"Surface très importante ({surface}m²) - Volume matelas important")
        elif surface >= 1000:
            score += 10
            details["surface"] = {"valeur": surface, "points": 10, "niveau": "grande"}
            raisons.append(f"Grande surface ({surface}m²)")
        elif surface >= 500:
            score += 5
            details["surface"] = {"valeur": surface, "points": 5, "niveau": "moyenne"}

    if georisques:
        type_industrie = georisques[0].get("typeIndustrie") or ""
        if "Chaufferie" in type_industrie or "Combustion" in type_industrie:
            score += 10
            details["typeIndustrie"] = {"type": type_industrie, "pertinence": "haute", "points": 10}
            raisons.append(f"Type industrie très pertinent: {type_industrie}")
        elif any(k in type_industrie for k in ("Métallurgie", "Chimie", "Production")):
            score += 7
            details["typeIndustrie"] = {"type": type_industrie, "pertinence": "moyenne", "points": 7}
            raisons.append(f"Type industrie pertinent: {type_industrie}")

    consommation = _first(bdnb.get("consommationEstimee"), dpe.get("consommation"))
    potentiel = bdnb.get("potentielRenovation")
    if (consommation and consommation > 250) or potentiel == "élevé":
        score += 5
        details["economiesPotentielles"] = {"consommation": consommation, "potentiel": potentiel, "points": 5}
        raisons.append("Fort potentiel d'économies d'énergie")

    return _result("matelas_isolants", score, details, raisons, {
        "siteIndustrielOk": bool(georisques),
        "isolationDefaillante": classe in DPE_MOYEN_OU_MAUVAIS,
    })


SCORERS = {
    "destratification": score_destratification,
    "pression": score_pression,
    "matelas_isolants": score_matelas_isolants,
}


def score_all(data: Dict[str, Any]) -> Dict[str, Any]:
    scores = {produit: scorer(data) for produit, scorer in SCORERS.items()}

    meilleur_produit, meilleur_score = None, 0
    for produit, result in scores.items():
        if result["eligible"] and result["score"] > meilleur_score:
            meilleur_produit, meilleur_score = produit, result["score"]

    return {
        **scores,
        "meilleurProduit": meilleur_produit,
        "meilleurScore": meilleur_score,
        "nombreProduitsEligibles": sum(1 for s in scores.values() if s["eligible"]),
    }


def score_for_product(data: Dict[str, Any], produit: str) -> int:
    scorer = SCORERS.get(produit, score_destratification)
    return scorer(data)["score"]


def estimate_cumac(data: Dict[str, Any], produit: str) -> Optional[Dict[str, Any]]:
    """Fourchette de kWh cumac ; None sans surface connue."""
    bdnb, bdtopo = _section(data, "bdnb"), _section(data, "bdtopo")
    surface = _first(bdnb.get("surfacePlancher"), bdtopo.get("surfaceEmpriseAuSol"))
    if not surface:
        return None

    bas, haut, haut_passoire = CUMAC_PAR_M2.get(produit, (0, 0, 0))
    if classe_dpe(data) in DPE_MAUVAIS:
        haut = haut_passoire

    return {
        "estimationBasse": round(surface * bas),
        "estimationHaute": round(surface * haut),
        "unite": "kWh cumac",
        "surface": surface,
        "cumacParM2": f"{bas}-{haut}",
    }
