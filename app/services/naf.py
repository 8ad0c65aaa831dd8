# app/services/naf.py
"""
Nomenclature NAF rév. 2 (sections > divisions > sous-classes) chargée depuis app/data/codes_naf.json.
Les codes sont au format "47.11F".
"""
from __future__ import annotations

import json
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

DATA_FILE = Path(__file__).resolve().parent.parent / "data" / "codes_naf.json"

SEARCH_MIN_LENGTH = 2
SEARCH_MAX_RESULTS = 50


@lru_cache
def load_data() -> Dict[str, Any]:
    try:
        data = json.loads(DATA_FILE.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.error(f"[NAF] lecture de {DATA_FILE} impossible: {exc}")
        return {"sections": {}, "categories_cee": {}, "metadata": {}}
    logger.info(f"[NAF] nomenclature chargée ({len(data.get('sections') or {})} sections)")
    return data


def all_codes() -> List[Dict[str, Any]]:
    """Sous-classes à plat, avec leur section et leur division."""
    codes: List[Dict[str, Any]] = []
    for section_code, section in (load_data().get("sections") or {}).items():
        for division_code, division in (section.get("divisions") or {}).items():
            for item in division.get("codes") or []:
                codes.append({
                    **item,
                    "section": section_code,
                    "sectionLibelle": section.get("libelle"),
                    "division": division_code,
                    "divisionLibelle": division.get("libelle"),
                })
    return codes


def filter_codes(section: Optional[str] = None, division: Optional[str] = None) -> List[Dict[str, Any]]:
    codes = all_codes()
    if section:
        codes = [c for c in codes if c["section"] == section]
    if division:
        codes = [c for c in codes if c["division"] == division]
    return codes


def sections() -> List[Dict[str, Any]]:
    return [
        {"code": code, "libelle": s.get("libelle"), "nombreDivisions": len(s.get("divisions") or {})}
        for code, s in (load_data().get("sections") or {}).items()
    ]


def divisions(section_code: str) -> List[Dict[str, Any]]:
    section = (load_data().get("sections") or {}).get(section_code)
    if not section:
        return []
    return [
        {"code": code, "libelle": d.get("libelle"), "nombreCodes": len(d.get("codes") or [])}
        for code, d in (section.get("divisions") or {}).items()
    ]


def search(q: Optional[str]) -> List[Dict[str, Any]]:
    """Recherche sur le code, le libellé et le libellé de division (insensible à la casse)."""
    term = (q or "").strip().lower()
    if len(term) < SEARCH_MIN_LENGTH:
        return []
    found = [
        c for c in all_codes()
        if term in c["code"].lower()
        or term in (c.get("libelle") or "").lower()
        or term in (c.get("divisionLibelle") or "").lower()
    ]
    return found[:SEARCH_MAX_RESULTS]


def categories_cee() -> Dict[str, Any]:
    return load_data().get("categories_cee") or {}


def codes_for_product(type_produit: str) -> List[Dict[str, Any]]:
    category = categories_cee().get(type_produit)
    if not category:
        return []
    wanted = set(category.get("codes") or [])
    return [c for c in all_codes() if c["code"] in wanted]


def code_info(code: str) -> Optional[Dict[str, Any]]:
    code = normalize_code(code)
    return next((c for c in all_codes() if c["code"] == code), None)


def normalize_code(code: Optional[str]) -> str:
    """Met un code au format INSEE : 4711F -> 47.11F, 4711 -> 47.11."""
    clean = re.sub(r"[.\s]", "", code or "").upper()
    if len(clean) > 2:
        return f"{clean[:2]}.{clean[2:]}"
    return clean


def expand_partial_code(code: Optional[str]) -> List[str]:
    """
    "52.10" -> ["52.10A", "52.10B"] ; un code complet est renvoyé tel quel (reformaté).
    """
    if not code:
        return []
    clean = re.sub(r"[.\s]", "", code).upper()
    if clean and clean[-1].isalpha():
        return [normalize_code(clean)]
    return [c["code"] for c in all_codes() if c["code"].replace(".", "").startswith(clean)]


def as_options(
    section: Optional[str] = None,
    division: Optional[str] = None,
    type_produit: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Format liste déroulante, trié par code."""
    codes = filter_codes(section, division)
    if type_produit:
        wanted = {c["code"] for c in codes_for_product(type_produit)}
        codes = [c for c in codes if c["code"] in wanted]
    codes.sort(key=lambda c: c["code"])
    return [
        {
            "value": c["code"],
            "label": f"{c['code']} - {c['libelle']}",
            "libelle": c["libelle"],
            "division": c["divisionLibelle"],
        }
        for c in codes
    ]


def stats() -> Dict[str, Any]:
    data = load_data()
    all_sections = data.get("sections") or {}
    return {
        "totalCodes": len(all_codes()),
        "sections": len(all_sections),
        "divisions": sum(len(s.get("divisions") or {}) for s in all_sections.values()),
        "categoriesCEE": len(categories_cee()),
        "metadata": data.get("metadata") or {},
    }
