# app/routers/naf.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.roles import get_current_user
from app.db.models import User
from app.services import naf

router = APIRouter(prefix="/naf", tags=["naf"])


@router.get("/all")
async def list_codes(
    section: Optional[str] = None,
    division: Optional[str] = None,
    typeProduit: Optional[str] = None,
    format: Optional[str] = Query(None, description="'frontend' pour le format liste déroulante"),
    current_user: User = Depends(get_current_user),
):
    if format == "frontend":
        codes = naf.as_options(section, division, typeProduit)
    else:
        codes = naf.filter_codes(section, division)
    return {"total": len(codes), "codes": codes}


@router.get("/search")
async def search_codes(
    q: str = Query(""),
    current_user: User = Depends(get_current_user),
):
    results = naf.search(q)
    return {
        "total": len(results),
        "results": [
            {
                "value": c["code"],
                "label": f"{c['code']} - {c['libelle']}",
                "division": c["divisionLibelle"],
                "section": c["sectionLibelle"],
            }
            for c in results
        ],
    }


@router.get("/sections")
async def list_sections(current_user: User = Depends(get_current_user)):
    sections = naf.sections()
    return {"total": len(sections), "sections": sections}


@router.get("/divisions/{section_code}")
async def list_divisions(section_code: str, current_user: User = Depends(get_current_user)):
    divisions = naf.divisions(section_code.upper())
    return {"sectionCode": section_code, "total": len(divisions), "divisions": divisions}


@router.get("/product/{type_produit}")
async def codes_for_product(type_produit: str, current_user: User = Depends(get_current_user)):
    codes = naf.codes_for_product(type_produit)
    return {
        "typeProduit": type_produit,
        "total": len(codes),
        "codes": [
            {"value": c["code"], "label": f"{c['code']} - {c['libelle']}", "division": c["divisionLibelle"]}
            for c in codes
        ],
    }


@router.get("/code/{code}")
async def get_code(code: str, current_user: User = Depends(get_current_user)):
    info = naf.code_info(code)
    if not info:
        raise HTTPException(status_code=404, detail="Code NAF non trouvé")
    return info


@router.get("/categories-cee")
async def categories_cee(current_user: User = Depends(get_current_user)):
    categories = naf.categories_cee()
    return {"total": len(categories), "categories": categories}


@router.get("/stats")
async def naf_stats(current_user: User = Depends(get_current_user)):
    return naf.stats()
