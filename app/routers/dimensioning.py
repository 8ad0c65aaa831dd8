# app/routers/dimensioning.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import get_current_user, require_admin
from app.db.models import (
    ClientBase,
    CoefficientGData,
    DimensioningNote,
    TemperatureBaseData,
    User,
)
from app.db.session import get_async_session
from app.schemas.dimensioning import (
    CoefficientDataOut,
    CoefficientUpdate,
    DimensioningIn,
    DimensioningNoteOut,
    TemperatureDataOut,
    TemperatureUpdate,
)
from app.services import storage
from app.services.dimensioning import compute, build_note_pdf

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dimensioning", tags=["dimensioning"])


async def _temperature_base(session: AsyncSession, zone: str, altitude: int) -> float | None:
    return (
        await session.execute(
            select(TemperatureBaseData.temperature)
            .where(
                TemperatureBaseData.zone == zone.upper(),
                TemperatureBaseData.altitude_min <= altitude,
                TemperatureBaseData.altitude_max >= altitude,
            )
            .limit(1)
        )
    ).scalar_one_or_none()


async def _coefficient_g(session: AsyncSession, typologie: str) -> float | None:
    return (
        await session.execute(
            select(CoefficientGData.coefficient).where(CoefficientGData.typologie == typologie)
        )
    ).scalar_one_or_none()


# =========================================================
# DONNÉES DE RÉFÉRENCE (admin)
# =========================================================
@router.get("/temperature-data", response_model=List[TemperatureDataOut])
async def list_temperature_data(
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    q = select(TemperatureBaseData).order_by(TemperatureBaseData.zone, TemperatureBaseData.altitude_min)
    return (await session.execute(q)).scalars().all()


@router.put("/temperature-data/{data_id}")
async def update_temperature_data(
    data_id: int,
    body: TemperatureUpdate,
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    row = await session.get(TemperatureBaseData, data_id)
    if not row:
        raise HTTPException(status_code=404, detail="Donnée de température non trouvée")
    row.temperature = body.temperature
    await session.commit()
    return {"success": True}


@router.get("/coefficient-data", response_model=List[CoefficientDataOut])
async def list_coefficient_data(
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    q = select(CoefficientGData).order_by(CoefficientGData.typologie)
    return (await session.execute(q)).scalars().all()


@router.put("/coefficient-data/{data_id}")
async def update_coefficient_data(
    data_id: int,
    body: CoefficientUpdate,
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    row = await session.get(CoefficientGData, data_id)
    if not row:
        raise HTTPException(status_code=404, detail="Coefficient non trouvé")
    row.coefficient = body.coefficient
    if body.description is not None:
        row.description = body.description
    await session.commit()
    return {"success": True}


# =========================================================
# LOOKUPS
# =========================================================
@router.get("/temperature-base")
async def get_temperature_base(
    zone: str = Query(...),
    altitude: int = Query(..., ge=0),
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    temperature = await _temperature_base(session, zone, altitude)
    if temperature is None:
        raise HTTPException(status_code=404, detail="Température de base non trouvée")
    return {"temperature": temperature}


@router.get("/coefficient-g")
async def get_coefficient_g(
    typologie: str = Query(...),
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    coefficient = await _coefficient_g(session, typologie)
    if coefficient is None:
        raise HTTPException(status_code=404, detail="Coefficient G non trouvé")
    return {"coefficient": coefficient}


@router.get("/zones")
async def list_zones(
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
) -> List[str]:
    q = select(TemperatureBaseData.zone).distinct().order_by(TemperatureBaseData.zone)
    return list((await session.execute(q)).scalars())


@router.get("/typologies")
async def list_typologies(
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    rows = (
        await session.execute(
            select(CoefficientGData.typologie, CoefficientGData.description).order_by(CoefficientGData.typologie)
        )
    ).all()
    return [{"typologie": t, "description": d} for t, d in rows]


# =========================================================
# GÉNÉRATION DE LA NOTE
# =========================================================
@router.post("/generate/{client_id}", status_code=201)
async def generate_note(
    client_id: int,
    body: DimensioningIn,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    client = await session.get(ClientBase, client_id)
    if not client:
        raise HTTPException(status_code=404, detail="Client non trouvé")

    zone = body.zone_climatique.strip().upper()
    temperature_base = await _temperature_base(session, zone, body.altitude)
    if temperature_base is None:
        raise HTTPException(status_code=400, detail="Température de base non trouvée pour cette zone et altitude")

    coefficient_g = await _coefficient_g(session, body.typologie)
    if coefficient_g is None:
        raise HTTPException(status_code=400, detail="Coefficient G non trouvé pour cette typologie")

    result = compute(
        surface_chauffee=body.surface_chauffee,
        hauteur_plafond=body.hauteur_plafond,
        temperature_confort=body.temperature_confort,
        temperature_base=temperature_base,
        coefficient_g=coefficient_g,
        puissance_tbase=body.puissance_tbase,
    )

    note = DimensioningNote(
        client_base_id=client.id,
        user_id=current_user.id,
        **{**body.model_dump(), "zone_climatique": zone},
        volume=result.volume,
        temperature_base=result.temperature_base,
        coefficient_g=result.coefficient_g,
        delta_t=result.delta_t,
        deperditions=result.deperditions,
        taux_couverture=result.taux_couverture,
    )
    session.add(note)
    await session.flush()

    pdf_bytes = build_note_pdf(client, note, result)
    note.pdf_path = storage.store_dimensioning_pdf(client_id=client.id, content=pdf_bytes)
    await session.commit()

    logger.info(
        "Note de dimensionnement %s générée pour le client %s (taux %.2f %%)",
        note.id, client.id, result.taux_couverture,
    )
    return {
        "success": True,
        "noteId": note.id,
        "pdfPath": note.pdf_path,
        "calculations": {
            "volume": result.volume,
            "temperatureBase": result.temperature_base,
            "coefficientG": result.coefficient_g,
            "deltaT": result.delta_t,
            "deperditions": result.deperditions,
            "tauxCouverture": result.taux_couverture,
            "conforme": result.conforme,
        },
    }


@router.get("/pdf/{note_id}")
async def download_note_pdf(
    note_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    note = await session.get(DimensioningNote, note_id)
    if not note:
        raise HTTPException(status_code=404, detail="Note non trouvée")
    if not note.pdf_path or not Path(note.pdf_path).exists():
        raise HTTPException(status_code=404, detail="PDF non trouvé")

    return FileResponse(
        note.pdf_path,
        media_type="application/pdf",
        filename=f"note_dimensionnement_{note.client_base_id}_{note.id}.pdf",
    )


@router.get("/client/{client_id}", response_model=List[DimensioningNoteOut])
async def list_client_notes(
    client_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    rows = (
        await session.execute(
            select(DimensioningNote, User.username)
            .outerjoin(User, User.id == DimensioningNote.user_id)
            .where(DimensioningNote.client_base_id == client_id)
            .order_by(DimensioningNote.created_at.desc(), DimensioningNote.id.desc())
        )
    ).all()

    out = []
    for note, username in rows:
        item = DimensioningNoteOut.model_validate(note, from_attributes=True)
        item.username = username
        out.append(item)
    return out
