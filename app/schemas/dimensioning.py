# app/schemas/dimensioning.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TemperatureDataOut(BaseModel):
    id: int
    zone: str
    altitude_min: int
    altitude_max: int
    temperature: float

    class Config:
        from_attributes = True


class CoefficientDataOut(BaseModel):
    id: int
    typologie: str
    coefficient: float
    description: Optional[str] = None

    class Config:
        from_attributes = True


class TemperatureUpdate(BaseModel):
    temperature: float


class CoefficientUpdate(BaseModel):
    coefficient: float
    description: Optional[str] = None


class DimensioningIn(BaseModel):
    # --- Logement ---
    surface_chauffee: float = Field(gt=0)
    hauteur_plafond: float = Field(gt=0)
    zone_climatique: str
    altitude: int = Field(ge=0)
    typologie: str
    temperature_confort: float = 19.0

    # --- Pompe à chaleur ---
    marque: str
    modele: str
    reference_exterieur: Optional[str] = None
    reference_hydraulique: Optional[str] = None
    puissance_nominale: float
    efficacite_saisonniere: Optional[float] = None
    puissance_tbase: float
    temperature_arret: Optional[float] = None
    compatibilite_emetteurs: Optional[str] = None
    regime_fonctionnement: Optional[str] = None


class DimensioningNoteOut(BaseModel):
    id: int
    client_base_id: int
    user_id: Optional[int] = None
    username: Optional[str] = None
    surface_chauffee: float
    hauteur_plafond: float
    zone_climatique: str
    altitude: int
    typologie: str
    temperature_confort: float
    marque: str
    modele: str
    puissance_nominale: float
    puissance_tbase: float
    volume: float
    temperature_base: float
    coefficient_g: float
    delta_t: float
    deperditions: float
    taux_couverture: float
    pdf_path: Optional[str] = None
    created_at: Optional[datetime] = None
