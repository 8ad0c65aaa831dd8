# app/db/init_db.py
from __future__ import annotations

from loguru import logger
from sqlalchemy import select, func
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import hash_password
from app.db.base import Base
from app.db.models import (
    User,
    UserRole,
    Statut,
    TemperatureBaseData,
    CoefficientGData,
    PRODUIT_STATUTS,
)


# =========================================================
# Données de référence : dimensionnement PAC
# =========================================================
# Tranches d'altitude (m), communes à toutes les zones
ALTITUDE_BANDS: list[tuple[int, int]] = [
    (0, 200),
    (201, 400),
    (401, 500),
    (501, 600),
    (601, 700),
    (701, 800),
    (801, 900),
    (901, 1000),
    (1001, 1200),
    (1201, 1400),
    (1401, 9999),
]

# Température de base (°C) par zone, une valeur par tranche d'altitude
BASE_TEMPERATURES: dict[str, tuple[int, ...]] = {
    "A": (-2, -4, -5, -6, -7, -8, -9, -10, -12, -14, -16),
    "B": (-4, -5, -6, -7, -8, -9, -10, -11, -13, -15, -17),
    "C": (-5, -6, -7, -8, -9, -10, -11, -12, -14, -16, -18),
    "D": (-7, -8, -9, -10, -11, -12, -13, -14, -16, -18, -20),
    "E": (-9, -10, -11, -12, -13, -14, -15, -16, -18, -20, -22),
    "F": (-10, -11, -12, -13, -14, -15, -16, -17, -19, -21, -23),
    "G": (-12, -13, -14, -15, -16, -17, -18, -19, -21, -23, -25),
    "H": (-15, -16, -17, -18, -19, -20, -21, -22, -24, -26, -28),
    "I": (-17, -18, -19, -20, -21, -22, -23, -24, -26, -28, -29),
}

# (typologie, coefficient G en W/(m³·K), description)
COEFFICIENTS_G: list[tuple[str, float, str]] = [
    ("RT 2012", 0.3, "Réglementation Thermique 2012"),
    ("RT 2005", 0.36, "Réglementation Thermique 2005"),
    ("RT 2000", 0.45, "Réglementation Thermique 2000"),
    ("Maison Passive", 0.6, "Maison passive"),
    ("Maison des années 1990-2000", 0.8, "Construction années 1990-2000"),
    ("Maison des années 1980-1990", 1.0, "Construction années 1980-1990"),
    ("Maison des années 1970-1980", 1.1, "Construction années 1970-1980"),
    ("Maison des années 1960-1970", 1.3, "Construction années 1960-1970"),
    ("Maison des années 1950-1960", 1.4, "Construction années 1950-1960"),
    ("Maison des années 1940-1950", 1.6, "Construction années 1940-1950"),
    ("Maison des années 1930-1940", 1.8, "Construction années 1930-1940"),
    ("Maison avant 1930", 2.0, "Construction avant 1930"),
    ("Maison en Pierre", 1.8, "Maison en pierre"),
    ("Maison avec 6 cm de LDV", 0.85, "Maison avec 6 cm de laine de verre"),
    ("Maison avec 10 cm de LDV", 0.65, "Maison avec 10 cm de laine de verre"),
    ("Maison avec 20 cm de LDV", 0.5, "Maison avec 20 cm de laine de verre"),
    ("Maison avec 30 cm de LDV", 0.4, "Maison avec 30 cm de laine de verre"),
    ("Mobil-Home sans RT", 2.2, "Mobil-home sans réglementation"),
    ("Mobil-Home avec RT", 1.6, "Mobil-home avec réglementation"),
    ("Appartement", 1.1, "Appartement standard"),
    ("Véranda", 2.8, "Véranda"),
]


def _count(db: Session, model) -> int:
    return db.execute(select(func.count()).select_from(model)).scalar_one()


def seed_default_admin(db: Session) -> None:
    if _count(db, User) > 0:
        return
    db.add(User(
        username=settings.DEFAULT_ADMIN_USERNAME,
        password_hash=hash_password(settings.DEFAULT_ADMIN_PASSWORD),
        role=UserRole.admin,
    ))
    logger.warning(
        f"[INIT] Aucun utilisateur : compte admin par défaut créé ({settings.DEFAULT_ADMIN_USERNAME})"
    )


def seed_statuts(db: Session) -> None:
    if _count(db, Statut) > 0:
        return
    for ordre, (key, label, color) in enumerate(PRODUIT_STATUTS, start=1):
        db.add(Statut(key=key, label=label, color=color, ordre=ordre, active=True))
    logger.info(f"[INIT] {len(PRODUIT_STATUTS)} statuts insérés")


def seed_dimensioning(db: Session) -> None:
    if _count(db, TemperatureBaseData) == 0:
        for zone, temps in BASE_TEMPERATURES.items():
            for (alt_min, alt_max), temp in zip(ALTITUDE_BANDS, temps):
                db.add(TemperatureBaseData(
                    zone=zone,
                    altitude_min=alt_min,
                    altitude_max=alt_max,
                    temperature=float(temp),
                ))
        logger.info("[INIT] Températures de base insérées")

    if _count(db, CoefficientGData) == 0:
        for typologie, coefficient, description in COEFFICIENTS_G:
            db.add(CoefficientGData(
                typologie=typologie,
                coefficient=coefficient,
                description=description,
            ))
        logger.info(f"[INIT] {len(COEFFICIENTS_G)} coefficients G insérés")


def init_db(engine: Engine) -> None:
    """
    Crée le schéma (si absent) puis insère les données de référence
    manquantes. Idempotent.
    """
    Base.metadata.create_all(bind=engine)
    with Session(engine) as db:
        seed_default_admin(db)
        seed_statuts(db)
        seed_dimensioning(db)
        db.commit()
