# app/services/dimensioning.py
"""
Note de dimensionnement d'une pompe à chaleur.

  volume        = surface chauffée × hauteur sous plafond   (m³)
  ΔT            = température de confort − température de base   (K)
  déperditions  = G × volume × ΔT   (W)
  taux          = puissance à Tbase / déperditions × 100   (%)

Conforme si 80 % ≤ taux ≤ 120 % et puissance à Tbase ≥ déperditions.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime
from io import BytesIO
from xml.sax.saxutils import escape
from typing import Any, Dict, Optional

from loguru import logger
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from app.core.config import settings


TAUX_MIN = 80.0
TAUX_MAX = 120.0


@dataclass
class DimensioningResult:
    volume: float
    temperature_base: float
    coefficient_g: float
    delta_t: float
    deperditions: float
    taux_couverture: float
    taux_ok: bool
    puissance_ok: bool

    @property
    def conforme(self) -> bool:
        return self.taux_ok and self.puissance_ok

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["conforme"] = self.conforme
        return data


def compute(
    *,
    surface_chauffee: float,
    hauteur_plafond: float,
    temperature_confort: float,
    temperature_base: float,
    coefficient_g: float,
    puissance_tbase: float,
) -> DimensioningResult:
    """puissance_tbase en W, comme les déperditions."""
    volume = surface_chauffee * hauteur_plafond
    delta_t = temperature_confort - temperature_base
    deperditions = coefficient_g * volume * delta_t
    taux = (puissance_tbase / deperditions * 100) if deperditions > 0 else 0.0

    return DimensioningResult(
        volume=round(volume, 2),
        temperature_base=temperature_base,
        coefficient_g=coefficient_g,
        delta_t=round(delta_t, 2),
        deperditions=round(deperditions, 2),
        taux_couverture=round(taux, 2),
        taux_ok=TAUX_MIN <= taux <= TAUX_MAX,
        puissance_ok=puissance_tbase >= deperditions,
    )


# =========================================================
# PDF
# =========================================================
def _fmt(v: Optional[float], unit: str = "", digits: int = 2) -> str:
    if v is None:
        return "-"
    return f"{v:.{digits}f} {unit}".strip()


def _table(rows, col_widths=(220, 260)) -> Table:
    t = Table(rows, colWidths=list(col_widths))
    t.setStyle(TableStyle([
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("BACKGROUND", (0, 0), (0, -1), colors.whitesmoke),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    return t


def build_note_pdf(client: Any, note: Any, result: DimensioningResult) -> bytes:
    """
    client : ClientBase ; note : DimensioningNote (ou objet aux mêmes attributs).
    Retourne le PDF en mémoire.
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title="Note de dimensionnement")
    story = []

    styles = getSampleStyleSheet()
    h1 = styles["Heading1"]
    h2 = styles["Heading2"]
    normal = styles["Normal"]

    # ---------------------------------------------------------
    # EN-TÊTE SOCIÉTÉ
    # ---------------------------------------------------------
    story.append(Paragraph(f"<b>{escape(settings.COMPANY_NAME)}</b>", h2))
    for line in (
        settings.COMPANY_ADDRESS,
        settings.COMPANY_CITY,
        f"Tél : {settings.COMPANY_PHONE}" if settings.COMPANY_PHONE else "",
        settings.COMPANY_EMAIL,
        f"SIRET : {settings.COMPANY_SIRET}" if settings.COMPANY_SIRET else "",
    ):
        if line:
            story.append(Paragraph(escape(line), normal))
    story.append(Spacer(1, 12))

    story.append(Paragraph("NOTE DE DIMENSIONNEMENT", h1))
    story.append(Paragraph(f"Date : {datetime.now().strftime('%d/%m/%Y')}", normal))
    story.append(Spacer(1, 12))

    # ---------------------------------------------------------
    # CLIENT
    # ---------------------------------------------------------
    story.append(Paragraph("<b>Client</b>", h2))
    story.append(Paragraph(escape(client.societe or ""), normal))
    if client.adresse:
        story.append(Paragraph(escape(client.adresse), normal))
    story.append(Paragraph(escape(f"{client.code_postal or ''} {client.ville or ''}"), normal))
    if client.telephone:
        story.append(Paragraph(escape(f"Téléphone : {client.telephone}"), normal))
    story.append(Spacer(1, 16))

    # ---------------------------------------------------------
    # LOGEMENT / CALCULS
    # ---------------------------------------------------------
    story.append(Paragraph("<b>Caractéristiques du logement</b>", h2))
    story.append(_table([
        ["Surface chauffée", _fmt(note.surface_chauffee, "m²")],
        ["Hauteur sous plafond", _fmt(note.hauteur_plafond, "m")],
        ["Volume", _fmt(result.volume, "m³")],
        ["Zone climatique", note.zone_climatique],
        ["Altitude", f"{note.altitude} m"],
        ["Typologie", note.typologie],
        ["Température de confort", _fmt(note.temperature_confort, "°C", 1)],
    ]))
    story.append(Spacer(1, 16))

    story.append(Paragraph("<b>Calcul des déperditions</b>", h2))
    story.append(_table([
        ["Température de base", _fmt(result.temperature_base, "°C", 1)],
        ["Coefficient G", _fmt(result.coefficient_g, "W/m³.K")],
        ["ΔT", _fmt(result.delta_t, "K", 1)],
        ["Déperditions", _fmt(result.deperditions, "W")],
    ]))
    story.append(Spacer(1, 16))

    # ---------------------------------------------------------
    # POMPE À CHALEUR
    # ---------------------------------------------------------
    story.append(Paragraph("<b>Pompe à chaleur</b>", h2))
    story.append(_table([
        ["Marque", note.marque],
        ["Modèle", note.modele],
        ["Référence unité extérieure", note.reference_exterieur or "-"],
        ["Référence module hydraulique", note.reference_hydraulique or "-"],
        ["Puissance nominale", _fmt(note.puissance_nominale, "W")],
        ["Efficacité saisonnière", _fmt(note.efficacite_saisonniere, "%", 0)],
        ["Puissance à Tbase", _fmt(note.puissance_tbase, "W")],
        ["Température d'arrêt", _fmt(note.temperature_arret, "°C", 1)],
        ["Émetteurs compatibles", note.compatibilite_emetteurs or "-"],
        ["Régime de fonctionnement", note.regime_fonctionnement or "-"],
    ]))
    story.append(Spacer(1, 16))

    # ---------------------------------------------------------
    # CONFORMITÉ
    # ---------------------------------------------------------
    story.append(Paragraph("<b>Vérification</b>", h2))
    ok, ko = colors.HexColor("#10b981"), colors.HexColor("#ef4444")
    checks = Table([
        ["Taux de couverture", _fmt(result.taux_couverture, "%"),
         "OK" if result.taux_ok else f"Hors plage ({TAUX_MIN:.0f}-{TAUX_MAX:.0f} %)"],
        ["Puissance ≥ déperditions", _fmt(note.puissance_tbase, "W"),
         "OK" if result.puissance_ok else "Insuffisante"],
    ], colWidths=[180, 120, 180])
    checks.setStyle(TableStyle([
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("TEXTCOLOR", (2, 0), (2, 0), ok if result.taux_ok else ko),
        ("TEXTCOLOR", (2, 1), (2, 1), ok if result.puissance_ok else ko),
    ]))
    story.append(checks)
    story.append(Spacer(1, 12))

    verdict = "CONFORME" if result.conforme else "NON CONFORME"
    story.append(Paragraph(f"<b>Résultat : {verdict}</b>", h2))

    doc.build(story)
    logger.info(f"[PDF] note de dimensionnement client={client.id} ({verdict})")
    return buffer.getvalue()
