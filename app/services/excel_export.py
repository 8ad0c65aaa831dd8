# app/services/excel_export.py
from __future__ import annotations

from io import BytesIO
from typing import Any, Dict, List, Tuple
from datetime import datetime, date

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill


HEADER_FILL = PatternFill(fill_type="solid", fgColor="FF4F81BD")
HEADER_FONT = Font(bold=True, color="FFFFFFFF")
ZEBRA_FILL = PatternFill(fill_type="solid", fgColor="FFF0F0F0")

NOT_ASSIGNED = "Non assigné"

# (en-tête affiché, clé dans les lignes)
CLIENT_COLUMNS: List[Tuple[str, str]] = [
    ("ID", "id"),
    ("Société", "societe"),
    ("Adresse", "adresse"),
    ("Code Postal", "code_postal"),
    ("Ville", "ville"),
    ("Téléphone", "telephone"),
    ("SIRET", "siret"),
    ("Produit", "type_produit"),
    ("Statut", "statut"),
    ("Assigné à", "assigned_username"),
    ("Date création", "created_at"),
]

LEAD_COLUMNS: List[Tuple[str, str]] = [
    ("ID", "id"),
    ("Prénom", "first_name"),
    ("Nom", "last_name"),
    ("Email", "email"),
    ("Téléphone", "phone"),
    ("Mobile", "mobile_phone"),
    ("Statut", "status"),
    ("Assigné à", "assigned_username"),
    ("Date de création", "created_at"),
    ("Dernière mise à jour", "updated_at"),
]

# Couleur de la cellule "Statut" d'un lead
LEAD_STATUS_COLORS: Dict[str, str] = {
    "nouveau": "FF10B981",
    "nrp": "FFF59E0B",
    "a_rappeler": "FF3B82F6",
    "pas_interesse": "FFEF4444",
    "trash": "FF6B7280",
}


def _excel_safe_value(v: Any) -> Any:
    """
    openpyxl refuse les datetimes timezone-aware et les dicts / enums.
    """
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.replace(tzinfo=None) if v.tzinfo is not None else v
    if isinstance(v, (date, bool, int, float)):
        return v
    if hasattr(v, "value"):
        return v.value
    return str(v)


def _autosize(ws, n_cols: int) -> None:
    for col_idx in range(1, n_cols + 1):
        max_len = 0
        for cells in ws.iter_cols(min_col=col_idx, max_col=col_idx, min_row=1):
            for c in cells:
                if c.value is None:
                    continue
                max_len = max(max_len, len(str(c.value)))
        ws.column_dimensions[ws.cell(row=1, column=col_idx).column_letter].width = min(max_len + 2, 45)


def _fill_sheet(ws, columns: List[Tuple[str, str]], rows: List[Dict[str, Any]], header_fill: PatternFill = HEADER_FILL) -> None:
    ws.append([header for header, _ in columns])
    for cell in ws[1]:
        cell.font = HEADER_FONT
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center", vertical="center")
    ws.row_dimensions[1].height = 25

    for idx, r in enumerate(rows):
        values = []
        for _, key in columns:
            v = r.get(key)
            if key == "assigned_username" and not v:
                v = NOT_ASSIGNED
            values.append(_excel_safe_value(v))
        ws.append(values)

        if idx % 2 == 0:
            for cell in ws[ws.max_row]:
                cell.fill = ZEBRA_FILL

    _autosize(ws, len(columns))


def _build_sheet(title: str, columns: List[Tuple[str, str]], rows: List[Dict[str, Any]], header_fill: PatternFill = HEADER_FILL):
    wb = Workbook()
    ws = wb.active
    ws.title = title
    _fill_sheet(ws, columns, rows, header_fill)
    return wb, ws


def _to_buffer(wb: Workbook) -> BytesIO:
    buffer = BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer


def build_clients_excel(rows: List[Dict[str, Any]]) -> BytesIO:
    """
    rows : une ligne par produit (clés de CLIENT_COLUMNS, superset accepté).
    """
    wb, _ = _build_sheet("Clients", CLIENT_COLUMNS, rows)
    return _to_buffer(wb)


def build_leads_excel(rows: List[Dict[str, Any]]) -> BytesIO:
    wb, ws = _build_sheet("Leads", LEAD_COLUMNS, rows)

    status_col = [key for _, key in LEAD_COLUMNS].index("status") + 1
    for row_idx in range(2, ws.max_row + 1):
        cell = ws.cell(row=row_idx, column=status_col)
        color = LEAD_STATUS_COLORS.get(str(cell.value or ""))
        if color:
            cell.fill = PatternFill(fill_type="solid", fgColor=color)
            cell.font = Font(bold=True, color="FFFFFFFF")

    return _to_buffer(wb)


# =========================================================
# Analytics
# =========================================================
SECTION_FILL = PatternFill(fill_type="solid", fgColor="FF5B9BD5")

SUMMARY_LABELS: List[Tuple[str, str]] = [
    ("Clients", "totalClients"),
    ("Produits", "totalProduits"),
    ("Leads", "totalLeads"),
    ("Leads convertis", "convertedLeads"),
    ("Produits signés", "signedProduits"),
    ("Taux de conversion (%)", "conversionRate"),
    ("Taux de signature (%)", "signatureRate"),
]

AGENT_COLUMNS: List[Tuple[str, str]] = [
    ("Télépro", "username"),
    ("Produits", "total_produits"),
    ("Signés", "signed"),
    ("Taux de signature (%)", "signature_rate"),
    ("Leads", "leads"),
    ("Leads convertis", "converted_leads"),
    ("Taux de conversion (%)", "conversion_rate"),
    ("Dernière activité", "last_activity"),
]

RECENT_COLUMNS: List[Tuple[str, str]] = [
    ("ID", "id"),
    ("Société", "societe"),
    ("Produit", "type_produit"),
    ("Statut", "statut"),
    ("Date création", "created_at"),
]


def build_analytics_excel(data: Dict[str, Any], start: Any = None, end: Any = None) -> BytesIO:
    """
    data : sortie de analytics.overview().
    Feuilles : Résumé, Produits par statut, Produits par type, Agents (si présent), Clients récents.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Résumé"

    rows: List[Dict[str, Any]] = []
    if start or end:
        rows.append({"metrique": "Période", "valeur": f"{start or ''} → {end or ''}"})
    summary = data.get("summary") or {}
    rows += [{"metrique": label, "valeur": summary.get(key)} for label, key in SUMMARY_LABELS]
    _fill_sheet(ws, [("Métrique", "metrique"), ("Valeur", "valeur")], rows)
    if start or end:
        for cell in ws[2]:
            cell.fill = SECTION_FILL
            cell.font = HEADER_FONT

    charts = data.get("charts") or {}
    _fill_sheet(
        wb.create_sheet("Produits par statut"),
        [("Statut", "statut"), ("Nombre", "count")],
        charts.get("produitsByStatut") or [],
    )
    _fill_sheet(
        wb.create_sheet("Produits par type"),
        [("Produit", "type_produit"), ("Nombre", "count")],
        charts.get("produitsByType") or [],
    )
    if "agentPerformance" in charts:
        _fill_sheet(wb.create_sheet("Agents"), AGENT_COLUMNS, charts["agentPerformance"])
    _fill_sheet(wb.create_sheet("Clients récents"), RECENT_COLUMNS, data.get("recentClients") or [])

    return _to_buffer(wb)


# =========================================================
# Prospection
# =========================================================
PROSPECT_FILL = PatternFill(fill_type="solid", fgColor="FF059669")

PROSPECT_COLUMNS: List[Tuple[str, str]] = [
    ("SIRET", "siret"),
    ("SIREN", "siren"),
    ("Dénomination", "denomination"),
    ("Adresse", "adresse"),
    ("Code Postal", "codePostal"),
    ("Commune", "commune"),
    ("Code NAF", "codeNAF"),
    ("Libellé NAF", "libelleNAF"),
    ("Téléphone", "telephone"),
    ("Email", "email"),
    ("Actif", "actif"),
    ("Score", "scorePertinence"),
    ("Hauteur (m)", "hauteur"),
    ("Surface (m²)", "surface"),
    ("Classe DPE", "classeDPE"),
    ("Produits Recommandés", "produitsRecommandes"),
]


def build_prospects_excel(rows: List[Dict[str, Any]], criteria: Dict[str, Any] | None = None) -> BytesIO:
    """rows : lignes de prospection.format_for_export()."""
    wb, _ = _build_sheet("Prospects", PROSPECT_COLUMNS, rows, PROSPECT_FILL)

    if criteria:
        crit_rows = [
            {"critere": key, "valeur": ", ".join(map(str, value)) if isinstance(value, list) else value}
            for key, value in criteria.items()
            if value
        ]
        _fill_sheet(
            wb.create_sheet("Critères de recherche"),
            [("Critère", "critere"), ("Valeur", "valeur")],
            crit_rows,
            PROSPECT_FILL,
        )

    return _to_buffer(wb)
