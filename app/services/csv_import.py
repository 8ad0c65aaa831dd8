# app/services/csv_import.py
from __future__ import annotations

import io
import math
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from loguru import logger

from app.db.models import CLIENT_BASE_FIELDS, TECHNICAL_FIELDS, TypeProduit


# Encodages essayés dans l'ordre (utf-8-sig retire le BOM Excel)
CSV_ENCODINGS = ("utf-8-sig", "utf-8", "cp1252", "iso-8859-1")

# Colonnes client reconnues dans le CSV (hors champs techniques / statut)
CLIENT_CSV_COLUMNS: Tuple[str, ...] = tuple(c for c in CLIENT_BASE_FIELDS if c != "donnees_enrichies")

LEAD_CSV_COLUMNS: Tuple[str, ...] = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "mobile_phone",
    "address",
)


# =========================
# Helpers
# =========================
def _normalize_header(h: Any) -> str:
    # BOM éventuel resté collé à la 1re colonne + espaces
    return str(h or "").replace("\ufeff", "").strip().lower()


def _clean(val: Any) -> Optional[str]:
    """
    - None / NaN pandas -> None
    - chaîne vide ou 'nan' / 'null' -> None
    - sinon: str.trim() + suppression zero-width
    """
    if val is None:
        return None
    if isinstance(val, float) and math.isnan(val):
        return None

    s = str(val).replace("\u200b", "").strip()
    if not s:
        return None
    if s.lower() in {"nan", "none", "null"}:
        return None
    return s


def read_csv_bytes(content: bytes, sep: str) -> pd.DataFrame:
    """
    Lecture robuste d'un CSV : essais d'encodage, tout en texte,
    en-têtes normalisés (minuscules, sans BOM).
    Lève ValueError si le fichier est vide ou illisible.
    """
    if not content or not content.strip():
        raise ValueError("Fichier CSV vide")

    last_exc: Exception | None = None
    for enc in CSV_ENCODINGS:
        try:
            df = pd.read_csv(
                io.BytesIO(content),
                dtype=str,
                encoding=enc,
                sep=sep,
                keep_default_na=False,
                skip_blank_lines=True,
            )
            break
        except UnicodeDecodeError as exc:
            last_exc = exc
            continue
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
            raise ValueError(f"Fichier CSV illisible: {exc}") from exc
    else:
        raise ValueError(f"Encodage du fichier non reconnu: {last_exc}")

    df.columns = [_normalize_header(c) for c in df.columns]
    return df


def _rows(df: pd.DataFrame) -> List[Tuple[int, Dict[str, Optional[str]]]]:
    """(numéro de ligne dans le fichier, dict nettoyé). L'en-tête est la ligne 1."""
    out: List[Tuple[int, Dict[str, Optional[str]]]] = []
    for idx, rec in enumerate(df.to_dict(orient="records")):
        out.append((idx + 2, {k: _clean(v) for k, v in rec.items()}))
    return out


# =========================
# Clients (séparateur ;)
# =========================
def parse_clients_csv(content: bytes, type_produit: TypeProduit) -> Tuple[List[Dict[str, Any]], List[str]]:
    """
    Retourne (lignes valides, erreurs).
    Chaque ligne valide : {"line", "base": {...}, "donnees_techniques": {...}, "statut"}.
    Une ligne sans société est ignorée et signalée, les autres continuent.
    """
    df = read_csv_bytes(content, sep=";")
    tech_keys = TECHNICAL_FIELDS[type_produit]

    valid: List[Dict[str, Any]] = []
    errors: List[str] = []

    for line_no, row in _rows(df):
        if not row.get("societe"):
            errors.append(f"Ligne {line_no}: Société manquante")
            continue

        base = {col: row.get(col) for col in CLIENT_CSV_COLUMNS}
        tech = {k: row[k] for k in tech_keys if row.get(k) is not None}

        valid.append({
            "line": line_no,
            "base": base,
            "donnees_techniques": tech,
            "statut": row.get("statut"),
        })

    logger.info(f"[CSV CLIENTS] {len(valid)} ligne(s) valides, {len(errors)} rejetée(s)")
    return valid, errors


# =========================
# Leads (séparateur ,)
# =========================
def parse_leads_csv(content: bytes) -> Tuple[List[Dict[str, Any]], List[str]]:
    df = read_csv_bytes(content, sep=",")

    valid: List[Dict[str, Any]] = []
    errors: List[str] = []

    for line_no, row in _rows(df):
        if not row.get("first_name") or not row.get("last_name"):
            errors.append("Ligne ignorée: Nom ou prénom manquant")
            continue
        lead = {col: row.get(col) for col in LEAD_CSV_COLUMNS}
        lead["line"] = line_no
        valid.append(lead)

    logger.info(f"[CSV LEADS] {len(valid)} ligne(s) valides, {len(errors)} rejetée(s)")
    return valid, errors
