from typing import Any, Dict, Optional

from pydantic import BaseModel


class EnrichmentSearchIn(BaseModel):
    q: Optional[str] = None
    codePostal: Optional[str] = None
    departement: Optional[str] = None
    codeNAF: Optional[str] = None
    typeProduit: Optional[str] = None
    limit: int = 20


class EnrichmentFormatIn(BaseModel):
    enrichedData: Optional[Dict[str, Any]] = None
