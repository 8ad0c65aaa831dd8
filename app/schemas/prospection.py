from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ProspectionSearchIn(BaseModel):
    codeNAF: Optional[str] = None
    codesNAF: Optional[List[str]] = None
    departement: Optional[str] = None
    region: Optional[str] = None
    codePostal: Optional[str] = None
    commune: Optional[str] = None
    typeProduit: Optional[str] = None
    scoreMinimum: Optional[int] = Field(None, ge=0, le=100)
    limit: int = Field(100, ge=1)
    enrichAll: bool = False
    # critères techniques
    hauteurMin: Optional[float] = None
    surfaceMin: Optional[float] = None
    typesChauffage: Optional[List[str]] = None
    classesDPE: Optional[List[str]] = None

    def has_target(self) -> bool:
        return bool(self.codeNAF or self.codesNAF or self.departement or self.region or self.codePostal)


class ProspectionExportIn(BaseModel):
    results: Optional[List[Dict[str, Any]]] = None
    criteria: Optional[Dict[str, Any]] = None
