from typing import List, Optional

from pydantic import BaseModel


class StatutCreate(BaseModel):
    key: Optional[str] = None
    label: Optional[str] = None
    color: Optional[str] = None
    ordre: Optional[int] = None


class StatutUpdate(BaseModel):
    label: Optional[str] = None
    color: Optional[str] = None
    ordre: Optional[int] = None


class StatutOut(BaseModel):
    id: int
    key: str
    label: str
    color: str
    ordre: int
    active: bool

    class Config:
        from_attributes = True


class StatutReorderIn(BaseModel):
    statutIds: Optional[List[int]] = None
