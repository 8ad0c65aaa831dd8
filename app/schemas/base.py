from pydantic import BaseModel
from typing import List, Optional

class Msg(BaseModel):
    """Message simple."""
    message: str

class ImportResult(BaseModel):
    message: str
    imported: int = 0
    errors: Optional[List[str]] = None
