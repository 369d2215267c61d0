from pydantic import BaseModel
from typing import Optional, Any


class StandardErrorResponse(BaseModel):
    """Envelope of every error response."""
    success: bool = False
    message: str
    detail: Optional[Any] = None
