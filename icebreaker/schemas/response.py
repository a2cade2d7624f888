from pydantic import BaseModel
from typing import Optional, Any, Dict

class ErrorResponse(BaseModel):
    """
    Standard error response structure.
    """
    error: str
    code: str
    details: Optional[Any] = None

class HealthResponse(BaseModel):
    status: str
    timestamp: float
    environment: str
    version: str
    checks: Dict[str, str] = {}
