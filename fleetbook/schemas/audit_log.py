from pydantic import BaseModel
from typing import Optional


class RequestContext(BaseModel):
    """Caller details copied onto every audit entry written during a request."""
    ipAddress: Optional[str] = None
    userAgent: Optional[str] = None
