import enum
from pydantic import BaseModel, Field, field_validator
from typing import Optional


class Decision(str, enum.Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class DecisionRequest(BaseModel):
    decision: Decision
    comments: Optional[str] = Field(None, max_length=1000)

    @field_validator("comments")
    @classmethod
    def strip_comments(cls, v):
        if v is None:
            return None
        return v.strip() or None
