"""Request bodies for the HTTP API."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class PlanRequest(BaseModel):
    prompt: str = Field(..., description="Free-text instruction")


class RunRequest(BaseModel):
    steps: Any = Field(..., description="A step object or a list of steps")


class QuickRequest(BaseModel):
    url: str = Field(..., description="Page to screenshot")
    email: Optional[str] = Field(None, description="Recipient; DEFAULT_TO when omitted")
