"""Error body returned by every handled API failure."""
from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    detail: str
    code: str = Field("error", description="Machine-readable reason, e.g. lat_out_of_range or invalid_transition")
