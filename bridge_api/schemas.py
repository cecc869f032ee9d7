from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class SensorRowOut(BaseModel):
    id: int
    suhu: Optional[float] = None
    humidity: Optional[float] = None
    kecerahan: Optional[float] = None
    waktu: Optional[str] = None


class SensorSummaryOut(BaseModel):
    suhumax: Optional[float] = None
    suhumin: Optional[float] = None
    suhurata: Optional[float] = None
    data: List[SensorRowOut] = Field(default_factory=list)


class ErrorOut(BaseModel):
    error: str
