"""Resultado del procesamiento de un mensaje."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .reading import StreamKind


class IngestStatus(Enum):
    STORED = "stored"
    UPDATED = "updated"
    NO_OP = "no_op"
    MALFORMED = "malformed"
    FAILED = "failed"


@dataclass(frozen=True)
class IngestResult:
    stream: StreamKind
    status: IngestStatus
    record_id: Optional[int] = None
    rows_affected: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (IngestStatus.STORED, IngestStatus.UPDATED, IngestStatus.NO_OP)
