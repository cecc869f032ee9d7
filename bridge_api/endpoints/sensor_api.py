"""Endpoint de agregados de sensores."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from common.db import get_db
from ..errors import QueryError
from ..queries import compute_snapshot
from ..schemas import ErrorOut, SensorRowOut, SensorSummaryOut

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sensors"])


@router.get(
    "/api/sensor",
    response_model=SensorSummaryOut,
    responses={500: {"model": ErrorOut}},
)
def get_sensor_summary(db: Session = Depends(get_db)):
    """Máximo, mínimo y promedio de temperatura más los 10 registros más recientes."""
    try:
        snapshot = compute_snapshot(db)
    except QueryError as e:
        return JSONResponse(status_code=500, content={"error": str(e)})

    return SensorSummaryOut(
        suhumax=snapshot.max_temperature,
        suhumin=snapshot.min_temperature,
        suhurata=snapshot.avg_temperature,
        data=[
            SensorRowOut(
                id=r.id,
                suhu=r.temperature,
                humidity=r.humidity,
                kecerahan=r.lux,
                waktu=r.formatted_timestamp,
            )
            for r in snapshot.recent
        ],
    )
