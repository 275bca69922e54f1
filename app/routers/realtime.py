from typing import Optional

from fastapi import APIRouter, Query

from app.config.settings import settings
from app.core.gtfs_manager import gtfs_manager
from app.core.refresh_controller import refresh_controller
from app.schemas.departures import VehicleInfo
from app.services.alerts import extract_alert_message
from app.services.realtime_index import index_realtime
from app.utils.response import success_response

router = APIRouter(prefix="/realtime", tags=["Realtime"])


@router.get(
    "/alerts",
    summary="Alertas en tiempo real",
    description=(
        "Texto de las alertas del feed RT que afectan a una parada (cabecera y "
        "descripción, separadas por una línea en blanco). Sin `stop_id` se usa "
        "la parada del tablero."
    ),
)
def get_alerts(stop_id: Optional[str] = Query(None), language: Optional[str] = Query(None)):
    stop_id = stop_id or refresh_controller.stop_id
    lang = settings.ALERT_LANGUAGE if language is None else language
    message = extract_alert_message(gtfs_manager.realtime, stop_id, lang)
    return success_response({"stop_id": stop_id, "message": message})


@router.get(
    "/vehicles",
    summary="Posiciones de vehículos en tiempo real",
    description=(
        "Último estado conocido de cada vehículo por trip_id (estado, parada, "
        "timestamp y posición). Se puede filtrar por `trip_id`."
    ),
)
def get_vehicles(trip_id: Optional[str] = Query(None)):
    _, vehicles = index_realtime(gtfs_manager.realtime)
    out = []
    for tid, status in sorted(vehicles.items()):
        if trip_id and tid != trip_id:
            continue
        out.append(VehicleInfo(
            trip_id=tid,
            current_status=status.current_status,
            stop_id=status.stop_id,
            timestamp=status.timestamp,
            latitude=status.latitude,
            longitude=status.longitude,
            speed=status.speed,
        ).model_dump())
    return success_response(out)
