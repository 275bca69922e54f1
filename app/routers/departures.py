import asyncio
from typing import List

from fastapi import APIRouter, HTTPException

from app.config.settings import settings
from app.core.gtfs_manager import gtfs_manager
from app.core.refresh_controller import refresh_controller
from app.schemas.departures import BoardState, DeparturesResult
from app.schemas.response import Envelope
from app.services.departures_service import board_now, build_departures
from app.services.static_index import resolve_platform_stop_ids
from app.utils.response import success_response

router = APIRouter(prefix="/departures", tags=["Departures"])


@router.get(
    "",
    summary="Tablero de salidas",
    response_model=Envelope[BoardState],
    description=(
        "Devuelve el tablero de salidas actual de la parada configurada, agrupado en "
        "posts (andén/dirección) y con el estado combinado de carga y error.\n\n"
        "Ejemplo:\n``GET /departures``"
    ),
)
async def get_departures():
    return success_response(refresh_controller.state())


@router.get(
    "/board/{stop_id}",
    summary="Tablero de otra parada",
    response_model=Envelope[DeparturesResult],
    description=(
        "Calcula al momento el tablero de `stop_id` con los datos estáticos y en tiempo "
        "real disponibles, sin cambiar la parada configurada.\n\n"
        "Ejemplo:\n``GET /departures/board/1176``"
    ),
)
async def get_board_for_stop(stop_id: str):
    result: DeparturesResult = await asyncio.to_thread(
        build_departures, stop_id, gtfs_manager.static, gtfs_manager.realtime, board_now()
    )
    if not result.Error:
        result.Error = gtfs_manager.static_error or gtfs_manager.rt_error or ""
    return success_response(result)


@router.put(
    "/stop/{stop_id}",
    summary="Cambiar la parada del tablero",
    response_model=Envelope[BoardState],
    description="Cambia la parada objetivo del tablero, reinicia su estado y lanza un recálculo.",
)
async def change_stop(stop_id: str):
    state = await refresh_controller.change_stop(stop_id)
    return success_response(state)


@router.post(
    "/refresh",
    summary="Recalcular el tablero",
    response_model=Envelope[BoardState],
    description="Fuerza un recálculo inmediato del tablero con los datos disponibles.",
)
async def refresh_departures():
    await refresh_controller.refresh()
    return success_response(refresh_controller.state())


@router.get(
    "/{stop_id}/platforms",
    summary="Andenes de una parada",
    response_model=Envelope[List[str]],
    description="Lista los stop_id de andén que pertenecen a la parada lógica `stop_id`.",
    responses={404: {"description": "Stop not found"}, 503: {"description": "Static GTFS not loaded"}},
)
def get_platforms(stop_id: str):
    dataset = gtfs_manager.static
    if dataset is None:
        raise HTTPException(status_code=503, detail="Static GTFS data not loaded")
    stops = {s["stop_id"]: s for s in dataset.stops if s.get("stop_id")}
    platforms = resolve_platform_stop_ids(stop_id, stops, settings.PLATFORM_ID_TEMPLATE)
    if not platforms:
        raise HTTPException(status_code=404, detail="Stop not found")
    return success_response(sorted(platforms))
