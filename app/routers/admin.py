from fastapi import APIRouter

from app.core.gtfs_downloader import gtfs_downloader
from app.core.gtfs_manager import gtfs_manager
from app.core.refresh_controller import refresh_controller
from app.utils.response import success_response

router = APIRouter(prefix="/admin", tags=["admin"])  # protected by API key dependency when included


@router.get(
    "/gtfs/meta",
    summary="GTFS metadata",
    description="Devuelve metadata persistida y en memoria sobre los feeds GTFS y el estado del tablero.",
)
def get_gtfs_meta():
    """Metadata of the GTFS inputs.

    - `disk`: what the downloader persisted next to the zip (`etag`, `last_modified`,
      `last_downloaded_at`, `file_hash`, `file_size`, `status`...)
    - `manager`: in-memory provider state (loaded flags and last errors)
    - `board`: stop, loading flag, combined error and time of the last pass
    """
    board = refresh_controller.state().model_dump(mode="json", exclude={"departures"})
    payload = {
        "disk": gtfs_downloader.get_metadata(),
        "manager": gtfs_manager.get_metadata(),
        "board": board,
    }
    return success_response(payload)
