import logging
import os

from app.config.settings import settings
from app.core.gtfs_downloader import gtfs_zip_path
from app.core.gtfs_manager import gtfs_manager

logger = logging.getLogger("departures")


def load_if_present() -> bool:
    """Intenta cargar GTFS desde directorio o ZIP si existe.

    Si AUTO_DOWNLOAD_GTFS está habilitado, no hace nada ya que el downloader
    se encarga de descargar y cargar el feed.

    Prioridad: directorio `<GTFS_DATA_DIR>/gtfs` -> ZIP.
    Devuelve True si se cargó, False si no existe o falló.
    """
    if settings.AUTO_DOWNLOAD_GTFS:
        logger.info("AUTO_DOWNLOAD_GTFS is enabled, skipping manual load (downloader will handle it)")
        return True

    gtfs_dir = os.path.join(settings.GTFS_DATA_DIR or "data/gtfs", "gtfs")
    zip_path = gtfs_zip_path()
    for path in (gtfs_dir, zip_path):
        if os.path.isdir(path) or os.path.isfile(path):
            try:
                gtfs_manager.load(path)
                logger.info(f"GTFS loaded from {path}")
                return True
            except Exception as e:
                logger.exception(f"Failed to load GTFS from {path}: {e}")
                return False

    message = f"GTFS not found at {gtfs_dir} or {zip_path}; no data loaded"
    logger.warning(message)
    gtfs_manager.set_static_error(message)
    return False
