from fastapi import FastAPI, Request, Depends
from fastapi.responses import JSONResponse
from fastapi.exceptions import HTTPException as FastAPIHTTPException
from app.utils.response import error_response
from app.routers import departures, realtime, admin
from app.services import gtfs_service
from app.core.security import api_key_required
from app.core.logging_config import setup_logging
from app.core.gtfs_downloader import gtfs_downloader
from app.core.refresh_controller import refresh_controller
from app.core.rt_fetcher import rt_fetcher
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator
import asyncio
from app.config.settings import settings


# inicializar logging lo antes posible
setup_logging()
logger = logging.getLogger("departures")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan handler: arranca los proveedores y el tablero, y los para al cerrar."""
    try:
        os.makedirs(settings.GTFS_DATA_DIR, exist_ok=True)
    except OSError:
        logger.exception("Could not create GTFS_DATA_DIR %s", settings.GTFS_DATA_DIR)

    # carga GTFS en un thread para no bloquear el event loop
    await asyncio.to_thread(gtfs_service.load_if_present)
    rt_fetcher.start()
    if settings.AUTO_DOWNLOAD_GTFS:
        gtfs_downloader.start()
    refresh_controller.start()
    yield
    for component in (refresh_controller, rt_fetcher, gtfs_downloader):
        try:
            await component.stop()
        except Exception:
            logger.exception("Error while stopping %s", type(component).__name__)


# crear la app con lifespan
app = FastAPI(
    title="Departure Board API",
    description="Tablero de salidas en tiempo real a partir de GTFS estático y GTFS-Realtime",
    version="1.0.0",
    lifespan=lifespan,
)

# aplicar dependencia de API key a todos los routers al registrarlos
app.include_router(departures.router, dependencies=[Depends(api_key_required)])
app.include_router(realtime.router, dependencies=[Depends(api_key_required)])
app.include_router(admin.router, dependencies=[Depends(api_key_required)])


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Middleware simple para registrar peticiones entrantes y respuestas.

    Registra: method, path, status_code, elapsed_ms
    """
    start = time.time()
    response = await call_next(request)
    elapsed = (time.time() - start) * 1000
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed:.1f}ms)")
    return response


@app.exception_handler(FastAPIHTTPException)
async def http_exception_handler(request: Request, exc: FastAPIHTTPException):
    payload = error_response(title=str(exc.detail), status=exc.status_code, detail=str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=payload)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    payload = error_response(title="Internal Server Error", status=500, detail=str(exc))
    return JSONResponse(status_code=500, content=payload)
