import logging
import logging.handlers

from app.config.settings import settings

# third-party loggers that are too chatty at INFO for a board refreshed every few seconds
QUIET_LOGGERS = ("uvicorn.access", "uvicorn.error", "aiohttp", "asyncio")


def setup_logging(force: bool = False) -> None:
    """Configura el logging raíz según `settings`.

    - `LOG_LEVEL`: nivel para los loggers ``departures.*``
    - `LOG_TO_CONSOLE`: handler de consola
    - `LOG_FILE`: RotatingFileHandler (10 MB x 5)
    - `LOG_FORMAT`: formato de mensajes

    No hace nada si el root ya tiene handlers (p.ej. pytest), salvo con `force`.
    """
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    root = logging.getLogger()
    if root.handlers and not force:
        return
    for handler in list(root.handlers):
        root.removeHandler(handler)

    root.setLevel(level)
    formatter = logging.Formatter(settings.LOG_FORMAT)

    if settings.LOG_TO_CONSOLE:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        root.addHandler(console)

    if settings.LOG_FILE:
        file_handler = logging.handlers.RotatingFileHandler(
            settings.LOG_FILE, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    logging.getLogger("departures").setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
