import logging
import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

from app.config.settings import settings

logger = logging.getLogger("departures.security")


def api_key_required(x_api_key: Optional[str] = Header(None)) -> bool:
    """Valida la cabecera `X-API-Key` contra `settings.API_KEY`.

    Sin API_KEY configurada el tablero es público (modo desarrollo/kiosco).
    """
    expected = settings.API_KEY
    if not expected:
        return True
    if x_api_key is None or not secrets.compare_digest(x_api_key, expected):
        logger.warning("Rejected request with %s API key", "missing" if x_api_key is None else "invalid")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing API Key")
    return True
