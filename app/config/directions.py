import json
import logging
import os
from typing import Dict, Optional, Set, Tuple

from app.config.settings import settings

logger = logging.getLogger("departures")

DirectionNames = Dict[str, Dict[str, str]]

# path -> (mtime, parsed names); the file is re-read only when it changes
_cache: Dict[str, Tuple[float, DirectionNames]] = {}
_reported_missing: Set[str] = set()


def _parse(raw: object, path: str) -> DirectionNames:
    if not isinstance(raw, dict):
        logger.warning("Direction names file %s must contain a JSON object", path)
        return {}
    out: DirectionNames = {}
    for stop_id, names in raw.items():
        if isinstance(names, dict):
            out[str(stop_id)] = {str(k): str(v) for k, v in names.items() if v}
    return out


def load_direction_names(path: Optional[str] = None) -> DirectionNames:
    """Carga los nombres de dirección configurados por parada.

    Formato JSON: ``{"<stop_id>": {"<direction_id>": "<nombre>"}}``.
    Devuelve un dict vacío si el fichero no existe o es inválido. Se llama en
    cada pasada del tablero: los cambios del fichero se aplican sin reiniciar.
    """
    path = path or settings.DIRECTIONS_FILE
    if not path:
        return {}
    try:
        mtime = os.path.getmtime(path)
    except OSError:
        if path not in _reported_missing:
            _reported_missing.add(path)
            logger.warning("Direction names file %s not found; using default group names", path)
        _cache.pop(path, None)
        return {}
    _reported_missing.discard(path)

    cached = _cache.get(path)
    if cached is not None and cached[0] == mtime:
        return cached[1]
    try:
        with open(path, "r", encoding="utf-8") as f:
            names = _parse(json.load(f), path)
    except (OSError, ValueError):
        logger.warning("Could not read direction names from %s", path, exc_info=True)
        names = {}
    _cache[path] = (mtime, names)
    return names
