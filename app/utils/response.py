from typing import Any, Dict, Optional

from pydantic import BaseModel


def success_response(data: Any, meta: Optional[Dict] = None) -> Dict:
    """Envelope de éxito: ``{"status": "ok", "data": ..., "meta": {...}}``.

    Los modelos pydantic se serializan en modo JSON (fechas como ISO 8601).
    `meta` solo aparece si se pasa.
    """
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    payload = {"status": "ok", "data": data}
    if meta is not None:
        payload["meta"] = meta
    return payload


def error_response(title: str, status: int, detail: Optional[str] = None, type_: str = "about:blank") -> Dict:
    """Envelope de error al estilo Problem Details: type, title, status, detail."""
    return {"type": type_, "title": title, "status": status, "detail": detail}
