"""Departure board service package.

The FastAPI instance lives in the top-level ``app.py``, which shares its name
with this package. It is loaded here by file path and re-exported, so both
``uvicorn app:app`` and ``from app import app`` resolve to the same object.
"""
from importlib import util
import os
import sys

_app_py = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "app.py")

app = None
if os.path.exists(_app_py):
    _spec = util.spec_from_file_location("_departures_app_module", _app_py)
    _module = util.module_from_spec(_spec)
    sys.modules[_spec.name] = _module
    _spec.loader.exec_module(_module)
    app = getattr(_module, "app", None)

__all__ = ["app"]
