"""Simple runner for the FastAPI app.

Usage:
  python run.py

Optional environment variables:
  HOST (default localhost)
  PORT (default 8000)
  UVICORN_RELOAD (true/false)

This script ensures the configured `GTFS_DATA_DIR` exists before starting.
"""
import os
import sys

import uvicorn


def main():
    # ensure project root is on PYTHONPATH when run from repo root
    cwd = os.path.dirname(os.path.abspath(__file__))
    if cwd not in sys.path:
        sys.path.insert(0, cwd)

    from app.config.settings import settings

    if settings.GTFS_DATA_DIR:
        os.makedirs(settings.GTFS_DATA_DIR, exist_ok=True)

    host = os.getenv("HOST", "localhost")
    port = int(os.getenv("PORT", "8000"))
    reload_env = os.getenv("UVICORN_RELOAD", "false").lower()
    reload_flag = reload_env in ("1", "true", "yes", "on")

    # use module string so reload works
    uvicorn.run("app:app", host=host, port=port, reload=reload_flag)


if __name__ == "__main__":
    main()
