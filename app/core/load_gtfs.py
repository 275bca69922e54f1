import io
import os
import re
import unicodedata
import zipfile
from typing import Callable, Dict, IO

import pandas as pd
from pandas.api import types as pdtypes

# Tables the departure board reads; others in the archive are ignored.
GTFS_TABLES = ["agency", "routes", "trips", "stops", "stop_times", "calendar", "calendar_dates"]

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")


def _clean_text(value: str) -> str:
    """Normalize a single text value.

    - Normalize unicode (NFKC)
    - Remove BOM, zero-width and non-breaking spaces
    - Remove C0/C1 control characters
    - Collapse whitespace and strip
    """
    value = unicodedata.normalize("NFKC", value)
    value = value.replace("\ufeff", "").replace("\u200b", "").replace("\u00a0", " ")
    value = _CONTROL_CHARS.sub("", value)
    return re.sub(r"\s+", " ", value).strip()


def _clean_dataframe(df: pd.DataFrame) -> pd.DataFrame:
    """Clean column names and every text column of a GTFS table."""
    df.columns = [_clean_text(str(c)) for c in df.columns]
    for col in df.columns:
        if pdtypes.is_object_dtype(df[col]) or pdtypes.is_string_dtype(df[col]):
            df[col] = df[col].map(lambda v: _clean_text(v) if isinstance(v, str) else v)
    return df


def _read_table(opener: Callable[[], IO[bytes]]) -> pd.DataFrame:
    """Read one GTFS CSV with every column as text.

    Empty cells stay as empty strings; identifiers keep their leading zeros.
    Falls back to latin-1 for feeds that are not valid UTF-8.
    """
    last_error = None
    for encoding in ("utf-8-sig", "latin-1"):
        try:
            with opener() as raw:
                df = pd.read_csv(
                    io.TextIOWrapper(raw, encoding=encoding),
                    dtype=str,
                    keep_default_na=False,
                    low_memory=False,
                )
            return _clean_dataframe(df)
        except UnicodeDecodeError as e:
            last_error = e
    raise last_error


def load_gtfs_from_directory(dir_path: str) -> Dict[str, pd.DataFrame]:
    """Carga las tablas GTFS desde un directorio descomprimido y devuelve dataframes."""
    dfs: Dict[str, pd.DataFrame] = {}
    for table in GTFS_TABLES:
        file_path = os.path.join(dir_path, f"{table}.txt")
        if os.path.exists(file_path):
            dfs[table] = _read_table(lambda p=file_path: open(p, "rb"))
    return dfs


def load_gtfs_from_zip(zip_path: str) -> Dict[str, pd.DataFrame]:
    """Carga las tablas GTFS desde un ZIP y devuelve dataframes.

    Acepta ficheros en la raíz del ZIP o dentro de una única carpeta.
    """
    dfs: Dict[str, pd.DataFrame] = {}
    with zipfile.ZipFile(zip_path, "r") as z:
        by_basename = {os.path.basename(n): n for n in z.namelist() if not n.endswith("/")}
        for table in GTFS_TABLES:
            member = by_basename.get(f"{table}.txt")
            if member is not None:
                dfs[table] = _read_table(lambda m=member: z.open(m))
    return dfs
