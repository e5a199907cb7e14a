"""Utilities for loading batched search requests from spreadsheets."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, List, Mapping, MutableMapping, Optional, Sequence, Union

import pandas as pd

from ..models import AgeFilter, SearchQuery, SearchRequest

LOGGER = logging.getLogger(__name__)

PathLike = Union[str, Path]

_FIELD_SYNONYMS: Mapping[str, Sequence[str]] = {
    "name": ("name", "full_name", "person", "keyword"),
    "title": ("title", "job_title", "position", "role"),
    "region": ("region", "state", "location"),
    "count": ("count", "requested_count", "quantity", "limit"),
    "age_min": ("age_min", "min_age", "minimum_age"),
    "age_max": ("age_max", "max_age", "maximum_age"),
    "customer_id": ("customer_id", "customer", "client_id"),
}


class UnsupportedFileTypeError(ValueError):
    """Raised when an unsupported file format is passed to the loader."""


def load_search_requests(
    path: PathLike,
    *,
    column_mapping: Optional[Mapping[str, str]] = None,
    sheet_name: Union[str, int, None] = 0,
    default_count: int = 10,
    loader_kwargs: Optional[MutableMapping[str, Any]] = None,
) -> List[SearchRequest]:
    """Load search requests from a spreadsheet.

    Parameters
    ----------
    path:
        Path to the CSV/TSV/XLSX file to be loaded.
    column_mapping:
        Optional mapping of request field names (``name``, ``title``,
        ``region``, ``count``, ``age_min``, ``age_max``, ``customer_id``) to
        column names, overriding the built-in synonyms.
    sheet_name:
        Sheet selector passed to :func:`pandas.read_excel` when loading an Excel
        file. Ignored for CSV files.
    default_count:
        Number of candidates requested when a row has no usable count.
    loader_kwargs:
        Extra keyword arguments forwarded to :func:`pandas.read_csv` or
        :func:`pandas.read_excel`.
    """

    dataframe = _read_dataframe(path, sheet_name=sheet_name, loader_kwargs=loader_kwargs)
    mapping = dict(column_mapping or {})
    resolved = {field: _resolve_column(field, dataframe.columns, mapping) for field in _FIELD_SYNONYMS}
    requests: List[SearchRequest] = []

    for index, row in dataframe.iterrows():
        if _row_is_empty(row):
            continue
        request = _row_to_request(row, resolved, default_count)
        if request is None:
            LOGGER.warning("Skipping row %s: no name, title or region given", index)
            continue
        requests.append(request)

    return requests


def _read_dataframe(
    path: PathLike,
    *,
    sheet_name: Union[str, int, None] = 0,
    loader_kwargs: Optional[MutableMapping[str, Any]] = None,
) -> pd.DataFrame:
    loader_kwargs = dict(loader_kwargs or {})
    path_obj = Path(path)
    suffix = path_obj.suffix.lower()

    if suffix in {".csv", ".tsv"}:
        if suffix == ".tsv":
            loader_kwargs.setdefault("sep", "\t")
        return pd.read_csv(path_obj, **loader_kwargs)

    if suffix in {".xls", ".xlsx", ".xlsm"}:
        engine = loader_kwargs.pop("engine", None) or "openpyxl"
        return pd.read_excel(path_obj, sheet_name=sheet_name, engine=engine, **loader_kwargs)

    raise UnsupportedFileTypeError(f"Unsupported file extension: {path_obj.suffix}")


def _row_is_empty(row: pd.Series) -> bool:
    return all(pd.isna(value) or (isinstance(value, str) and not value.strip()) for value in row.values)


def _row_to_request(
    row: pd.Series, columns: Mapping[str, Optional[str]], default_count: int
) -> Optional[SearchRequest]:
    query = SearchQuery(
        name=_extract_text(row, columns["name"]) or "",
        title=_extract_text(row, columns["title"]) or "",
        region=_extract_text(row, columns["region"]) or "",
    )
    if not (query.name or query.title or query.region):
        return None

    count = _extract_int(row, columns["count"])
    age_min = _extract_int(row, columns["age_min"])
    age_max = _extract_int(row, columns["age_max"])
    age_filter = None
    if age_min is not None or age_max is not None:
        age_filter = AgeFilter(min_age=age_min if age_min is not None else 0, max_age=age_max if age_max is not None else 150)

    return SearchRequest(
        query=query,
        requested_count=count if count and count > 0 else default_count,
        customer_id=_extract_text(row, columns["customer_id"]) or "anonymous",
        age_filter=age_filter,
    )


def _resolve_column(field: str, available_columns: Iterable[str], mapping: Mapping[str, str]) -> Optional[str]:
    if field in mapping:
        return mapping[field]

    synonyms = tuple(name.lower() for name in _FIELD_SYNONYMS[field])
    for synonym in synonyms:
        for column in available_columns:
            if str(column).strip().lower().replace(" ", "_") == synonym:
                return column
    return None


def _extract_text(row: pd.Series, column: Optional[str]) -> Optional[str]:
    if column is None or column not in row:
        return None
    value = row[column]
    if pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def _extract_int(row: pd.Series, column: Optional[str]) -> Optional[int]:
    text = _extract_text(row, column)
    if text is None:
        return None
    try:
        return int(float(text))
    except ValueError:
        LOGGER.warning("Ignoring non-numeric value %r in column %s", text, column)
        return None


__all__ = ["load_search_requests", "UnsupportedFileTypeError"]
