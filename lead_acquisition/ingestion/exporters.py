"""Export utilities for delivered search results."""
from __future__ import annotations

from pathlib import Path
from typing import MutableMapping, Optional, Sequence, Union

import pandas as pd

from ..models import SearchResult

PathLike = Union[str, Path]

RESULT_COLUMNS = [
    "task_id",
    "candidate_id",
    "name",
    "title",
    "organization",
    "city",
    "region",
    "email",
    "phone",
    "phone_type",
    "phone_state",
    "verification_score",
    "age",
    "carrier",
]


def export_search_results(
    results: Sequence[SearchResult],
    path: PathLike,
    *,
    sheet_name: str = "Results",
    exporter_kwargs: Optional[MutableMapping[str, object]] = None,
) -> Path:
    """Write the delivered result set to a CSV, TSV or Excel file."""

    dataframe = results_to_dataframe(results)
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    _write_dataframe(dataframe, output_path, sheet_name=sheet_name, exporter_kwargs=exporter_kwargs)
    return output_path


def results_to_dataframe(results: Sequence[SearchResult]) -> pd.DataFrame:
    """Convert results into a :class:`pandas.DataFrame`, one row per candidate."""

    rows = [result.as_row() for result in results if result.accepted]
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def _write_dataframe(
    dataframe: pd.DataFrame,
    path: Path,
    *,
    sheet_name: str,
    exporter_kwargs: Optional[MutableMapping[str, object]],
) -> None:
    exporter_kwargs = dict(exporter_kwargs or {})
    suffix = path.suffix.lower()

    if suffix in {".csv", ".tsv"}:
        if suffix == ".tsv":
            exporter_kwargs.setdefault("sep", "\t")
        dataframe.to_csv(path, index=False, **exporter_kwargs)
        return

    if suffix in {".xls", ".xlsx", ".xlsm"}:
        engine = exporter_kwargs.pop("engine", None) or "openpyxl"
        dataframe.to_excel(path, index=False, sheet_name=sheet_name, engine=engine, **exporter_kwargs)
        return

    raise ValueError(f"Unsupported export file extension: {suffix}")


__all__ = ["RESULT_COLUMNS", "export_search_results", "results_to_dataframe"]
