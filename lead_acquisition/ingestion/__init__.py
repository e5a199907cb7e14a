"""Spreadsheet import of search requests and export of delivered results."""

from .exporters import RESULT_COLUMNS, export_search_results, results_to_dataframe
from .loaders import UnsupportedFileTypeError, load_search_requests

__all__ = [
    "RESULT_COLUMNS",
    "UnsupportedFileTypeError",
    "export_search_results",
    "load_search_requests",
    "results_to_dataframe",
]
