"""Data ingestion loaders for operator-uploaded production exports."""

from .exports import load_export, months_in
from .utils import extract_month, normalise_date, normalise_percentage, parse_number, safe_float

__all__ = [
    "load_export",
    "months_in",
    "extract_month",
    "normalise_date",
    "normalise_percentage",
    "parse_number",
    "safe_float",
]
