"""
Utility functions to turn raw tabular provider data into clean records and keys.
"""

# ### IMPORTS ###

# 1.1 Standard Libraries
import io
import re
import logging
import math
from typing import Any, Dict, List

# 1.2 Third-party libraries
import pandas as pd

# =============================================================================
# CONSTANTS
# =============================================================================
TRUTHY_VALUES = [1, True, "TRUE", "T", "True", "t", "true"]
NA_VALUES = ["", "undefined"]

# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def records_from_csv(text: str) -> List[Dict[str, str]]:
    """
    Parses CSV text into a list of row dicts.

    Every cell is kept as a string and empty cells stay empty strings, so no
    value is coerced to NaN or to a number before normalization decides what
    to do with it.
    """
    df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False)
    records = df.to_dict(orient="records")
    logging.info(f"Parsed {len(records)} rows with columns {list(df.columns)}")
    return records


def truthy(value: Any) -> bool:
    """Whether a provider flag value means 'yes'."""
    return value in TRUTHY_VALUES


def strip_whitespace(value: Any) -> Any:
    """Trims spaces from both ends of strings. Other values pass through."""
    if isinstance(value, str):
        return value.strip(" ")
    return value


def clean_key(value: Any) -> Any:
    """
    Makes a value safe to use inside an ingest id.

    Trims, turns runs of spaces into a single underscore, drops every
    non-word character and lowercases, e.g. "  My Site Name!! " -> "my_site_name".
    Falsy values are returned unchanged.
    """
    if not value:
        return value
    value = str(value).strip()
    value = re.sub(r"\s+", "_", value)
    value = re.sub(r"[^\w]", "", value, flags=re.ASCII)
    return value.lower()


def is_na(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value in NA_VALUES


def strip_na(obj: Dict[str, Any]) -> Dict[str, Any]:
    """Removes NA-type values (None, NaN, '', 'undefined') from the first level of a dict."""
    return {k: v for k, v in obj.items() if not is_na(v)}
