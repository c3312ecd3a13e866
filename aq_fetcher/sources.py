"""
Loads source configs: one JSON document per source.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from .exceptions import SourceNotFoundError


def load_sources(sources_dir: Path) -> List[Dict[str, Any]]:
    """Reads every *.json file in sources_dir and keeps the active sources."""
    sources = []
    for path in sorted(Path(sources_dir).glob("*.json")):
        with path.open(encoding="utf-8") as handle:
            source = json.load(handle)
        if source.get("active"):
            sources.append(source)
    logging.info(f"Loaded {len(sources)} active sources from {sources_dir}")
    return sources


def find_source(sources: List[Dict[str, Any]], source_name: str) -> Dict[str, Any]:
    """Finds a source by name, falling back to its provider name."""
    for source in sources:
        if source.get("name") == source_name or source.get("provider") == source_name:
            return source
    raise SourceNotFoundError(f"Unable to find {source_name} in sources.")
